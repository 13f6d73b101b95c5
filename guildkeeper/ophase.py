"""
Orientation-phase group access.

New students get the group password in person. Entering it grants the
configured role and points them at the group channel. Role and channel are
looked up by name on every call, so renaming either on the server only needs
a config change.
"""

from __future__ import annotations

import hmac
import logging

from .client import DiscordClient
from .config import Config, OPhase
from .errors import ConfigurationError, ValidationError
from .models import Invocation

log = logging.getLogger(__name__)

# Length limits of the password form field.
PASSWORD_MIN = 5
PASSWORD_MAX = 40

COLOR_WELCOME = 0x19B1F1
EPHEMERAL = 1 << 6


def _role_id(client: DiscordClient, guild_id: int, config: OPhase) -> int:
    for role in client.get_guild_roles(guild_id):
        if role.get("name") == config.role_name:
            return int(role["id"])
    raise ConfigurationError(f"No role named {config.role_name!r} found on this server.")


def _channel_id(client: DiscordClient, guild_id: int, config: OPhase) -> int:
    for channel in client.get_guild_channels(guild_id):
        if channel.name == config.channel_name:
            return channel.id
    raise ConfigurationError(f"No channel named {config.channel_name!r} found on this server.")


def join(client: DiscordClient, config: Config, invocation: Invocation, password: str) -> dict:
    """Grant the group role for a correct password; returns the ephemeral reply."""
    if config.o_phase is None:
        raise ConfigurationError("The orientation phase is not configured.")
    if invocation.guild_id is None:
        raise ValidationError("This command can only be used inside a server.")

    role_id = _role_id(client, invocation.guild_id, config.o_phase)
    channel_id = _channel_id(client, invocation.guild_id, config.o_phase)

    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        raise ValidationError(
            f"The group password is {PASSWORD_MIN} to {PASSWORD_MAX} characters long."
        )
    if not hmac.compare_digest(password.encode("utf-8"),
                               config.o_phase.password.encode("utf-8")):
        log.info("Wrong group password from %s", invocation.user_id)
        raise ValidationError(
            "Sorry, that is not the right group password. Please ask again :)"
        )

    member = client.get_member(invocation.guild_id, invocation.user_id)
    if role_id in member.role_ids:
        log.debug("%s already holds the group role", invocation.user_id)
    else:
        client.add_member_roles(member, {role_id})
        log.info("Added %s to the orientation phase", invocation.user_id)

    return {
        "embeds": [{
            "title": "Welcome to the orientation phase!",
            "description": f"See you in <#{channel_id}> :)",
            "color": COLOR_WELCOME,
        }],
        "flags": EPHEMERAL,
    }
