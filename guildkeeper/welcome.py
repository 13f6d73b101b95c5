"""
Welcome message with table-of-contents buttons.

The welcome text comes from the configured file. Underneath it sits one row of
buttons: one opening the role assignment menus, and one per ``[[toc]]`` entry
showing that file's content to whoever clicked it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .client import DiscordClient
from .config import Config
from .errors import ConfigurationError, ValidationError
from .models import CH_TEXT, Channel, Invocation
from .roles import (
    ASSIGN_PREFIX,
    RoleAssignments,
    assignment_menus,
    describe,
    emoji_payload,
    parse_assign_custom_id,
)

log = logging.getLogger(__name__)

TOC_PREFIX = "toc:"
ASSIGNMENTS_ID = "assignments"

BUTTON_PRIMARY = 1
BUTTON_SUCCESS = 3

EPHEMERAL = 1 << 6


def welcome_components(config: Config) -> list[dict]:
    buttons = []
    if config.self_assignments is not None:
        buttons.append({
            "type": 2,
            "style": BUTTON_SUCCESS,
            "custom_id": ASSIGNMENTS_ID,
            "label": config.self_assignments.label,
            "emoji": emoji_payload(config.self_assignments.icon),
        })
    for entry in config.toc:
        buttons.append({
            "type": 2,
            "style": BUTTON_PRIMARY,
            "custom_id": f"{TOC_PREFIX}{entry.file.filename}",
            "label": entry.label,
            "emoji": emoji_payload(entry.icon),
        })
    # Discord allows at most five buttons per row
    return [{"type": 1, "components": buttons[i:i + 5]} for i in range(0, len(buttons), 5)]


def _welcome_payload(config: Config) -> dict:
    if config.welcome is None:
        raise ConfigurationError("No welcome message is configured.")
    return {
        "content": str(config.welcome),
        "components": welcome_components(config),
        "allowed_mentions": {"parse": []},
    }


def post_welcome(client: DiscordClient, config: Config, invocation: Invocation, channel: Channel) -> dict:
    """Post the welcome message into ``channel``."""
    if invocation.guild_id is None or channel.guild_id != invocation.guild_id:
        raise ValidationError("Current server differs from the server of the target channel.")
    if channel.type != CH_TEXT:
        raise ValidationError(f"#{channel.name} is not a text channel.")

    message = client.send_message(channel.id, _welcome_payload(config))
    log.info("Posted welcome message in #%s", channel.name)
    return message


def update_welcome(
    client: DiscordClient,
    config: Config,
    invocation: Invocation,
    channel_id: int,
    message_id: int,
) -> dict:
    """Rewrite an earlier welcome message with the current configuration."""
    if invocation.guild_id is None:
        raise ValidationError("This command can only be used inside a server.")
    channels = client.get_guild_channels(invocation.guild_id)
    if not any(ch.id == channel_id for ch in channels):
        raise ValidationError("The target message was not posted in this server.")

    payload = _welcome_payload(config)
    # keep link previews of the welcome text out of the message
    payload["flags"] = 1 << 2
    message = client.edit_message(channel_id, message_id, payload)
    log.info("Updated welcome message %s", message_id)
    return message


# ---------------------------------------------------------------------------
# Component interactions
# ---------------------------------------------------------------------------

def toc_content(config: Config, custom_id: str) -> str:
    filename = custom_id[len(TOC_PREFIX):]
    for entry in config.toc:
        if entry.file.filename == filename:
            return entry.file.content
    raise ValidationError(f"Unknown toc file: {filename}")


def handle_component(
    client: DiscordClient,
    config: Config,
    invocation: Invocation,
    custom_id: str,
    values: Iterable[str] = (),
    member_role_ids: Optional[Iterable[int]] = None,
) -> dict:
    """Answer a button or select-menu click with ephemeral response data.

    ``member_role_ids`` are the roles sent along with the interaction; they
    only drive menu preselection, never the reconciliation itself.
    """
    if custom_id.startswith(TOC_PREFIX):
        return {"content": toc_content(config, custom_id), "flags": EPHEMERAL}

    if custom_id == ASSIGNMENTS_ID:
        if config.self_assignments is None:
            raise ConfigurationError("Self-assignable roles are not configured.")
        return {
            "content": str(config.self_assignments.prolog),
            "flags": EPHEMERAL,
            "components": assignment_menus(config.assignments, member_role_ids or ()),
        }

    if custom_id.startswith(ASSIGN_PREFIX):
        assignment_id = parse_assign_custom_id(custom_id)
        engine = RoleAssignments(client, config.assignments)
        delta = engine.reconcile(invocation, assignment_id, values)
        return {
            "content": describe(delta),
            "flags": EPHEMERAL,
            "allowed_mentions": {"parse": []},
        }

    raise ValidationError(f"Unknown component: {custom_id}")
