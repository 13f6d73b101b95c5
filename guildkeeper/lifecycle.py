"""
Create, update, claim and delete channels in the self-managed category.

Each call handles one channel and keeps no state between calls: every guard
works on the channel as Discord reported it for this invocation. Remote
mutations that already went through are not rolled back if a later step
fails.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from . import ownership, ordering
from .audit import AuditLog
from .client import DiscordClient
from .config import SelfManagement
from .errors import ConfigurationError, ValidationError
from .models import CH_CATEGORY, Channel, Invocation
from .policy import require_edit

log = logging.getLogger(__name__)

# Channel edits share a very tight rate limit (two renames per ten minutes),
# so the edit call gets a deadline instead of queueing behind it.
EDIT_TIMEOUT = 10.0

NAME_LIMIT = 100
TOPIC_LIMIT = 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelLifecycle:
    def __init__(
        self,
        client: DiscordClient,
        config: SelfManagement,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.config = config
        self.clock = clock
        self.audit = AuditLog(client, config)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_guild(self, invocation: Invocation) -> int:
        if invocation.guild_id is None:
            raise ValidationError("This command can only be used inside a server.")
        return invocation.guild_id

    def _check_managed(self, invocation: Invocation, channel: Channel) -> int:
        """Channel must live in the invoking guild and the managed category."""
        guild_id = self._require_guild(invocation)
        if channel.guild_id != guild_id:
            raise ValidationError("This channel does not belong to this server.")
        if channel.parent_id is None:
            raise ValidationError("This channel has no category.")
        if channel.parent_id != self.config.category:
            raise ValidationError(
                "This channel is not in the self-managed category and cannot be changed."
            )
        return guild_id

    def _check_fields(self, name: Optional[str], topic: Optional[str]) -> None:
        if name is not None and not 1 <= len(name.strip()) <= NAME_LIMIT:
            raise ValidationError(f"Channel names must be 1 to {NAME_LIMIT} characters long.")
        if topic is not None and len(topic) > TOPIC_LIMIT:
            raise ValidationError(
                f"The description is too long (at most {TOPIC_LIMIT} characters, "
                "including the ownership line)."
            )

    def _with_owner(self, description: str, owner: int) -> str:
        if not self.config.ownership:
            return description
        return ownership.replace_marker(description, owner)

    def _sort(self, guild_id: int) -> None:
        ordering.reorder(self.client, guild_id, self.config.category)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, invocation: Invocation, name: str, description: str) -> Channel:
        guild_id = self._require_guild(invocation)

        category = self.client.get_channel(self.config.category)
        if category.guild_id != guild_id:
            raise ValidationError("Self-managed channels are not set up on this server.")
        if category.type != CH_CATEGORY:
            raise ConfigurationError(
                f"Configured category {self.config.category} is not a category channel."
            )

        topic = self._with_owner(description, invocation.user_id)
        self._check_fields(name, topic)

        channel = self.client.create_channel(guild_id, name, topic, self.config.category)
        log.info("Created #%s (%s) for %s", channel.name, channel.id, invocation.user_id)

        self.audit.notify("Channel created", invocation, None, channel)
        self._sort(guild_id)
        return channel

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        invocation: Invocation,
        channel: Channel,
        name: Optional[str] = None,
        description: Optional[str] = None,
        nsfw: Optional[bool] = None,
    ) -> Channel:
        """Apply only the fields that were given; the rest keep their values."""
        guild_id = self._check_managed(invocation, channel)
        require_edit(invocation.user_id, channel, self.config, self.clock())

        fields: dict = {}
        if name is not None:
            fields["name"] = name
        if description is not None:
            # keep the current owner, the editor only becomes owner of an
            # unclaimed channel
            marker = ownership.decode(channel.topic)
            owner = marker.owner if marker else invocation.user_id
            fields["topic"] = self._with_owner(description, owner)
        if nsfw is not None:
            fields["nsfw"] = nsfw

        if not fields:
            log.debug("Update of #%s without any field, nothing to do", channel.name)
            return channel

        self._check_fields(fields.get("name"), fields.get("topic"))
        after = self.client.edit_channel(channel, timeout=EDIT_TIMEOUT, **fields)
        log.info("Updated #%s (%s) for %s: %s",
                 after.name, after.id, invocation.user_id, ", ".join(sorted(fields)))

        self.audit.notify("Channel updated", invocation, channel, after)
        self._sort(guild_id)
        return after

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    def claim(self, invocation: Invocation, channel: Channel) -> Channel:
        """Make the invoking member the owner of an unclaimed or abandoned channel."""
        if not (self.config.ownership and self.config.claiming):
            raise ConfigurationError("Claiming channels is not enabled on this server.")

        self._check_managed(invocation, channel)
        require_edit(invocation.user_id, channel, self.config, self.clock())

        topic = ownership.replace_marker(channel.topic, invocation.user_id)
        self._check_fields(None, topic)
        after = self.client.edit_channel(channel, timeout=EDIT_TIMEOUT, topic=topic)
        log.info("#%s (%s) claimed by %s", after.name, after.id, invocation.user_id)

        # Claims are not written to the audit log. That matches the behaviour
        # the bot always had; it may deserve an entry of its own.
        return after

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, invocation: Invocation, channel: Channel) -> None:
        self._check_managed(invocation, channel)
        require_edit(invocation.user_id, channel, self.config, self.clock())

        self.client.delete_channel(channel.id)
        log.info("Deleted #%s (%s) for %s", channel.name, channel.id, invocation.user_id)

        self.audit.notify("Channel deleted", invocation, channel, None)
