"""Value types for the Discord entities guildkeeper works with.

Discord's JSON payloads carry snowflakes as strings; everything here uses
plain ints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# ---------------------------------------------------------------------------
# Channel type constants
# ---------------------------------------------------------------------------

CH_TEXT        = 0
CH_VOICE       = 2
CH_CATEGORY    = 4
CH_ANNOUNCEMENT = 5
CH_FORUM       = 15

DISCORD_EPOCH_MS = 1420070400000


def snowflake_time(snowflake: int) -> datetime:
    """Creation time encoded in the top 42 bits of a Discord snowflake."""
    ms = (snowflake >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _optional_id(value) -> Optional[int]:
    return int(value) if value else None


@dataclass(frozen=True)
class Channel:
    id: int
    guild_id: Optional[int]
    name: str
    topic: str = ""
    nsfw: bool = False
    parent_id: Optional[int] = None
    type: int = CH_TEXT
    position: int = 0
    last_message_id: Optional[int] = None

    @property
    def last_activity(self) -> Optional[datetime]:
        """Time of the last message, or None if the channel never saw one."""
        if self.last_message_id is None:
            return None
        return snowflake_time(self.last_message_id)

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"

    @classmethod
    def from_payload(cls, data: dict) -> "Channel":
        return cls(
            id=int(data["id"]),
            guild_id=_optional_id(data.get("guild_id")),
            name=data.get("name", ""),
            topic=data.get("topic") or "",
            nsfw=bool(data.get("nsfw", False)),
            parent_id=_optional_id(data.get("parent_id")),
            type=data.get("type", CH_TEXT),
            position=data.get("position", 0),
            last_message_id=_optional_id(data.get("last_message_id")),
        )


@dataclass(frozen=True)
class Member:
    user_id: int
    guild_id: int
    role_ids: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_payload(cls, guild_id: int, data: dict) -> "Member":
        return cls(
            user_id=int(data["user"]["id"]),
            guild_id=guild_id,
            role_ids=frozenset(int(r) for r in data.get("roles", [])),
        )


@dataclass(frozen=True)
class Invocation:
    """Who triggered an action, and from which guild (None outside a guild)."""

    user_id: int
    guild_id: Optional[int] = None

    @property
    def mention(self) -> str:
        return f"<@{self.user_id}>"
