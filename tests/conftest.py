from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from guildkeeper.config import Assignment, Role, SelfManagement
from guildkeeper.errors import RemoteError
from guildkeeper.models import CH_CATEGORY, CH_TEXT, DISCORD_EPOCH_MS, Channel, Member

GUILD = 1000
OTHER_GUILD = 2000
CATEGORY = 1100
OTHER_CATEGORY = 1200
LOG_PUBLIC = 1300
LOG_DETAILED = 1400
OWNER = 501
STRANGER = 502

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def snowflake_at(when: datetime) -> int:
    ms = int(when.timestamp() * 1000) - DISCORD_EPOCH_MS
    return ms << 22


def hours_ago(hours: float) -> int:
    return snowflake_at(NOW - timedelta(hours=hours))


class FakeDiscord:
    """In-memory stand-in for DiscordClient that records every call."""

    def __init__(self):
        self.channels: dict[int, Channel] = {}
        self.members: dict[tuple[int, int], Member] = {}
        self.calls: list[tuple] = []
        self.sent: list[tuple[int, dict]] = []
        self.edit_error = None
        self.send_errors: dict[int, Exception] = {}
        self.roles: list[dict] = []
        self._next_id = 9000

    def add_channel(self, **kwargs) -> Channel:
        kwargs.setdefault("guild_id", GUILD)
        kwargs.setdefault("type", CH_TEXT)
        channel = Channel(**kwargs)
        self.channels[channel.id] = channel
        return channel

    def add_member(self, user_id: int, roles=(), guild_id: int = GUILD) -> Member:
        member = Member(user_id, guild_id, frozenset(roles))
        self.members[(guild_id, user_id)] = member
        return member

    def mutations(self) -> list[str]:
        return [c[0] for c in self.calls if not c[0].startswith("get")]

    # -- channels --

    def get_channel(self, channel_id):
        self.calls.append(("get_channel", channel_id))
        if channel_id not in self.channels:
            raise RemoteError(404, "get", f"/channels/{channel_id}")
        return self.channels[channel_id]

    def get_guild_channels(self, guild_id):
        self.calls.append(("get_guild_channels", guild_id))
        return [ch for ch in self.channels.values() if ch.guild_id == guild_id]

    def create_channel(self, guild_id, name, topic, parent_id, channel_type=CH_TEXT):
        self.calls.append(("create_channel", guild_id, name, topic, parent_id))
        self._next_id += 1
        return self.add_channel(id=self._next_id, guild_id=guild_id, name=name,
                                topic=topic, parent_id=parent_id, type=channel_type,
                                position=len(self.channels))

    def edit_channel(self, channel, timeout=None, **fields):
        self.calls.append(("edit_channel", channel.id, timeout, fields))
        if self.edit_error is not None:
            raise self.edit_error
        current = self.channels[channel.id]
        updated = replace(current, **fields)
        self.channels[channel.id] = updated
        return updated

    def delete_channel(self, channel_id):
        self.calls.append(("delete_channel", channel_id))
        del self.channels[channel_id]

    def reorder_channels(self, guild_id, positions):
        positions = list(positions)
        self.calls.append(("reorder_channels", guild_id, positions))
        for cid, pos in positions:
            self.channels[cid] = replace(self.channels[cid], position=pos)

    # -- members --

    def get_guild_roles(self, guild_id):
        self.calls.append(("get_guild_roles", guild_id))
        return list(self.roles)

    def get_member(self, guild_id, user_id):
        self.calls.append(("get_member", guild_id, user_id))
        return self.members[(guild_id, user_id)]

    def remove_member_roles(self, member, role_ids):
        role_ids = frozenset(role_ids)
        self.calls.append(("remove_member_roles", member.user_id, role_ids))
        current = self.members[(member.guild_id, member.user_id)]
        updated = replace(current, role_ids=current.role_ids - role_ids)
        self.members[(member.guild_id, member.user_id)] = updated
        return updated

    def add_member_roles(self, member, role_ids):
        role_ids = frozenset(role_ids)
        self.calls.append(("add_member_roles", member.user_id, role_ids))
        current = self.members[(member.guild_id, member.user_id)]
        updated = replace(current, role_ids=current.role_ids | role_ids)
        self.members[(member.guild_id, member.user_id)] = updated
        return updated

    # -- messages --

    def get_message(self, channel_id, message_id):
        self.calls.append(("get_message", channel_id, message_id))
        return {
            "id": str(message_id),
            "channel_id": str(channel_id),
            "content": "hello",
            "author": {"id": str(STRANGER)},
            "timestamp": "2024-05-01T12:00:00+00:00",
        }

    def send_message(self, channel_id, payload):
        self.calls.append(("send_message", channel_id))
        if channel_id in self.send_errors:
            raise self.send_errors[channel_id]
        self.sent.append((channel_id, payload))
        return {"id": str(len(self.sent)), "channel_id": str(channel_id)}

    def edit_message(self, channel_id, message_id, payload):
        self.calls.append(("edit_message", channel_id, message_id))
        self.sent.append((channel_id, payload))
        return {"id": str(message_id), "channel_id": str(channel_id)}


@pytest.fixture
def discord():
    fake = FakeDiscord()
    fake.add_channel(id=CATEGORY, name="self-managed", type=CH_CATEGORY)
    fake.add_channel(id=OTHER_CATEGORY, name="staff", type=CH_CATEGORY)
    return fake


@pytest.fixture
def sm_config():
    return SelfManagement(
        category=CATEGORY,
        ownership=True,
        claiming=True,
        abandon_after=86400,
        log_public=LOG_PUBLIC,
        log_detailed=LOG_DETAILED,
    )


@pytest.fixture
def colors():
    return {
        "colors": Assignment(
            title="Colours",
            roles=(
                Role(label="Red", icon="🟥", role=1),
                Role(label="Blue", icon="🟦", role=2, subscript="calm"),
            ),
        ),
        "pings": Assignment(
            title="Pings",
            roles=(Role(label="News", icon="<:news:77>", role=10),),
        ),
    }
