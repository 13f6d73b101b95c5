from unittest.mock import MagicMock

import pytest
import requests

from guildkeeper import client as client_module
from guildkeeper.client import DiscordClient
from guildkeeper.errors import RemoteError, RemoteTimeoutError
from guildkeeper.models import Channel, Member


def response(status, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body if body is not None else {}
    return resp


@pytest.fixture
def api(monkeypatch):
    client = DiscordClient(token="secret")
    client.session = MagicMock()
    sleeps = []
    monkeypatch.setattr(client_module.time, "sleep", sleeps.append)
    client.sleeps = sleeps
    return client


CHANNEL = {
    "id": "10", "guild_id": "1000", "name": "compilers", "topic": None,
    "nsfw": False, "parent_id": "1100", "type": 0, "position": 3,
    "last_message_id": "175928847299117063",
}


def test_headers_carry_bot_token():
    client = DiscordClient(token="secret")
    assert client.session.headers["Authorization"] == "Bot secret"


def test_get_channel_parses_payload(api):
    api.session.request.return_value = response(200, CHANNEL)

    channel = api.get_channel(10)

    assert channel == Channel(id=10, guild_id=1000, name="compilers", topic="",
                              parent_id=1100, position=3, last_message_id=175928847299117063)
    assert channel.last_activity.year == 2016
    method, url = api.session.request.call_args.args
    assert (method, url) == ("get", "https://discord.com/api/v10/channels/10")


def test_guild_channels_fill_in_guild_id(api):
    api.session.request.return_value = response(200, [{"id": "1", "name": "a", "type": 4}])
    assert api.get_guild_channels(1000)[0].guild_id == 1000


def test_error_status_raises_remote_error(api):
    api.session.request.return_value = response(404, {"message": "Unknown Channel"})
    with pytest.raises(RemoteError) as info:
        api.get_channel(10)
    assert info.value.status == 404
    assert "Unknown Channel" not in info.value.message


def test_rate_limit_is_waited_out(api):
    api.session.request.side_effect = [
        response(429, {"retry_after": 0.5}),
        response(204),
    ]
    api.delete_channel(10)
    assert api.sleeps == [0.5]


def test_rate_limit_past_deadline_times_out(api):
    api.session.request.return_value = response(429, {"retry_after": 300})
    channel = Channel(id=10, guild_id=1000, name="compilers")

    with pytest.raises(RemoteTimeoutError):
        api.edit_channel(channel, timeout=5, name="parsers")
    assert api.sleeps == []


def test_transport_timeout_with_deadline(api):
    api.session.request.side_effect = requests.Timeout()
    channel = Channel(id=10, guild_id=1000, name="compilers")
    with pytest.raises(RemoteTimeoutError):
        api.edit_channel(channel, timeout=5, name="parsers")


def test_edit_sends_only_given_fields(api):
    api.session.request.return_value = response(200, {**CHANNEL, "name": "parsers"})
    channel = Channel(id=10, guild_id=1000, name="compilers")

    after = api.edit_channel(channel, timeout=5, name="parsers")

    assert after.name == "parsers"
    kwargs = api.session.request.call_args.kwargs
    assert kwargs["json"] == {"name": "parsers"}
    assert 0 < kwargs["timeout"] <= 5


def test_reorder_payload(api):
    api.session.request.return_value = response(204)
    api.reorder_channels(1000, [(2, 0), (1, 1)])
    assert api.session.request.call_args.kwargs["json"] == [
        {"id": "2", "position": 0}, {"id": "1", "position": 1},
    ]


def test_member_roles_change_one_role_per_call(api):
    api.session.request.return_value = response(204)
    member = Member(user_id=5, guild_id=1000, role_ids=frozenset({1, 3}))

    after = api.remove_member_roles(member, {1})
    assert after.role_ids == {3}
    method, url = api.session.request.call_args.args
    assert (method, url) == ("delete", "https://discord.com/api/v10/guilds/1000/members/5/roles/1")
    assert "json" not in api.session.request.call_args.kwargs

    api.session.request.reset_mock()
    after = api.add_member_roles(after, {4, 2})
    assert after.role_ids == {2, 3, 4}
    assert [c.args for c in api.session.request.call_args_list] == [
        ("put", "https://discord.com/api/v10/guilds/1000/members/5/roles/2"),
        ("put", "https://discord.com/api/v10/guilds/1000/members/5/roles/4"),
    ]


def test_guild_roles(api):
    api.session.request.return_value = response(200, [{"id": "7", "name": "Ersti"}])
    assert api.get_guild_roles(1000) == [{"id": "7", "name": "Ersti"}]
    method, url = api.session.request.call_args.args
    assert url.endswith("/guilds/1000/roles")


def test_get_member(api):
    api.session.request.return_value = response(200, {"user": {"id": "5"}, "roles": ["1", "3"]})
    assert api.get_member(1000, 5) == Member(5, 1000, frozenset({1, 3}))


def test_dry_run_reads_but_does_not_write():
    client = DiscordClient(token="secret", dry_run=True)
    client.session = MagicMock()
    client.session.request.return_value = response(200, CHANNEL)

    channel = client.get_channel(10)
    after = client.edit_channel(channel, timeout=5, name="parsers")
    client.delete_channel(10)

    assert client.session.request.call_count == 1
    assert after.name == "parsers"
    assert after.parent_id == 1100
