import itertools

import pytest

from guildkeeper import roles
from guildkeeper.errors import ValidationError
from guildkeeper.models import Invocation
from guildkeeper.roles import RoleAssignments, RoleDelta

from .conftest import GUILD, OWNER


@pytest.fixture
def engine(discord, colors):
    return RoleAssignments(discord, colors)


def member_call_order(discord):
    return [c[0] for c in discord.calls if c[0].endswith("member_roles")]


def test_plan_scenario_from_catalogue():
    delta = roles.plan(configured={1, 2}, selected={2}, current={1, 3})
    assert delta == RoleDelta(granted=frozenset({2}), revoked=frozenset({1}))


def test_plan_never_touches_unheld_or_held_roles():
    universe = [1, 2, 3]
    subsets = [set(c) for n in range(4) for c in itertools.combinations(universe, n)]
    for selected, current in itertools.product(subsets, subsets):
        delta = roles.plan({1, 2}, selected & {1, 2}, current)
        assert delta.revoked <= current
        assert not (delta.granted & current)
        assert 3 not in delta.revoked


def test_reconcile_revokes_before_granting(discord, engine):
    discord.add_member(OWNER, roles={1, 3})

    delta = engine.reconcile(Invocation(OWNER, GUILD), "colors", ["2"])

    assert delta.granted == {2}
    assert delta.revoked == {1}
    assert member_call_order(discord) == ["remove_member_roles", "add_member_roles"]
    assert discord.members[(GUILD, OWNER)].role_ids == {2, 3}


def test_reconcile_is_idempotent(discord, engine):
    discord.add_member(OWNER, roles={1, 3})
    engine.reconcile(Invocation(OWNER, GUILD), "colors", ["2"])
    discord.calls.clear()

    delta = engine.reconcile(Invocation(OWNER, GUILD), "colors", ["2"])

    assert not delta
    assert delta == RoleDelta(frozenset(), frozenset())
    assert member_call_order(discord) == []


def test_reconcile_allows_empty_and_full_selection(discord, engine):
    discord.add_member(OWNER, roles={1})
    engine.reconcile(Invocation(OWNER, GUILD), "colors", ["1", "2"])
    assert discord.members[(GUILD, OWNER)].role_ids == {1, 2}

    engine.reconcile(Invocation(OWNER, GUILD), "colors", [])
    assert discord.members[(GUILD, OWNER)].role_ids == set()


def test_reconcile_only_grants_when_nothing_to_revoke(discord, engine):
    discord.add_member(OWNER)
    engine.reconcile(Invocation(OWNER, GUILD), "pings", ["10"])
    assert member_call_order(discord) == ["add_member_roles"]


def test_failed_grant_leaves_revocation_in_place(discord, engine, monkeypatch):
    discord.add_member(OWNER, roles={1})

    def boom(member, role_ids):
        raise RuntimeError("connection dropped")

    monkeypatch.setattr(discord, "add_member_roles", boom)
    with pytest.raises(RuntimeError):
        engine.reconcile(Invocation(OWNER, GUILD), "colors", ["2"])

    # accepted window: role 1 is gone, role 2 never arrived
    assert discord.members[(GUILD, OWNER)].role_ids == set()


def test_unknown_assignment_is_rejected(discord, engine):
    discord.add_member(OWNER)
    with pytest.raises(ValidationError, match="Unknown assignment"):
        engine.reconcile(Invocation(OWNER, GUILD), "hats", [])


@pytest.mark.parametrize("values", [["abc"], ["10"], ["999"]])
def test_selection_must_come_from_the_group(discord, engine, values):
    discord.add_member(OWNER)
    with pytest.raises(ValidationError):
        engine.reconcile(Invocation(OWNER, GUILD), "colors", values)
    assert member_call_order(discord) == []


def test_reconcile_outside_guild_is_rejected(engine):
    with pytest.raises(ValidationError):
        engine.reconcile(Invocation(OWNER), "colors", [])


def test_assignment_menus_preselect_held_roles(colors):
    rows = roles.assignment_menus(colors, member_role_ids={2, 10})

    assert len(rows) == 2
    menu = rows[0]["components"][0]
    assert menu["custom_id"] == "assign:colors"
    assert menu["min_values"] == 0
    assert menu["max_values"] == 2
    assert [o["default"] for o in menu["options"]] == [False, True]
    assert menu["options"][1]["description"] == "calm"
    assert "description" not in menu["options"][0]

    pings = rows[1]["components"][0]
    assert pings["options"][0]["emoji"] == {"id": "77", "name": "news", "animated": False}


def test_parse_assign_custom_id():
    assert roles.parse_assign_custom_id("assign:colors") == "colors"
    with pytest.raises(ValidationError):
        roles.parse_assign_custom_id("assign:")
    with pytest.raises(ValidationError):
        roles.parse_assign_custom_id("toc:rules.md")


def test_describe_lists_roles():
    text = roles.describe(RoleDelta(frozenset({2}), frozenset()))
    assert "<@&2>" in text
    assert "Removed roles: -" in text
