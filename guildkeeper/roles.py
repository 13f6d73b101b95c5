"""Self-assignable role groups.

A member submits the roles they want from one group; the engine compares that
with the roles Discord says they hold right now and issues the smallest change.
Roles outside the group are never touched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping

from .client import DiscordClient
from .config import Assignment
from .errors import ValidationError
from .models import Invocation

log = logging.getLogger(__name__)

ASSIGN_PREFIX = "assign:"

_CUSTOM_EMOJI = re.compile(r"^<(a?):(\w+):(\d+)>$")


@dataclass(frozen=True)
class RoleDelta:
    granted: frozenset[int]
    revoked: frozenset[int]

    def __bool__(self) -> bool:
        return bool(self.granted or self.revoked)


def plan(configured: Iterable[int], selected: Iterable[int], current: Iterable[int]) -> RoleDelta:
    """Compute the grant/revoke sets.

    Only configured roles the member holds but did not select are revoked, and
    only selected roles the member does not already hold are granted.
    """
    configured = frozenset(configured)
    selected = frozenset(selected)
    current = frozenset(current)
    return RoleDelta(
        granted=selected - current,
        revoked=(configured - selected) & current,
    )


def parse_selection(assignment: Assignment, values: Iterable) -> frozenset[int]:
    """Turn submitted select-menu values into role ids of ``assignment``."""
    selected = set()
    for value in values:
        try:
            selected.add(int(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid role selection: {value!r}") from None
    unknown = selected - assignment.role_ids
    if unknown:
        raise ValidationError(
            f"Role(s) {', '.join(str(r) for r in sorted(unknown))} "
            f"cannot be assigned through {assignment.title}."
        )
    return frozenset(selected)


def parse_assign_custom_id(custom_id: str) -> str:
    if not custom_id.startswith(ASSIGN_PREFIX) or len(custom_id) == len(ASSIGN_PREFIX):
        raise ValidationError(f"Unknown format in assign custom_id: {custom_id}")
    return custom_id[len(ASSIGN_PREFIX):]


def emoji_payload(icon: str) -> dict:
    """Component emoji for a unicode emoji or a ``<:name:id>`` custom emoji."""
    match = _CUSTOM_EMOJI.match(icon)
    if match:
        animated, name, emoji_id = match.groups()
        return {"id": emoji_id, "name": name, "animated": bool(animated)}
    return {"name": icon}


def assignment_menus(
    assignments: Mapping[str, Assignment],
    member_role_ids: Iterable[int] = (),
) -> list[dict]:
    """One action row with a select menu per group, held roles preselected."""
    held = frozenset(member_role_ids)
    rows = []
    for group_id, assignment in assignments.items():
        options = []
        for role in assignment.roles:
            option = {
                "label": role.label,
                "value": str(role.role),
                "emoji": emoji_payload(role.icon),
                "default": role.role in held,
            }
            if role.subscript:
                option["description"] = role.subscript
            options.append(option)
        rows.append({
            "type": 1,
            "components": [{
                "type": 3,
                "custom_id": f"{ASSIGN_PREFIX}{group_id}",
                "placeholder": assignment.title,
                "min_values": 0,
                "max_values": len(assignment.roles),
                "options": options,
            }],
        })
    return rows


def describe(delta: RoleDelta) -> str:
    """Result message for the member; role mentions are not meant to ping."""
    def mentions(ids):
        return ", ".join(f"<@&{r}>" for r in sorted(ids)) or "-"

    return (
        "**Roles updated**\n"
        f"New roles: {mentions(delta.granted)}\n\n"
        f"Removed roles: {mentions(delta.revoked)}"
    )


class RoleAssignments:
    def __init__(self, client: DiscordClient, assignments: Mapping[str, Assignment]):
        self.client = client
        self.assignments = assignments

    def get(self, assignment_id: str) -> Assignment:
        try:
            return self.assignments[assignment_id]
        except KeyError:
            raise ValidationError(f"Unknown assignment: {assignment_id}") from None

    def reconcile(self, invocation: Invocation, assignment_id: str, selection: Iterable) -> RoleDelta:
        assignment = self.get(assignment_id)
        if invocation.guild_id is None:
            raise ValidationError("Roles can only be assigned inside a server.")
        selected = parse_selection(assignment, selection)

        # always read fresh so the delta only covers roles the member holds now
        member = self.client.get_member(invocation.guild_id, invocation.user_id)
        delta = plan(assignment.role_ids, selected, member.role_ids)

        # Revoke strictly before grant so the member never holds more than
        # the old set plus the new grants. The two calls are not atomic: if
        # the grant fails, the revocation has already happened.
        if delta.revoked:
            member = self.client.remove_member_roles(member, delta.revoked)
        if delta.granted:
            self.client.add_member_roles(member, delta.granted)

        if delta:
            log.info("Roles of %s in %s: +%s -%s", invocation.user_id, assignment_id,
                     sorted(delta.granted), sorted(delta.revoked))
        return delta
