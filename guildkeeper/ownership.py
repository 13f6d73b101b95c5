"""Ownership marker embedded in a channel topic.

Discord channels have no owner field, so the owner is written into the topic
itself: the last line holds a compact JSON object, separated from the human
written text by a blank line::

    A place to talk about compilers.

    {"owner":"80351110224678912"}

A topic without such a line is unclaimed. Anything that does not parse as a
marker is ordinary content.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OwnershipMarker:
    owner: int

    def serialize(self) -> str:
        return json.dumps({"owner": str(self.owner)}, separators=(",", ":"))

    @classmethod
    def parse(cls, line: str) -> Optional["OwnershipMarker"]:
        line = line.strip()
        if not line.startswith("{"):
            return None
        try:
            data = json.loads(line)
        except ValueError:
            return None
        if not isinstance(data, dict) or set(data) != {"owner"}:
            return None
        owner = data["owner"]
        if isinstance(owner, bool):
            return None
        if isinstance(owner, str) and owner.isdigit():
            owner = int(owner)
        if not isinstance(owner, int) or owner <= 0:
            return None
        return cls(owner=owner)


def _last_line(description: str) -> str:
    lines = [line for line in description.strip().splitlines() if line.strip()]
    return lines[-1] if lines else ""


def decode(description: str) -> Optional[OwnershipMarker]:
    """Return the marker on the last non-empty line, if there is one."""
    return OwnershipMarker.parse(_last_line(description or ""))


def encode(description: str, owner: int, enforced: bool = True) -> str:
    """Append a marker for ``owner`` to ``description``.

    Does nothing when ownership is not enforced or the description already
    ends in a marker for the same owner. Any marker for a different owner is
    left in place; use replace_marker to swap owners.
    """
    if not enforced:
        return description
    if decode(description) == OwnershipMarker(owner):
        return description
    return f"{description}\n\n{OwnershipMarker(owner).serialize()}"


def strip(description: str) -> str:
    """Remove the trailing marker line. No-op if there is none."""
    if decode(description) is None:
        return description
    body = description.rstrip()
    head, _, _ = body.rpartition("\n")
    return head.rstrip()


def replace_marker(description: str, owner: Optional[int]) -> str:
    """Swap whatever marker is present for one naming ``owner``.

    ``owner=None`` clears the marker. Safe on topics without a marker.
    """
    body = strip(description)
    if owner is None:
        return body
    return encode(body, owner)


def content(description: str) -> str:
    """The human written part of a topic."""
    return strip(description)
