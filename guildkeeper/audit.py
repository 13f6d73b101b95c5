"""Audit trail for self-managed channel changes.

Every create, update and delete is announced twice: a public digest without
the acting member, and a detailed entry naming them. Either destination may be
left unconfigured, in which case that send is skipped. The two sends are
attempted independently; a failing destination only costs its own entry.
"""

from __future__ import annotations

import difflib
import logging
from typing import Optional

from .client import DiscordClient
from .config import SelfManagement
from .errors import RemoteError
from .models import Channel, Invocation

log = logging.getLogger(__name__)

# Discord rejects embed field values longer than this.
FIELD_LIMIT = 1024

COLOR_CREATED = 0x57F287
COLOR_UPDATED = 0xFEE75C
COLOR_DELETED = 0xED4245


# ---------------------------------------------------------------------------
# Change detection, one predicate per field
# ---------------------------------------------------------------------------

def name_changed(before: Channel, after: Channel) -> bool:
    return before.name != after.name


def description_changed(before: Channel, after: Channel) -> bool:
    return (before.topic or "") != (after.topic or "")


def nsfw_changed(before: Channel, after: Channel) -> bool:
    return before.nsfw != after.nsfw


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _clip(text: str, limit: int = FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 4] + "\n..."


DIFF_OPEN = "```diff\n"
DIFF_CLOSE = "\n```"


def _diff(before: str, after: str) -> str:
    lines = list(difflib.unified_diff(
        before.splitlines(), after.splitlines(), lineterm="", n=1,
    ))
    # drop the ---/+++ headers and hunk markers
    body = "\n".join(line for line in lines[2:] if not line.startswith("@@"))
    if not body:
        # only line endings differ, show both sides verbatim
        body = f"-{before!r}\n+{after!r}"
    body = _clip(body, FIELD_LIMIT - len(DIFF_OPEN) - len(DIFF_CLOSE))
    return f"{DIFF_OPEN}{body}{DIFF_CLOSE}"


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def _facts(channel: Channel) -> list[dict]:
    return [
        {"name": "Name", "value": _clip(channel.name) or "-", "inline": True},
        {"name": "Description", "value": _clip(channel.topic) or "-", "inline": True},
    ]


def render_fields(before: Optional[Channel], after: Optional[Channel]) -> list[dict]:
    """Embed fields describing the change; empty when nothing changed."""
    if before is None and after is None:
        raise ValueError("an audit entry needs at least one side")
    if before is None:
        return _facts(after)
    if after is None:
        return _facts(before)

    fields = []
    if name_changed(before, after):
        fields.append({"name": "Name", "value": _diff(before.name, after.name), "inline": True})
    if description_changed(before, after):
        fields.append({
            "name": "Description",
            "value": _diff(before.topic or "", after.topic or ""),
            "inline": False,
        })
    if nsfw_changed(before, after):
        fields.append({
            "name": "NSFW",
            "value": f"{_yes_no(before.nsfw)} -> {_yes_no(after.nsfw)}",
            "inline": True,
        })
    return fields


def _color(before: Optional[Channel], after: Optional[Channel]) -> int:
    if before is None:
        return COLOR_CREATED
    if after is None:
        return COLOR_DELETED
    return COLOR_UPDATED


class AuditLog:
    def __init__(self, client: DiscordClient, config: SelfManagement):
        self.client = client
        self.config = config

    def _send(self, channel_id: int, embed: dict) -> None:
        """Post one entry. A failed destination is logged, never raised."""
        try:
            self.client.send_message(channel_id, {
                "embeds": [embed],
                "allowed_mentions": {"parse": []},
            })
        except RemoteError as exc:
            log.warning("Audit entry %r could not be sent to %s: %s",
                        embed.get("title"), channel_id, exc.message)

    def notify(
        self,
        summary: str,
        invocation: Invocation,
        before: Optional[Channel],
        after: Optional[Channel],
    ) -> bool:
        """Send the public and the detailed entry. Returns False if suppressed."""
        fields = render_fields(before, after)
        if not fields:
            log.debug("No visible change for %s, audit suppressed", summary)
            return False

        subject = after or before
        embed = {
            "title": summary,
            # a deleted channel can no longer be mentioned
            "description": subject.mention if after else f"#{subject.name}",
            "color": _color(before, after),
            "fields": fields,
        }

        if self.config.log_public is not None:
            self._send(self.config.log_public, embed)

        if self.config.log_detailed is not None:
            detailed = {
                **embed,
                "fields": fields + [
                    {"name": "Member", "value": invocation.mention, "inline": False},
                ],
            }
            self._send(self.config.log_detailed, detailed)

        return True
