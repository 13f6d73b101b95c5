"""Who may mutate a self-managed channel.

The single authority consulted before every mutating lifecycle operation.
Pure: the current time is passed in.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from . import ownership
from .config import SelfManagement
from .errors import PermissionDeniedError
from .models import Channel


def is_abandoned(channel: Channel, config: SelfManagement, now: datetime) -> bool:
    """True once the last message is older than ``abandon_after``.

    A channel that never saw a message is not abandoned.
    """
    last_activity = channel.last_activity
    if last_activity is None:
        return False
    return now - last_activity > timedelta(seconds=config.abandon_after)


def can_edit(actor: int, channel: Channel, config: SelfManagement, now: datetime) -> bool:
    if not config.ownership:
        return True

    marker = ownership.decode(channel.topic)
    if marker is None:
        return True
    if marker.owner == actor:
        return True
    return is_abandoned(channel, config, now)


def require_edit(actor: int, channel: Channel, config: SelfManagement, now: datetime) -> None:
    if not can_edit(actor, channel, config, now):
        raise PermissionDeniedError(
            f"#{channel.name} belongs to someone else. You can take it over once "
            "it has been inactive for a while."
        )
