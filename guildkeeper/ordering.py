"""Keep the self-managed category sorted by channel name."""

from __future__ import annotations

import logging
from typing import Iterable

from .client import DiscordClient
from .models import Channel

log = logging.getLogger(__name__)


def plan_positions(channels: Iterable[Channel], category_id: int) -> list[tuple[int, int]]:
    """(channel_id, position) for every direct child of ``category_id``.

    Names compare byte-wise on their UTF-8 encoding; equal names keep their
    current relative position.
    """
    children = [ch for ch in channels if ch.parent_id == category_id]
    children.sort(key=lambda ch: (ch.name.encode("utf-8"), ch.position))
    return [(ch.id, idx) for idx, ch in enumerate(children)]


def reorder(client: DiscordClient, guild_id: int, category_id: int) -> list[tuple[int, int]]:
    """Fetch the guild's channels and push one batch position update."""
    positions = plan_positions(client.get_guild_channels(guild_id), category_id)
    if not positions:
        log.debug("Category %s is empty, nothing to sort", category_id)
        return positions

    log.debug("Sorting %d channel(s) in category %s", len(positions), category_id)
    client.reorder_channels(guild_id, positions)
    return positions
