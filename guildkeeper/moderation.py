"""Forward member reports about a message to the moderators' channel."""

from __future__ import annotations

import logging

from .client import DiscordClient
from .config import Moderation
from .errors import ConfigurationError, ValidationError
from .models import Invocation

log = logging.getLogger(__name__)

REPORT_MESSAGE_LENGTH = 500
REASON_MIN = 5
REASON_MAX = 500


def message_link(guild_id: int, channel_id: int, message_id: int) -> str:
    return f"https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"


def report_message(
    client: DiscordClient,
    config: Moderation,
    invocation: Invocation,
    message: dict,
    reason: str,
) -> dict:
    """Post a report about ``message`` (a Discord message payload)."""
    if config.report_channel is None:
        raise ConfigurationError("Reporting messages is not enabled.")
    if invocation.guild_id is None:
        raise ValidationError("Messages can only be reported inside a server.")

    reason = reason.strip()
    if not REASON_MIN <= len(reason) <= REASON_MAX:
        raise ValidationError(
            f"Please give a reason between {REASON_MIN} and {REASON_MAX} characters."
        )

    text = message.get("content", "")[:REPORT_MESSAGE_LENGTH]
    author = message.get("author", {})
    link = message_link(invocation.guild_id, message["channel_id"], message["id"])

    embed = {
        "title": f"New report from {invocation.user_id}",
        "description": text,
        "fields": [
            {"name": "Reason", "value": reason, "inline": True},
            {"name": "Link", "value": f"[Link]({link})", "inline": True},
            {"name": "Author", "value": f"<@{author.get('id')}>", "inline": True},
            {"name": "Channel", "value": f"<#{message['channel_id']}>", "inline": True},
            {"name": "Reporter", "value": invocation.mention, "inline": True},
        ],
    }
    if message.get("timestamp"):
        embed["timestamp"] = message["timestamp"]

    result = client.send_message(config.report_channel, {
        "embeds": [embed],
        "allowed_mentions": {"parse": []},
    })
    log.info("Message %s reported by %s", message["id"], invocation.user_id)
    return result
