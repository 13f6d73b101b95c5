"""
Discord REST client used by every guildkeeper component.

Only the handful of endpoints the bot needs are wrapped. Rate limits are
honoured by waiting ``retry_after`` like any well-behaved client, but a call
with a deadline never waits past it: it fails with RemoteTimeoutError instead.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Iterable, Optional

import requests

from .errors import RemoteError, RemoteTimeoutError
from .models import Channel, Member

log = logging.getLogger(__name__)

API_BASE = "https://discord.com/api/v10"

# Connection-level timeout for calls without an explicit deadline.
DEFAULT_TIMEOUT = 30.0


class DiscordClient:
    def __init__(self, token: str, dry_run: bool = False, api_base: str = API_BASE):
        self.api_base = api_base
        self.dry_run = dry_run
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bot {token}",
            "Content-Type": "application/json",
            "User-Agent": "Guildkeeper/1.0",
        })

    def _request(
        self,
        method: str,
        path: str,
        timeout: Optional[float] = None,
        **kwargs,
    ):
        if self.dry_run and method != "get":
            log.info("[DRY-RUN] %s %s", method.upper(), path)
            if kwargs.get("json") is not None:
                log.info("          payload: %s", json.dumps(kwargs["json"], indent=2))
            return {"id": "0", "dry_run": True}

        url = f"{self.api_base}{path}"
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = DEFAULT_TIMEOUT
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RemoteTimeoutError(f"{method.upper()} {path}", timeout)
            try:
                resp = self.session.request(method, url, timeout=remaining, **kwargs)
            except requests.Timeout as exc:
                if deadline is not None:
                    raise RemoteTimeoutError(f"{method.upper()} {path}", timeout) from exc
                raise

            if resp.status_code == 429:
                retry_after = float(resp.json().get("retry_after", 1.0))
                if deadline is not None and time.monotonic() + retry_after >= deadline:
                    log.warning("[RATE LIMIT] %s %s needs %.2fs, past its deadline",
                                method.upper(), path, retry_after)
                    raise RemoteTimeoutError(f"{method.upper()} {path}", timeout)
                log.info("[RATE LIMIT] Waiting %.2fs ...", retry_after)
                time.sleep(retry_after)
                continue
            if resp.status_code in (200, 201):
                return resp.json()
            if resp.status_code == 204:
                return {}
            # Never log the response body (may echo request content)
            log.warning("[HTTP %s] %s %s", resp.status_code, method.upper(), path)
            raise RemoteError(resp.status_code, method, path)

    def get(self, path: str):
        return self._request("get", path)

    def post(self, path: str, payload: dict):
        return self._request("post", path, json=payload)

    def delete(self, path: str):
        return self._request("delete", path)

    def put(self, path: str, payload: Optional[dict] = None):
        kwargs = {}
        if payload is not None:
            kwargs["json"] = payload
        return self._request("put", path, **kwargs)

    def patch(self, path: str, payload, timeout: Optional[float] = None):
        return self._request("patch", path, timeout=timeout, json=payload)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def get_channel(self, channel_id: int) -> Channel:
        return Channel.from_payload(self.get(f"/channels/{channel_id}"))

    def get_guild_channels(self, guild_id: int) -> list[Channel]:
        result = self.get(f"/guilds/{guild_id}/channels")
        channels = []
        for data in result if isinstance(result, list) else []:
            # the guild listing omits guild_id on some channel types
            data.setdefault("guild_id", str(guild_id))
            channels.append(Channel.from_payload(data))
        return channels

    def create_channel(
        self,
        guild_id: int,
        name: str,
        topic: str,
        parent_id: int,
        channel_type: int = 0,
    ) -> Channel:
        payload = {"name": name, "type": channel_type, "topic": topic, "parent_id": str(parent_id)}
        data = self.post(f"/guilds/{guild_id}/channels", payload)
        if data.get("dry_run"):
            data = {**payload, "id": "0", "guild_id": str(guild_id)}
        return Channel.from_payload(data)

    def edit_channel(
        self,
        channel: Channel,
        timeout: Optional[float] = None,
        **fields,
    ) -> Channel:
        data = self.patch(f"/channels/{channel.id}", fields, timeout=timeout)
        if data.get("dry_run"):
            data = {
                "id": str(channel.id),
                "guild_id": str(channel.guild_id) if channel.guild_id else None,
                "name": channel.name,
                "topic": channel.topic,
                "nsfw": channel.nsfw,
                "parent_id": str(channel.parent_id) if channel.parent_id else None,
                "type": channel.type,
                **fields,
            }
        return Channel.from_payload(data)

    def delete_channel(self, channel_id: int) -> None:
        self.delete(f"/channels/{channel_id}")

    def reorder_channels(self, guild_id: int, positions: Iterable[tuple[int, int]]) -> None:
        payload = [{"id": str(cid), "position": pos} for cid, pos in positions]
        self.patch(f"/guilds/{guild_id}/channels", payload)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def get_member(self, guild_id: int, user_id: int) -> Member:
        return Member.from_payload(guild_id, self.get(f"/guilds/{guild_id}/members/{user_id}"))

    def get_guild_roles(self, guild_id: int) -> list[dict]:
        result = self.get(f"/guilds/{guild_id}/roles")
        return result if isinstance(result, list) else []

    # Roles are added and removed one at a time. Each call touches only its own
    # role, so roles granted elsewhere in the meantime are left alone.

    def _member_role_path(self, member: Member, role_id: int) -> str:
        return f"/guilds/{member.guild_id}/members/{member.user_id}/roles/{role_id}"

    def remove_member_roles(self, member: Member, role_ids: Iterable[int]) -> Member:
        """Drop each of ``role_ids`` from the member."""
        role_ids = frozenset(role_ids)
        for role_id in sorted(role_ids):
            self.delete(self._member_role_path(member, role_id))
        return Member(member.user_id, member.guild_id, member.role_ids - role_ids)

    def add_member_roles(self, member: Member, role_ids: Iterable[int]) -> Member:
        """Grant each of ``role_ids`` to the member."""
        role_ids = frozenset(role_ids)
        for role_id in sorted(role_ids):
            self.put(self._member_role_path(member, role_id))
        return Member(member.user_id, member.guild_id, member.role_ids | role_ids)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def get_message(self, channel_id: int, message_id: int) -> dict:
        return self.get(f"/channels/{channel_id}/messages/{message_id}")

    def send_message(self, channel_id: int, payload: dict) -> dict:
        return self.post(f"/channels/{channel_id}/messages", payload)

    def edit_message(self, channel_id: int, message_id: int, payload: dict) -> dict:
        return self.patch(f"/channels/{channel_id}/messages/{message_id}", payload)
