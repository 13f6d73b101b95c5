"""Configuration loading.

Two sources, both read once at startup and treated as read-only afterwards:

* the bot configuration, a TOML file (see ``example/guildkeeper.toml``), and
* credentials, taken from the environment or a ``.env`` file in the
  working directory.

Usage:
    config = load_config("guildkeeper.toml")
    token, guild_id = load_credentials()
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileReference:
    """A file named in the config, read eagerly at load time."""

    filename: str
    content: str

    def __str__(self) -> str:
        return self.content


@dataclass(frozen=True)
class SelfManagement:
    category: int
    ownership: bool = True
    claiming: bool = True
    abandon_after: int = 86400  # seconds since last message
    log_public: Optional[int] = None
    log_detailed: Optional[int] = None


@dataclass(frozen=True)
class Role:
    label: str
    icon: str
    role: int
    subscript: Optional[str] = None


@dataclass(frozen=True)
class Assignment:
    title: str
    roles: tuple[Role, ...]

    @property
    def role_ids(self) -> frozenset[int]:
        return frozenset(r.role for r in self.roles)


@dataclass(frozen=True)
class SelfAssignments:
    label: str
    icon: str
    prolog: FileReference


@dataclass(frozen=True)
class TocEntry:
    label: str
    icon: str
    file: FileReference


@dataclass(frozen=True)
class Moderation:
    report_channel: Optional[int] = None


@dataclass(frozen=True)
class OPhase:
    role_name: str
    channel_name: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Config:
    self_management: SelfManagement
    assignments: Mapping[str, Assignment]
    self_assignments: Optional[SelfAssignments] = None
    welcome: Optional[FileReference] = None
    toc: tuple[TocEntry, ...] = ()
    moderation: Moderation = Moderation()
    o_phase: Optional[OPhase] = None


# ---------------------------------------------------------------------------
# TOML parsing
# ---------------------------------------------------------------------------

def _fields(table: Any, where: str, required: tuple = (), optional: tuple = ()) -> dict:
    """Check a TOML table for missing and unknown keys."""
    if not isinstance(table, dict):
        raise ConfigurationError(f"{where}: expected a table")
    missing = [k for k in required if k not in table]
    if missing:
        raise ConfigurationError(f"{where}: missing key(s) {', '.join(missing)}")
    unknown = sorted(set(table) - set(required) - set(optional))
    if unknown:
        raise ConfigurationError(f"{where}: unknown key(s) {', '.join(unknown)}")
    return table


def _int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{where}: expected an integer id, got {value!r}")
    return value


def _optional_int(value: Any, where: str) -> Optional[int]:
    return None if value is None else _int(value, where)


def _bool(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{where}: expected true or false, got {value!r}")
    return value


def _file(base: Path, filename: Any, where: str) -> FileReference:
    if not isinstance(filename, str):
        raise ConfigurationError(f"{where}: expected a file path")
    path = base / filename
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"file {filename} could not be read: {exc}") from exc
    return FileReference(filename=filename, content=content)


def _self_management(table: Any) -> SelfManagement:
    t = _fields(
        table, "self_management",
        required=("category",),
        optional=("ownership", "claiming", "abandon_after", "log_public", "log_detailed"),
    )
    abandon_after = _int(t.get("abandon_after", 86400), "self_management.abandon_after")
    if abandon_after < 0:
        raise ConfigurationError("self_management.abandon_after must not be negative")
    return SelfManagement(
        category=_int(t["category"], "self_management.category"),
        ownership=_bool(t.get("ownership", True), "self_management.ownership"),
        claiming=_bool(t.get("claiming", True), "self_management.claiming"),
        abandon_after=abandon_after,
        log_public=_optional_int(t.get("log_public"), "self_management.log_public"),
        log_detailed=_optional_int(t.get("log_detailed"), "self_management.log_detailed"),
    )


def _assignments(table: Any) -> dict[str, Assignment]:
    if not isinstance(table, dict):
        raise ConfigurationError("assignments: expected a table")
    result: dict[str, Assignment] = {}
    # tomllib keeps document order, which is the display order
    for group_id, group in table.items():
        where = f"assignments.{group_id}"
        g = _fields(group, where, required=("title", "roles"))
        if not isinstance(g["roles"], list) or not g["roles"]:
            raise ConfigurationError(f"{where}.roles: expected a non-empty list")
        roles = []
        for idx, role in enumerate(g["roles"]):
            r = _fields(role, f"{where}.roles[{idx}]",
                        required=("label", "icon", "role"), optional=("subscript",))
            roles.append(Role(
                label=r["label"],
                icon=r["icon"],
                role=_int(r["role"], f"{where}.roles[{idx}].role"),
                subscript=r.get("subscript"),
            ))
        result[group_id] = Assignment(title=g["title"], roles=tuple(roles))
    return result


def parse_config(data: dict, base: Path) -> Config:
    """Build a Config from an already-decoded TOML document."""
    _fields(
        data, "config",
        required=("self_management",),
        optional=("assignments", "self_assignments", "welcome", "toc", "moderation", "o_phase"),
    )

    self_assignments = None
    if "self_assignments" in data:
        t = _fields(data["self_assignments"], "self_assignments",
                    required=("label", "icon", "prolog"))
        self_assignments = SelfAssignments(
            label=t["label"],
            icon=t["icon"],
            prolog=_file(base, t["prolog"], "self_assignments.prolog"),
        )

    toc = []
    for idx, entry in enumerate(data.get("toc", [])):
        t = _fields(entry, f"toc[{idx}]", required=("label", "icon", "file"))
        toc.append(TocEntry(
            label=t["label"],
            icon=t["icon"],
            file=_file(base, t["file"], f"toc[{idx}].file"),
        ))

    moderation = Moderation()
    if "moderation" in data:
        t = _fields(data["moderation"], "moderation", optional=("report_channel",))
        moderation = Moderation(
            report_channel=_optional_int(t.get("report_channel"), "moderation.report_channel"),
        )

    o_phase = None
    if "o_phase" in data:
        t = _fields(data["o_phase"], "o_phase",
                    required=("role_name", "channel_name", "password"))
        for key in ("role_name", "channel_name", "password"):
            if not isinstance(t[key], str) or not t[key]:
                raise ConfigurationError(f"o_phase.{key}: expected a non-empty string")
        o_phase = OPhase(t["role_name"], t["channel_name"], t["password"])

    welcome = None
    if "welcome" in data:
        welcome = _file(base, data["welcome"], "welcome")

    return Config(
        self_management=_self_management(data["self_management"]),
        assignments=MappingProxyType(_assignments(data.get("assignments", {}))),
        self_assignments=self_assignments,
        welcome=welcome,
        toc=tuple(toc),
        moderation=moderation,
        o_phase=o_phase,
    )


def load_config(path: str | os.PathLike) -> Config:
    """Read and validate the TOML bot configuration at ``path``."""
    path = Path(path)
    try:
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"config file not found at {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"config file {path} is not valid TOML: {exc}") from exc

    config = parse_config(data, path.parent)
    log.info(
        "Loaded config from %s (category=%s, %d assignment group(s))",
        path, config.self_management.category, len(config.assignments),
    )
    return config


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def load_credentials(env_path: Optional[str] = None) -> tuple[str, Optional[str]]:
    """Return (bot_token, guild_id) from the environment or a .env file.

    The guild id is optional: it is only needed by commands that run outside
    of an interaction.
    """
    load_dotenv(env_path or os.path.join(os.getcwd(), ".env"))

    token = os.environ.get("DISCORD_BOT_TOKEN", "")
    guild_id = os.environ.get("DISCORD_GUILD_ID") or None

    if not token:
        raise ConfigurationError("DISCORD_BOT_TOKEN is not set in .env or environment.")

    return token, guild_id
