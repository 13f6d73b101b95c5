"""Error types raised by guildkeeper.

Every error carries a message that is safe to show to the acting member.
Nothing here is fatal to the process: a failure is scoped to the invocation
that triggered it.
"""

from __future__ import annotations

from typing import Optional


class GuildkeeperError(Exception):
    """Base class for all errors reported back to the acting member."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GuildkeeperError):
    """Wrong guild, wrong category, missing parent or malformed input."""


class ConfigurationError(ValidationError):
    """A feature is disabled or the configuration itself is unusable."""


class PermissionDeniedError(GuildkeeperError):
    """The access policy refused the requested mutation."""


class RemoteTimeoutError(GuildkeeperError, TimeoutError):
    """A bounded remote call did not finish before its deadline."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Discord did not answer {operation} within {timeout:g}s. "
            "Please try again in a few minutes."
        )
        self.operation = operation
        self.timeout = timeout


class RemoteError(GuildkeeperError):
    """The Discord API rejected a call (not found, forbidden, rate-limited...)."""

    def __init__(
        self,
        status: int,
        method: str,
        path: str,
        retry_after: Optional[float] = None,
    ):
        super().__init__(f"Discord API error {status} on {method.upper()} {path}")
        self.status = status
        self.method = method
        self.path = path
        self.retry_after = retry_after
