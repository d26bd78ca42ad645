"""Launchpad error hierarchy.

Every error carries a stable ``code`` so per-step failures can be reported
to the caller (and serialized) without leaking httpx objects or tokens.

  NotConnected       missing/expired platform credential
  RemoteRejected     platform API 4xx/5xx or transport failure
  RemoteNotFound     404 from a platform (a lookup outcome, not a crash)
  ValidationError    bad user input (empty notes, malformed URL)
  PreconditionUnmet  dependent step attempted before its prerequisite
"""

from __future__ import annotations


class LaunchpadError(Exception):
    """Base class for all orchestrator errors."""

    code = "launchpad_error"


class NotConnected(LaunchpadError):
    """No valid credential is available for a platform."""

    code = "not_connected"

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"not connected to {platform}")


class RemoteRejected(LaunchpadError):
    """A platform API call failed.

    ``status_code`` is 0 for timeouts and transport errors.
    """

    code = "remote_rejected"

    def __init__(
        self,
        platform: str,
        status_code: int,
        message: str = "",
        *,
        response_body: str = "",
    ) -> None:
        self.platform = platform
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"{platform} API error {status_code}: {message}")


class RemoteNotFound(RemoteRejected):
    """The platform reported 404 for the requested resource."""

    code = "not_found"

    def __init__(self, platform: str, message: str = "not found", **kwargs) -> None:
        super().__init__(platform, 404, message, **kwargs)


class ValidationError(LaunchpadError):
    """User-supplied input was rejected before any mutation."""

    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class PreconditionUnmet(LaunchpadError):
    """A dependent step cannot run because its prerequisite has not succeeded."""

    code = "precondition_unmet"

    def __init__(self, step: str, requires: str) -> None:
        self.step = step
        self.requires = requires
        super().__init__(f"{step} requires {requires} to be completed first")
