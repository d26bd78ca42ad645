"""Token provider contract.

Credential acquisition and refresh live outside the orchestrator.  The
core only asks for a currently valid bearer token per platform; ``None``
means the platform is not connected and its steps must be skipped.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable

from .errors import NotConnected
from .models import Platform


@runtime_checkable
class TokenProvider(Protocol):
    async def get_valid_token(self, platform: Platform) -> str | None:
        """Return a bearer token, refreshing if needed, or None."""
        ...


class StaticTokenProvider:
    """Serves fixed tokens, e.g. from configuration or in tests."""

    def __init__(self, tokens: Mapping[Platform, str | None] | None = None) -> None:
        self._tokens = dict(tokens or {})

    async def get_valid_token(self, platform: Platform) -> str | None:
        return self._tokens.get(platform) or None


async def is_connected(provider: TokenProvider, platform: Platform) -> bool:
    return bool(await provider.get_valid_token(platform))


async def require_token(provider: TokenProvider, platform: Platform) -> str:
    """Return a token or raise NotConnected."""
    token = await provider.get_valid_token(platform)
    if not token:
        raise NotConnected(platform.value)
    return token


TOKEN_ENV_VARS = {
    Platform.REGISTRY: "REGISTRY_TOKEN",
    Platform.TASK_TRACKER: "TASK_TRACKER_TOKEN",
    Platform.DOCUMENTS: "DOCUMENTS_TOKEN",
}


def tokens_from_env(env: Mapping[str, str]) -> StaticTokenProvider:
    """Static tokens from ``REGISTRY_TOKEN`` etc.; unset means not connected."""
    return StaticTokenProvider(
        {platform: env.get(var) or None for platform, var in TOKEN_ENV_VARS.items()}
    )
