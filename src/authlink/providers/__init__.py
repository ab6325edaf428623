"""Providers

공급자별 어댑터와 이름 기반 레지스트리.
GitHub/Sentry는 Device Code, Linear/Slack은 Authorization Code 사용.
"""

from authlink.exceptions import UnknownProviderError
from authlink.providers.base import (
    AuthToken,
    GrantType,
    ProviderAdapter,
    TokenResponse,
)
from authlink.providers.github import GITHUB
from authlink.providers.linear import LINEAR
from authlink.providers.sentry import SENTRY
from authlink.providers.slack import SLACK, SlackProvider

DEFAULT_PROVIDERS: dict[str, ProviderAdapter] = {
    adapter.name: adapter for adapter in (GITHUB, SENTRY, LINEAR, SLACK)
}


def get_provider(name: str) -> ProviderAdapter:
    """이름으로 기본 어댑터 조회.

    Raises:
        UnknownProviderError: 등록되지 않은 이름
    """
    try:
        return DEFAULT_PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(f"Unknown provider: {name}", provider=name) from None


__all__ = [
    "AuthToken",
    "GrantType",
    "ProviderAdapter",
    "TokenResponse",
    "SlackProvider",
    "GITHUB",
    "SENTRY",
    "LINEAR",
    "SLACK",
    "DEFAULT_PROVIDERS",
    "get_provider",
]
