"""Sentry Provider

Device Authorization Grant (RFC 8628).
"""

from authlink.providers.base import GrantType, ProviderAdapter

# Sentry 엔드포인트는 끝의 슬래시가 필수
DEVICE_CODE_ENDPOINT = "https://sentry.io/oauth/device/code/"
TOKEN_ENDPOINT = "https://sentry.io/oauth/token/"
SCOPE = "org:read project:read event:read event:write member:read team:read"

SENTRY = ProviderAdapter(
    name="sentry",
    display_name="Sentry",
    grant_type=GrantType.DEVICE_CODE,
    device_authorization_endpoint=DEVICE_CODE_ENDPOINT,
    token_endpoint=TOKEN_ENDPOINT,
    scope=SCOPE,
)
