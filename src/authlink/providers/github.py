"""GitHub Provider

Device Authorization Grant (RFC 8628).
GitHub은 Accept: application/json 헤더가 없으면 폼 인코딩으로 응답합니다.
"""

from authlink.providers.base import GrantType, ProviderAdapter

DEVICE_CODE_ENDPOINT = "https://github.com/login/device/code"
TOKEN_ENDPOINT = "https://github.com/login/oauth/access_token"
SCOPE = "repo read:org read:user workflow"

GITHUB = ProviderAdapter(
    name="github",
    display_name="GitHub",
    grant_type=GrantType.DEVICE_CODE,
    device_authorization_endpoint=DEVICE_CODE_ENDPOINT,
    token_endpoint=TOKEN_ENDPOINT,
    scope=SCOPE,
)
