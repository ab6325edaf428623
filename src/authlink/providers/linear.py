"""Linear Provider

Authorization Code Grant + PKCE (S256).
매번 동의 화면을 띄우도록 prompt=consent를 추가합니다.
"""

from authlink.providers.base import GrantType, ProviderAdapter

AUTHORIZE_ENDPOINT = "https://linear.app/oauth/authorize"
TOKEN_ENDPOINT = "https://api.linear.app/oauth/token"
SCOPE = "read,write"

LINEAR = ProviderAdapter(
    name="linear",
    display_name="Linear",
    grant_type=GrantType.AUTHORIZATION_CODE,
    authorize_endpoint=AUTHORIZE_ENDPOINT,
    token_endpoint=TOKEN_ENDPOINT,
    scope=SCOPE,
    use_pkce=True,
    extra_authorize_params={"prompt": "consent"},
)
