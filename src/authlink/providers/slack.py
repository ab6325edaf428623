"""Slack Provider

Authorization Code Grant (OAuth v2).
user token을 요청하므로 scope 대신 user_scope를 사용하고,
토큰은 응답의 authed_user 아래에 들어 있습니다.
"""

from dataclasses import dataclass

from authlink.exceptions import OAuthError, ProtocolError
from authlink.providers.base import GrantType, ProviderAdapter, TokenResponse

AUTHORIZE_ENDPOINT = "https://slack.com/oauth/v2/authorize"
TOKEN_ENDPOINT = "https://slack.com/api/oauth.v2.access"
USER_SCOPES = (
    "channels:history,channels:read,channels:write,chat:write,emoji:read,"
    "files:read,files:write,groups:history,groups:read,groups:write,"
    "im:history,im:read,im:write,mpim:history,mpim:read,mpim:write,"
    "pins:read,pins:write,reactions:read,reactions:write,"
    "reminders:read,reminders:write,search:read,stars:read,team:read,"
    "usergroups:read,users:read,users:read.email,users.profile:write,"
    "bookmarks:read,bookmarks:write"
)


@dataclass(frozen=True)
class SlackProvider(ProviderAdapter):
    """Slack은 HTTP 200에 {"ok": false, "error": ...}로 실패를 알립니다."""

    def parse_token_response(self, payload: dict) -> TokenResponse:
        if not payload.get("ok") or payload.get("error"):
            error = payload.get("error") or "unknown error"
            raise OAuthError(
                f"Slack OAuth error: {error}",
                error_code=error,
                provider=self.name,
            )

        authed_user = payload.get("authed_user") or {}
        access_token = authed_user.get("access_token")
        if not access_token:
            raise ProtocolError("No user access token in response", provider=self.name)

        return TokenResponse(
            access_token=access_token,
            refresh_token=authed_user.get("refresh_token"),
            token_type=authed_user.get("token_type", "user"),
            expires_in=authed_user.get("expires_in"),
            scope=authed_user.get("scope"),
        )


SLACK = SlackProvider(
    name="slack",
    display_name="Slack",
    grant_type=GrantType.AUTHORIZATION_CODE,
    authorize_endpoint=AUTHORIZE_ENDPOINT,
    token_endpoint=TOKEN_ENDPOINT,
    scope=USER_SCOPES,
    scope_param="user_scope",
)
