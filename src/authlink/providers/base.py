"""Provider adapter base

공급자별 차이(엔드포인트, scope, 파라미터 이름, 토큰 응답 형태)를
데이터로 표현하는 어댑터 정의. 플로우 로직은 flows 패키지의 엔진이 담당.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from urllib.parse import urlencode

from authlink.exceptions import OAuthError, ProtocolError

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


class GrantType(str, Enum):
    """OAuth grant 종류."""

    DEVICE_CODE = "device_code"
    AUTHORIZATION_CODE = "authorization_code"


@dataclass
class TokenResponse:
    """토큰 응답."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None

    def to_auth_token(self, provider: str) -> "AuthToken":
        expires_at = None
        if self.expires_in:
            expires_at = datetime.now() + timedelta(seconds=self.expires_in)
        return AuthToken(
            provider=provider,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=expires_at,
            token_type=self.token_type,
            scopes=self.scope.replace(",", " ").split() if self.scope else [],
        )


@dataclass
class AuthToken:
    """저장용 인증 토큰"""

    provider: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_type: str = "Bearer"
    scopes: list[str] = field(default_factory=list)

    def is_expired(self) -> bool:
        """토큰 만료 여부 확인"""
        if self.expires_at is None:
            return False
        return datetime.now() >= self.expires_at

    def to_dict(self) -> dict:
        """딕셔너리로 변환 (저장용)"""
        return {
            "provider": self.provider,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "token_type": self.token_type,
            "scopes": self.scopes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuthToken":
        """딕셔너리에서 생성"""
        expires_at = None
        if data.get("expires_at"):
            expires_at = datetime.fromisoformat(data["expires_at"])
        return cls(
            provider=data["provider"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            token_type=data.get("token_type", "Bearer"),
            scopes=data.get("scopes", []),
        )


@dataclass(frozen=True)
class ProviderAdapter:
    """공급자 어댑터.

    Attributes:
        name: 공급자 식별자 (URL 경로, 환경변수 접두사로 사용)
        display_name: 표시용 이름
        grant_type: 지원하는 grant
        token_endpoint: 토큰 엔드포인트
        scope: 요청할 scope 문자열
        device_authorization_endpoint: device code 엔드포인트 (device grant)
        authorize_endpoint: 브라우저 인증 엔드포인트 (code grant)
        scope_param: 인증 URL의 scope 파라미터 이름
        use_pkce: PKCE(S256) 사용 여부
        extra_authorize_params: 인증 URL에 추가할 파라미터
    """

    name: str
    display_name: str
    grant_type: GrantType
    token_endpoint: str
    scope: str
    device_authorization_endpoint: str | None = None
    authorize_endpoint: str | None = None
    scope_param: str = "scope"
    use_pkce: bool = False
    extra_authorize_params: Mapping[str, str] = field(default_factory=dict)

    def device_code_params(self, client_id: str) -> dict[str, str]:
        return {"client_id": client_id, "scope": self.scope}

    def device_token_params(self, client_id: str, device_code: str) -> dict[str, str]:
        return {
            "client_id": client_id,
            "device_code": device_code,
            "grant_type": DEVICE_CODE_GRANT,
        }

    def authorize_url(
        self,
        client_id: str,
        redirect_uri: str,
        state: str,
        code_challenge: str | None = None,
    ) -> str:
        """브라우저 인증 URL 생성."""
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            self.scope_param: self.scope,
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        params.update(self.extra_authorize_params)
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def code_exchange_params(
        self,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> dict[str, str]:
        data = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        return data

    def parse_token_response(self, payload: dict) -> TokenResponse:
        """표준 OAuth 토큰 응답 파싱.

        Raises:
            OAuthError: 응답에 error 필드가 있는 경우
            ProtocolError: access_token이 없는 경우
        """
        error = payload.get("error")
        if error:
            description = payload.get("error_description", "")
            raise OAuthError(
                f"{error}: {description}" if description else str(error),
                error_code=error,
                description=description,
                provider=self.name,
            )

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProtocolError("No access token in response", provider=self.name)

        expires_in = payload.get("expires_in")
        return TokenResponse(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            token_type=payload.get("token_type", "Bearer"),
            expires_in=expires_in if isinstance(expires_in, int) else None,
            scope=payload.get("scope"),
        )
