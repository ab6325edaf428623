"""Authorization Code OAuth Flow with local callback

브라우저 리디렉션 기반 OAuth 인증.
start()는 인증 URL만 만들어 반환하고, 실제 완료는 브라우저가
로컬 콜백 URL로 돌아올 때 handle_callback()에서 처리됩니다.
state 토큰 비교가 콜백을 인증하는 유일한 수단입니다.
"""

import base64
import hashlib
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from authlink.config import FlowSettings
from authlink.exceptions import (
    ConfigurationError,
    InvalidStateError,
    ProtocolError,
    TransportError,
)
from authlink.flows.session import (
    FlowSession,
    FlowSnapshot,
    FlowStatus,
    FlowStatusStore,
)
from authlink.flows.transport import (
    client_session,
    decode_json,
    post_form,
    raise_for_status,
)
from authlink.providers.base import GrantType, ProviderAdapter

logger = logging.getLogger(__name__)


@dataclass
class PKCEChallenge:
    """PKCE (Proof Key for Code Exchange) 챌린지."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"


@dataclass
class AuthorizeStart:
    """code grant start() 결과."""

    authorize_url: str

    def to_dict(self) -> dict:
        return {"authorize_url": self.authorize_url}


def generate_pkce_challenge() -> PKCEChallenge:
    """PKCE 챌린지 생성.

    Returns:
        PKCEChallenge: code_verifier와 code_challenge 포함
    """
    # code_verifier: 43-128자의 랜덤 문자열
    code_verifier = secrets.token_urlsafe(64)

    # code_challenge: code_verifier의 SHA256 해시를 base64url 인코딩
    digest = hashlib.sha256(code_verifier.encode()).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()

    return PKCEChallenge(
        code_verifier=code_verifier,
        code_challenge=code_challenge,
        code_challenge_method="S256",
    )


def generate_state_token() -> str:
    return secrets.token_urlsafe(32)


class CallbackFlowEngine:
    """Authorization Code Flow 엔진.

    백그라운드 태스크 없이 동작합니다. start()와 handle_callback()
    사이의 대기는 브라우저 왕복 자체입니다.

    Example:
        engine = CallbackFlowEngine(FlowStatusStore())
        start = engine.start(LINEAR, "cid", "secret", "http://localhost:8765/api/linear/oauth/callback")
        # 브라우저 리디렉션 후
        await engine.handle_callback("linear", code, state)
        snapshot = engine.poll("linear")
    """

    def __init__(
        self,
        store: FlowStatusStore,
        settings: FlowSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.settings = settings or FlowSettings()
        self.http_client = http_client
        self.clock = clock
        self._adapters: dict[str, ProviderAdapter] = {}

    def start(
        self,
        adapter: ProviderAdapter,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
    ) -> AuthorizeStart:
        """인증 URL 생성 및 세션 등록.

        Raises:
            ConfigurationError: 자격증명/redirect_uri 누락 또는 code grant 미지원
        """
        provider = adapter.name
        if not client_id or not client_secret:
            raise ConfigurationError(
                f"{provider} OAuth client_id/client_secret not configured",
                provider=provider,
            )
        if adapter.grant_type is not GrantType.AUTHORIZATION_CODE or not adapter.authorize_endpoint:
            raise ConfigurationError(
                f"{provider} does not support the authorization code grant",
                provider=provider,
            )
        if not redirect_uri:
            raise ConfigurationError(f"{provider} redirect_uri is empty", provider=provider)

        state = generate_state_token()
        pkce = generate_pkce_challenge() if adapter.use_pkce else None
        now = self.clock()

        session = FlowSession(
            provider=provider,
            grant_type=GrantType.AUTHORIZATION_CODE,
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            created_at=now,
            expires_at=now + self.settings.callback_window,
            state_token=state,
            code_verifier=pkce.code_verifier if pkce else None,
        )
        self._adapters[provider] = adapter
        previous = self.store.install(session)
        if previous is not None:
            previous.cancelled.set()

        logger.info(
            "Started %s authorization code flow %d (state %s...)",
            provider,
            session.generation,
            state[:8],
        )

        return AuthorizeStart(
            authorize_url=adapter.authorize_url(
                client_id,
                redirect_uri,
                state,
                code_challenge=pkce.code_challenge if pkce else None,
            )
        )

    async def handle_callback(
        self,
        provider: str,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> FlowSnapshot:
        """브라우저 리디렉션 처리 및 토큰 교환.

        Args:
            provider: 공급자 이름
            code: 인증 코드 (없으면 거부로 처리)
            state: 콜백의 state 파라미터
            error: 공급자가 보낸 error 파라미터 (선택)

        Returns:
            FlowSnapshot: 처리 후 상태

        Raises:
            InvalidStateError: 플로우 없음, state 불일치, 재전송된 콜백
            TransportError: 토큰 교환 중 연결 실패
            ProtocolError: 토큰 교환 응답 오류
        """
        session = self.store.current(provider)
        if session is None or session.grant_type is not GrantType.AUTHORIZATION_CODE:
            raise InvalidStateError("No OAuth flow in progress", provider=provider)

        if not state or not secrets.compare_digest(state, session.state_token or ""):
            logger.warning("Rejected %s callback with mismatched state", provider)
            raise InvalidStateError(
                "Invalid state parameter, possible CSRF attack", provider=provider
            )

        if not self.store.claim_callback(session):
            logger.warning("Rejected replayed %s callback", provider)
            raise InvalidStateError("OAuth callback already handled", provider=provider)

        if self.clock() > session.expires_at:
            self.store.transition(
                session, FlowStatus.EXPIRED, error_message="Authorization timed out"
            )
            return session.snapshot()

        if not code:
            self.store.transition(
                session,
                FlowStatus.DENIED,
                error_message=error or "Authorization was denied by the user",
            )
            return session.snapshot()

        adapter = self._adapters[provider]
        try:
            token = await self._exchange_code(adapter, session, code)
        except ProtocolError as e:
            self.store.transition(session, FlowStatus.ERROR, error_message=str(e))
            raise
        except TransportError as e:
            self.store.transition(
                session, FlowStatus.ERROR, error_message=f"Token exchange failed: {e}"
            )
            raise
        except Exception as e:
            # 이미 claim된 콜백이므로 세션을 pending으로 남기지 않음
            logger.exception("Unexpected error exchanging %s authorization code", provider)
            self.store.transition(
                session, FlowStatus.ERROR, error_message=f"Token exchange failed: {e}"
            )
            raise

        self.store.transition(
            session,
            FlowStatus.COMPLETE,
            token=token.access_token,
            refresh_token=token.refresh_token,
        )
        return session.snapshot()

    async def _exchange_code(self, adapter: ProviderAdapter, session: FlowSession, code: str):
        """인증 코드를 토큰으로 교환."""
        provider = adapter.name
        data = adapter.code_exchange_params(
            session.client_id,
            session.client_secret,
            code,
            session.redirect_uri,
            code_verifier=session.code_verifier,
        )
        async with client_session(self.http_client) as client:
            response = await post_form(
                client,
                adapter.token_endpoint,
                data,
                timeout=self.settings.request_timeout,
                provider=provider,
            )
        raise_for_status(response, provider=provider)
        return adapter.parse_token_response(decode_json(response, provider=provider))

    def poll(self, provider: str) -> FlowSnapshot:
        """현재 상태 조회 (논블로킹)."""
        return self.store.snapshot(provider)
