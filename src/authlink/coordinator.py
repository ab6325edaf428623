"""Authorization flow coordinator.

공급자 이름을 받아 grant 종류에 맞는 엔진으로 위임하는 진입점.
프로세스당 하나를 만들어 HTTP 레이어와 CLI에 주입합니다.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping

import httpx

from authlink.config import FlowSettings
from authlink.exceptions import ConfigurationError, UnknownProviderError
from authlink.flows.callback import AuthorizeStart, CallbackFlowEngine
from authlink.flows.device_code import DeviceCodeResponse, DeviceFlowEngine
from authlink.flows.session import FlowSnapshot, FlowStatus, FlowStatusStore
from authlink.providers import DEFAULT_PROVIDERS
from authlink.providers.base import AuthToken, GrantType, ProviderAdapter, TokenResponse
from authlink.storage.token_store import TokenStore

logger = logging.getLogger(__name__)


class FlowCoordinator:
    """OAuth 플로우 코디네이터.

    하나의 FlowStatusStore를 DeviceFlowEngine과 CallbackFlowEngine이 공유하므로
    공급자마다 진행 중인 플로우는 항상 하나뿐입니다.

    Example:
        coordinator = FlowCoordinator(settings=FlowSettings.from_env())
        init = await coordinator.start("github", client_id="Iv1.abc")
        snapshot = await coordinator.wait("github")
        await coordinator.save_token("github")
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderAdapter] | None = None,
        settings: FlowSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        token_store: TokenStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """초기화.

        Args:
            providers: 공급자 어댑터 (None이면 GitHub/Sentry/Linear/Slack)
            settings: 플로우 설정
            http_client: 공유 HTTP 클라이언트 (None이면 내부에서 생성, aclose()에서 닫음)
            token_store: 완료된 토큰 저장소 (None이면 save_token() 사용 불가)
            clock: 단조 시계
        """
        self.providers = dict(providers if providers is not None else DEFAULT_PROVIDERS)
        self.settings = settings or FlowSettings()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.token_store = token_store
        self.store = FlowStatusStore()
        self.device = DeviceFlowEngine(self.store, self.settings, self.http_client, clock)
        self.callback = CallbackFlowEngine(self.store, self.settings, self.http_client, clock)

    def provider(self, name: str) -> ProviderAdapter:
        """이름으로 어댑터 조회.

        Raises:
            UnknownProviderError: 등록되지 않은 공급자
        """
        try:
            return self.providers[name]
        except KeyError:
            raise UnknownProviderError(f"Unknown provider: {name}", provider=name) from None

    async def start(
        self,
        name: str,
        client_id: str,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
    ) -> DeviceCodeResponse | AuthorizeStart:
        """플로우 시작 (즉시 반환).

        Args:
            name: 공급자 이름
            client_id: OAuth Client ID
            client_secret: code grant 전용
            redirect_uri: code grant 전용 (None이면 설정의 로컬 콜백 URL)

        Returns:
            device grant면 DeviceCodeResponse, code grant면 AuthorizeStart
        """
        adapter = self.provider(name)
        if adapter.grant_type is GrantType.DEVICE_CODE:
            return await self.device.start(adapter, client_id)
        return self.callback.start(
            adapter,
            client_id,
            client_secret,
            redirect_uri or self.settings.redirect_uri(name),
        )

    def poll(self, name: str) -> FlowSnapshot:
        self.provider(name)
        return self.store.snapshot(name)

    async def handle_callback(
        self,
        name: str,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> FlowSnapshot:
        self.provider(name)
        return await self.callback.handle_callback(name, code, state, error)

    def cancel(self, name: str) -> bool:
        self.provider(name)
        return self.device.cancel(name)

    async def wait(
        self,
        name: str,
        interval: float = 1.0,
        timeout: float | None = None,
    ) -> FlowSnapshot:
        """종료 상태가 될 때까지 poll() 반복.

        Raises:
            asyncio.TimeoutError: timeout 초과
        """

        async def _wait() -> FlowSnapshot:
            while True:
                snapshot = self.poll(name)
                if snapshot.status is not FlowStatus.PENDING:
                    return snapshot
                await asyncio.sleep(interval)

        return await asyncio.wait_for(_wait(), timeout=timeout)

    async def save_token(self, name: str) -> AuthToken | None:
        """완료된 토큰을 저장소에 넘김.

        세션은 그대로 남으므로 이후 poll()도 계속 complete를 반환합니다.

        Returns:
            저장된 AuthToken, 완료 상태가 아니면 None

        Raises:
            ConfigurationError: token_store가 없는 경우
        """
        if self.token_store is None:
            raise ConfigurationError("No token store configured", provider=name)

        session = self.store.current(name)
        snapshot = self.poll(name)
        if session is None or snapshot.status is not FlowStatus.COMPLETE:
            return None

        token = TokenResponse(
            access_token=snapshot.token,
            refresh_token=session.refresh_token,
        ).to_auth_token(name)
        if not await self.token_store.save(token):
            return None
        return token

    def evict_retired(self) -> list[str]:
        """종료 후 조회까지 끝난 세션 정리 (장기 실행 프로세스용)."""
        evicted = self.store.evict_retired()
        if evicted:
            logger.debug("Evicted retired flows: %s", ", ".join(evicted))
        return evicted

    async def aclose(self) -> None:
        """poller 중지 및 내부 HTTP 클라이언트 종료."""
        await self.device.aclose()
        if self._owns_client:
            await self.http_client.aclose()
