"""Device Code OAuth Flow (RFC 8628)

localhost 콜백 없이 인증을 완료하는 Device Authorization Grant 구현.

플로우:
1. start()가 device_code, user_code 요청 후 즉시 반환
2. 사용자에게 verification_uri + user_code 표시
3. 사용자가 브라우저에서 URL 접속 → 코드 입력 → 승인
4. 백그라운드 태스크가 토큰 엔드포인트를 폴링
5. 호출자는 poll()로 상태를 반복 조회
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

import httpx
from rich.console import Console
from rich.panel import Panel

from authlink.config import FlowSettings
from authlink.exceptions import (
    ConfigurationError,
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

DEFAULT_EXPIRES_IN = 900
DEFAULT_INTERVAL = 5
# 남은 시간이 거의 없을 때도 요청이 즉시 타임아웃되지 않도록 하는 하한
MIN_REQUEST_TIMEOUT = 0.5


@dataclass
class DeviceCodeResponse:
    """Device Code 응답.

    Attributes:
        device_code: 토큰 교환에 사용되는 device code
        user_code: 사용자가 입력해야 하는 코드
        verification_uri: 사용자가 접속해야 하는 URL
        verification_uri_complete: user_code가 포함된 완전한 URL (선택)
        expires_in: device_code 만료 시간 (초)
        interval: 실제 폴링 간격 (초)
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: float
    verification_uri_complete: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class DeviceFlowEngine:
    """Device Code Flow 엔진.

    공급자마다 하나의 세션을 FlowStatusStore에 유지하고,
    세션마다 asyncio 태스크 하나로 토큰을 폴링합니다.

    Example:
        engine = DeviceFlowEngine(FlowStatusStore())
        init = await engine.start(GITHUB, client_id="Iv1.abc")
        ...
        snapshot = engine.poll("github")
    """

    # 폴링 에러 코드 (RFC 8628)
    ERROR_AUTHORIZATION_PENDING = "authorization_pending"
    ERROR_SLOW_DOWN = "slow_down"
    ERROR_EXPIRED_TOKEN = "expired_token"
    ERROR_ACCESS_DENIED = "access_denied"

    def __init__(
        self,
        store: FlowStatusStore,
        settings: FlowSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """초기화.

        Args:
            store: 세션 저장소 (CallbackFlowEngine과 공유 가능)
            settings: 타이밍 설정
            http_client: 공유 HTTP 클라이언트 (None이면 요청마다 생성)
            clock: 단조 시계
        """
        self.store = store
        self.settings = settings or FlowSettings()
        self.http_client = http_client
        self.clock = clock
        self._tasks: set[asyncio.Task] = set()

    async def start(self, adapter: ProviderAdapter, client_id: str) -> DeviceCodeResponse:
        """Device Code 요청 후 백그라운드 폴링 시작.

        Args:
            adapter: 공급자 어댑터
            client_id: OAuth Client ID

        Returns:
            DeviceCodeResponse: 사용자에게 보여줄 코드와 URL

        Raises:
            ConfigurationError: client_id 누락 또는 device grant 미지원
            TransportError: 연결 실패
            ProtocolError: 2xx가 아니거나 응답 형식 오류
        """
        provider = adapter.name
        if not client_id:
            raise ConfigurationError(
                f"{provider} OAuth client_id is not configured", provider=provider
            )
        if adapter.grant_type is not GrantType.DEVICE_CODE or not adapter.device_authorization_endpoint:
            raise ConfigurationError(
                f"{provider} does not support the device authorization grant",
                provider=provider,
            )

        async with client_session(self.http_client) as client:
            response = await post_form(
                client,
                adapter.device_authorization_endpoint,
                adapter.device_code_params(client_id),
                timeout=self.settings.request_timeout,
                provider=provider,
            )
        raise_for_status(response, provider=provider)
        data = decode_json(response, provider=provider)

        missing = [k for k in ("device_code", "user_code", "verification_uri") if not data.get(k)]
        if missing:
            raise ProtocolError(
                f"Device code response missing {', '.join(missing)}",
                status_code=response.status_code,
                body=response.text,
                provider=provider,
            )

        interval = max(
            float(data.get("interval") or DEFAULT_INTERVAL),
            self.settings.min_poll_interval,
        )
        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
        now = self.clock()

        session = FlowSession(
            provider=provider,
            grant_type=GrantType.DEVICE_CODE,
            client_id=client_id,
            created_at=now,
            expires_at=now + expires_in,
            device_code=data["device_code"],
            user_code=data["user_code"],
            verification_uri=data["verification_uri"],
            poll_interval=interval,
        )
        previous = self.store.install(session)
        if previous is not None:
            # 이전 poller는 깨어나 자신이 대체되었음을 확인하고 종료
            previous.cancelled.set()

        task = asyncio.create_task(
            self._run_poller(adapter, session),
            name=f"device-poller-{provider}-{session.generation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "Started %s device flow %d (expires in %ss, interval %ss)",
            provider,
            session.generation,
            expires_in,
            interval,
        )

        return DeviceCodeResponse(
            device_code=data["device_code"],
            user_code=data["user_code"],
            verification_uri=data["verification_uri"],
            verification_uri_complete=data.get("verification_uri_complete"),
            expires_in=expires_in,
            interval=interval,
        )

    def poll(self, provider: str) -> FlowSnapshot:
        """현재 상태 조회 (논블로킹)."""
        return self.store.snapshot(provider)

    def cancel(self, provider: str) -> bool:
        """진행 중인 device flow 취소 요청.

        Returns:
            bool: 취소 신호를 보낸 세션이 있으면 True
        """
        session = self.store.current(provider)
        if session is None or session.grant_type is not GrantType.DEVICE_CODE:
            return False
        if session.is_terminal:
            return False
        session.cancelled.set()
        return True

    async def _sleep(self, session: FlowSession, seconds: float) -> bool:
        """취소 가능한 대기. 취소되었으면 True."""
        try:
            await asyncio.wait_for(session.cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_poller(self, adapter: ProviderAdapter, session: FlowSession) -> None:
        """종료 상태에 도달하거나 대체될 때까지 토큰 폴링."""
        provider = adapter.name
        try:
            while True:
                cancelled = await self._sleep(session, session.poll_interval)

                if not self.store.is_current(session):
                    logger.debug("%s flow %d superseded, poller exiting", provider, session.generation)
                    return

                if cancelled:
                    self.store.transition(
                        session, FlowStatus.ERROR, error_message="Authorization was cancelled"
                    )
                    return

                remaining = session.expires_at - self.clock()
                if remaining <= 0:
                    self.store.transition(
                        session, FlowStatus.EXPIRED, error_message="Authorization timed out"
                    )
                    return

                timeout = max(min(self.settings.request_timeout, remaining), MIN_REQUEST_TIMEOUT)
                try:
                    if await self._poll_once(adapter, session, timeout):
                        return
                except Exception:
                    # 놓친 tick으로 취급하고 만료 시각까지 계속 폴링
                    logger.exception("Unexpected error polling %s, retrying", provider)
        except asyncio.CancelledError:
            logger.debug("%s poller %d cancelled", provider, session.generation)
            raise

    async def _poll_once(
        self,
        adapter: ProviderAdapter,
        session: FlowSession,
        timeout: float,
    ) -> bool:
        """토큰 엔드포인트 1회 조회.

        Returns:
            bool: 폴링을 멈춰야 하면 True
        """
        provider = adapter.name
        try:
            async with client_session(self.http_client) as client:
                response = await post_form(
                    client,
                    adapter.token_endpoint,
                    adapter.device_token_params(session.client_id, session.device_code),
                    timeout=timeout,
                    provider=provider,
                )
            data = decode_json(response, provider=provider)
        except (TransportError, ProtocolError) as e:
            # 사용자가 아직 승인 중일 수 있으므로 일시적 실패는 재시도
            logger.debug("%s poll tick failed, retrying: %s", provider, e)
            return False

        error = data.get("error") or ""
        description = data.get("error_description") or ""

        if not error:
            access_token = data.get("access_token")
            if not access_token:
                logger.warning("%s token response had neither token nor error", provider)
                return False
            self.store.transition(
                session,
                FlowStatus.COMPLETE,
                token=access_token,
                refresh_token=data.get("refresh_token"),
            )
            return True

        if error == self.ERROR_AUTHORIZATION_PENDING:
            return False

        if error == self.ERROR_SLOW_DOWN:
            # RFC 8628: 5초 추가
            new_interval = session.poll_interval + self.settings.slow_down_step
            if not self.store.update(session, poll_interval=new_interval):
                return True
            logger.debug("%s asked to slow down, interval now %ss", provider, new_interval)
            return False

        if error == self.ERROR_EXPIRED_TOKEN:
            self.store.transition(
                session, FlowStatus.EXPIRED, error_message="Device code expired"
            )
            return True

        if error == self.ERROR_ACCESS_DENIED:
            self.store.transition(
                session,
                FlowStatus.DENIED,
                error_message="Authorization was denied by the user",
            )
            return True

        self.store.transition(
            session, FlowStatus.ERROR, error_message=f"{error}: {description}"
        )
        return True

    async def aclose(self) -> None:
        """실행 중인 모든 poller 중지."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def display_instructions(
    provider: str,
    device_response: DeviceCodeResponse,
    console: Console | None = None,
) -> None:
    """사용자 안내 메시지 출력.

    Args:
        provider: 표시용 공급자 이름
        device_response: device code 응답
        console: 출력 콘솔 (None이면 기본 콘솔)
    """
    console = console or Console()
    verification_url = (
        device_response.verification_uri_complete
        or device_response.verification_uri
    )
    expires_min = device_response.expires_in // 60

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]{provider} Device Code 인증[/bold cyan]\n\n"
            f"다음 URL을 브라우저에서 열고 코드를 입력하세요:\n\n"
            f"[bold]URL:[/bold] [link={verification_url}]{verification_url}[/link]\n"
            f"[bold]코드:[/bold] [bold yellow]{device_response.user_code}[/bold yellow]\n\n"
            f"[dim]만료: {expires_min}분[/dim]",
            title="[AUTH] Device Code Login",
            border_style="cyan",
        )
    )
    console.print()
