"""Flow session model and per-provider status store.

공급자별로 하나의 FlowSession만 유지하는 저장소.
poll()은 스냅샷만 복사해 반환하고, poller/콜백 핸들러는
현재 세션인지(generation) 확인한 뒤에만 상태를 기록합니다.
"""

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum

from authlink.providers.base import GrantType

logger = logging.getLogger(__name__)

_generations = itertools.count(1)

NO_FLOW_MESSAGE = "No OAuth flow in progress"


class FlowStatus(str, Enum):
    """플로우 상태."""

    PENDING = "pending"
    COMPLETE = "complete"
    DENIED = "denied"
    EXPIRED = "expired"
    ERROR = "error"
    NO_FLOW = "no_flow"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {FlowStatus.COMPLETE, FlowStatus.DENIED, FlowStatus.EXPIRED, FlowStatus.ERROR}
)


@dataclass(frozen=True)
class FlowSnapshot:
    """poll() 결과.

    Attributes:
        status: 현재 상태
        token: access token (complete일 때만)
        error: 에러 메시지 (denied/expired/error/no_flow)
    """

    status: FlowStatus
    token: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        """JSON 응답 형태로 변환."""
        data = {"status": self.status.value}
        if self.token:
            data["token"] = self.token
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class FlowSession:
    """공급자별 진행 중인 OAuth 플로우.

    start()가 호출될 때마다 새로 만들어져 이전 세션을 대체합니다.
    필드 변경은 FlowStatusStore를 통해서만 이루어집니다.
    """

    provider: str
    grant_type: GrantType
    client_id: str
    created_at: float
    expires_at: float
    generation: int = field(default_factory=lambda: next(_generations))
    client_secret: str | None = field(default=None, repr=False)
    redirect_uri: str | None = None

    # device grant
    device_code: str | None = field(default=None, repr=False)
    user_code: str | None = None
    verification_uri: str | None = None
    poll_interval: float = 0.0

    # authorization code grant
    state_token: str | None = field(default=None, repr=False)
    code_verifier: str | None = field(default=None, repr=False)
    callback_claimed: bool = False

    status: FlowStatus = FlowStatus.PENDING
    token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    error_message: str | None = None
    observed: bool = False

    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    cancelled: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def snapshot(self) -> FlowSnapshot:
        """이 세션의 현재 상태 (observed 표시 없음)."""
        with self.lock:
            return FlowSnapshot(
                status=self.status,
                token=self.token,
                error=self.error_message,
            )


_UPDATABLE_FIELDS = frozenset({"poll_interval"})


class FlowStatusStore:
    """공급자별 단일 세션 저장소.

    잠금 순서는 항상 저장소 잠금 → 세션 잠금입니다.

    Example:
        store = FlowStatusStore()
        store.install(session)
        store.transition(session, FlowStatus.COMPLETE, token="tok_123")
        snapshot = store.snapshot("github")
    """

    def __init__(self):
        self._sessions: dict[str, FlowSession] = {}
        self._lock = threading.Lock()

    def install(self, session: FlowSession) -> FlowSession | None:
        """세션 등록 (기존 세션 대체).

        Returns:
            대체된 이전 세션 또는 None
        """
        with self._lock:
            previous = self._sessions.get(session.provider)
            self._sessions[session.provider] = session
        if previous is not None:
            logger.debug(
                "Session %d for %s superseded by %d",
                previous.generation,
                session.provider,
                session.generation,
            )
        return previous

    def current(self, provider: str) -> FlowSession | None:
        with self._lock:
            return self._sessions.get(provider)

    def is_current(self, session: FlowSession) -> bool:
        with self._lock:
            return self._is_current_locked(session)

    def _is_current_locked(self, session: FlowSession) -> bool:
        current = self._sessions.get(session.provider)
        return current is not None and current.generation == session.generation

    def transition(
        self,
        session: FlowSession,
        status: FlowStatus,
        *,
        token: str | None = None,
        refresh_token: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """pending 세션을 종료 상태로 전이.

        세션이 더 이상 현재 세션이 아니거나 이미 종료 상태면
        아무것도 기록하지 않고 False를 반환합니다.

        Args:
            session: 대상 세션
            status: 종료 상태 (complete/denied/expired/error)
            token: access token (complete일 때 필수)
            refresh_token: refresh token (선택)
            error_message: 에러 메시지

        Returns:
            bool: 기록 여부

        Raises:
            ValueError: 종료 상태가 아니거나 token 조건 위반
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        if (status is FlowStatus.COMPLETE) != bool(token):
            raise ValueError("token must be set exactly when the flow is complete")

        with self._lock:
            if not self._is_current_locked(session):
                return False
            with session.lock:
                if session.is_terminal:
                    return False
                session.status = status
                session.token = token
                session.refresh_token = refresh_token if token else None
                session.error_message = error_message
                session.device_code = None

        logger.info(
            "%s flow %d -> %s", session.provider, session.generation, status.value
        )
        return True

    def update(self, session: FlowSession, **changes) -> bool:
        """pending 세션의 비상태 필드 갱신 (예: poll_interval)."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {sorted(unknown)}")

        with self._lock:
            if not self._is_current_locked(session):
                return False
            with session.lock:
                if session.is_terminal:
                    return False
                for name, value in changes.items():
                    setattr(session, name, value)
        return True

    def claim_callback(self, session: FlowSession) -> bool:
        """콜백 처리 권한 획득.

        같은 state로 들어온 콜백 중 첫 번째만 True를 받습니다.
        """
        with self._lock:
            if not self._is_current_locked(session):
                return False
            with session.lock:
                if session.callback_claimed or session.is_terminal:
                    return False
                session.callback_claimed = True
        return True

    def snapshot(self, provider: str) -> FlowSnapshot:
        """현재 상태 스냅샷 (논블로킹)."""
        with self._lock:
            session = self._sessions.get(provider)
            if session is None:
                return FlowSnapshot(status=FlowStatus.NO_FLOW, error=NO_FLOW_MESSAGE)
            with session.lock:
                if session.is_terminal:
                    session.observed = True
                return FlowSnapshot(
                    status=session.status,
                    token=session.token,
                    error=session.error_message,
                )

    def evict_retired(self) -> list[str]:
        """종료되고 한 번 이상 조회된 세션 제거.

        자동으로 실행되지 않습니다. 장기 실행 프로세스가 주기적으로 호출합니다.

        Returns:
            list[str]: 제거된 공급자 이름
        """
        evicted = []
        with self._lock:
            for provider, session in list(self._sessions.items()):
                with session.lock:
                    retired = session.is_terminal and session.observed
                if retired:
                    del self._sessions[provider]
                    evicted.append(provider)
        return evicted
