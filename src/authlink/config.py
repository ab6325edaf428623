"""Runtime settings.

환경변수 기반 설정 로딩.
플로우 타이밍(폴링 간격, 콜백 유효 시간)과 HTTP 서버 바인딩을 다룹니다.
"""

import logging
import os
from dataclasses import dataclass

from authlink.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "AUTHLINK_"


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number.") from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive.")
    return value


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer value.") from e


@dataclass
class FlowSettings:
    """플로우 설정.

    Attributes:
        min_poll_interval: device grant 폴링 간격 하한 (초)
        slow_down_step: slow_down 응답 시 증가시킬 간격 (초, RFC 8628: 5초)
        callback_window: code grant 콜백 유효 시간 (초)
        request_timeout: 공급자 HTTP 요청 타임아웃 상한 (초)
        host: HTTP 서버 바인딩 호스트
        port: HTTP 서버 포트
        debug: 상세 로그 출력
    """

    min_poll_interval: float = 5.0
    slow_down_step: float = 5.0
    callback_window: float = 600.0
    request_timeout: float = 30.0
    host: str = "127.0.0.1"
    port: int = 8765
    debug: bool = False

    @property
    def base_url(self) -> str:
        """로컬 콜백 URL의 기준 주소."""
        return f"http://localhost:{self.port}"

    def redirect_uri(self, provider: str) -> str:
        return f"{self.base_url}/api/{provider}/oauth/callback"

    @classmethod
    def from_env(cls) -> "FlowSettings":
        """환경변수에서 설정 로드.

        Raises:
            ConfigurationError: 숫자 값이 잘못된 경우
        """
        return cls(
            min_poll_interval=_get_env_float(f"{ENV_PREFIX}MIN_POLL_INTERVAL", 5.0),
            slow_down_step=_get_env_float(f"{ENV_PREFIX}SLOW_DOWN_STEP", 5.0),
            callback_window=_get_env_float(f"{ENV_PREFIX}CALLBACK_WINDOW", 600.0),
            request_timeout=_get_env_float(f"{ENV_PREFIX}REQUEST_TIMEOUT", 30.0),
            host=os.getenv(f"{ENV_PREFIX}HOST", "127.0.0.1"),
            port=_get_env_int(f"{ENV_PREFIX}PORT", 8765),
            debug=is_truthy(os.getenv(f"{ENV_PREFIX}DEBUG")),
        )


@dataclass(frozen=True)
class ClientCredentials:
    """공급자별 OAuth 클라이언트 자격증명."""

    client_id: str
    client_secret: str | None = None


def load_client_credentials(provider: str) -> ClientCredentials:
    """환경변수에서 클라이언트 자격증명 로드.

    `<PROVIDER>_CLIENT_ID`, `<PROVIDER>_CLIENT_SECRET`을 읽습니다.
    값이 없으면 빈 문자열을 반환하며, 검증은 엔진의 start()가 담당합니다.

    Args:
        provider: 공급자 이름

    Returns:
        ClientCredentials: 자격증명
    """
    prefix = provider.upper()
    client_id = os.getenv(f"{prefix}_CLIENT_ID", "").strip()
    client_secret = os.getenv(f"{prefix}_CLIENT_SECRET", "").strip() or None
    if not client_id:
        logger.debug("%s_CLIENT_ID is not set", prefix)
    return ClientCredentials(client_id=client_id, client_secret=client_secret)


def setup_logging(settings: FlowSettings) -> None:
    level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
