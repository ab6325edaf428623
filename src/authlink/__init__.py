"""authlink

로컬 프로세스를 OAuth 2.0으로 외부 계정(GitHub, Sentry, Linear, Slack)에 연결.
인증 시작 요청을 블로킹하지 않고, 완료 여부는 poll()로 반복 조회합니다.

Example:
    from authlink import FlowCoordinator

    coordinator = FlowCoordinator()
    init = await coordinator.start("github", client_id="Iv1.abc")
    print(init.user_code, init.verification_uri)
    snapshot = coordinator.poll("github")
"""

from authlink.config import ClientCredentials, FlowSettings, load_client_credentials
from authlink.coordinator import FlowCoordinator
from authlink.exceptions import (
    AuthLinkError,
    ConfigurationError,
    InvalidStateError,
    OAuthError,
    ProtocolError,
    TransportError,
    UnknownProviderError,
)
from authlink.flows import (
    AuthorizeStart,
    CallbackFlowEngine,
    DeviceCodeResponse,
    DeviceFlowEngine,
    FlowSnapshot,
    FlowStatus,
    FlowStatusStore,
)
from authlink.providers import AuthToken, GrantType, ProviderAdapter, get_provider
from authlink.storage import TokenStore

__version__ = "0.1.0"

__all__ = [
    # Core
    "FlowCoordinator",
    "FlowSettings",
    "ClientCredentials",
    "load_client_credentials",
    # Flows
    "DeviceFlowEngine",
    "CallbackFlowEngine",
    "DeviceCodeResponse",
    "AuthorizeStart",
    "FlowSnapshot",
    "FlowStatus",
    "FlowStatusStore",
    # Providers
    "ProviderAdapter",
    "GrantType",
    "AuthToken",
    "get_provider",
    "TokenStore",
    # Exceptions
    "AuthLinkError",
    "ConfigurationError",
    "UnknownProviderError",
    "TransportError",
    "ProtocolError",
    "OAuthError",
    "InvalidStateError",
]
