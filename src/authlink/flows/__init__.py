"""OAuth Flows

Device Code Flow(폴링)와 Authorization Code Flow(로컬 콜백) 엔진.
두 엔진은 같은 FlowStatusStore를 공유하며 start / poll 계약이 동일합니다.
"""

from authlink.flows.callback import (
    AuthorizeStart,
    CallbackFlowEngine,
    PKCEChallenge,
    generate_pkce_challenge,
    generate_state_token,
)
from authlink.flows.device_code import (
    DeviceCodeResponse,
    DeviceFlowEngine,
    display_instructions,
)
from authlink.flows.session import (
    FlowSession,
    FlowSnapshot,
    FlowStatus,
    FlowStatusStore,
)

__all__ = [
    # Session
    "FlowSession",
    "FlowSnapshot",
    "FlowStatus",
    "FlowStatusStore",
    # Authorization Code Flow
    "CallbackFlowEngine",
    "AuthorizeStart",
    "PKCEChallenge",
    "generate_pkce_challenge",
    "generate_state_token",
    # Device Code Flow
    "DeviceFlowEngine",
    "DeviceCodeResponse",
    "display_instructions",
]
