"""Custom authorization exceptions.

OAuth 플로우 관련 예외 클래스 정의.
start() 단계에서 동기적으로 발생하는 예외와 콜백 처리 예외를 구분합니다.
세션이 생성된 이후의 실패(거부, 만료, 공급자 에러)는 예외가 아니라
세션 상태로 기록되어 poll()을 통해서만 노출됩니다.
"""


class AuthLinkError(Exception):
    """기본 예외.

    모든 authlink 예외의 베이스 클래스.

    Attributes:
        provider: 공급자 이름 (예: 'github', 'sentry', 'linear', 'slack')
    """

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class ConfigurationError(AuthLinkError):
    """설정 오류.

    client_id / client_secret 누락, 지원하지 않는 grant 등.
    네트워크 호출 전에 발생하며 세션을 만들지 않습니다.
    """
    pass


class UnknownProviderError(ConfigurationError):
    """등록되지 않은 공급자."""
    pass


class TransportError(AuthLinkError):
    """네트워크 연결 실패 또는 타임아웃."""
    pass


class ProtocolError(AuthLinkError):
    """공급자 응답 오류.

    2xx가 아닌 응답이거나 파싱할 수 없는 응답.

    Attributes:
        status_code: HTTP 상태 코드 (알 수 없으면 None)
        body: 원본 응답 본문
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        provider: str | None = None
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, provider)


class OAuthError(ProtocolError):
    """공급자가 명시적으로 반환한 OAuth 에러.

    Attributes:
        error_code: OAuth 에러 코드 (예: 'invalid_grant', 'bad_redirect_uri')
        description: 공급자가 보낸 error_description
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        description: str | None = None,
        status_code: int | None = None,
        provider: str | None = None
    ):
        self.error_code = error_code
        self.description = description
        super().__init__(message, status_code=status_code, provider=provider)


class InvalidStateError(AuthLinkError):
    """콜백 state 검증 실패.

    진행 중인 플로우가 없거나, state가 일치하지 않거나,
    이미 처리된 콜백이 재전송된 경우.
    """
    pass
