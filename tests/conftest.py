"""Shared test fixtures."""

from urllib.parse import parse_qsl

import httpx
import pytest
from keyring.errors import PasswordDeleteError

from authlink.config import FlowSettings
from authlink.providers.base import GrantType, ProviderAdapter

DEVICE_ENDPOINT = "https://auth.example.com/device/code"
TOKEN_ENDPOINT = "https://auth.example.com/token"
AUTHORIZE_ENDPOINT = "https://auth.example.com/authorize"


class FakeProvider:
    """경로별로 응답을 순서대로 돌려주는 가짜 OAuth 서버.

    마지막 응답은 계속 반복됩니다. 응답 대신 예외나
    (request -> Response) 함수를 넣을 수도 있습니다.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, list] = {}

    def on(self, path: str, *responses) -> "FakeProvider":
        self._routes[path] = list(responses)
        return self

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error": "not_found"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handler))

    def forms(self, path: str) -> list[dict[str, str]]:
        """해당 경로로 보낸 폼 본문 목록."""
        return [
            dict(parse_qsl(r.content.decode()))
            for r in self.requests
            if r.url.path == path
        ]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKeyring:
    """메모리 기반 keyring. 테스트가 실제 OS 자격증명 저장소를 건드리지 않도록."""

    def __init__(self):
        self.passwords: dict[tuple[str, str], str] = {}

    def set_password(self, service: str, username: str, password: str) -> None:
        self.passwords[(service, username)] = password

    def get_password(self, service: str, username: str) -> str | None:
        return self.passwords.get((service, username))

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


@pytest.fixture(autouse=True)
def fake_keyring(monkeypatch) -> FakeKeyring:
    backend = FakeKeyring()
    monkeypatch.setattr("authlink.storage.token_store.keyring", backend)
    return backend


def json_response(payload: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def device_code_payload(device_code: str = "dev_code_123", **overrides) -> dict:
    payload = {
        "device_code": device_code,
        "user_code": "WXYZ-5678",
        "verification_uri": "https://auth.example.com/activate",
        "verification_uri_complete": "https://auth.example.com/activate?user_code=WXYZ-5678",
        "expires_in": 5,
        "interval": 0.01,
    }
    payload.update(overrides)
    return payload


PENDING = {"error": "authorization_pending", "error_description": "not yet"}


@pytest.fixture
def settings() -> FlowSettings:
    """테스트용 짧은 간격 설정."""
    return FlowSettings(
        min_poll_interval=0.01,
        slow_down_step=0.02,
        callback_window=600,
        request_timeout=1.0,
    )


@pytest.fixture
def fake() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def device_adapter() -> ProviderAdapter:
    return ProviderAdapter(
        name="acme",
        display_name="Acme",
        grant_type=GrantType.DEVICE_CODE,
        device_authorization_endpoint=DEVICE_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
        scope="read write",
    )


@pytest.fixture
def code_adapter() -> ProviderAdapter:
    return ProviderAdapter(
        name="widget",
        display_name="Widget",
        grant_type=GrantType.AUTHORIZATION_CODE,
        authorize_endpoint=AUTHORIZE_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
        scope="read",
    )
