"""HTTP routes for the browser setup UI.

공급자별 start / poll / callback / save / cancel 엔드포인트.
핸들러는 얇은 어댑터이며 플로우 로직은 FlowCoordinator에 있습니다.
"""

import contextlib
import logging
from collections.abc import Callable
from urllib.parse import urlencode

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from authlink.config import ClientCredentials, FlowSettings, load_client_credentials
from authlink.coordinator import FlowCoordinator
from authlink.exceptions import (
    ConfigurationError,
    InvalidStateError,
    ProtocolError,
    TransportError,
    UnknownProviderError,
)
from authlink.flows.session import FlowStatus
from authlink.storage.token_store import TokenStore

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _setup_redirect(provider: str, **params: str) -> RedirectResponse:
    return RedirectResponse(
        f"/integrations/{provider}/setup?{urlencode(params)}", status_code=303
    )


class OAuthRoutes:
    """코디네이터를 감싸는 라우트 핸들러 모음."""

    def __init__(
        self,
        coordinator: FlowCoordinator,
        credentials: Callable[[str], ClientCredentials] = load_client_credentials,
    ):
        self.coordinator = coordinator
        self.credentials = credentials

    def routes(self) -> list[Route]:
        return [
            Route("/api/{provider}/oauth/start", self.start, methods=["POST"]),
            Route("/api/{provider}/oauth/poll", self.poll, methods=["GET"]),
            Route("/api/{provider}/oauth/callback", self.callback, methods=["GET"]),
            Route("/api/{provider}/oauth/save", self.save, methods=["POST"]),
            Route("/api/{provider}/oauth/cancel", self.cancel, methods=["POST"]),
        ]

    async def start(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        creds = self.credentials(provider)
        try:
            result = await self.coordinator.start(
                provider,
                creds.client_id,
                creds.client_secret,
                self.coordinator.settings.redirect_uri(provider),
            )
        except UnknownProviderError as e:
            return _error(str(e), 404)
        except ConfigurationError as e:
            return _error(str(e), 400)
        except (TransportError, ProtocolError) as e:
            logger.warning("Failed to start %s OAuth flow: %s", provider, e)
            return _error(str(e), 502)
        return JSONResponse(result.to_dict())

    async def poll(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        try:
            snapshot = self.coordinator.poll(provider)
        except UnknownProviderError as e:
            return _error(str(e), 404)
        return JSONResponse(snapshot.to_dict())

    async def callback(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        params = request.query_params
        try:
            adapter = self.coordinator.provider(provider)
            snapshot = await self.coordinator.handle_callback(
                provider,
                params.get("code"),
                params.get("state"),
                params.get("error"),
            )
        except UnknownProviderError as e:
            return _error(str(e), 404)
        except (InvalidStateError, TransportError, ProtocolError) as e:
            return _setup_redirect(provider, error=str(e))

        if snapshot.status is not FlowStatus.COMPLETE:
            return _setup_redirect(provider, error=snapshot.error or "Failed to get access token")

        if self.coordinator.token_store is not None:
            if await self.coordinator.save_token(provider) is None:
                return _setup_redirect(provider, error="Failed to save access token")
        return _setup_redirect(provider, result=f"Connected to {adapter.display_name} via OAuth")

    async def save(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        try:
            token = await self.coordinator.save_token(provider)
        except UnknownProviderError as e:
            return _error(str(e), 404)
        except ConfigurationError as e:
            return _error(str(e), 400)
        if token is None:
            return _error("No completed OAuth flow", 409)
        return JSONResponse({"status": "ok"})

    async def cancel(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        try:
            cancelled = self.coordinator.cancel(provider)
        except UnknownProviderError as e:
            return _error(str(e), 404)
        return JSONResponse({"cancelled": cancelled})


def create_app(
    coordinator: FlowCoordinator | None = None,
    credentials: Callable[[str], ClientCredentials] = load_client_credentials,
) -> Starlette:
    """Starlette 앱 생성.

    Args:
        coordinator: 주입할 코디네이터 (None이면 환경변수 설정과 기본 TokenStore로 생성)
        credentials: 공급자 이름 → 클라이언트 자격증명
    """
    if coordinator is None:
        coordinator = FlowCoordinator(
            settings=FlowSettings.from_env(),
            token_store=TokenStore(),
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        await coordinator.aclose()

    app = Starlette(
        routes=OAuthRoutes(coordinator, credentials).routes(),
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator
    return app
