"""HTTP helpers for provider endpoints.

httpx 예외를 TransportError / ProtocolError로 변환합니다.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from authlink.exceptions import ProtocolError, TransportError

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


@asynccontextmanager
async def client_session(
    client: httpx.AsyncClient | None,
) -> AsyncIterator[httpx.AsyncClient]:
    """주입된 클라이언트를 그대로 쓰거나, 없으면 요청 단위 클라이언트 생성."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as own_client:
        yield own_client


async def post_form(
    client: httpx.AsyncClient,
    url: str,
    data: dict[str, str],
    *,
    timeout: float,
    provider: str | None = None,
) -> httpx.Response:
    """폼 인코딩 POST.

    Raises:
        TransportError: 연결 실패, 타임아웃, 본문 디코딩 실패 등 요청 단계 오류
    """
    try:
        return await client.post(url, data=data, headers=FORM_HEADERS, timeout=timeout)
    except httpx.HTTPError as e:
        raise TransportError(f"Request to {url} failed: {e!r}", provider=provider) from e


def decode_json(response: httpx.Response, *, provider: str | None = None) -> dict:
    """응답 본문을 JSON 객체로 파싱.

    Raises:
        ProtocolError: JSON 객체가 아닌 경우
    """
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(
            f"Unparseable response ({response.status_code})",
            status_code=response.status_code,
            body=response.text,
            provider=provider,
        ) from e
    if not isinstance(payload, dict):
        raise ProtocolError(
            f"Unexpected response shape ({response.status_code})",
            status_code=response.status_code,
            body=response.text,
            provider=provider,
        )
    return payload


def raise_for_status(response: httpx.Response, *, provider: str | None = None) -> None:
    """2xx가 아니면 ProtocolError."""
    if response.is_success:
        return
    name = provider or "provider"
    raise ProtocolError(
        f"{name} returned {response.status_code}: {response.text}",
        status_code=response.status_code,
        body=response.text,
        provider=provider,
    )
