"""Command-line entry point.

    authlink login github     # 터미널에서 device code 인증
    authlink serve            # 브라우저 설정 UI용 HTTP 서버
    authlink status           # 저장된 토큰 목록
"""

import argparse
import asyncio
import sys

import uvicorn
from rich.console import Console

from authlink.config import FlowSettings, load_client_credentials, setup_logging
from authlink.coordinator import FlowCoordinator
from authlink.exceptions import AuthLinkError
from authlink.flows.device_code import display_instructions
from authlink.flows.session import FlowStatus
from authlink.providers.base import GrantType
from authlink.storage.token_store import TokenStore
from authlink.web import create_app

console = Console()


async def login(provider: str, settings: FlowSettings, timeout: float | None) -> int:
    """device grant로 로그인 후 토큰 저장."""
    coordinator = FlowCoordinator(settings=settings, token_store=TokenStore())
    try:
        adapter = coordinator.provider(provider)
        if adapter.grant_type is not GrantType.DEVICE_CODE:
            console.print(
                f"[yellow]{adapter.display_name}는 브라우저 콜백이 필요합니다. "
                f"`authlink serve` 후 설정 페이지에서 연결하세요.[/yellow]"
            )
            return 2

        creds = load_client_credentials(provider)
        init = await coordinator.start(provider, creds.client_id)
        display_instructions(adapter.display_name, init, console)

        console.print("[dim]인증 대기 중...[/dim]")
        snapshot = await coordinator.wait(provider, timeout=timeout)
        if snapshot.status is not FlowStatus.COMPLETE:
            console.print(f"[bold red][FAIL] {snapshot.status.value}: {snapshot.error}[/bold red]")
            return 1

        await coordinator.save_token(provider)
        console.print("[bold green][OK] 인증 성공![/bold green]")
        return 0
    except AuthLinkError as e:
        console.print(f"[bold red][ERROR] {e}[/bold red]")
        return 1
    except asyncio.TimeoutError:
        console.print("[bold red][ERROR] 인증 시간이 초과되었습니다.[/bold red]")
        return 1
    finally:
        await coordinator.aclose()


async def status() -> int:
    store = TokenStore()
    providers = await store.list_providers()
    if not providers:
        console.print("[dim]저장된 토큰이 없습니다.[/dim]")
        return 0
    for name in providers:
        token = await store.load(name)
        state = "expired" if token is None or token.is_expired() else "connected"
        console.print(f"{name}: {state}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authlink")
    sub = parser.add_subparsers(dest="command", required=True)

    login_parser = sub.add_parser("login", help="device code 인증")
    login_parser.add_argument("provider")
    login_parser.add_argument("--timeout", type=float, default=None)

    sub.add_parser("serve", help="HTTP 서버 실행")
    sub.add_parser("status", help="저장된 토큰 목록")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = FlowSettings.from_env()
    except AuthLinkError as e:
        console.print(f"[bold red][ERROR] {e}[/bold red]")
        return 1
    setup_logging(settings)

    if args.command == "login":
        return asyncio.run(login(args.provider, settings, args.timeout))
    if args.command == "status":
        return asyncio.run(status())

    coordinator = FlowCoordinator(settings=settings, token_store=TokenStore())
    uvicorn.run(create_app(coordinator), host=settings.host, port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
