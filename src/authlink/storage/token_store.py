"""Token Store

OS 자격증명 저장소(keyring)에 OAuth 토큰을 보관하고,
keyring 백엔드를 쓸 수 없는 환경에서는 0600 JSON 파일로 대체합니다.
"""

import json
import logging
import os
import platform
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from authlink.providers import DEFAULT_PROVIDERS
from authlink.providers.base import AuthToken

logger = logging.getLogger(__name__)


class TokenStore:
    """토큰 저장소

    저장 순서:
    - keyring (Keychain / DPAPI / libsecret)
    - keyring 백엔드가 없거나 실패하면 `<provider>.json` 파일 (권한 0600)

    Example:
        store = TokenStore()
        await store.save(token)
        token = await store.load("github")
        await store.delete("github")
    """

    SERVICE_NAME = "authlink"

    def __init__(self, storage_dir: Path | None = None, use_keyring: bool = True):
        """초기화.

        Args:
            storage_dir: 파일 저장 디렉토리 (None이면 OS별 기본 경로)
            use_keyring: False면 파일만 사용
        """
        self.storage_dir = storage_dir or self._default_storage_dir()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.use_keyring = use_keyring

    def _default_storage_dir(self) -> Path:
        system = platform.system()
        if system == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home()))
        elif system == "Darwin":  # macOS
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / "authlink" / "tokens"

    def _token_file_path(self, provider: str) -> Path:
        return self.storage_dir / f"{provider}.json"

    async def save(self, token: AuthToken) -> bool:
        """토큰 저장

        Args:
            token: 저장할 토큰

        Returns:
            bool: 성공 여부
        """
        payload = json.dumps(token.to_dict())
        if self.use_keyring:
            try:
                keyring.set_password(self.SERVICE_NAME, token.provider, payload)
            except KeyringError as e:
                logger.warning(
                    "keyring unavailable for %s token, using file: %s", token.provider, e
                )
            else:
                # 이전 파일 저장본이 남아 있으면 제거
                self._token_file_path(token.provider).unlink(missing_ok=True)
                logger.info("Saved %s token to keyring", token.provider)
                return True
        return self._save_file(token.provider, payload)

    def _save_file(self, provider: str, payload: str) -> bool:
        file_path = self._token_file_path(provider)
        try:
            # 내용을 쓰기 전에 권한부터 제한
            file_path.touch(mode=0o600, exist_ok=True)
            file_path.chmod(0o600)
            file_path.write_text(payload)
        except OSError:
            logger.exception("Failed to save %s token", provider)
            return False
        logger.info("Saved %s token to %s", provider, file_path)
        return True

    async def load(self, provider: str) -> AuthToken | None:
        """토큰 로드

        Returns:
            AuthToken 또는 None
        """
        return self.load_sync(provider)

    def load_sync(self, provider: str) -> AuthToken | None:
        """토큰 로드 (동기 버전). keyring을 먼저 확인하고 없으면 파일."""
        raw = self._read_keyring(provider)
        source = "keyring"
        if raw is None:
            raw = self._read_file(provider)
            source = "file"
        if raw is None:
            return None
        try:
            return AuthToken.from_dict(json.loads(raw))
        except (ValueError, KeyError):
            logger.exception("Corrupted %s token in %s", provider, source)
            return None

    def _read_keyring(self, provider: str) -> str | None:
        if not self.use_keyring:
            return None
        try:
            return keyring.get_password(self.SERVICE_NAME, provider)
        except KeyringError as e:
            logger.debug("keyring read failed for %s: %s", provider, e)
            return None

    def _read_file(self, provider: str) -> str | None:
        file_path = self._token_file_path(provider)
        if not file_path.exists():
            return None
        try:
            return file_path.read_text()
        except OSError:
            logger.exception("Failed to read %s token", provider)
            return None

    async def delete(self, provider: str) -> bool:
        """토큰 삭제 (keyring과 파일 모두)

        Returns:
            bool: 삭제한 토큰이 있으면 True
        """
        deleted = False
        if self.use_keyring:
            try:
                keyring.delete_password(self.SERVICE_NAME, provider)
                deleted = True
            except PasswordDeleteError:
                # keyring에 저장된 적 없음
                pass
            except KeyringError as e:
                logger.debug("keyring delete failed for %s: %s", provider, e)

        file_path = self._token_file_path(provider)
        if file_path.exists():
            file_path.unlink()
            deleted = True
        return deleted

    async def list_providers(self) -> list[str]:
        """저장된 provider 목록

        keyring은 목록 조회가 안 되므로 등록된 공급자만 확인합니다.
        """
        providers = {path.stem for path in self.storage_dir.glob("*.json")}
        for name in DEFAULT_PROVIDERS:
            if name not in providers and self._read_keyring(name) is not None:
                providers.add(name)
        return sorted(providers)
