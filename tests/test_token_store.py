"""Token Store 테스트"""

import json
import stat
import sys
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from keyring.errors import NoKeyringError

from authlink.providers.base import AuthToken
from authlink.storage.token_store import TokenStore


@pytest.fixture
def temp_store(tmp_path):
    """임시 파일 저장소"""
    return TokenStore(storage_dir=tmp_path / "tokens", use_keyring=False)


@pytest.fixture
def keyring_store(tmp_path):
    """keyring 우선 저장소"""
    return TokenStore(storage_dir=tmp_path / "tokens")


@pytest.fixture
def sample_token():
    """샘플 토큰"""
    return AuthToken(
        provider="github",
        access_token="gho_test",
        refresh_token="ghr_test",
        expires_at=datetime.now() + timedelta(days=30),
        scopes=["repo", "read:org"],
    )


class TestFileTokenStore:
    """파일 백엔드 테스트"""

    def test_creates_directory(self, tmp_path):
        store = TokenStore(storage_dir=tmp_path / "a" / "b")
        assert store.storage_dir.is_dir()

    @pytest.mark.asyncio
    async def test_save_and_load(self, temp_store, sample_token):
        """저장 및 로드"""
        assert await temp_store.save(sample_token) is True

        loaded = await temp_store.load("github")
        assert loaded == sample_token

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX 권한")
    async def test_file_permissions(self, temp_store, sample_token):
        await temp_store.save(sample_token)

        mode = (temp_store.storage_dir / "github.json").stat().st_mode
        assert stat.S_IMODE(mode) == 0o600

    @pytest.mark.asyncio
    async def test_load_nonexistent(self, temp_store):
        """존재하지 않는 토큰 로드"""
        assert await temp_store.load("nonexistent") is None

    @pytest.mark.asyncio
    async def test_load_corrupted(self, temp_store):
        """손상된 파일은 None"""
        (temp_store.storage_dir / "broken.json").write_text("{not json")
        assert await temp_store.load("broken") is None

        (temp_store.storage_dir / "partial.json").write_text(json.dumps({"provider": "partial"}))
        assert temp_store.load_sync("partial") is None

    @pytest.mark.asyncio
    async def test_delete(self, temp_store, sample_token):
        """토큰 삭제"""
        await temp_store.save(sample_token)

        assert await temp_store.delete("github") is True
        assert await temp_store.load("github") is None
        assert await temp_store.delete("github") is False

    @pytest.mark.asyncio
    async def test_list_providers(self, temp_store, sample_token):
        """Provider 목록"""
        await temp_store.save(sample_token)
        await temp_store.save(AuthToken(provider="linear", access_token="lin"))

        assert await temp_store.list_providers() == ["github", "linear"]


class TestKeyringTokenStore:
    """keyring 백엔드 테스트"""

    @pytest.mark.asyncio
    async def test_save_uses_keyring(self, keyring_store, sample_token, fake_keyring):
        assert await keyring_store.save(sample_token) is True

        stored = fake_keyring.get_password("authlink", "github")
        assert json.loads(stored)["access_token"] == "gho_test"
        assert not (keyring_store.storage_dir / "github.json").exists()
        assert await keyring_store.load("github") == sample_token

    @pytest.mark.asyncio
    async def test_keyring_replaces_file_copy(self, keyring_store, temp_store, sample_token):
        """파일에 남은 이전 토큰은 keyring 저장 시 제거."""
        await temp_store.save(AuthToken(provider="github", access_token="old"))

        await keyring_store.save(sample_token)

        assert not (keyring_store.storage_dir / "github.json").exists()
        assert (await keyring_store.load("github")).access_token == "gho_test"

    @pytest.mark.asyncio
    async def test_falls_back_to_file(self, keyring_store, sample_token, monkeypatch):
        """keyring 백엔드가 없으면 파일에 저장."""
        broken = MagicMock()
        broken.set_password.side_effect = NoKeyringError("no backend")
        broken.get_password.side_effect = NoKeyringError("no backend")
        broken.delete_password.side_effect = NoKeyringError("no backend")
        monkeypatch.setattr("authlink.storage.token_store.keyring", broken)

        assert await keyring_store.save(sample_token) is True
        assert (keyring_store.storage_dir / "github.json").exists()
        assert await keyring_store.load("github") == sample_token
        assert await keyring_store.list_providers() == ["github"]
        assert await keyring_store.delete("github") is True
        broken.set_password.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete(self, keyring_store, sample_token, fake_keyring):
        await keyring_store.save(sample_token)

        assert await keyring_store.delete("github") is True
        assert fake_keyring.passwords == {}
        assert await keyring_store.load("github") is None
        assert await keyring_store.delete("github") is False

    @pytest.mark.asyncio
    async def test_list_known_providers(self, keyring_store, sample_token):
        """keyring에 있는 기본 공급자와 파일 토큰을 함께 나열."""
        await keyring_store.save(sample_token)
        await keyring_store.save(AuthToken(provider="slack", access_token="xoxp"))
        (keyring_store.storage_dir / "custom.json").write_text(
            json.dumps(AuthToken(provider="custom", access_token="c").to_dict())
        )

        assert await keyring_store.list_providers() == ["custom", "github", "slack"]

    def test_corrupted_keyring_entry(self, keyring_store, fake_keyring):
        fake_keyring.set_password("authlink", "github", "{broken")
        assert keyring_store.load_sync("github") is None


class TestAuthToken:
    def test_expired(self):
        token = AuthToken(
            provider="slack",
            access_token="xoxp",
            expires_at=datetime.now() - timedelta(seconds=1),
        )
        assert token.is_expired()

    def test_dict_round_trip(self, sample_token):
        data = sample_token.to_dict()
        assert data["expires_at"] == sample_token.expires_at.isoformat()
        assert AuthToken.from_dict(data) == sample_token
