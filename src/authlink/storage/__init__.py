"""Credential storage."""

from authlink.storage.token_store import TokenStore

__all__ = ["TokenStore"]
