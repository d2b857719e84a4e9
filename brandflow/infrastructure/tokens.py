"""Credential storage used by the request gateway.

The browser client kept its tokens in ``localStorage``. Here the same role is
played by a small protocol with an in-memory implementation (the default) and
a JSON-file implementation for long-lived CLI sessions. Installing a different
store only requires calling :func:`configure_token_store` during start-up.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol


class TokenStore(Protocol):
    """Contract for credential stores."""

    @property
    def access_token(self) -> str | None: ...

    @property
    def refresh_token(self) -> str | None: ...

    def set_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        """Store a new access token and, when given, a rotated refresh token."""

    def clear(self) -> None:
        """Forget every stored credential."""


class InMemoryTokenStore:
    def __init__(self, access_token: str | None = None, refresh_token: str | None = None) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    def set_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        self._access_token = access_token
        if refresh_token:
            self._refresh_token = refresh_token

    def clear(self) -> None:
        self._access_token = None
        self._refresh_token = None


class FileTokenStore:
    """Persist tokens as JSON so that a later process can reuse the session."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, payload: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload), encoding="utf-8")

    @property
    def access_token(self) -> str | None:
        return self._read().get("access_token")

    @property
    def refresh_token(self) -> str | None:
        return self._read().get("refresh_token")

    def set_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        payload = self._read()
        payload["access_token"] = access_token
        if refresh_token:
            payload["refresh_token"] = refresh_token
        self._write(payload)

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()


_store: TokenStore = InMemoryTokenStore()


def configure_token_store(store: TokenStore) -> None:
    """Install the token store used by newly created gateways."""

    global _store
    _store = store


def get_token_store() -> TokenStore:
    return _store


__all__ = [
    "FileTokenStore",
    "InMemoryTokenStore",
    "TokenStore",
    "configure_token_store",
    "get_token_store",
]
