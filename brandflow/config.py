"""Runtime configuration read from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    api_url: str = "http://localhost:8000"
    api_prefix: str = "/api/v1.0"
    debug: bool = False
    timeout: float = 30.0
    cache_ttl: float = 600.0
    cache_sweep_interval: float = 300.0
    token_file: Path | None = None
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return f"{self.api_url.rstrip('/')}{self.api_prefix}"


def load_settings() -> Settings:
    """Build :class:`Settings` from ``BRANDFLOW_*`` environment variables."""

    token_file = os.getenv("BRANDFLOW_TOKEN_FILE")
    prefix = os.getenv("BRANDFLOW_API_PREFIX", "/api/v1.0").strip()
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    return Settings(
        api_url=os.getenv("BRANDFLOW_API_URL") or "http://localhost:8000",
        api_prefix=prefix.rstrip("/"),
        debug=_env_bool("BRANDFLOW_DEBUG"),
        timeout=_env_float("BRANDFLOW_TIMEOUT", 30.0),
        cache_ttl=_env_float("BRANDFLOW_CACHE_TTL", 600.0),
        cache_sweep_interval=_env_float("BRANDFLOW_CACHE_SWEEP_INTERVAL", 300.0),
        token_file=Path(token_file).expanduser() if token_file else None,
        log_level=(os.getenv("BRANDFLOW_LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str | int = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
