"""Configuration helpers for the price desk.

Values come from an optional ``.env`` file next to the application plus the
process environment. Tests call ``load_dashboard_config`` with an explicit
mapping so they never depend on the developer's shell.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
import os

from dotenv import load_dotenv

from .network import allowed_origins

DEFAULT_API_BASE_URL = "http://127.0.0.1:3000"


def env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(env_map: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = (env_map.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    return max(minimum, value)


@dataclass(frozen=True)
class DashboardConfig:
    """Strongly typed configuration for the records dashboard."""

    base_dir: Path
    secret_key: str
    records_file: Path
    record_backups: int
    api_host: str
    api_port: int
    force_tls: bool
    allowed_origins: tuple[str, ...]
    page_size: int
    log_level: str
    log_file: str | None
    api_base_url: str

    @property
    def scheme(self) -> str:
        return "https" if self.force_tls else "http"


def load_dashboard_config(base_dir: Path, env: Mapping[str, str] | None = None) -> DashboardConfig:
    """Load dashboard configuration from ``base_dir/.env`` and ``env``."""

    base_dir = Path(base_dir)
    if env is None:
        load_dotenv(base_dir / ".env")
        env_map = dict(os.environ)
    else:
        env_map = dict(env)

    records_raw = (env_map.get("RECORDS_FILE") or "").strip()
    records_file = Path(records_raw) if records_raw else base_dir / "records.json"
    if not records_file.is_absolute():
        records_file = base_dir / records_file

    force_tls = env_bool(env_map.get("FORCE_TLS"), False)
    api_port = _env_int(env_map, "API_PORT", 3000, minimum=1)

    return DashboardConfig(
        base_dir=base_dir,
        secret_key=env_map.get("SECRET_KEY", "dev-change-me"),
        records_file=records_file,
        record_backups=_env_int(env_map, "RECORD_BACKUPS", 2),
        api_host=env_map.get("API_HOST", "0.0.0.0"),
        api_port=api_port,
        force_tls=force_tls,
        allowed_origins=tuple(
            allowed_origins(
                env_map.get("ALLOWED_ORIGINS", ""),
                api_port,
                "https" if force_tls else "http",
            )
        ),
        page_size=_env_int(env_map, "PAGE_SIZE", 10, minimum=1),
        log_level=(env_map.get("LOG_LEVEL") or "INFO").upper(),
        log_file=(env_map.get("LOG_FILE") or "").strip() or None,
        api_base_url=(env_map.get("API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
    )
