from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = ROOT / "data" / "kartforge.db"
DEFAULT_CORS_ORIGIN = "http://localhost:3000"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_log_level(name: str, default: str) -> str:
    level = _env_str(name, default).upper()
    if not isinstance(logging.getLevelName(level), int):
        return default
    return level


@dataclass(frozen=True)
class Settings:
    """
    运行配置 - Runtime settings

    admin_token 为 None 时，所有需要管理员权限的接口都会被禁用。
    When admin_token is None every admin-gated endpoint is disabled.
    """

    db_path: Path = DEFAULT_DB_PATH
    admin_token: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: [DEFAULT_CORS_ORIGIN])
    log_level: str = "INFO"
    seed_demo: bool = False


def load_settings() -> Settings:
    load_dotenv(ROOT / ".env")

    token = os.getenv("ADMIN_TOKEN")
    origins = [o.strip() for o in _env_str("CORS_ORIGIN", DEFAULT_CORS_ORIGIN).split(",") if o.strip()]
    return Settings(
        db_path=Path(_env_str("KARTFORGE_DB_PATH", str(DEFAULT_DB_PATH))),
        admin_token=token.strip() if token and token.strip() else None,
        cors_origins=origins or [DEFAULT_CORS_ORIGIN],
        log_level=_env_log_level("LOG_LEVEL", "INFO"),
        seed_demo=_env_bool("KARTFORGE_SEED_DEMO", False),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("kartforge")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
