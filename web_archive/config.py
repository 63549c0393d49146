"""Centralised settings for web-archive.

Runtime defaults are resolved here in one place.  Values can be overridden via
environment variables or a `.env` file in the project root (loaded
automatically when this module is imported).  Per-call overrides go through
:class:`~web_archive.options.ArchiveOptions`, which falls back to these values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUTHY


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    verify_tls: bool = field(
        default_factory=lambda: _env_flag("ARCHIVE_VERIFY_TLS", "true")
    )
    proxy_url: str | None = field(
        default_factory=lambda: os.environ.get("ARCHIVE_PROXY") or None
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "ARCHIVE_USER_AGENT",
            "Mozilla/5.0 (compatible; web-archive/0.1; +https://github.com/web-archive)",
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("ARCHIVE_LOG_LEVEL", "WARNING").upper()
    )


# Module-level singleton, import this everywhere:
#   from web_archive.config import settings
settings = Settings()
