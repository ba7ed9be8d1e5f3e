from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from optcg.constants import (
    APP_NAME,
    CONSENT_TIMEOUT_MS,
    SETTLE_SECONDS,
    SITE_URLS,
)
from optcg.paths import get_default_data_root

_TRUTHY = {"1", "true", "yes", "on", "y"}


@dataclass
class Settings:
    """Runtime settings, read from ``OPTCG_*`` environment variables."""

    data_root: Path
    site: str | None = None
    headless: bool = True
    settle_seconds: float = SETTLE_SECONDS
    consent_timeout_ms: int = CONSENT_TIMEOUT_MS
    log_level: str = "INFO"

    @property
    def site_url(self) -> str | None:
        if not self.site:
            return None
        return SITE_URLS[self.site]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    data_root_env = os.getenv("OPTCG_DATA_ROOT", "").strip()
    data_root = Path(data_root_env).expanduser() if data_root_env else get_default_data_root(APP_NAME)

    site = os.getenv("OPTCG_SITE", "").strip().lower() or None
    if site is not None and site not in SITE_URLS:
        raise ValueError(f"OPTCG_SITE must be one of {sorted(SITE_URLS)}, got {site!r}")

    headless_raw = os.getenv("OPTCG_HEADLESS", "").strip().lower()
    headless = True if not headless_raw else headless_raw in _TRUTHY

    return Settings(
        data_root=data_root,
        site=site,
        headless=headless,
        settle_seconds=_env_float("OPTCG_SETTLE_SECONDS", SETTLE_SECONDS),
        consent_timeout_ms=int(_env_float("OPTCG_CONSENT_TIMEOUT_MS", CONSENT_TIMEOUT_MS)),
        log_level=(os.getenv("OPTCG_LOG_LEVEL", "").strip() or "INFO").upper(),
    )
