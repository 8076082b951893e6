from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass
class Settings:
    # polite-pool contact for OpenAlex / Crossref
    mailto: Optional[str] = None
    semantic_scholar_api_key: Optional[str] = None

    # http
    http_timeout: float = 30.0
    max_retries: int = 3

    # lookup / merge
    lookup_batch_size: int = 50
    auto_link: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mailto=os.getenv("CITEFLOW_MAILTO", "").strip() or None,
            semantic_scholar_api_key=os.getenv("CITEFLOW_SEMANTIC_SCHOLAR_API_KEY", "").strip()
            or None,
            http_timeout=_env_float("CITEFLOW_HTTP_TIMEOUT", 30.0),
            max_retries=_env_int("CITEFLOW_MAX_RETRIES", 3),
            lookup_batch_size=_env_int("CITEFLOW_LOOKUP_BATCH_SIZE", 50),
            auto_link=_env_bool("CITEFLOW_AUTO_LINK", True),
        )
