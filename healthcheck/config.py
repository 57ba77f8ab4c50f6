import os
import json
import logging
from functools import lru_cache
from typing import Optional, Dict, Any, List

from pydantic import BaseModel

log = logging.getLogger("healthcheck")

PSI_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_json(name: str) -> Dict[str, Any]:
    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a JSON object")
    return data


class Settings(BaseModel):
    # ---------- server ----------
    host: str = "0.0.0.0"
    port: int = 8787
    log_level: str = "INFO"
    allowed_origins: List[str] = ["http://localhost:5173"]
    max_body_bytes: int = 1024 * 1024

    # ---------- page-speed ----------
    psi_api_key: Optional[str] = None
    psi_endpoint: str = PSI_ENDPOINT
    psi_strategy: str = "desktop"
    psi_timeout_seconds: float = 120.0

    # ---------- census ----------
    target_url: Optional[str] = None
    census_mode: str = "auto"  # "auto" | "rendered" | "static"
    render_enabled: bool = True
    browser_ws_endpoint: Optional[str] = None
    navigation_timeout_ms: int = 90000
    navigation_wait_until: str = "networkidle"
    scroll_steps: int = 8
    scroll_pause_ms: int = 250
    fetch_timeout_seconds: float = 20.0

    # ---------- size probes ----------
    probe_timeout_seconds: float = 15.0
    probe_concurrency: int = 6
    probe_max_candidates: int = 40
    top_images_per_section: int = 3

    # ---------- llm ----------
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0
    content_sample_chars: int = 1500

    # ---------- scoring ----------
    scoring_overrides: Dict[str, Dict[str, Any]] = {}

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8787")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            allowed_origins=_env_list("ALLOWED_ORIGINS", "http://localhost:5173"),
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(1024 * 1024))),
            psi_api_key=os.getenv("PSI_API_KEY") or None,
            psi_endpoint=os.getenv("PSI_ENDPOINT", PSI_ENDPOINT),
            psi_strategy=os.getenv("PSI_STRATEGY", "desktop"),
            psi_timeout_seconds=float(os.getenv("PSI_TIMEOUT_SECONDS", "120")),
            target_url=os.getenv("TARGET_URL") or None,
            census_mode=os.getenv("CENSUS_MODE", "auto").strip().lower(),
            render_enabled=_env_bool("RENDER_ENABLED", "1"),
            browser_ws_endpoint=os.getenv("BROWSER_WS_ENDPOINT") or None,
            navigation_timeout_ms=int(os.getenv("NAVIGATION_TIMEOUT_MS", "90000")),
            navigation_wait_until=os.getenv("NAVIGATION_WAIT_UNTIL", "networkidle"),
            scroll_steps=int(os.getenv("SCROLL_STEPS", "8")),
            scroll_pause_ms=int(os.getenv("SCROLL_PAUSE_MS", "250")),
            fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "20")),
            probe_timeout_seconds=float(os.getenv("PROBE_TIMEOUT_SECONDS", "15")),
            probe_concurrency=int(os.getenv("PROBE_CONCURRENCY", "6")),
            probe_max_candidates=int(os.getenv("PROBE_MAX_CANDIDATES", "40")),
            top_images_per_section=int(os.getenv("TOP_IMAGES_PER_SECTION", "3")),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
            content_sample_chars=int(os.getenv("CONTENT_SAMPLE_CHARS", "1500")),
            scoring_overrides=_env_json("SCORING_OVERRIDES"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read the environment once; the result is shared read-only by every request."""
    settings = Settings.from_env()
    log.info("PSI_API_KEY loaded: %s", bool(settings.psi_api_key))
    return settings
