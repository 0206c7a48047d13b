"""
Central configuration loader for the brand-operations insight service.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``BRANDOPS_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # brandops/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------

DEFAULT_NAMESPACE_TTLS: Dict[str, int] = {
    "orders-insights": 15 * 60,
    "inbound-insights": 20 * 60,
    "dashboard-insights": 20 * 60,
    "sla-insights": 25 * 60,
    "inventory-insights": 30 * 60,
    "replenishment-insights": 30 * 60,
    "warehouses-insights": 30 * 60,
    "reports-insights": 60 * 60,
}


@dataclass
class ApiSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    version: str = "1.0.0"


@dataclass
class CacheSettings:
    default_ttl_seconds: int = 20 * 60
    namespace_ttl_seconds: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_NAMESPACE_TTLS)
    )
    clock_bucket_seconds: int = 5 * 60
    max_entries: int = 0
    health_max_size: int = 100
    health_min_hit_rate: float = 30.0
    health_min_requests: int = 10


@dataclass
class LLMSettings:
    provider: str = "openai"
    model: str = "gpt-4"
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = ""
    max_tokens: int = 350
    temperature: float = 0.2
    timeout_seconds: float = 25.0


@dataclass
class UpstreamSettings:
    products_url_env: str = "TINYBIRD_BASE_URL"
    shipments_url_env: str = "WAREHOUSE_BASE_URL"
    token_env: str = "TINYBIRD_TOKEN"
    shipments_token_env: str = "WAREHOUSE_TOKEN"
    products_limit: int = 100
    shipments_limit: int = 150
    timeout_seconds: float = 30.0
    default_brand: str = "Callahan-Smith"


@dataclass
class ManagementSettings:
    per_call_unit_cost: float = 0.002


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"


@dataclass
class Settings:
    """Top-level settings container."""
    api: ApiSettings = field(default_factory=ApiSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    upstream: UpstreamSettings = field(default_factory=UpstreamSettings)
    management: ManagementSettings = field(default_factory=ManagementSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Apply *data* values onto a dataclass instance.

    Mapping-valued fields are merged key by key so a partial YAML block
    (e.g. one namespace TTL) keeps the remaining defaults.
    """
    for key, value in data.items():
        if not hasattr(target, key):
            continue
        current = getattr(target, key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged = dict(current)
            merged.update(value)
            setattr(target, key, merged)
        else:
            setattr(target, key, value)


# ---------------------------------------------------------------------------
# Env-var overrides  (BRANDOPS_SECTION_KEY  e.g. BRANDOPS_API_PORT)
# ---------------------------------------------------------------------------

_FLAT_SECTIONS = ["api", "cache", "llm", "upstream", "management", "logging"]

_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
}


def _apply_env_overrides(settings: Settings) -> None:
    """Override flat scalar fields via ``BRANDOPS_<SECTION>_<KEY>`` env vars."""
    for section_name in _FLAT_SECTIONS:
        section = getattr(settings, section_name, None)
        if section is None:
            continue
        prefix = f"BRANDOPS_{section_name.upper()}_"
        for key in list(vars(section)):
            env_key = prefix + key.upper()
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            current = getattr(section, key)
            if isinstance(current, (dict, list)):
                logger.warning("Env override not supported for %s", env_key)
                continue
            cast = _TYPE_MAP.get(type(current), str)
            try:
                setattr(section, key, cast(env_val))
                logger.debug("Env override applied: %s=%s", env_key, env_val)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the application-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``BRANDOPS_*`` environment-variable overrides.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        if _settings is not None and not _force_reload:
            return _settings

        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        settings = Settings()
        for section_name in _FLAT_SECTIONS:
            section_data = raw.get(section_name)
            if isinstance(section_data, dict):
                _apply_dict(getattr(settings, section_name), section_data)

        _apply_env_overrides(settings)

        _settings = settings
        logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None
