"""
Simple YAML-backed configuration loader with environment-variable overrides.

Design goals:
- Safe defaults from config.yml
- Environment variables override deployment-specific values (API keys, rates)
- `EstimatorSettings` is built once at startup and injected; request code never
  reads os.environ for pricing or LLM settings
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base (override wins)."""
    out: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _parse_bool(value: Optional[str], default: Optional[bool] = None) -> Optional[bool]:
    if value is None:
        return default
    v = value.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric config value %r", value)
        return None


def _env_override_dict() -> Dict[str, Any]:
    """
    Map env vars to config keys.
    Keep this small and explicit.
    """
    overrides: Dict[str, Any] = {}

    # Pricing
    for env_name, key in (
        ("DEFAULT_LABOR_RATE", "default_labor_rate"),
        ("SHOP_SUPPLIES_PERCENT", "shop_supplies_percent"),
        ("TAX_RATE_PERCENT", "tax_rate_percent"),
    ):
        value = _parse_float(os.getenv(env_name))
        if value is not None:
            overrides = _deep_merge(overrides, {"pricing": {key: value}})

    include_tax = _parse_bool(os.getenv("INCLUDE_TAX_SET_ASIDE"))
    if include_tax is not None:
        overrides = _deep_merge(overrides, {"pricing": {"include_tax": include_tax}})

    # LLM provider + keys
    provider = os.getenv("LLM_PROVIDER")
    if provider:
        overrides = _deep_merge(overrides, {"llm": {"provider": provider.strip().lower()}})
    for env_name, key in (
        ("OPENAI_API_KEY", "openai_api_key"),
        ("GROQ_API_KEY", "groq_api_key"),
        ("LLM_MODEL", "model"),
        ("LLM_VISION_MODEL", "vision_model"),
    ):
        value = os.getenv(env_name)
        if value:
            overrides = _deep_merge(overrides, {"llm": {key: value}})
    timeout = _parse_float(os.getenv("LLM_TIMEOUT_SECONDS"))
    if timeout is not None:
        overrides = _deep_merge(overrides, {"llm": {"timeout_seconds": timeout}})
    db_timeout = _parse_float(os.getenv("DB_TIMEOUT_SECONDS"))
    if db_timeout is not None:
        overrides = _deep_merge(overrides, {"db": {"timeout_seconds": db_timeout}})
    retries = _parse_float(os.getenv("LLM_MAX_RETRIES"))
    if retries is not None:
        overrides = _deep_merge(overrides, {"llm": {"max_retries": int(retries)}})

    # CORS origins (comma-separated)
    cors_origins = os.getenv("CORS_ORIGINS")
    if cors_origins:
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
        overrides = _deep_merge(overrides, {"app": {"cors": {"origins": origins}}})

    # Logging
    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        overrides = _deep_merge(overrides, {"logging": {"level": log_level}})

    return overrides


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load config.yml and apply environment overrides.
    """
    config_path = path or os.getenv("APP_CONFIG_PATH", "config.yml")
    if not os.path.exists(config_path):
        # Safe fallback: empty config; EstimatorSettings supplies defaults
        cfg: Dict[str, Any] = {}
    else:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

    return _deep_merge(cfg, _env_override_dict())


_CONFIG_CACHE: Optional[Dict[str, Any]] = None


def get_config(path: Optional[str] = None, *, force_reload: bool = False) -> Dict[str, Any]:
    global _CONFIG_CACHE
    if _CONFIG_CACHE is None or force_reload:
        _CONFIG_CACHE = load_config(path)
    return _CONFIG_CACHE


@dataclass(frozen=True)
class EstimatorSettings:
    default_labor_rate: float = 65.0
    shop_supplies_percent: float = 7.0
    tax_rate_percent: float = 28.0
    include_tax: bool = True
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_vision_model: Optional[str] = None
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = 2
    llm_initial_backoff_seconds: float = 0.5
    llm_max_tokens: int = 2500
    llm_temperature: float = 0.2
    vin_timeout_seconds: float = 8.0
    vin_max_retries: int = 1
    db_timeout_seconds: float = 10.0
    jobs_list_limit: int = 50
    echo_raw_text: bool = True
    cors_origins: tuple = ("*",)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "EstimatorSettings":
        cfg = cfg or {}
        pricing = cfg.get("pricing", {}) or {}
        llm = cfg.get("llm", {}) or {}
        vin = cfg.get("vin", {}) or {}
        db = cfg.get("db", {}) or {}
        app_cfg = cfg.get("app", {}) or {}
        defaults = cls()

        provider = str(llm.get("provider") or defaults.llm_provider).strip().lower()
        api_key = llm.get(f"{provider}_api_key") or llm.get("api_key")
        origins: List[str] = (app_cfg.get("cors", {}) or {}).get("origins") or list(defaults.cors_origins)

        return cls(
            default_labor_rate=float(pricing.get("default_labor_rate", defaults.default_labor_rate)),
            shop_supplies_percent=float(pricing.get("shop_supplies_percent", defaults.shop_supplies_percent)),
            tax_rate_percent=float(pricing.get("tax_rate_percent", defaults.tax_rate_percent)),
            include_tax=bool(pricing.get("include_tax", defaults.include_tax)),
            llm_provider=provider,
            llm_api_key=api_key or None,
            llm_model=llm.get("model") or None,
            llm_vision_model=llm.get("vision_model") or None,
            llm_timeout_seconds=float(llm.get("timeout_seconds", defaults.llm_timeout_seconds)),
            llm_max_retries=int(llm.get("max_retries", defaults.llm_max_retries)),
            llm_initial_backoff_seconds=float(llm.get("initial_backoff_seconds", defaults.llm_initial_backoff_seconds)),
            llm_max_tokens=int(llm.get("max_tokens", defaults.llm_max_tokens)),
            llm_temperature=float(llm.get("temperature", defaults.llm_temperature)),
            vin_timeout_seconds=float(vin.get("timeout_seconds", defaults.vin_timeout_seconds)),
            vin_max_retries=int(vin.get("max_retries", defaults.vin_max_retries)),
            db_timeout_seconds=float(db.get("timeout_seconds", defaults.db_timeout_seconds)),
            jobs_list_limit=int(app_cfg.get("jobs_list_limit", defaults.jobs_list_limit)),
            echo_raw_text=bool(app_cfg.get("echo_raw_text", defaults.echo_raw_text)),
            cors_origins=tuple(origins),
        )
