"""
Repair Estimator - Flask Backend
================================

OVERVIEW:
Accepts a free-text repair-job description, asks a hosted LLM (OpenAI or Groq)
for a JSON estimate, normalizes and prices it deterministically, and stores the
customer + job in Postgres (Supabase).

API ENDPOINTS:
- GET  /                          - Service status
- GET  /health                    - Health check (no DB/LLM)
- GET  /api/config                - Pricing defaults for the front-end
- GET  /api/flat-rates[?q=]       - Flat-rate table (priority order) or match for q
- POST /api/generate-estimate     - Generate, price and save an estimate
- GET  /api/jobs                  - 50 most recent jobs
- GET  /api/vin-lookup/<vin>      - NHTSA VIN decode
- POST /api/analyze-photo         - Vision damage assessment

CONFIGURATION:
config.yml + environment overrides (see config_loader.py). `.env` is loaded
when present.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from flask import Flask
from flask_cors import CORS

from config_loader import EstimatorSettings, get_config
from estimator.pipeline import EstimateService
from logging_setup import init_request_logging, setup_logging
from routes.config_api import config_api_bp
from routes.estimates_api import estimates_bp
from routes.photo_api import photo_bp
from routes.vin_api import vin_bp
from stores.db import init_estimator_tables

logger = logging.getLogger(__name__)


def create_app(cfg: Optional[Dict[str, Any]] = None, service: Optional[EstimateService] = None) -> Flask:
    """
    Build the Flask app.

    `cfg` defaults to config.yml + env; `service` defaults to one built from
    the resulting settings (tests pass a service with fake LLM/store).
    """
    use_db = cfg is None
    if use_db:
        cfg = get_config()

    setup_logging(cfg)
    settings = EstimatorSettings.from_config(cfg)
    if use_db:
        init_tables = functools.partial(init_estimator_tables, settings.db_timeout_seconds)
    else:
        init_tables = cfg.get("init_tables")

    app = Flask(__name__)
    CORS(app, origins=list(settings.cors_origins))

    app.config["APP_CFG"] = cfg
    app.config["ESTIMATOR_SETTINGS"] = settings
    app.config["ESTIMATE_SERVICE"] = service or EstimateService.from_settings(settings)
    # table creation runs once per app, on the first estimate request
    app.extensions["estimator_tables"] = {"init": init_tables, "ready": False, "lock": threading.Lock()}

    init_request_logging(app)

    app.register_blueprint(config_api_bp)
    app.register_blueprint(estimates_bp)
    app.register_blueprint(vin_bp)
    app.register_blueprint(photo_bp)

    if not settings.llm_api_key:
        logger.warning("No API key configured for LLM provider '%s'; estimates will fail", settings.llm_provider)
    logger.info(
        "Estimator ready provider=%s default_labor_rate=%s supplies=%s%% tax=%s",
        settings.llm_provider,
        settings.default_labor_rate,
        settings.shop_supplies_percent,
        f"{settings.tax_rate_percent}%" if settings.include_tax else "off",
    )
    return app


_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(dotenv_path=_dotenv_path, override=False)

app = create_app()
