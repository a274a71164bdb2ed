from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from estimator import flat_rate as flat_rates

config_api_bp = Blueprint("config_api", __name__)


@config_api_bp.get("/")
def index():
    name = (current_app.config.get("APP_CFG", {}).get("app", {}) or {}).get("service_name") or "Repair Estimator Backend"
    settings = current_app.config["ESTIMATOR_SETTINGS"]
    return jsonify({"status": "ok", "service": f"{name} ({settings.llm_provider}-powered)"})


@config_api_bp.get("/health")
def health_check():
    """
    Health check endpoint for deployment monitoring.

    Returns immediately without database or LLM dependency.
    """
    return jsonify({"status": "ok"}), 200


@config_api_bp.get("/api/config")
def get_config():
    """
    Return the pricing defaults the front-end shows before an estimate exists.
    """
    settings = current_app.config["ESTIMATOR_SETTINGS"]
    return jsonify(
        {
            "defaultLaborRate": settings.default_labor_rate,
            "shopSuppliesPercent": settings.shop_supplies_percent,
            "taxRatePercent": settings.tax_rate_percent if settings.include_tax else None,
            "provider": settings.llm_provider,
            "llmConfigured": bool(settings.llm_api_key),
            "vinLookupEnabled": True,
        }
    )


@config_api_bp.get("/api/flat-rates")
def list_flat_rates():
    q = request.args.get("q", "").strip()
    if q:
        m = flat_rates.match(q)
        return jsonify({"query": q, "match": m.to_dict() if m else None}), 200

    entries = []
    for priority, entry in enumerate(flat_rates.FLAT_RATE_TABLE):
        hours = entry.hours.to_dict() if isinstance(entry.hours, flat_rates.HoursRange) else entry.hours
        entries.append({"priority": priority, "pattern": entry.pattern, "label": entry.label, "hours": hours})
    return jsonify({"data": entries}), 200
