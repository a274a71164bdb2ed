"""Estimate generation and job history routes."""

from __future__ import annotations

import logging

import psycopg2
from flask import Blueprint, current_app, g, jsonify, request

from estimator.pipeline import EstimateError, EstimateRequest
from estimator.validation import validate_generate_request
from stores.job_store import StoreError

estimates_bp = Blueprint("estimates", __name__)
logger = logging.getLogger(__name__)


def ensure_tables_initialized() -> bool:
    """Create tables on first use; startup and /health never touch the DB."""
    state = current_app.extensions["estimator_tables"]
    if state["ready"]:
        return True
    if state["init"] is None:
        return False
    with state["lock"]:
        if state["ready"]:
            return True
        try:
            state["init"]()
        except (psycopg2.Error, RuntimeError) as e:
            logger.warning("Could not initialize estimator tables: %s", e)
            return False
        state["ready"] = True
        return True


def _service():
    return current_app.config["ESTIMATE_SERVICE"]


@estimates_bp.post("/api/generate-estimate")
def generate_estimate():
    body = request.get_json(silent=True)
    result = validate_generate_request(body)
    if not result["is_valid"]:
        return jsonify({"error": "Invalid request", "fields": result["errors"]}), 400

    ensure_tables_initialized()

    service = _service()
    req = EstimateRequest.from_validated(result["data"], request_id=getattr(g, "request_id", None))
    try:
        outcome = service.generate(req)
    except EstimateError as e:
        logger.error("generate-estimate failed state=%s: %s", e.state.value, e)
        payload = {"error": str(e), "state": e.state.value}
        if e.raw is not None and service.settings.echo_raw_text:
            payload["raw"] = e.raw
        return jsonify(payload), e.status_code
    except Exception as e:
        logger.exception("generate-estimate error")
        return jsonify({"error": str(e) or "Failed to generate estimate"}), 500

    response = {
        "ok": True,
        "estimate": outcome.priced.to_dict(),
        "savedJob": outcome.saved_job,
        "customer": outcome.customer,
        "flatRate": outcome.flat_rate.to_dict() if outcome.flat_rate else None,
    }
    if service.settings.echo_raw_text:
        response["ai_raw_text"] = outcome.raw_text
    return jsonify(response), 200


@estimates_bp.get("/api/jobs")
def list_jobs():
    service = _service()
    try:
        return jsonify({"data": service.store.list_recent_jobs(service.settings.jobs_list_limit)}), 200
    except StoreError as e:
        logger.error("Job listing failed: %s", e)
        return jsonify({"error": str(e)}), 500
