from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from estimator.prompts import build_photo_prompt, describe_photo_analysis
from services.llm_client import LLMError, LLMResponseError, LLMTimeoutError

photo_bp = Blueprint("photo", __name__)
logger = logging.getLogger(__name__)


@photo_bp.post("/api/analyze-photo")
def analyze_photo():
    body = request.get_json(silent=True) or {}
    image_data = body.get("imageData") if isinstance(body, dict) else None
    if not isinstance(image_data, str) or not image_data.strip():
        return jsonify({"error": "No image data provided"}), 400

    service = current_app.config["ESTIMATE_SERVICE"]
    try:
        analysis, _raw = service.llm.analyze_image_json(build_photo_prompt(), image_data)
    except LLMResponseError as e:
        logger.error("Vision reply was not JSON: %.500s", e.raw)
        payload = {"error": str(e)}
        if service.settings.echo_raw_text:
            payload["raw"] = e.raw
        return jsonify(payload), 500
    except LLMTimeoutError as e:
        return jsonify({"error": str(e)}), 504
    except LLMError as e:
        logger.error("Photo analysis failed: %s", e)
        return jsonify({"error": str(e)}), 500

    return jsonify({"ok": True, "analysis": analysis, "description": describe_photo_analysis(analysis)}), 200
