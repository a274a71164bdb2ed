from __future__ import annotations

import logging

import requests
from flask import Blueprint, current_app, jsonify

from services import vin_decoder
from services.vin_decoder import VinFormatError, VinLookupError

vin_bp = Blueprint("vin", __name__)
logger = logging.getLogger(__name__)


@vin_bp.get("/api/vin-lookup/<vin>")
def vin_lookup(vin: str):
    settings = current_app.config["ESTIMATOR_SETTINGS"]
    try:
        info = vin_decoder.decode_vin(
            vin, timeout_s=settings.vin_timeout_seconds, max_retries=settings.vin_max_retries
        )
    except VinFormatError as e:
        return jsonify({"error": str(e)}), 400
    except requests.Timeout:
        return jsonify({"error": "VIN lookup timed out. Please try again."}), 504
    except (VinLookupError, requests.RequestException) as e:
        logger.warning("VIN lookup failed for %s: %s", vin, e)
        return jsonify({"error": str(e) or "Failed to lookup VIN"}), 502
    except Exception as e:
        logger.exception("VIN lookup error")
        return jsonify({"error": str(e) or "Failed to lookup VIN"}), 500

    return jsonify({"ok": True, "vehicle": info, "displayString": vin_decoder.display_string(info)}), 200
