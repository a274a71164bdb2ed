from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import requests

from services.retry import with_retry

NHTSA_DECODE_URL = "https://vpic.nhtsa.dot.gov/api/vehicles/DecodeVin/{vin}?format=json"
VIN_LENGTH = 17

# NHTSA vPIC VariableId values
VAR_BODY_CLASS = 5
VAR_ENGINE_CYLINDERS = 9
VAR_DISPLACEMENT_L = 11
VAR_ENGINE_CONFIG = 13
VAR_DRIVE_TYPE = 15
VAR_FUEL_TYPE = 24
VAR_MAKE = 26
VAR_MANUFACTURER = 27
VAR_MODEL = 28
VAR_MODEL_YEAR = 29
VAR_PLANT_CITY = 31
VAR_TRANSMISSION = 37
VAR_VEHICLE_TYPE = 39
VAR_ENGINE_MODEL = 71
VAR_TRIM = 109
VAR_ERROR_TEXT = 143


class VinLookupError(RuntimeError):
    pass


class VinFormatError(VinLookupError):
    pass


def validate_vin(vin) -> str:
    vin = (vin or "").strip() if isinstance(vin, str) else ""
    if len(vin) != VIN_LENGTH:
        raise VinFormatError(f"VIN must be exactly {VIN_LENGTH} characters")
    if not vin.isalnum():
        raise VinFormatError("VIN must be alphanumeric")
    return vin.upper()


def _field(results: List[Dict[str, Any]], variable_id: int) -> Optional[str]:
    for r in results:
        if r.get("VariableId") == variable_id:
            value = r.get("Value")
            return value if value else None
    return None


def parse_decode_results(vin: str, results: List[Dict[str, Any]]) -> Dict[str, Any]:
    errors = [r.get("Value") for r in results if r.get("VariableId") == VAR_ERROR_TEXT and r.get("Value")]
    return {
        "vin": vin.upper(),
        "year": _field(results, VAR_MODEL_YEAR),
        "make": _field(results, VAR_MAKE) or _field(results, VAR_MANUFACTURER),
        "model": _field(results, VAR_MODEL),
        "trim": _field(results, VAR_TRIM),
        "engine": _field(results, VAR_ENGINE_CONFIG) or _field(results, VAR_ENGINE_MODEL),
        "engineCylinders": _field(results, VAR_ENGINE_CYLINDERS),
        "displacement": _field(results, VAR_DISPLACEMENT_L),
        "fuelType": _field(results, VAR_FUEL_TYPE),
        "bodyClass": _field(results, VAR_BODY_CLASS),
        "driveType": _field(results, VAR_DRIVE_TYPE),
        "transmission": _field(results, VAR_TRANSMISSION),
        "vehicleType": _field(results, VAR_VEHICLE_TYPE),
        "manufacturer": _field(results, VAR_MANUFACTURER),
        "plant": _field(results, VAR_PLANT_CITY),
        "errors": ", ".join(errors) or None,
    }


def display_string(info: Dict[str, Any]) -> str:
    parts = [info.get("year"), info.get("make"), info.get("model"), info.get("trim"), info.get("engine")]
    return " ".join(str(p) for p in parts if p) or "Unknown Vehicle"


def decode_vin(
    vin,
    *,
    timeout_s: float = 8.0,
    max_retries: int = 1,
    backoff_s: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Decode `vin` via NHTSA vPIC. Timeouts, connection errors and 5xx are retried."""
    vin = validate_vin(vin)
    url = NHTSA_DECODE_URL.format(vin=vin)

    def _fetch():
        resp = requests.get(url, timeout=timeout_s)
        resp.raise_for_status()
        return resp

    try:
        resp = with_retry(_fetch, max_retries=max_retries, initial_backoff=backoff_s, sleep=sleep)
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        raise VinLookupError(f"Failed to lookup VIN (HTTP {status})") from e
    try:
        data = resp.json()
    except ValueError as e:
        raise VinLookupError("VIN service returned invalid JSON") from e

    results = (data or {}).get("Results") or []
    if not results:
        raise VinLookupError("VIN service returned no results")

    return parse_decode_results(vin, results)
