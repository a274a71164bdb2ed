"""Validation helpers for estimate request payloads."""

from __future__ import annotations

from estimator.money import to_number

MIN_DESCRIPTION_LENGTH = 3


def validate_generate_request(payload):
    """
    Validate a POST /api/generate-estimate body.

    Returns:
        {
            'is_valid': bool,
            'errors': list of {'field': ..., 'message': ...},
            'data': cleaned request (only meaningful when is_valid)
        }
    """
    errors = []

    def add_error(field, message):
        errors.append({"field": field, "message": message})

    if not isinstance(payload, dict):
        add_error("body", "Request body must be a JSON object")
        return {"is_valid": False, "errors": errors, "data": None}

    customer = payload.get("customer")
    name = phone = email = None
    if not isinstance(customer, dict):
        add_error("customer", "customer is required")
    else:
        name = customer.get("name")
        if not isinstance(name, str) or not name.strip():
            add_error("customer.name", "customer.name is required")
        for key in ("phone", "email"):
            value = customer.get(key)
            if value is not None and not isinstance(value, str):
                add_error(f"customer.{key}", f"customer.{key} must be a string")
        phone = customer.get("phone") if isinstance(customer.get("phone"), str) else None
        email = customer.get("email") if isinstance(customer.get("email"), str) else None

    vehicle = payload.get("vehicle")
    if vehicle is not None and not isinstance(vehicle, str):
        add_error("vehicle", "vehicle must be a string")

    description = payload.get("description")
    if not isinstance(description, str):
        add_error("description", "description is required")
    elif len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        add_error("description", f"description must be at least {MIN_DESCRIPTION_LENGTH} characters")

    labor_rate = payload.get("laborRate")
    if labor_rate is not None and labor_rate != "":
        rate = to_number(labor_rate)
        if rate is None or rate <= 0:
            add_error("laborRate", "laborRate must be a positive number")
        labor_rate = rate
    else:
        labor_rate = None

    if errors:
        return {"is_valid": False, "errors": errors, "data": None}

    return {
        "is_valid": True,
        "errors": [],
        "data": {
            "customer": {
                "name": name.strip(),
                "phone": (phone or "").strip() or None,
                "email": (email or "").strip() or None,
            },
            "vehicle": (vehicle or "").strip() or None,
            "description": description.strip(),
            "labor_rate": labor_rate,
        },
    }
