"""Prompt templates for estimate generation and photo analysis."""

from __future__ import annotations

import json

ESTIMATE_SCHEMA = {
    "jobType": "string",
    "shortDescription": "string",
    "laborHours": 0.0,
    "laborRate": 0.0,
    "workSteps": ["string"],
    "parts": [{"name": "string", "cost": 0}],
    "shopSuppliesPercent": 7,
    "timeline": "string",
    "notes": "string",
    "proTips": ["string"],
    "warnings": ["string"],
}

SYSTEM_PROMPT = (
    "You are a master automotive technician and service writer. "
    "Always respond with valid JSON only, no markdown formatting."
)

PHOTO_SCHEMA = {
    "damageFound": True,
    "damageAreas": [{"area": "string", "severity": "minor/moderate/severe", "description": "string"}],
    "recommendedRepairs": ["string"],
    "estimatedParts": [{"name": "string", "reason": "string"}],
    "notes": "string",
    "confidence": "low/medium/high",
}


def build_estimate_prompt(customer, vehicle, description, labor_rate, flat_rate_hint="") -> str:
    contact = " ".join(
        s for s in (
            customer.get("name") or "",
            f"phone:{customer['phone']}" if customer.get("phone") else "",
            f"email:{customer['email']}" if customer.get("email") else "",
        ) if s
    )
    hint = f"\n{flat_rate_hint}\n" if flat_rate_hint else ""
    return f"""Given a customer job description, produce a realistic estimate for a 1-2 tech independent shop.

Return ONLY JSON with this shape:
{json.dumps(ESTIMATE_SCHEMA, indent=2)}

Rules:
- laborRate = {labor_rate:g}
- parts costs in whole dollars
- laborHours as a decimal, including diagnosis, testing and cleanup
- shopSuppliesPercent defaults to 7
{hint}
Customer: {contact}
Vehicle: {vehicle or 'Not specified'}
Job description: {description}

JSON:"""


def build_photo_prompt() -> str:
    return f"""You are an automotive damage assessor. Analyze this vehicle photo.

Return ONLY JSON with this shape:
{json.dumps(PHOTO_SCHEMA, indent=2)}

If no damage is visible, set damageFound to false."""


def describe_photo_analysis(analysis) -> str:
    """Human-readable summary of a photo analysis payload."""
    if not isinstance(analysis, dict) or not analysis.get("damageFound"):
        return (
            "No visible damage detected in photo. Customer may need to provide additional "
            "photos or describe the issue verbally."
        )

    lines = ["DAMAGE ANALYSIS:", ""]

    areas = [a for a in (analysis.get("damageAreas") or []) if isinstance(a, dict)]
    if areas:
        lines.append("Damaged Areas:")
        for a in areas:
            lines.append(f"- {a.get('area', '')} ({a.get('severity', '')}): {a.get('description', '')}")
        lines.append("")

    repairs = [r for r in (analysis.get("recommendedRepairs") or []) if isinstance(r, str)]
    if repairs:
        lines.append("Recommended Repairs:")
        lines.extend(f"- {r}" for r in repairs)
        lines.append("")

    parts = [p for p in (analysis.get("estimatedParts") or []) if isinstance(p, dict)]
    if parts:
        lines.append("Likely Parts Needed:")
        lines.extend(f"- {p.get('name', '')} ({p.get('reason', '')})" for p in parts)
        lines.append("")

    if analysis.get("notes"):
        lines.append(f"Notes: {analysis['notes']}")

    return "\n".join(lines).strip()
