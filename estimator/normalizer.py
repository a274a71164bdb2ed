"""
Estimate Normalizer
===================
Decoder boundary between the language model's loosely-typed JSON and the rest
of the pipeline. `normalize()` accepts ANY value and always returns a
well-typed `NormalizedEstimate`; a field that cannot be coerced is replaced
with its safe default instead of raising.

Precedence:
1. laborRate: caller rate (> 0) -> generator rate (> 0) -> configured default.
2. laborHours: parsed generator hours (bad/negative -> 0). A FIXED flat-rate
   match always overrides. A RANGE match is advisory and only fills in its
   midpoint when the generator gave no usable hours.
3. shopSuppliesPercent: generator value when present (0 is kept), clamped to
   0..100, else the default.
4. parts: {name, cost} with cost rounded half-up to whole units, clamped >= 0.
5. advisory lists / text fields: default to [] / "".

Hours, rates and part costs above MAX_AMOUNT count as unusable, so every
product in pricing stays finite.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from estimator.flat_rate import FlatRateMatch
from estimator.models import DEFAULT_JOB_TYPE, DEFAULT_PART_NAME, NormalizedEstimate, Part
from estimator.money import round_whole, to_number

logger = logging.getLogger(__name__)

DEFAULT_SUPPLIES_PERCENT = 7.0
MAX_SUPPLIES_PERCENT = 100.0
# Hours, rates and part costs above this are treated as unusable
MAX_AMOUNT = 1e9


def _amount(value) -> Optional[float]:
    num = to_number(value)
    if num is not None and num > MAX_AMOUNT:
        logger.warning("Ignoring out-of-range amount %.6g", num)
        return None
    return num


def _positive(value) -> Optional[float]:
    num = _amount(value)
    if num is None or num <= 0:
        return None
    return num


def _text(value, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _string_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    out: List[str] = []
    for item in value:
        if isinstance(item, bool) or isinstance(item, (dict, list, tuple)) or item is None:
            continue
        s = _text(item)
        if s:
            out.append(s)
    return out


def _parts(value) -> List[Part]:
    if not isinstance(value, (list, tuple)):
        return []
    parts: List[Part] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        name = _text(entry.get("name")) or DEFAULT_PART_NAME
        cost = _amount(entry.get("cost"))
        cost = max(0.0, cost if cost is not None else 0.0)
        parts.append(Part(name=name, cost=round_whole(cost)))
    return parts


def _labor_rate(raw: Dict[str, Any], caller_labor_rate, default_rate: float) -> float:
    rate = _positive(caller_labor_rate)
    if rate is not None:
        return rate
    rate = _positive(raw.get("laborRate"))
    if rate is not None:
        return rate
    return float(default_rate)


def _labor_hours(raw: Dict[str, Any], flat_rate: Optional[FlatRateMatch]) -> float:
    hours = _amount(raw.get("laborHours"))
    if hours is None or hours < 0:
        hours = 0.0

    if flat_rate is not None:
        fixed = flat_rate.fixed_hours
        if fixed is not None:
            if hours != fixed:
                logger.debug("Flat-rate '%s' overrides generated hours %s -> %s", flat_rate.label, hours, fixed)
            return fixed
        if hours == 0:
            return flat_rate.midpoint
    return hours


def _supplies_percent(raw: Dict[str, Any], default_supplies_percent: float) -> float:
    pct = to_number(raw.get("shopSuppliesPercent"))
    if pct is None:
        return float(default_supplies_percent)
    return min(MAX_SUPPLIES_PERCENT, max(0.0, pct))


def normalize(
    raw,
    caller_labor_rate=None,
    default_rate: float = 65.0,
    default_supplies_percent: float = DEFAULT_SUPPLIES_PERCENT,
    flat_rate: Optional[FlatRateMatch] = None,
) -> NormalizedEstimate:
    if not isinstance(raw, dict):
        logger.warning("Raw estimate is %s, not an object; using defaults", type(raw).__name__)
        raw = {}

    tips = raw.get("proTips")
    if tips is None:
        tips = raw.get("tips")

    return NormalizedEstimate(
        labor_hours=_labor_hours(raw, flat_rate),
        labor_rate=_labor_rate(raw, caller_labor_rate, default_rate),
        shop_supplies_percent=_supplies_percent(raw, default_supplies_percent),
        parts=_parts(raw.get("parts")),
        job_type=_text(raw.get("jobType")) or DEFAULT_JOB_TYPE,
        short_description=_text(raw.get("shortDescription")),
        timeline=_text(raw.get("timeline")),
        notes=_text(raw.get("notes")),
        work_steps=_string_list(raw.get("workSteps")),
        pro_tips=_string_list(tips),
        warnings=_string_list(raw.get("warnings")),
        flat_rate=flat_rate,
    )
