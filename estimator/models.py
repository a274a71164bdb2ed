"""Estimate data model (normalized + priced)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from estimator.flat_rate import FlatRateMatch

DEFAULT_JOB_TYPE = "Auto Repair"
DEFAULT_PART_NAME = "Part"


@dataclass(frozen=True)
class Part:
    name: str
    cost: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "cost": self.cost}


@dataclass
class NormalizedEstimate:
    """
    Well-typed estimate. Every numeric field is finite and non-negative and
    every list field is a list (possibly empty).

    `to_dict()` uses the same camelCase keys the generator produces, so the
    dict can be fed back through `normalize()` unchanged.
    """
    labor_hours: float
    labor_rate: float
    shop_supplies_percent: float
    parts: List[Part] = field(default_factory=list)
    job_type: str = DEFAULT_JOB_TYPE
    short_description: str = ""
    timeline: str = ""
    notes: str = ""
    work_steps: List[str] = field(default_factory=list)
    pro_tips: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    flat_rate: Optional[FlatRateMatch] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobType": self.job_type,
            "shortDescription": self.short_description,
            "laborHours": self.labor_hours,
            "laborRate": self.labor_rate,
            "parts": [p.to_dict() for p in self.parts],
            "shopSuppliesPercent": self.shop_supplies_percent,
            "timeline": self.timeline,
            "notes": self.notes,
            "workSteps": list(self.work_steps),
            "proTips": list(self.pro_tips),
            "warnings": list(self.warnings),
        }


@dataclass
class PricedEstimate:
    estimate: NormalizedEstimate
    labor_cost: float
    parts_cost: int
    shop_supplies_cost: float
    subtotal: float
    tax_rate_percent: Optional[float] = None
    tax_set_aside: Optional[float] = None
    net_after_tax: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        out = self.estimate.to_dict()
        out.update(
            {
                "laborCost": self.labor_cost,
                "partsCost": self.parts_cost,
                "shopSuppliesCost": self.shop_supplies_cost,
                # older front-ends read `shopSupplies`
                "shopSupplies": self.shop_supplies_cost,
                "subtotal": self.subtotal,
                "taxRatePercent": self.tax_rate_percent,
                "taxSetAside": self.tax_set_aside,
                "netAfterTax": self.net_after_tax,
                "flatRate": self.estimate.flat_rate.to_dict() if self.estimate.flat_rate else None,
            }
        )
        return out
