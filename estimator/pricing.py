"""
Pricing Calculator
==================
Pure arithmetic over a NormalizedEstimate. Each money figure is rounded to
cents on its own before it feeds the subtotal (per-term rounding); parts costs
are already whole units so their sum is exact.
"""

from __future__ import annotations

from estimator.models import NormalizedEstimate, PricedEstimate
from estimator.money import round2

DEFAULT_TAX_RATE_PERCENT = 28.0


def labor_cost(hours: float, rate: float) -> float:
    return round2(hours * rate)


def shop_supplies_cost(parts_cost: float, percent: float) -> float:
    return round2(parts_cost * percent / 100)


def price(
    estimate: NormalizedEstimate,
    tax_rate_percent: float = DEFAULT_TAX_RATE_PERCENT,
    include_tax: bool = True,
) -> PricedEstimate:
    labor = labor_cost(estimate.labor_hours, estimate.labor_rate)
    parts = sum(p.cost for p in estimate.parts)
    supplies = shop_supplies_cost(parts, estimate.shop_supplies_percent)
    subtotal = round2(labor + parts + supplies)

    priced = PricedEstimate(
        estimate=estimate,
        labor_cost=labor,
        parts_cost=parts,
        shop_supplies_cost=supplies,
        subtotal=subtotal,
    )

    if include_tax:
        tax = round2(subtotal * tax_rate_percent / 100)
        priced.tax_rate_percent = float(tax_rate_percent)
        priced.tax_set_aside = tax
        priced.net_after_tax = round2(subtotal - tax)

    return priced
