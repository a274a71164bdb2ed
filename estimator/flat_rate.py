"""
Flat-Rate Labor Guide
=====================
Maps a free-text job description to an industry flat-rate labor allowance.

The table is PRIORITY-ORDERED: `match()` walks it top to bottom and returns the
first entry whose pattern is a substring of the description. It does not look
for the longest or most specific pattern, so a general pattern declared early
shadows a more specific one declared later (e.g. "oil change" wins over
"oil change and tire rotation"). Reordering the table changes results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class HoursRange:
    min: float
    max: float

    @property
    def midpoint(self) -> float:
        return round((self.min + self.max) / 2.0, 2)

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}


Hours = Union[float, HoursRange]


@dataclass(frozen=True)
class FlatRateEntry:
    pattern: str
    label: str
    hours: Hours


@dataclass(frozen=True)
class FlatRateMatch:
    label: str
    hours: Hours

    @property
    def is_range(self) -> bool:
        return isinstance(self.hours, HoursRange)

    @property
    def fixed_hours(self) -> Optional[float]:
        return None if self.is_range else float(self.hours)

    @property
    def midpoint(self) -> float:
        if isinstance(self.hours, HoursRange):
            return self.hours.midpoint
        return float(self.hours)

    def to_dict(self) -> dict:
        hours = self.hours.to_dict() if isinstance(self.hours, HoursRange) else self.hours
        return {"label": self.label, "hours": hours}


def _r(lo: float, hi: float) -> HoursRange:
    return HoursRange(min=lo, max=hi)


# Priority order. Do not sort.
FLAT_RATE_TABLE: Tuple[FlatRateEntry, ...] = (
    # --- Maintenance ---
    FlatRateEntry("oil change", "oil change", 0.5),
    FlatRateEntry("oil change and tire rotation", "oil change and tire rotation", 0.8),
    FlatRateEntry("tire rotation", "tire rotation", 0.5),
    FlatRateEntry("cabin air filter", "cabin air filter", 0.3),
    FlatRateEntry("engine air filter", "engine air filter", 0.2),
    FlatRateEntry("wiper blades", "wiper blades", 0.2),
    FlatRateEntry("coolant flush", "coolant flush", 1.0),
    FlatRateEntry("brake fluid flush", "brake fluid flush", 1.0),
    FlatRateEntry("transmission fluid", "transmission fluid service", 1.0),
    FlatRateEntry("wheel alignment", "wheel alignment", 1.0),
    # --- Brakes (pads + rotors before pads alone) ---
    FlatRateEntry("front brake pads and rotors", "brake pads and rotors front", _r(2.0, 2.5)),
    FlatRateEntry("rear brake pads and rotors", "brake pads and rotors rear", _r(2.0, 2.8)),
    FlatRateEntry("front brake pads", "brake pads front", 1.2),
    FlatRateEntry("rear brake pads", "brake pads rear", 1.4),
    FlatRateEntry("brake caliper", "brake caliper", _r(1.0, 1.8)),
    # --- Electrical ---
    FlatRateEntry("battery", "battery replacement", 0.5),
    FlatRateEntry("alternator", "alternator", _r(1.5, 3.0)),
    FlatRateEntry("starter", "starter", _r(1.2, 3.0)),
    FlatRateEntry("ignition coil", "ignition coil", 0.8),
    FlatRateEntry("spark plugs", "spark plugs", _r(1.0, 2.5)),
    FlatRateEntry("oxygen sensor", "oxygen sensor", 0.8),
    FlatRateEntry("o2 sensor", "oxygen sensor", 0.8),
    # --- Cooling ---
    FlatRateEntry("thermostat", "thermostat", _r(1.0, 2.0)),
    FlatRateEntry("water pump", "water pump", _r(2.5, 5.0)),
    FlatRateEntry("radiator", "radiator", _r(2.0, 3.5)),
    # --- Engine ---
    FlatRateEntry("serpentine belt", "serpentine belt", 0.6),
    FlatRateEntry("timing belt", "timing belt", _r(3.5, 6.0)),
    FlatRateEntry("timing chain", "timing chain", _r(6.0, 10.0)),
    FlatRateEntry("valve cover gasket", "valve cover gasket", _r(1.5, 3.5)),
    FlatRateEntry("head gasket", "head gasket", _r(8.0, 14.0)),
    # --- Drivetrain / suspension ---
    FlatRateEntry("clutch", "clutch replacement", _r(5.0, 8.0)),
    FlatRateEntry("cv axle", "cv axle", _r(1.5, 2.5)),
    FlatRateEntry("wheel bearing", "wheel bearing", _r(1.5, 2.5)),
    FlatRateEntry("struts", "struts", _r(2.5, 4.0)),
    FlatRateEntry("tie rod", "tie rod end", 1.0),
    # --- Exhaust ---
    FlatRateEntry("catalytic converter", "catalytic converter", _r(1.5, 3.0)),
    # --- Diagnostics ---
    FlatRateEntry("check engine light", "diagnostic", 1.0),
    FlatRateEntry("diagnos", "diagnostic", 1.0),
)


def match(description, table: Tuple[FlatRateEntry, ...] = FLAT_RATE_TABLE) -> Optional[FlatRateMatch]:
    """Return the first table entry whose pattern occurs in `description`, or None."""
    if not isinstance(description, str):
        return None
    text = description.strip().lower()
    if not text:
        return None
    for entry in table:
        if entry.pattern in text:
            return FlatRateMatch(label=entry.label, hours=entry.hours)
    return None


def describe_for_prompt(flat_rate: Optional[FlatRateMatch]) -> str:
    if flat_rate is None:
        return ""
    if isinstance(flat_rate.hours, HoursRange):
        return (
            f"Flat-rate guide for '{flat_rate.label}': "
            f"{flat_rate.hours.min:g}-{flat_rate.hours.max:g} hours. Stay within this range unless the vehicle justifies more."
        )
    return f"Flat-rate guide for '{flat_rate.label}': {flat_rate.hours:g} hours (book time, will be used as-is)."
