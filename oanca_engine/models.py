"""
Data models for the OANCA pricing engine.

All monetary values are whole AUD dollars stored as ``int``.  Sale records are
immutable once ingested; the engine only ever reads them.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
YEAR_WINDOW: int = 4
MIN_PRICED_COMPS: int = 2
ROUNDING_UNIT: int = 100
MIN_SPREAD: int = 500

UNKNOWN_SALE_MONTHS: int = 99
RECENCY_BANDS: Tuple[Tuple[int, float], ...] = (
    (6, 1.0),
    (12, 0.85),
    (24, 0.65),
    (36, 0.4),
)
OLDEST_BAND_WEIGHT: float = 0.2
RECENT_MONTHS: int = 12

DEFAULT_AVG_DAYS: float = 45.0
HARD_WORK_CAP_BUFFER: int = 500
VELOCITY_DISCOUNT_DAYS: float = 60.0
VELOCITY_DISCOUNT_RATE: float = 0.03

# (upper bound on anchor, average buffer, fast buffer)
BUFFER_BRACKETS: Tuple[Tuple[int, int, int], ...] = (
    (20000, 800, 1000),
    (40000, 1000, 1200),
)
TOP_BRACKET_BUFFERS: Tuple[int, int] = (1200, 1500)


# ---------------------------------------------------------------------------
# Verdicts / demand / confidence (string-based for JSON compat)
# ---------------------------------------------------------------------------
VERDICT_BUY       = "BUY"
VERDICT_HIT_IT    = "HIT_IT"
VERDICT_HARD_WORK = "HARD_WORK"
VERDICT_WALK      = "WALK"
VERDICT_NEED_PICS = "NEED_PICS"
VERDICT_ESCALATE  = "ESCALATE"

PRICED_VERDICTS = (VERDICT_BUY, VERDICT_HIT_IT, VERDICT_HARD_WORK, VERDICT_WALK)
UNPRICED_VERDICTS = (VERDICT_NEED_PICS, VERDICT_ESCALATE)

DEMAND_FAST      = "fast"
DEMAND_AVERAGE   = "average"
DEMAND_HARD_WORK = "hard_work"
DEMAND_POISON    = "poison"

DEMAND_CLASSES = (DEMAND_FAST, DEMAND_AVERAGE, DEMAND_HARD_WORK, DEMAND_POISON)

CONFIDENCE_HIGH = "HIGH"
CONFIDENCE_MED  = "MED"
CONFIDENCE_LOW  = "LOW"

DRIVE_4X4     = "4X4"
DRIVE_2WD     = "2WD"
DRIVE_UNKNOWN = "UNKNOWN"

TRIM_EXACT   = "EXACT"
TRIM_UPGRADE = "UPGRADE"


# ---------------------------------------------------------------------------
# Tolerant coercion helpers
# ---------------------------------------------------------------------------
def round_half_up(value: float, unit: int = 1) -> int:
    """Round to the nearest ``unit``; halves go up (not banker's rounding)."""
    return int(math.floor(value / unit + 0.5)) * unit


def coerce_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Parse a loosely-typed number ("12,500", "$9000", 9000.4) into an int."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return default
        return round_half_up(value)
    text = str(value).strip().replace(",", "").replace("$", "")
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return round_half_up(number)


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text or None


# ---------------------------------------------------------------------------
# SalesRecord (historical comparable, input)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SalesRecord:
    """One historical sale.  ``total_cost`` (OWE) is the only pricing anchor."""

    record_id:      str
    make:           str
    model:          str
    year:           int
    source:         str           = ""
    dealer_name:    str           = ""
    variant:        str           = ""
    variant_family: Optional[str] = None
    body_type:      str           = ""
    transmission:   str           = ""
    drivetrain:     str           = ""
    engine:         str           = ""
    km:             Optional[int] = None
    sale_date:      Optional[str] = None
    days_in_stock:  int           = 0
    sell_price:     int           = 0
    total_cost:     int           = 0
    gross_profit:   Optional[int] = None

    @property
    def effective_gross(self) -> int:
        """Stored gross profit, else sell - OWE when both are known."""
        if self.gross_profit is not None:
            return self.gross_profit
        if self.sell_price > 0 and self.total_cost > 0:
            return self.sell_price - self.total_cost
        return 0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SalesRecord":
        if not isinstance(d, dict):
            raise TypeError(f"Sales record must be a mapping, got {type(d).__name__}")
        return SalesRecord(
            record_id=clean_text(d.get("record_id") or d.get("id")),
            make=clean_text(d.get("make")),
            model=clean_text(d.get("model")),
            year=coerce_int(d.get("year"), 0),
            source=clean_text(d.get("source")),
            dealer_name=clean_text(d.get("dealer_name")),
            variant=clean_text(d.get("variant") or d.get("badge")),
            variant_family=optional_text(d.get("variant_family")),
            body_type=clean_text(d.get("body_type")),
            transmission=clean_text(d.get("transmission")),
            drivetrain=clean_text(d.get("drivetrain") or d.get("drive_type")),
            engine=clean_text(d.get("engine")),
            km=coerce_int(d.get("km"), None),
            sale_date=optional_text(d.get("sale_date") or d.get("sold_at")),
            days_in_stock=coerce_int(d.get("days_in_stock"), 0),
            sell_price=coerce_int(d.get("sell_price"), 0),
            total_cost=coerce_int(d.get("total_cost"), 0),
            gross_profit=coerce_int(d.get("gross_profit"), None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "source": self.source,
            "dealer_name": self.dealer_name,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "variant": self.variant,
            "variant_family": self.variant_family,
            "body_type": self.body_type,
            "transmission": self.transmission,
            "drivetrain": self.drivetrain,
            "engine": self.engine,
            "km": self.km,
            "sale_date": self.sale_date,
            "days_in_stock": self.days_in_stock,
            "sell_price": self.sell_price,
            "total_cost": self.total_cost,
            "gross_profit": self.gross_profit,
        }


# ---------------------------------------------------------------------------
# QueryVehicle (pricing request, input)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class QueryVehicle:
    """The vehicle being priced.  Lives for one engine call only."""

    make:           str
    model:          str
    year:           int
    variant_family: Optional[str] = None
    km:             Optional[int] = None
    transmission:   Optional[str] = None
    engine:         Optional[str] = None
    location:       Optional[str] = None
    drivetrain:     Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.make, str) or not self.make.strip():
            raise ValueError("QueryVehicle.make is required")
        if not isinstance(self.model, str) or not self.model.strip():
            raise ValueError("QueryVehicle.model is required")
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise TypeError(f"year must be int, got {type(self.year).__name__}")
        if self.year <= 0:
            raise ValueError(f"Invalid year: {self.year!r}")

    @property
    def label(self) -> str:
        return f"{self.year} {self.make} {self.model}"

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "QueryVehicle":
        year = coerce_int(d.get("year"), None)
        if year is None:
            raise ValueError(f"Query is missing a numeric year: {d.get('year')!r}")
        return QueryVehicle(
            make=clean_text(d.get("make")),
            model=clean_text(d.get("model")),
            year=year,
            variant_family=optional_text(d.get("variant_family") or d.get("variant")),
            km=coerce_int(d.get("km"), None),
            transmission=optional_text(d.get("transmission")),
            engine=optional_text(d.get("engine")),
            location=optional_text(d.get("location")),
            drivetrain=optional_text(d.get("drivetrain")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "variant_family": self.variant_family,
            "km": self.km,
            "transmission": self.transmission,
            "engine": self.engine,
            "location": self.location,
            "drivetrain": self.drivetrain,
        }


# ---------------------------------------------------------------------------
# Engine-internal stage results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WeightedComp:
    record: SalesRecord
    weight: float
    months: int

    @property
    def cost(self) -> int:
        return self.record.total_cost


@dataclass(frozen=True, slots=True)
class OweStats:
    median:          Optional[int] = None
    p75:             Optional[int] = None
    max:             Optional[int] = None
    weighted_median: Optional[int] = None
    count:           int = 0

    @property
    def anchor(self) -> Optional[int]:
        if self.weighted_median is not None:
            return self.weighted_median
        return self.median


@dataclass(frozen=True, slots=True)
class DemandResult:
    demand_class: str
    reason:       str
    avg_days:     float
    avg_gross:    float
    notes:        Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BuyRange:
    buy_low:     int
    buy_high:    int
    cap_applied: bool
    notes:       Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class EscalationCheck:
    escalate: bool
    reason:   Optional[str] = None
    notes:    Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# OancaPriceObject (engine output)
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class OancaPriceObject:
    """The only contract surfaced to callers.  Built fresh per call."""

    allow_price:         bool
    verdict:             str
    n_comps:             int
    buy_low:             Optional[int]   = None
    buy_high:            Optional[int]   = None
    anchor_owe:          Optional[int]   = None
    anchor_owe_p75:      Optional[int]   = None
    demand_class:        Optional[str]   = None
    confidence:          Optional[str]   = None
    notes:               List[str]       = field(default_factory=list)
    retail_context_low:  Optional[int]   = None
    retail_context_high: Optional[int]   = None
    floor_applied:       bool            = False
    cap_applied:         bool            = False
    escalation_reason:   Optional[str]   = None
    firewall_triggered:  bool            = False

    def __post_init__(self) -> None:
        if self.allow_price:
            if self.verdict not in PRICED_VERDICTS:
                raise ValueError(f"Priced result cannot carry verdict {self.verdict!r}")
            if self.buy_low is None or self.buy_high is None:
                raise ValueError("Priced result needs buy_low and buy_high")
            if self.buy_high <= self.buy_low:
                raise ValueError(
                    f"buy_high ({self.buy_high}) must exceed buy_low ({self.buy_low})"
                )
        else:
            if self.verdict not in UNPRICED_VERDICTS:
                raise ValueError(f"Unpriced result cannot carry verdict {self.verdict!r}")
            if any(v is not None for v in (
                self.buy_low, self.buy_high, self.demand_class, self.confidence,
            )):
                raise ValueError("Unpriced result must not carry a range, demand or confidence")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allow_price": self.allow_price,
            "verdict": self.verdict,
            "buy_low": self.buy_low,
            "buy_high": self.buy_high,
            "anchor_owe": self.anchor_owe,
            "anchor_owe_p75": self.anchor_owe_p75,
            "demand_class": self.demand_class,
            "confidence": self.confidence,
            "n_comps": self.n_comps,
            "notes": list(self.notes),
            "retail_context_low": self.retail_context_low,
            "retail_context_high": self.retail_context_high,
            "floor_applied": self.floor_applied,
            "cap_applied": self.cap_applied,
            "escalation_reason": self.escalation_reason,
            "firewall_triggered": self.firewall_triggered,
        }
