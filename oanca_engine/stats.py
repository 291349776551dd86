"""
Recency weighting, OWE statistics, demand classification and confidence.

Every function here is pure: it reads the comps it is handed and returns a new
value.  Audit notes come back inside the result, never through a shared list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from oanca_engine.models import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MED,
    DEFAULT_AVG_DAYS,
    DEMAND_AVERAGE,
    DEMAND_FAST,
    DEMAND_HARD_WORK,
    DEMAND_POISON,
    OLDEST_BAND_WEIGHT,
    RECENCY_BANDS,
    RECENT_MONTHS,
    UNKNOWN_SALE_MONTHS,
    DemandResult,
    OweStats,
    SalesRecord,
    WeightedComp,
)
from oanca_engine.matching import normalize
from oanca_engine.rules import KNOWN_HARD_WORK

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


# ---------------------------------------------------------------------------
# Recency
# ---------------------------------------------------------------------------
def parse_sale_date(value: Optional[str]) -> Optional[date]:
    """ISO date/datetime or dd/mm/yyyy.  None when the value is unusable."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from ``earlier`` to ``later`` (0 if in the future)."""
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if later.day < earlier.day:
        months -= 1
    return max(0, months)


def calculate_recency_weight(sale_date: Optional[str], now: date) -> Tuple[float, int]:
    parsed = parse_sale_date(sale_date)
    if parsed is None:
        return OLDEST_BAND_WEIGHT, UNKNOWN_SALE_MONTHS
    months = months_between(parsed, now)
    for limit, weight in RECENCY_BANDS:
        if months <= limit:
            return weight, months
    return OLDEST_BAND_WEIGHT, months


def weight_comps(records: Iterable[SalesRecord], now: date) -> List[WeightedComp]:
    comps = []
    for record in records:
        weight, months = calculate_recency_weight(record.sale_date, now)
        if months == UNKNOWN_SALE_MONTHS and record.sale_date:
            logger.warning(
                "Unparsable sale_date %r on record %s; using oldest band",
                record.sale_date, record.record_id,
            )
        comps.append(WeightedComp(record=record, weight=weight, months=months))
    return comps


# ---------------------------------------------------------------------------
# OWE statistics
# ---------------------------------------------------------------------------
def _weighted_median(comps: Sequence[WeightedComp]) -> int:
    ordered = sorted(comps, key=lambda c: c.cost)
    # Whole hundredths, so the half-weight crossing is exact
    units = [round(c.weight * 100) for c in ordered]
    total = sum(units)
    running = 0
    for comp, unit in zip(ordered, units):
        running += unit
        if running * 2 >= total:
            return comp.cost
    return ordered[-1].cost


def calculate_owe_stats(comps: Sequence[WeightedComp]) -> OweStats:
    priced = [c for c in comps if c.cost > 0]
    if not priced:
        return OweStats()
    costs = sorted(c.cost for c in priced)
    n = len(costs)
    return OweStats(
        median=costs[n // 2],
        p75=costs[int(n * 0.75)],
        max=costs[-1],
        weighted_median=_weighted_median(priced),
        count=n,
    )


# ---------------------------------------------------------------------------
# Demand classification
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DemandInputs:
    count:      int
    avg_days:   float
    avg_gross:  float
    loss_ratio: float


def demand_inputs(comps: Sequence[WeightedComp]) -> DemandInputs:
    if not comps:
        return DemandInputs(0, DEFAULT_AVG_DAYS, 0.0, 0.0)
    days = [c.record.days_in_stock for c in comps if c.record.days_in_stock > 0]
    grosses = [c.record.effective_gross for c in comps]
    return DemandInputs(
        count=len(comps),
        avg_days=sum(days) / len(days) if days else DEFAULT_AVG_DAYS,
        avg_gross=sum(grosses) / len(grosses),
        loss_ratio=sum(1 for g in grosses if g < 0) / len(grosses),
    )


DemandRule = Tuple[str, Callable[[DemandInputs], bool], str]

# Evaluated in order, first match wins.
DEMAND_RULES: Tuple[DemandRule, ...] = (
    ("no comparable sales",
     lambda s: s.count == 0, DEMAND_HARD_WORK),
    ("loss ratio >= 0.5 or avg gross < -500",
     lambda s: s.loss_ratio >= 0.5 or s.avg_gross < -500, DEMAND_POISON),
    ("avg days <= 21 and avg gross >= 2000",
     lambda s: s.avg_days <= 21 and s.avg_gross >= 2000, DEMAND_FAST),
    ("avg days <= 35 and avg gross >= 1000",
     lambda s: s.avg_days <= 35 and s.avg_gross >= 1000, DEMAND_AVERAGE),
    ("avg days > 45 or avg gross < 1500",
     lambda s: s.avg_days > 45 or s.avg_gross < 1500, DEMAND_HARD_WORK),
    ("default",
     lambda s: True, DEMAND_AVERAGE),
)


def calculate_demand_class(comps: Sequence[WeightedComp]) -> DemandResult:
    inputs = demand_inputs(comps)
    for name, predicate, demand_class in DEMAND_RULES:
        if predicate(inputs):
            break
    note = (
        f"Demand {demand_class}: {name} "
        f"(avg days {inputs.avg_days:.1f}, avg gross {inputs.avg_gross:.0f}, "
        f"loss ratio {inputs.loss_ratio:.2f}, n={inputs.count})"
    )
    logger.debug(note)
    return DemandResult(
        demand_class=demand_class,
        reason=name,
        avg_days=inputs.avg_days,
        avg_gross=inputs.avg_gross,
        notes=(note,),
    )


def is_known_hard_work(make: str, model: str) -> bool:
    make_n, model_n = normalize(make), normalize(model)
    for known_make, models in KNOWN_HARD_WORK.items():
        if known_make not in make_n:
            continue
        if any(m == model_n or model_n.startswith(m + " ") for m in models):
            return True
    return False


def apply_known_hard_work_override(make: str, model: str, demand: DemandResult) -> DemandResult:
    """Force fast/average down to hard_work for chronically slow vehicles."""
    if demand.demand_class not in (DEMAND_FAST, DEMAND_AVERAGE):
        return demand
    if not is_known_hard_work(make, model):
        return demand
    note = (
        f"Known hard-work override: {make} {model} forced from "
        f"{demand.demand_class} to {DEMAND_HARD_WORK}"
    )
    logger.info(note)
    return DemandResult(
        demand_class=DEMAND_HARD_WORK,
        reason="known hard-work vehicle",
        avg_days=demand.avg_days,
        avg_gross=demand.avg_gross,
        notes=demand.notes + (note,),
    )


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------
def calculate_confidence(comps: Sequence[WeightedComp]) -> str:
    total = len(comps)
    recent = sum(1 for c in comps if c.months <= RECENT_MONTHS)
    if total >= 5 and recent >= 3:
        return CONFIDENCE_HIGH
    if total >= 3 or recent >= 2:
        return CONFIDENCE_MED
    return CONFIDENCE_LOW
