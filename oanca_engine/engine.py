"""
The OANCA pricing engine.

Turns a query vehicle and a materialized sales pool into one OancaPriceObject:

  1. Comparable selection            (matching.select_comparables)
  2. Recency weighting               (stats.weight_comps)
  3. Positive-OWE filter
  4. Forced escalation, pre-pricing  (all selected comps)
  5. NEED_PICS gate                  (fewer than MIN_PRICED_COMPS, unless a
                                      high-value truck reclassifies to ESCALATE)
  6. OWE statistics, demand, confidence
  7. Buy range with class caps and the global max-OWE cap
  8. Verdict
  9. Forced escalation, post-pricing (positive-OWE comps only)
 10. Heavy-duty floor
 11. Retail context (informational only)

The buy range is derived from cost basis (OWE) alone.  Sell prices only ever
reach the output as retail context and never move buy_low/buy_high.
"""
from __future__ import annotations

import logging
from datetime import date
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from oanca_engine.audit import (
    AuditRecord,
    combine_hashes,
    compute_result_hash,
    summarize,
    write_audit_log,
)
from oanca_engine.matching import normalize, select_comparables
from oanca_engine.models import (
    BUFFER_BRACKETS,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MED,
    DEMAND_AVERAGE,
    DEMAND_FAST,
    DEMAND_HARD_WORK,
    DEMAND_POISON,
    HARD_WORK_CAP_BUFFER,
    MIN_PRICED_COMPS,
    MIN_SPREAD,
    ROUNDING_UNIT,
    TOP_BRACKET_BUFFERS,
    VELOCITY_DISCOUNT_DAYS,
    VELOCITY_DISCOUNT_RATE,
    VERDICT_BUY,
    VERDICT_ESCALATE,
    VERDICT_HARD_WORK,
    VERDICT_HIT_IT,
    VERDICT_NEED_PICS,
    VERDICT_WALK,
    BuyRange,
    EscalationCheck,
    OancaPriceObject,
    OweStats,
    QueryVehicle,
    SalesRecord,
    WeightedComp,
    round_half_up,
)
from oanca_engine.rules import (
    FORCED_ESCALATION_MIN_COMPS,
    FORCED_ESCALATION_MIN_YEAR,
    HEAVY_DUTY_FLOORS,
    HEAVY_DUTY_MIN_YEAR,
    HIGH_VALUE_TRUCKS,
)
from oanca_engine.stats import (
    apply_known_hard_work_override,
    calculate_confidence,
    calculate_demand_class,
    calculate_owe_stats,
    weight_comps,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Buy range
# ---------------------------------------------------------------------------
def _buffer(anchor: int, fast: bool) -> int:
    for upper, average_buffer, fast_buffer in BUFFER_BRACKETS:
        if anchor < upper:
            return fast_buffer if fast else average_buffer
    return TOP_BRACKET_BUFFERS[1] if fast else TOP_BRACKET_BUFFERS[0]


def calculate_buy_range(
    owe_stats: OweStats,
    demand_class: str,
    avg_days: float,
    avg_gross: float,
) -> BuyRange:
    """
    Derive [buy_low, buy_high] from the OWE statistics.

    ``avg_gross`` is accepted for parity with the demand stage but is not an
    input to the range: the range is cost-basis only.
    """
    anchor = owe_stats.anchor
    if anchor is None:
        raise ValueError("Cannot price without a positive OWE anchor")

    notes: List[str] = []
    class_cap: Optional[int] = None
    pre_capped = False

    if demand_class == DEMAND_POISON:
        low, high = anchor * 0.80, anchor * 0.88
        class_cap = owe_stats.median
        notes.append(f"Poison range 80-88% of anchor {anchor}, capped at median {class_cap}")
    elif demand_class == DEMAND_HARD_WORK:
        low, high = anchor * 0.90, anchor * 0.97
        class_cap = owe_stats.p75 + HARD_WORK_CAP_BUFFER
        notes.append(f"Hard-work range 90-97% of anchor {anchor}, capped at p75+500 {class_cap}")
        if high > class_cap:
            high = float(class_cap)
            pre_capped = True
            notes.append(f"Hard-work cap: high limited to {class_cap} before velocity discount")
        if avg_days > VELOCITY_DISCOUNT_DAYS:
            discount = anchor * VELOCITY_DISCOUNT_RATE
            low -= discount
            high -= discount
            notes.append(
                f"Velocity discount -{round_half_up(discount)} (avg days {avg_days:.1f} > 60)"
            )
    elif demand_class in (DEMAND_AVERAGE, DEMAND_FAST):
        buffer = _buffer(anchor, fast=demand_class == DEMAND_FAST)
        low, high = float(anchor), float(anchor + buffer)
        notes.append(f"{demand_class.capitalize()} range: anchor {anchor} + buffer {buffer}")
    else:
        raise ValueError(f"Unknown demand class: {demand_class!r}")

    buy_low = round_half_up(low, ROUNDING_UNIT)
    buy_high = round_half_up(high, ROUNDING_UNIT)

    if buy_high <= buy_low:
        buy_high = buy_low + MIN_SPREAD
        notes.append(f"Minimum spread enforced: buy_high {buy_high}")

    ceiling = owe_stats.max
    if class_cap is not None and class_cap < ceiling:
        ceiling = class_cap

    cap_applied = pre_capped
    if buy_high > ceiling:
        buy_high = ceiling
        cap_applied = True
        notes.append(f"Safety cap: buy_high limited to {ceiling}")
        # A capped range keeps the minimum spread by giving way on buy_low
        if buy_low > buy_high - MIN_SPREAD:
            buy_low = max(0, buy_high - MIN_SPREAD)
            notes.append(f"buy_low lowered to {buy_low} to keep the range open under the cap")

    return BuyRange(buy_low=buy_low, buy_high=buy_high, cap_applied=cap_applied, notes=tuple(notes))


# ---------------------------------------------------------------------------
# Safety rules
# ---------------------------------------------------------------------------
def _compact(text: str) -> str:
    return "".join(ch for ch in normalize(text) if ch.isalnum())


def high_value_truck(query: QueryVehicle) -> Optional[Tuple[str, str]]:
    make, model = normalize(query.make), normalize(query.model)
    for truck_make, models in HIGH_VALUE_TRUCKS.items():
        if not (truck_make in make or make in truck_make):
            continue
        for truck_model in models:
            if truck_model in model:
                return truck_make, truck_model
    return None


def should_force_escalation(query: QueryVehicle, n_comps: int) -> EscalationCheck:
    truck = high_value_truck(query)
    if truck is None:
        return EscalationCheck(escalate=False)
    if query.year < FORCED_ESCALATION_MIN_YEAR or n_comps >= FORCED_ESCALATION_MIN_COMPS:
        return EscalationCheck(escalate=False)
    reason = (
        f"High-value truck {query.label} (>= {FORCED_ESCALATION_MIN_YEAR}) "
        f"with only {n_comps} comps; needs photos and a human price"
    )
    return EscalationCheck(escalate=True, reason=reason, notes=(f"Forced escalation: {reason}",))


def heavy_duty_floor(query: QueryVehicle) -> Optional[int]:
    make, model = normalize(query.make), _compact(query.model)
    for floor_make, model_key, floor in HEAVY_DUTY_FLOORS:
        if (floor_make in make or make in floor_make) and model_key in model:
            return floor
    return None


def check_heavy_duty_floor(query: QueryVehicle, buy_high: int) -> EscalationCheck:
    floor = heavy_duty_floor(query)
    if floor is None or query.year < HEAVY_DUTY_MIN_YEAR:
        return EscalationCheck(escalate=False)
    if buy_high >= floor:
        return EscalationCheck(escalate=False, notes=(f"Heavy-duty floor {floor} satisfied",))
    reason = f"Computed buy_high {buy_high} is under the heavy-duty floor {floor} for {query.label}"
    return EscalationCheck(escalate=True, reason=reason, notes=(f"Floor breach: {reason}",))


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------
VERDICT_TABLE: Mapping[Tuple[str, str], str] = MappingProxyType({
    (DEMAND_POISON, CONFIDENCE_HIGH):    VERDICT_WALK,
    (DEMAND_POISON, CONFIDENCE_MED):     VERDICT_WALK,
    (DEMAND_POISON, CONFIDENCE_LOW):     VERDICT_WALK,
    (DEMAND_HARD_WORK, CONFIDENCE_HIGH): VERDICT_HIT_IT,
    (DEMAND_HARD_WORK, CONFIDENCE_MED):  VERDICT_HIT_IT,
    (DEMAND_HARD_WORK, CONFIDENCE_LOW):  VERDICT_HIT_IT,
    (DEMAND_FAST, CONFIDENCE_HIGH):      VERDICT_BUY,
    (DEMAND_FAST, CONFIDENCE_MED):       VERDICT_HARD_WORK,
    (DEMAND_FAST, CONFIDENCE_LOW):       VERDICT_HARD_WORK,
    (DEMAND_AVERAGE, CONFIDENCE_HIGH):   VERDICT_BUY,
    (DEMAND_AVERAGE, CONFIDENCE_MED):    VERDICT_BUY,
    (DEMAND_AVERAGE, CONFIDENCE_LOW):    VERDICT_HARD_WORK,
})


def decide_verdict(demand_class: str, confidence: str) -> str:
    try:
        return VERDICT_TABLE[(demand_class, confidence)]
    except KeyError:
        raise ValueError(
            f"No verdict for demand={demand_class!r} confidence={confidence!r}"
        ) from None


# ---------------------------------------------------------------------------
# Retail context
# ---------------------------------------------------------------------------
def retail_context(comps: Sequence[WeightedComp]) -> Tuple[Optional[int], Optional[int]]:
    """Median and p75 of historical sell prices.  Informational only."""
    prices = sorted(c.record.sell_price for c in comps if c.record.sell_price > 0)
    if not prices:
        return None, None
    n = len(prices)
    return prices[n // 2], prices[int(n * 0.75)]


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------
def _unpriced(
    verdict: str,
    n_comps: int,
    notes: List[str],
    owe_stats: Optional[OweStats] = None,
    retail: Tuple[Optional[int], Optional[int]] = (None, None),
    escalation_reason: Optional[str] = None,
    floor_applied: bool = False,
) -> OancaPriceObject:
    return OancaPriceObject(
        allow_price=False,
        verdict=verdict,
        n_comps=n_comps,
        anchor_owe=owe_stats.anchor if owe_stats else None,
        anchor_owe_p75=owe_stats.p75 if owe_stats else None,
        notes=notes,
        retail_context_low=retail[0],
        retail_context_high=retail[1],
        floor_applied=floor_applied,
        escalation_reason=escalation_reason,
    )


def run_pricing_engine(
    query: QueryVehicle,
    sales_history: Sequence[SalesRecord],
    now: Optional[date] = None,
) -> OancaPriceObject:
    """Price one query against the full pool.  Pure for a fixed ``now``."""
    if now is None:
        now = date.today()
    notes: List[str] = []

    selected = select_comparables(query, sales_history)
    notes.append(f"Selected {len(selected)} comparables from {len(sales_history)} sales")

    weighted = weight_comps(selected, now)
    priced = [c for c in weighted if c.cost > 0]
    n_comps = len(priced)
    if n_comps < len(weighted):
        notes.append(f"Dropped {len(weighted) - n_comps} comps without a positive OWE")
    retail = retail_context(priced)

    # Pre-pricing: every selected comparable counts, usable OWE or not
    pre = should_force_escalation(query, len(weighted))
    if pre.escalate:
        logger.warning("Pre-pricing escalation for %s: %s", query.label, pre.reason)
        notes.extend(pre.notes)
        return _unpriced(VERDICT_ESCALATE, n_comps, notes, retail=retail,
                         escalation_reason=pre.reason)

    if n_comps < MIN_PRICED_COMPS:
        notes.append(
            f"Insufficient data: {n_comps} comp(s) with positive OWE, "
            f"need {MIN_PRICED_COMPS}"
        )
        thin = should_force_escalation(query, n_comps)
        if thin.escalate:
            logger.warning("Thin-data escalation for %s: %s", query.label, thin.reason)
            notes.extend(thin.notes)
            return _unpriced(VERDICT_ESCALATE, n_comps, notes, retail=retail,
                             escalation_reason=thin.reason)
        notes.append("Send photos for a manual appraisal")
        logger.info("NEED_PICS for %s (%d comps)", query.label, n_comps)
        return _unpriced(VERDICT_NEED_PICS, n_comps, notes, retail=retail)

    owe_stats = calculate_owe_stats(priced)
    notes.append(
        f"OWE stats: median {owe_stats.median}, p75 {owe_stats.p75}, "
        f"max {owe_stats.max}, weighted median {owe_stats.weighted_median}"
    )

    demand = calculate_demand_class(priced)
    demand = apply_known_hard_work_override(query.make, query.model, demand)
    notes.extend(demand.notes)

    confidence = calculate_confidence(priced)
    notes.append(f"Confidence {confidence}")

    buy_range = calculate_buy_range(
        owe_stats, demand.demand_class, demand.avg_days, demand.avg_gross,
    )
    notes.extend(buy_range.notes)

    verdict = decide_verdict(demand.demand_class, confidence)
    notes.append(f"Verdict {verdict} ({demand.demand_class}, {confidence})")

    # Post-pricing: only comps that actually fed the range count
    post = should_force_escalation(query, n_comps)
    if post.escalate:
        logger.warning("Post-pricing escalation for %s: %s", query.label, post.reason)
        notes.extend(post.notes)
        notes.append(f"Discarded computed range {buy_range.buy_low}-{buy_range.buy_high}")
        return _unpriced(VERDICT_ESCALATE, n_comps, notes, owe_stats, retail,
                         escalation_reason=post.reason)

    floor = check_heavy_duty_floor(query, buy_range.buy_high)
    notes.extend(floor.notes)
    if floor.escalate:
        logger.warning("Heavy-duty floor breach for %s: %s", query.label, floor.reason)
        notes.append(f"Discarded computed range {buy_range.buy_low}-{buy_range.buy_high}")
        return _unpriced(VERDICT_ESCALATE, n_comps, notes, owe_stats, retail,
                         escalation_reason=floor.reason, floor_applied=True)

    firewall = retail[0] is not None and buy_range.buy_high >= retail[0]
    if firewall:
        notes.append(
            f"Retail firewall: buy_high {buy_range.buy_high} reaches retail median "
            f"{retail[0]}; range left unchanged"
        )

    logger.info(
        "Priced %s: %s %d-%d (%s, %s, n=%d)",
        query.label, verdict, buy_range.buy_low, buy_range.buy_high,
        demand.demand_class, confidence, n_comps,
    )
    return OancaPriceObject(
        allow_price=True,
        verdict=verdict,
        n_comps=n_comps,
        buy_low=buy_range.buy_low,
        buy_high=buy_range.buy_high,
        anchor_owe=owe_stats.anchor,
        anchor_owe_p75=owe_stats.p75,
        demand_class=demand.demand_class,
        confidence=confidence,
        notes=notes,
        retail_context_low=retail[0],
        retail_context_high=retail[1],
        cap_applied=buy_range.cap_applied,
        firewall_triggered=firewall,
    )


class PricingEngine:
    """
    Prices queries against one materialized sales pool.

    Usage:
        engine = PricingEngine(records, now=date(2026, 1, 31))
        result = engine.price(query)

    Keeps no state between calls; the pool is frozen at construction.
    """

    def __init__(self, sales_history: Iterable[SalesRecord], now: Optional[date] = None) -> None:
        self._pool: Tuple[SalesRecord, ...] = tuple(sales_history)
        self._now = now

    @property
    def pool_size(self) -> int:
        return len(self._pool)

    @property
    def now(self) -> date:
        return self._now if self._now is not None else date.today()

    def price(self, query: QueryVehicle) -> OancaPriceObject:
        return run_pricing_engine(query, self._pool, self.now)


# ---------------------------------------------------------------------------
# High-level runners
# ---------------------------------------------------------------------------
def _price_all(
    history_path: str,
    queries_path: str,
    now: date,
) -> List[AuditRecord]:
    from oanca_engine.history import load_queries, load_sales_history

    engine = PricingEngine(load_sales_history(history_path), now=now)
    queries = load_queries(queries_path)

    logger.info("Pricing %d queries against %d sales", len(queries), engine.pool_size)
    records: List[AuditRecord] = []
    for query in queries:
        result = engine.price(query)
        records.append(AuditRecord(
            query=query,
            result=result,
            result_hash=compute_result_hash(result),
            evaluated_at=now.isoformat(),
            narration=summarize(result),
        ))
    return records


def run_batch(
    history_path: str,
    queries_path: str,
    audit_path: str,
    now: Optional[date] = None,
) -> str:
    """
    Price every query, write the audit log.
    Returns the combined hash of all results.
    """
    if now is None:
        now = date.today()
    records = _price_all(history_path, queries_path, now)
    write_audit_log(records, audit_path)
    logger.info("Audit log saved → %s (%d records)", audit_path, len(records))

    batch_hash = combine_hashes(r.result_hash for r in records)
    logger.info("Batch hash=%s", batch_hash)
    return batch_hash


def replay_batch(
    history_path: str,
    queries_path: str,
    audit_path: str,
    verify_hash_path: str,
    now: Optional[date] = None,
) -> bool:
    """
    Re-price the batch and verify the combined hash matches.
    Returns True if hashes match.
    """
    logger.info("Replay mode: re-pricing %s", queries_path)
    batch_hash = run_batch(history_path, queries_path, audit_path, now)

    with open(verify_hash_path, "r", encoding="utf-8") as f:
        expected_hash = f.read().strip()

    match = batch_hash == expected_hash
    if match:
        logger.info("Replay PASSED: hash=%s", batch_hash)
    else:
        logger.error("Replay FAILED: expected=%s actual=%s", expected_hash, batch_hash)
    return match
