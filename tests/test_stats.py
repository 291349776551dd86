"""
Unit tests for recency weighting, OWE statistics, demand and confidence.
"""
import itertools
from datetime import date

import pytest

from oanca_engine.models import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MED,
    DEMAND_AVERAGE,
    DEMAND_FAST,
    DEMAND_HARD_WORK,
    DEMAND_POISON,
    DemandResult,
    SalesRecord,
    WeightedComp,
)
from oanca_engine.stats import (
    DEMAND_RULES,
    apply_known_hard_work_override,
    calculate_confidence,
    calculate_demand_class,
    calculate_owe_stats,
    calculate_recency_weight,
    months_between,
    parse_sale_date,
    weight_comps,
)

NOW = date(2026, 1, 31)


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------
_counter = itertools.count(1)


def _record(cost=10000, days=20, gross=2000, sold="2025-12-15", sell=None) -> SalesRecord:
    return SalesRecord(
        record_id=f"r-{next(_counter)}",
        make="Toyota", model="Hilux", year=2020,
        sale_date=sold, days_in_stock=days,
        sell_price=sell if sell is not None else cost + (gross or 0),
        total_cost=cost, gross_profit=gross,
    )


def _comp(cost=10000, weight=1.0, months=1, **kw) -> WeightedComp:
    return WeightedComp(record=_record(cost=cost, **kw), weight=weight, months=months)


# -----------------------------------------------------------------------
# Test: date parsing and recency bands
# -----------------------------------------------------------------------
class TestParseSaleDate:
    def test_iso_date(self):
        assert parse_sale_date("2025-06-01") == date(2025, 6, 1)

    def test_iso_datetime_with_z(self):
        assert parse_sale_date("2025-06-01T10:30:00Z") == date(2025, 6, 1)

    def test_day_first(self):
        assert parse_sale_date("15/03/2024") == date(2024, 3, 15)

    @pytest.mark.parametrize("value", [None, "", "not-a-date", "2025-13-45"])
    def test_unusable(self, value):
        assert parse_sale_date(value) is None


class TestMonthsBetween:
    def test_whole_months(self):
        assert months_between(date(2025, 1, 15), date(2025, 7, 15)) == 6

    def test_partial_month_not_counted(self):
        assert months_between(date(2025, 1, 31), date(2025, 2, 28)) == 0

    def test_future_is_zero(self):
        assert months_between(date(2026, 6, 1), date(2026, 1, 1)) == 0


class TestRecencyWeight:
    @pytest.mark.parametrize("sold, weight, months", [
        ("2026-01-20", 1.0, 0),
        ("2025-07-31", 1.0, 6),
        ("2025-06-30", 0.85, 7),
        ("2025-01-31", 0.85, 12),
        ("2024-12-31", 0.65, 13),
        ("2024-01-31", 0.65, 24),
        ("2023-01-31", 0.4, 36),
        ("2022-12-31", 0.2, 37),
    ])
    def test_bands(self, sold, weight, months):
        assert calculate_recency_weight(sold, NOW) == (weight, months)

    def test_missing_date_is_oldest_band(self):
        assert calculate_recency_weight(None, NOW) == (0.2, 99)

    def test_unparsable_date_is_oldest_band(self):
        assert calculate_recency_weight("yesterday-ish", NOW) == (0.2, 99)

    def test_weight_comps_keeps_order(self):
        records = [_record(sold="2025-12-01"), _record(sold="garbage"), _record(sold="2023-01-01")]
        comps = weight_comps(records, NOW)
        assert [c.record for c in comps] == records
        assert [c.weight for c in comps] == [1.0, 0.2, 0.4]


# -----------------------------------------------------------------------
# Test: OWE statistics
# -----------------------------------------------------------------------
class TestOweStats:
    def test_scenario_five_comps(self):
        stats = calculate_owe_stats([_comp(c) for c in (12000, 10000, 11500, 10500, 11000)])
        assert stats.median == 11000
        assert stats.p75 == 11500
        assert stats.max == 12000
        assert stats.weighted_median == 11000
        assert stats.count == 5

    def test_index_lookup_not_interpolated(self):
        stats = calculate_owe_stats([_comp(c) for c in (100, 200, 300, 400)])
        assert stats.median == 300
        assert stats.p75 == 400

    def test_weighted_median_follows_weight(self):
        comps = [_comp(10000, 1.0), _comp(20000, 0.2), _comp(30000, 0.2)]
        stats = calculate_owe_stats(comps)
        assert stats.weighted_median == 10000
        assert stats.median == 20000
        assert stats.anchor == 10000

    def test_zero_cost_excluded(self):
        stats = calculate_owe_stats([_comp(0), _comp(9000), _comp(11000)])
        assert stats.count == 2
        assert stats.median == 11000

    def test_no_positive_cost(self):
        stats = calculate_owe_stats([_comp(0), _comp(-5)])
        assert stats.median is None
        assert stats.weighted_median is None
        assert stats.anchor is None
        assert stats.count == 0


# -----------------------------------------------------------------------
# Test: demand classification
# -----------------------------------------------------------------------
class TestDemandClass:
    def test_rule_chain_is_ordered(self):
        assert [cls for _, _, cls in DEMAND_RULES] == [
            DEMAND_HARD_WORK, DEMAND_POISON, DEMAND_FAST,
            DEMAND_AVERAGE, DEMAND_HARD_WORK, DEMAND_AVERAGE,
        ]

    def test_no_comps(self):
        result = calculate_demand_class([])
        assert result.demand_class == DEMAND_HARD_WORK
        assert result.avg_days == 45
        assert result.avg_gross == 0

    def test_poison_by_loss_ratio(self):
        comps = [_comp(gross=-1000), _comp(gross=-1000), _comp(gross=5000)]
        assert calculate_demand_class(comps).demand_class == DEMAND_POISON

    def test_poison_by_avg_gross(self):
        comps = [_comp(gross=-3000), _comp(gross=500), _comp(gross=500)]
        assert calculate_demand_class(comps).demand_class == DEMAND_POISON

    def test_fast(self):
        comps = [_comp(days=15, gross=3000) for _ in range(3)]
        result = calculate_demand_class(comps)
        assert result.demand_class == DEMAND_FAST
        assert result.avg_days == 15
        assert result.avg_gross == 3000

    def test_average(self):
        comps = [_comp(days=30, gross=1500) for _ in range(3)]
        assert calculate_demand_class(comps).demand_class == DEMAND_AVERAGE

    def test_hard_work_slow(self):
        comps = [_comp(days=50, gross=3000) for _ in range(3)]
        assert calculate_demand_class(comps).demand_class == DEMAND_HARD_WORK

    def test_hard_work_thin_gross(self):
        comps = [_comp(days=25, gross=900) for _ in range(3)]
        assert calculate_demand_class(comps).demand_class == DEMAND_HARD_WORK

    def test_default_average(self):
        comps = [_comp(days=40, gross=1600) for _ in range(3)]
        assert calculate_demand_class(comps).demand_class == DEMAND_AVERAGE

    def test_non_positive_days_excluded(self):
        comps = [_comp(days=0), _comp(days=10), _comp(days=20)]
        assert calculate_demand_class(comps).avg_days == 15

    def test_all_days_missing_defaults(self):
        comps = [_comp(days=0), _comp(days=-3)]
        assert calculate_demand_class(comps).avg_days == 45

    def test_gross_recomputed_when_missing(self):
        comps = [_comp(cost=10000, gross=None, sell=13000, days=10) for _ in range(2)]
        assert calculate_demand_class(comps).avg_gross == 3000

    def test_note_names_rule(self):
        result = calculate_demand_class([_comp(days=15, gross=3000)])
        assert len(result.notes) == 1
        assert "avg days <= 21" in result.notes[0]


class TestKnownHardWorkOverride:
    def _fast(self):
        return DemandResult(DEMAND_FAST, "fast rule", 12.0, 3000.0, ("Demand fast",))

    def test_forces_hard_work(self):
        result = apply_known_hard_work_override("Holden", "Cruze", self._fast())
        assert result.demand_class == DEMAND_HARD_WORK
        assert result.notes[0] == "Demand fast"
        assert "Known hard-work override" in result.notes[-1]

    def test_model_with_badge(self):
        result = apply_known_hard_work_override("Mercedes-Benz", "A200 Progressive", self._fast())
        assert result.demand_class == DEMAND_HARD_WORK

    def test_other_models_untouched(self):
        fast = self._fast()
        assert apply_known_hard_work_override("Holden", "Commodore", fast) is fast

    def test_poison_untouched(self):
        poison = DemandResult(DEMAND_POISON, "losses", 60.0, -800.0)
        assert apply_known_hard_work_override("Holden", "Cruze", poison) is poison


# -----------------------------------------------------------------------
# Test: confidence
# -----------------------------------------------------------------------
class TestConfidence:
    def test_high(self):
        comps = [_comp(months=2)] * 3 + [_comp(months=20)] * 2
        assert calculate_confidence(comps) == CONFIDENCE_HIGH

    def test_five_but_few_recent_is_med(self):
        comps = [_comp(months=2)] * 2 + [_comp(months=20)] * 3
        assert calculate_confidence(comps) == CONFIDENCE_MED

    def test_two_recent_is_med(self):
        assert calculate_confidence([_comp(months=1), _comp(months=12)]) == CONFIDENCE_MED

    def test_three_old_is_med(self):
        assert calculate_confidence([_comp(months=30)] * 3) == CONFIDENCE_MED

    def test_low(self):
        assert calculate_confidence([_comp(months=2), _comp(months=13)]) == CONFIDENCE_LOW
