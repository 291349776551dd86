"""
Unit tests for each stage of the OANCA pricing engine.
"""
import itertools
from datetime import date, timedelta

import pytest

from oanca_engine.audit import compute_result_hash, summarize
from oanca_engine.engine import (
    VERDICT_TABLE,
    PricingEngine,
    calculate_buy_range,
    check_heavy_duty_floor,
    decide_verdict,
    heavy_duty_floor,
    retail_context,
    run_pricing_engine,
    should_force_escalation,
)
from oanca_engine.models import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MED,
    DEMAND_AVERAGE,
    DEMAND_FAST,
    DEMAND_HARD_WORK,
    DEMAND_POISON,
    VERDICT_BUY,
    VERDICT_ESCALATE,
    VERDICT_HARD_WORK,
    VERDICT_HIT_IT,
    VERDICT_NEED_PICS,
    VERDICT_WALK,
    OancaPriceObject,
    OweStats,
    QueryVehicle,
    SalesRecord,
)

NOW = date(2026, 1, 31)


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------
_counter = itertools.count(1)


def _sale(
    cost,
    make="Toyota",
    model="Hilux",
    year=2020,
    days=20,
    gross=2000,
    sell=None,
    months_ago=2,
) -> SalesRecord:
    sold = NOW - timedelta(days=30 * months_ago + 1)
    if sell is None:
        sell = cost + (gross or 0)
    return SalesRecord(
        record_id=f"t-{next(_counter)}",
        make=make, model=model, year=year,
        sale_date=sold.isoformat(), days_in_stock=days,
        sell_price=sell, total_cost=cost, gross_profit=gross,
    )


def _query(make="Toyota", model="Hilux", year=2020, **kw) -> QueryVehicle:
    return QueryVehicle(make=make, model=model, year=year, **kw)


def _price(query, pool):
    return run_pricing_engine(query, pool, now=NOW)


# -----------------------------------------------------------------------
# Test: buy range
# -----------------------------------------------------------------------
class TestBuyRange:
    def test_fast_bracket(self):
        stats = OweStats(median=11000, p75=11500, max=12000, weighted_median=11000, count=5)
        rng = calculate_buy_range(stats, DEMAND_FAST, 15, 3000)
        assert (rng.buy_low, rng.buy_high) == (11000, 12000)
        assert not rng.cap_applied

    def test_top_bracket_buffers(self):
        stats = OweStats(median=45000, p75=46000, max=60000, weighted_median=45000, count=5)
        assert calculate_buy_range(stats, DEMAND_FAST, 15, 3000).buy_high == 46500
        assert calculate_buy_range(stats, DEMAND_AVERAGE, 30, 1500).buy_high == 46200

    def test_middle_bracket(self):
        stats = OweStats(median=30000, p75=31000, max=40000, weighted_median=30000, count=5)
        assert calculate_buy_range(stats, DEMAND_FAST, 15, 3000).buy_high == 31200
        assert calculate_buy_range(stats, DEMAND_AVERAGE, 30, 1500).buy_high == 31000

    def test_rounding_half_up(self):
        stats = OweStats(median=10050, p75=10500, max=12000, weighted_median=10050, count=3)
        rng = calculate_buy_range(stats, DEMAND_AVERAGE, 30, 1500)
        assert (rng.buy_low, rng.buy_high) == (10100, 10900)

    def test_poison_capped_at_median(self):
        stats = OweStats(median=20000, p75=28000, max=30000, weighted_median=25000, count=4)
        rng = calculate_buy_range(stats, DEMAND_POISON, 50, -800)
        assert (rng.buy_low, rng.buy_high) == (19500, 20000)
        assert rng.cap_applied

    def test_hard_work_capped_at_p75_plus_500(self):
        stats = OweStats(median=19000, p75=18000, max=30000, weighted_median=20000, count=4)
        rng = calculate_buy_range(stats, DEMAND_HARD_WORK, 50, 1200)
        assert (rng.buy_low, rng.buy_high) == (18000, 18500)
        assert rng.cap_applied

    def test_hard_work_velocity_discount(self):
        stats = OweStats(median=10000, p75=10200, max=11000, weighted_median=10000, count=4)
        rng = calculate_buy_range(stats, DEMAND_HARD_WORK, 70, 1200)
        assert (rng.buy_low, rng.buy_high) == (8700, 9400)
        assert any("Velocity discount" in n for n in rng.notes)

    def test_hard_work_cap_applies_before_velocity_discount(self):
        stats = OweStats(median=20000, p75=20000, max=22000, weighted_median=22000, count=4)
        rng = calculate_buy_range(stats, DEMAND_HARD_WORK, 70, 1200)
        assert (rng.buy_low, rng.buy_high) == (19100, 19800)
        assert rng.cap_applied
        assert any("Velocity discount -660" in n for n in rng.notes)

    def test_tiny_anchor_keeps_open_range(self):
        stats = OweStats(median=500, p75=500, max=500, weighted_median=500, count=1)
        rng = calculate_buy_range(stats, DEMAND_HARD_WORK, 30, 1000)
        assert (rng.buy_low, rng.buy_high) == (0, 500)
        assert rng.cap_applied

    def test_never_above_max_owe(self):
        stats = OweStats(median=10000, p75=10000, max=10000, weighted_median=10000, count=3)
        rng = calculate_buy_range(stats, DEMAND_FAST, 10, 4000)
        assert rng.buy_high == 10000
        assert rng.buy_low < rng.buy_high

    def test_falls_back_to_plain_median(self):
        stats = OweStats(median=10000, p75=10500, max=12000, weighted_median=None, count=3)
        assert calculate_buy_range(stats, DEMAND_AVERAGE, 30, 1500).buy_low == 10000

    def test_no_anchor_raises(self):
        with pytest.raises(ValueError, match="anchor"):
            calculate_buy_range(OweStats(), DEMAND_FAST, 15, 3000)

    def test_unknown_demand_raises(self):
        stats = OweStats(median=10000, p75=10000, max=10000, weighted_median=10000, count=3)
        with pytest.raises(ValueError, match="Unknown demand"):
            calculate_buy_range(stats, "sluggish", 15, 3000)


# -----------------------------------------------------------------------
# Test: verdict table
# -----------------------------------------------------------------------
class TestVerdict:
    @pytest.mark.parametrize("demand, confidence, verdict", [
        (DEMAND_POISON, CONFIDENCE_HIGH, VERDICT_WALK),
        (DEMAND_POISON, CONFIDENCE_MED, VERDICT_WALK),
        (DEMAND_POISON, CONFIDENCE_LOW, VERDICT_WALK),
        (DEMAND_HARD_WORK, CONFIDENCE_HIGH, VERDICT_HIT_IT),
        (DEMAND_HARD_WORK, CONFIDENCE_MED, VERDICT_HIT_IT),
        (DEMAND_HARD_WORK, CONFIDENCE_LOW, VERDICT_HIT_IT),
        (DEMAND_FAST, CONFIDENCE_HIGH, VERDICT_BUY),
        (DEMAND_FAST, CONFIDENCE_MED, VERDICT_HARD_WORK),
        (DEMAND_FAST, CONFIDENCE_LOW, VERDICT_HARD_WORK),
        (DEMAND_AVERAGE, CONFIDENCE_HIGH, VERDICT_BUY),
        (DEMAND_AVERAGE, CONFIDENCE_MED, VERDICT_BUY),
        (DEMAND_AVERAGE, CONFIDENCE_LOW, VERDICT_HARD_WORK),
    ])
    def test_table(self, demand, confidence, verdict):
        assert decide_verdict(demand, confidence) == verdict

    def test_table_is_complete(self):
        assert len(VERDICT_TABLE) == 12

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            VERDICT_TABLE[(DEMAND_FAST, CONFIDENCE_LOW)] = VERDICT_BUY

    def test_unknown_pair(self):
        with pytest.raises(ValueError):
            decide_verdict("mystery", CONFIDENCE_HIGH)


# -----------------------------------------------------------------------
# Test: forced escalation and heavy-duty floors
# -----------------------------------------------------------------------
class TestForcedEscalation:
    def test_late_model_truck_with_thin_data(self):
        check = should_force_escalation(_query("Chevrolet", "Silverado 2500HD", 2019), 2)
        assert check.escalate
        assert "Silverado" in check.reason

    def test_abbreviated_make(self):
        assert should_force_escalation(_query("Chev", "Silverado", 2020), 0).escalate

    def test_enough_comps(self):
        assert not should_force_escalation(_query("Chevrolet", "Silverado", 2020), 3).escalate

    def test_older_truck(self):
        assert not should_force_escalation(_query("Ram", "1500", 2017), 1).escalate

    def test_not_a_truck(self):
        assert not should_force_escalation(_query(), 0).escalate


class TestHeavyDutyFloor:
    @pytest.mark.parametrize("make, model, floor", [
        ("Chevrolet", "Silverado 2500HD", 90000),
        ("Chevrolet", "Silverado 3500 HD", 100000),
        ("Ram", "3500", 95000),
        ("Ford", "F-250", 85000),
        ("Toyota", "Hilux", None),
    ])
    def test_lookup(self, make, model, floor):
        assert heavy_duty_floor(_query(make, model, 2020)) == floor

    def test_breach(self):
        check = check_heavy_duty_floor(_query("Ram", "3500", 2019), 41500)
        assert check.escalate
        assert "95000" in check.reason

    def test_satisfied(self):
        check = check_heavy_duty_floor(_query("Ram", "3500", 2019), 96000)
        assert not check.escalate
        assert check.notes == ("Heavy-duty floor 95000 satisfied",)

    def test_older_truck_not_checked(self):
        check = check_heavy_duty_floor(_query("Ram", "3500", 2017), 20000)
        assert not check.escalate
        assert check.notes == ()


class TestRetailContext:
    def test_empty(self):
        assert retail_context([]) == (None, None)


# -----------------------------------------------------------------------
# Test: end-to-end pricing scenarios
# -----------------------------------------------------------------------
class TestThinData:
    def test_no_comps(self):
        result = _price(_query(), [])
        assert result.verdict == VERDICT_NEED_PICS
        assert result.n_comps == 0
        assert not result.allow_price

    def test_single_comp(self):
        result = _price(_query(), [_sale(15000)])
        assert result.verdict == VERDICT_NEED_PICS
        assert result.buy_low is None and result.buy_high is None
        assert result.demand_class is None and result.confidence is None
        assert any("Insufficient data" in n for n in result.notes)

    def test_two_comps_are_priced(self):
        result = _price(_query(), [_sale(15000), _sale(15500)])
        assert result.allow_price
        assert result.n_comps == 2

    def test_zero_owe_dropped(self):
        result = _price(_query(), [_sale(0), _sale(15000), _sale(15500)])
        assert result.n_comps == 2
        assert any("Dropped 1 comps" in n for n in result.notes)

    def test_zero_owe_can_leave_too_few(self):
        result = _price(_query(), [_sale(0), _sale(0), _sale(15000)])
        assert result.verdict == VERDICT_NEED_PICS
        assert result.n_comps == 1


class TestFastSeller:
    @pytest.fixture
    def result(self):
        pool = [_sale(c, days=15, gross=3000) for c in (10000, 10500, 11000, 11500, 12000)]
        return _price(_query(), pool)

    def test_verdict(self, result):
        assert result.verdict == VERDICT_BUY
        assert result.demand_class == DEMAND_FAST
        assert result.confidence == CONFIDENCE_HIGH

    def test_range(self, result):
        assert (result.buy_low, result.buy_high) == (11000, 12000)
        assert result.anchor_owe == 11000
        assert result.anchor_owe_p75 == 11500
        assert not result.cap_applied

    def test_retail_context(self, result):
        assert (result.retail_context_low, result.retail_context_high) == (14000, 14500)
        assert not result.firewall_triggered

    def test_narration(self, result):
        assert summarize(result) == "BUY $11,000-$12,000 (fast, HIGH confidence, comps=5)"


class TestKnownHardWork:
    def test_cruze_forced_to_hard_work(self):
        pool = [
            _sale(c, make="Holden", model="Cruze", year=2018, days=12, gross=3000)
            for c in (9000, 9200, 9400, 9600)
        ]
        result = _price(_query("Holden", "Cruze", 2018), pool)
        assert result.demand_class == DEMAND_HARD_WORK
        assert result.confidence == CONFIDENCE_MED
        assert result.verdict == VERDICT_HIT_IT
        assert (result.buy_low, result.buy_high) == (8300, 8900)
        assert any("Known hard-work override" in n for n in result.notes)


class TestEscalation:
    def test_silverado_with_two_comps(self):
        pool = [
            _sale(c, make="Chevrolet", model="Silverado 2500", year=2020)
            for c in (110000, 118000)
        ]
        result = _price(_query("Chevrolet", "Silverado 2500", 2020), pool)
        assert result.verdict == VERDICT_ESCALATE
        assert not result.allow_price
        assert result.buy_low is None and result.buy_high is None
        assert "High-value truck" in result.escalation_reason

    def test_thin_truck_escalates_instead_of_need_pics(self):
        pool = [
            _sale(0, make="Ram", model="2500", year=2021),
            _sale(0, make="Ram", model="2500", year=2021),
            _sale(90000, make="Ram", model="2500", year=2021),
        ]
        result = _price(_query("Ram", "2500", 2021), pool)
        assert result.verdict == VERDICT_ESCALATE
        assert result.n_comps == 1

    def test_post_pricing_escalation_discards_range(self):
        pool = [
            _sale(0, make="Ram", model="1500", year=2021),
            _sale(60000, make="Ram", model="1500", year=2021),
            _sale(62000, make="Ram", model="1500", year=2021),
        ]
        result = _price(_query("Ram", "1500", 2021), pool)
        assert result.verdict == VERDICT_ESCALATE
        assert result.buy_low is None
        assert result.anchor_owe is not None
        assert any("Discarded computed range" in n for n in result.notes)

    def test_heavy_duty_floor_breach(self):
        pool = [
            _sale(c, make="Ram", model="3500", year=2019, gross=4000)
            for c in (40000, 40500, 41000, 41500)
        ]
        result = _price(_query("Ram", "3500", 2019), pool)
        assert result.verdict == VERDICT_ESCALATE
        assert result.floor_applied
        assert result.anchor_owe == 40500
        assert result.buy_high is None
        assert any("Floor breach" in n for n in result.notes)


class TestRetailFirewall:
    def test_triggers_without_moving_range(self):
        pool = [_sale(10000, sell=8000, gross=None, model="Corolla") for _ in range(3)]
        result = _price(_query(model="Corolla"), pool)
        assert result.demand_class == DEMAND_POISON
        assert result.verdict == VERDICT_WALK
        assert (result.buy_low, result.buy_high) == (8000, 8800)
        assert result.firewall_triggered
        assert any("Retail firewall" in n for n in result.notes)

    def test_sell_price_never_moves_range(self):
        cheap = [_sale(c, days=15, gross=3000) for c in (10000, 11000, 12000)]
        dear = [_sale(c, days=15, gross=3000, sell=c + 20000) for c in (10000, 11000, 12000)]
        a, b = _price(_query(), cheap), _price(_query(), dear)
        assert (a.buy_low, a.buy_high) == (b.buy_low, b.buy_high)
        assert a.retail_context_low != b.retail_context_low


class TestPurity:
    def test_same_input_same_hash(self):
        pool = [_sale(c) for c in (10000, 11000, 12000, 13000)]
        assert compute_result_hash(_price(_query(), pool)) == compute_result_hash(_price(_query(), pool))

    def test_pool_untouched(self):
        pool = [_sale(c) for c in (10000, 11000, 12000)]
        before = [r.to_dict() for r in pool]
        _price(_query(), pool)
        assert [r.to_dict() for r in pool] == before

    def test_pricing_engine_wraps_function(self):
        pool = [_sale(c) for c in (10000, 11000, 12000)]
        engine = PricingEngine(pool, now=NOW)
        assert engine.pool_size == 3
        assert engine.price(_query()).to_dict() == _price(_query(), pool).to_dict()

    def test_pricing_engine_defaults_to_today(self):
        assert PricingEngine([]).now == date.today()


# -----------------------------------------------------------------------
# Test: output invariants
# -----------------------------------------------------------------------
class TestOancaPriceObject:
    def test_priced_needs_bounds(self):
        with pytest.raises(ValueError):
            OancaPriceObject(allow_price=True, verdict=VERDICT_BUY, n_comps=3)

    def test_priced_needs_open_range(self):
        with pytest.raises(ValueError):
            OancaPriceObject(allow_price=True, verdict=VERDICT_BUY, n_comps=3,
                             buy_low=10000, buy_high=10000)

    def test_priced_verdict_only(self):
        with pytest.raises(ValueError):
            OancaPriceObject(allow_price=True, verdict=VERDICT_NEED_PICS, n_comps=3,
                             buy_low=10000, buy_high=11000)

    def test_unpriced_carries_no_range(self):
        with pytest.raises(ValueError):
            OancaPriceObject(allow_price=False, verdict=VERDICT_ESCALATE, n_comps=1,
                             buy_low=10000)

    def test_unpriced_verdict_only(self):
        with pytest.raises(ValueError):
            OancaPriceObject(allow_price=False, verdict=VERDICT_BUY, n_comps=1)
