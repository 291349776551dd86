"""
Fingerprint replication matcher.

Looks for auction listings that replicate a profitable historical sale: same
make/model, same trim (or one rung up), within a year, within 15,000 km, on a
compatible drivetrain, and asking less than that sale fetched.  Strict
filtering, then a deterministic sort picks the single best sale per listing.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from oanca_engine.matching import (
    derive_trim_class,
    drivetrain_bucket,
    normalize,
    record_trim,
    trim_allowed,
)
from oanca_engine.models import DRIVE_UNKNOWN, SalesRecord, clean_text, coerce_int, optional_text
from oanca_engine.stats import parse_sale_date

logger = logging.getLogger(__name__)

REPLICATION_YEAR_WINDOW: int = 1
REPLICATION_KM_WINDOW: int = 15000
UNKNOWN_KM_DIFF: int = 99999
MIN_MARGIN: int = 1500

TIER_HIGH   = "HIGH"
TIER_MEDIUM = "MEDIUM"

# (minimum margin, tier, priority) checked top down
MARGIN_TIERS = (
    (6000, TIER_HIGH, 1),
    (4000, TIER_HIGH, 2),
    (MIN_MARGIN, TIER_MEDIUM, 3),
)


@dataclass(frozen=True, slots=True)
class AuctionListing:
    """A live auction lot with an asking price."""

    listing_id:   str
    make:         str
    model:        str
    year:         int
    asking_price: int
    variant:      str           = ""
    drivetrain:   str           = ""
    km:           Optional[int] = None
    url:          str           = ""
    location:     Optional[str] = None

    def __post_init__(self) -> None:
        if not self.listing_id:
            raise ValueError("AuctionListing.listing_id is required")

    @property
    def label(self) -> str:
        return f"{self.year} {self.make} {self.model} {self.variant}".strip()

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AuctionListing":
        if not isinstance(d, dict):
            raise TypeError(f"listing must be an object, got {type(d).__name__}")
        return AuctionListing(
            listing_id=clean_text(d.get("listing_id") or d.get("id")),
            make=clean_text(d.get("make")),
            model=clean_text(d.get("model")),
            year=coerce_int(d.get("year"), 0),
            asking_price=coerce_int(d.get("asking_price"), 0),
            variant=clean_text(d.get("variant") or d.get("variant_raw") or d.get("variant_family")),
            drivetrain=clean_text(d.get("drivetrain")),
            km=coerce_int(d.get("km"), None),
            url=clean_text(d.get("url") or d.get("listing_url")),
            location=optional_text(d.get("location")),
        )


@dataclass(frozen=True, slots=True)
class ReplicationOpportunity:
    listing_id:            str
    listing_label:         str
    asking_price:          int
    matched_sale_id:       str
    historical_buy_price:  int
    historical_sell_price: int
    historical_profit:     int
    expected_margin:       int
    km_difference:         Optional[int]
    trim_class:            str
    trim_match:            str
    drivetrain:            str
    sold_at:               Optional[str]
    confidence_tier:       str
    priority_level:        int
    url:                   str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "listing_label": self.listing_label,
            "asking_price": self.asking_price,
            "matched_sale_id": self.matched_sale_id,
            "historical_buy_price": self.historical_buy_price,
            "historical_sell_price": self.historical_sell_price,
            "historical_profit": self.historical_profit,
            "expected_margin": self.expected_margin,
            "km_difference": self.km_difference,
            "trim_class": self.trim_class,
            "trim_match": self.trim_match,
            "drivetrain": self.drivetrain,
            "sold_at": self.sold_at,
            "confidence_tier": self.confidence_tier,
            "priority_level": self.priority_level,
            "url": self.url,
        }


@dataclass(slots=True)
class ReplicationRun:
    listings_checked: int = 0
    matched:          int = 0
    opportunities:    List[ReplicationOpportunity] = field(default_factory=list)

    def counters(self) -> Dict[str, int]:
        return {
            "listings_checked": self.listings_checked,
            "matched": self.matched,
            "opportunities": len(self.opportunities),
        }


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------
def _km_diff(listing: AuctionListing, sale: SalesRecord) -> int:
    if listing.km is None or not sale.km:
        return UNKNOWN_KM_DIFF
    return abs(sale.km - listing.km)


def _sale_ordinal(sale: SalesRecord) -> int:
    parsed = parse_sale_date(sale.sale_date)
    return parsed.toordinal() if parsed else 0


def _candidates(listing: AuctionListing, sales: Iterable[SalesRecord], listing_trim: str):
    make, model = normalize(listing.make), normalize(listing.model)
    listing_drive = drivetrain_bucket(listing.drivetrain or listing.variant)
    for sale in sales:
        if sale.sell_price <= 0 or sale.total_cost <= 0:
            continue
        if sale.sell_price - sale.total_cost <= 0:
            continue
        if normalize(sale.make) != make or normalize(sale.model) != model:
            continue
        trim_match = trim_allowed(listing.make, listing.model, listing_trim, record_trim(sale))
        if not trim_match:
            continue
        if abs(sale.year - listing.year) > REPLICATION_YEAR_WINDOW:
            continue
        if sale.km and listing.km is not None and abs(sale.km - listing.km) > REPLICATION_KM_WINDOW:
            continue
        sale_drive = drivetrain_bucket(sale.drivetrain)
        if DRIVE_UNKNOWN not in (listing_drive, sale_drive) and listing_drive != sale_drive:
            continue
        yield sale, trim_match


def _tier(margin: int) -> Tuple[str, int]:
    for minimum, tier, priority in MARGIN_TIERS:
        if margin >= minimum:
            return tier, priority
    raise ValueError(f"Margin {margin} is below the replication minimum")


def best_match(
    listing: AuctionListing,
    sales: Iterable[SalesRecord],
) -> Optional[Tuple[SalesRecord, str]]:
    """The closest profitable sale and how its trim matched, or None."""
    listing_trim = derive_trim_class(listing.make, listing.model, listing.variant)
    candidates = list(_candidates(listing, sales, listing_trim))
    if not candidates:
        return None
    candidates.sort(key=lambda c: (
        abs(c[0].year - listing.year),
        _km_diff(listing, c[0]),
        -_sale_ordinal(c[0]),
        c[0].record_id,
    ))
    return candidates[0]


def build_opportunity(
    listing: AuctionListing,
    sale: SalesRecord,
    trim_match: str,
) -> Optional[ReplicationOpportunity]:
    margin = sale.sell_price - listing.asking_price
    if listing.asking_price >= sale.sell_price or margin < MIN_MARGIN:
        logger.debug(
            "%s matched sale %s but margin %d is too thin",
            listing.listing_id, sale.record_id, margin,
        )
        return None

    tier, priority = _tier(margin)
    km_diff = _km_diff(listing, sale)
    return ReplicationOpportunity(
        listing_id=listing.listing_id,
        listing_label=listing.label,
        asking_price=listing.asking_price,
        matched_sale_id=sale.record_id,
        historical_buy_price=sale.total_cost,
        historical_sell_price=sale.sell_price,
        historical_profit=sale.sell_price - sale.total_cost,
        expected_margin=margin,
        km_difference=None if km_diff == UNKNOWN_KM_DIFF else km_diff,
        trim_class=derive_trim_class(listing.make, listing.model, listing.variant),
        trim_match=trim_match,
        drivetrain=drivetrain_bucket(listing.drivetrain or listing.variant),
        sold_at=sale.sale_date,
        confidence_tier=tier,
        priority_level=priority,
        url=listing.url,
    )


def match_listing(
    listing: AuctionListing,
    sales: Sequence[SalesRecord],
) -> Optional[ReplicationOpportunity]:
    """Best replicable sale for ``listing`` as an opportunity, or None."""
    match = best_match(listing, sales)
    if match is None:
        return None
    return build_opportunity(listing, *match)


def run_replication(
    listings: Iterable[AuctionListing],
    sales: Sequence[SalesRecord],
) -> ReplicationRun:
    run = ReplicationRun()
    sales = list(sales)
    for listing in listings:
        if not listing.year or not listing.km or listing.asking_price <= 0:
            logger.debug("Skipping listing %s without year, km or asking price", listing.listing_id)
            continue
        run.listings_checked += 1
        match = best_match(listing, sales)
        if match is None:
            continue
        run.matched += 1
        opp = build_opportunity(listing, *match)
        if opp is None:
            continue
        run.opportunities.append(opp)
        logger.info(
            "%s: %s ask $%d vs sold $%d, margin +$%d",
            opp.confidence_tier, opp.listing_label, opp.asking_price,
            opp.historical_sell_price, opp.expected_margin,
        )
    logger.info("Replication complete: %s", run.counters())
    return run


def write_opportunities(opportunities: List[ReplicationOpportunity], path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        for opp in opportunities:
            f.write(json.dumps(opp.to_dict(), sort_keys=True) + "\n")
