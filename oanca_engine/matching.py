"""
Comparable selection.

A boolean filter (no scoring) that keeps the historical sales a query vehicle
may be priced against:

  * make / model:    case-insensitive equality or containment either way
  * year:            within +/- YEAR_WINDOW
  * variant family:  containment either way, skipped when either side is absent
  * trim class:      exact, or the sale sits exactly one rung below the query
                     (only when the query carries a badge)
  * drivetrain:      4X4 never matches 2WD; UNKNOWN on either side passes
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Union

from oanca_engine.models import (
    DRIVE_2WD,
    DRIVE_4X4,
    DRIVE_UNKNOWN,
    TRIM_EXACT,
    TRIM_UPGRADE,
    YEAR_WINDOW,
    QueryVehicle,
    SalesRecord,
)
from oanca_engine.rules import PLATFORMS, TRIM_CLASS_RULES, TRIM_LADDER
from oanca_engine.variants import extract_variant_family

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")
_FOUR_BY_FOUR = re.compile(r"4X4|4WD|AWD")
_TWO_WHEEL = re.compile(r"2WD|2X4|FWD|RWD|4X2")


# ---------------------------------------------------------------------------
# String normalisation
# ---------------------------------------------------------------------------
def normalize(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WS.sub(" ", str(text)).strip().lower()


def contains_either(a: Optional[str], b: Optional[str]) -> bool:
    """Equality or substring containment in either direction.

    "Chev" matches "Chevrolet".  An empty side never matches.
    """
    left, right = normalize(a), normalize(b)
    if not left or not right:
        return False
    return left == right or left in right or right in left


def drivetrain_bucket(value: Optional[str]) -> str:
    if not value:
        return DRIVE_UNKNOWN
    v = str(value).upper()
    if _FOUR_BY_FOUR.search(v):
        return DRIVE_4X4
    if _TWO_WHEEL.search(v):
        return DRIVE_2WD
    return DRIVE_UNKNOWN


# ---------------------------------------------------------------------------
# Trim classification and ladder
# ---------------------------------------------------------------------------
def platform_key(make: str, model: str) -> Optional[str]:
    key = (normalize(make).upper(), normalize(model).upper())
    return PLATFORMS.get(key)


def derive_trim_class(make: str, model: str, variant_text: Optional[str]) -> str:
    """Map a free-text badge to a canonical trim code, e.g. "GXL" -> LC200_GXL."""
    model_upper = normalize(model).upper()
    platform = platform_key(make, model)
    if platform is not None:
        v = (variant_text or "").upper()
        for needles, code in TRIM_CLASS_RULES[platform]:
            if any(needle in v for needle in needles):
                return code
    return f"{model_upper}_STANDARD"


def trim_allowed(
    query_make: str,
    query_model: str,
    query_trim: str,
    candidate_trim: str,
) -> Union[str, bool]:
    """EXACT, UPGRADE, or False.

    UPGRADE means the listing being priced is exactly one rung above the
    historical sale.  A sale above the listing, or more than one rung below,
    is never a comparable.
    """
    if candidate_trim == query_trim:
        return TRIM_EXACT
    platform = platform_key(query_make, query_model)
    ladder = TRIM_LADDER.get(platform) if platform else None
    if not ladder:
        return False
    query_rank = ladder.get(query_trim)
    candidate_rank = ladder.get(candidate_trim)
    if query_rank is None or candidate_rank is None:
        return False
    if query_rank == candidate_rank + 1:
        return TRIM_UPGRADE
    return False


# ---------------------------------------------------------------------------
# Per-side helpers
# ---------------------------------------------------------------------------
def record_variant_family(record: SalesRecord) -> Optional[str]:
    if record.variant_family:
        return record.variant_family
    return extract_variant_family(record.make, record.model, record.variant)


def record_trim(
    record: SalesRecord,
    query_make: Optional[str] = None,
    query_model: Optional[str] = None,
) -> str:
    """Trim code for a sale, read against the query's model when neither has a ladder.

    Model matching is containment, so "Silverado 2500HD" can be a comparable for
    "Silverado 2500".  Without a ladder on either side both fall back to the
    query's STANDARD code, otherwise the model text alone would split them.
    """
    make, model = record.make, record.model
    if (
        query_make is not None
        and query_model is not None
        and platform_key(make, model) is None
        and platform_key(query_make, query_model) is None
    ):
        make, model = query_make, query_model
    return derive_trim_class(make, model, record.variant or record.variant_family or "")


def query_trim(query: QueryVehicle) -> str:
    return derive_trim_class(query.make, query.model, query.variant_family or "")


def query_drivetrain(query: QueryVehicle) -> str:
    bucket = drivetrain_bucket(query.drivetrain)
    if bucket == DRIVE_UNKNOWN:
        bucket = drivetrain_bucket(query.variant_family)
    return bucket


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------
def is_comparable(
    query: QueryVehicle,
    record: SalesRecord,
    q_trim: Optional[str] = None,
    q_drive: Optional[str] = None,
) -> bool:
    if not contains_either(record.make, query.make):
        return False
    if not contains_either(record.model, query.model):
        return False
    if abs(record.year - query.year) > YEAR_WINDOW:
        return False

    family = record_variant_family(record)
    if query.variant_family and family:
        if not contains_either(family, query.variant_family):
            return False

    # No badge on the query means no trim to hold the record to
    if query.variant_family:
        if q_trim is None:
            q_trim = query_trim(query)
        if not trim_allowed(
            query.make, query.model, q_trim, record_trim(record, query.make, query.model),
        ):
            return False

    if q_drive is None:
        q_drive = query_drivetrain(query)
    r_drive = drivetrain_bucket(record.drivetrain)
    if DRIVE_UNKNOWN not in (q_drive, r_drive) and q_drive != r_drive:
        return False
    return True


def select_comparables(
    query: QueryVehicle,
    pool: Iterable[SalesRecord],
) -> List[SalesRecord]:
    """Filter ``pool`` down to the records comparable to ``query``, in pool order."""
    q_trim = query_trim(query)
    q_drive = query_drivetrain(query)
    pool = list(pool)
    matches = [r for r in pool if is_comparable(query, r, q_trim, q_drive)]
    logger.debug(
        "Comparable selection: %s trim=%s drive=%s -> %d of %d records",
        query.label, q_trim, q_drive, len(matches), len(pool),
    )
    return matches
