"""
Deterministic variant-family extraction.

Finds a badge family ("GXL", "SR5", "WILDTRAK", ...) in free-text variant or
description fields using word-boundary regexes over fixed per-model lists.
No fuzzy or learned matching.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Tuple

from oanca_engine.rules import GENERIC_VARIANT_FAMILIES, VARIANT_FAMILIES


@lru_cache(maxsize=None)
def _family_pattern(family: str) -> "re.Pattern[str]":
    # hyphens are optional so "LS-U" also finds "LSU" and "LS U"
    parts = ["[- ]?" if ch == "-" else re.escape(ch) for ch in family]
    return re.compile(r"(?<![A-Z0-9])" + "".join(parts) + r"(?![A-Z0-9])", re.IGNORECASE)


def _model_families(make: str, model: str) -> Tuple[str, ...]:
    make_data = VARIANT_FAMILIES.get(make.lower().strip())
    if not make_data:
        return ()
    model_lower = model.lower().strip()
    if model_lower in make_data:
        return make_data[model_lower]
    for model_key, families in make_data.items():
        if model_key in model_lower or model_lower in model_key:
            return families
    return ()


def _first_match(families, text: str) -> Optional[str]:
    for family in families:
        if _family_pattern(family).search(text):
            return family.upper()
    return None


def extract_variant_family(
    make: str,
    model: str,
    variant_raw: Optional[str],
    description: Optional[str] = None,
) -> Optional[str]:
    """Return the badge family found in the variant/description text, or None."""
    if not make or not model:
        return None
    text = " ".join(t for t in (variant_raw, description) if t).upper()
    if not text.strip():
        return None

    families = _model_families(make, model)
    if not families:
        return _first_match(GENERIC_VARIANT_FAMILIES, text)

    # Longest first so "ASCENT SPORT" wins over "ASCENT"
    ordered = sorted(families, key=len, reverse=True)
    return _first_match(ordered, text)
