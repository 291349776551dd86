"""
File-backed history source.

Reads sales records, pricing queries and auction listings from JSON (a list,
or an object with a ``records`` key) or JSONL.  Bad *fields* are tolerated by
the model parsers; a line that is not JSON at all is a corrupt file and raises.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, TypeVar

from oanca_engine.models import QueryVehicle, SalesRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _read_rows(path: str, kind: str) -> List[Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    text = p.read_text(encoding="utf-8")
    stripped = text.lstrip()

    if stripped.startswith("[") or (stripped.startswith("{") and p.suffix == ".json"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid {kind} file {path}: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("records", [])
        if not isinstance(data, list):
            raise ValueError(f"Invalid {kind} file {path}: expected a list")
        return data

    rows: List[Any] = []
    for line_no, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid {kind} on line {line_no}: {exc}") from exc
    return rows


def _parse_rows(rows: List[Any], parse: Callable[[Dict[str, Any]], T], kind: str) -> List[T]:
    out: List[T] = []
    for line_no, row in enumerate(rows, 1):
        try:
            out.append(parse(row))
        except (KeyError, ValueError, TypeError) as exc:
            raise ValueError(f"Invalid {kind} on line {line_no}: {exc}") from exc
    return out


def load_sales_history(path: str) -> List[SalesRecord]:
    """Load the full sales pool.  Rows that are not objects are skipped with a warning."""
    records: List[SalesRecord] = []
    for line_no, row in enumerate(_read_rows(path, "record"), 1):
        try:
            records.append(SalesRecord.from_dict(row))
        except TypeError as exc:
            logger.warning("Skipping sales row %d: %s", line_no, exc)
    logger.info("Loaded %d sales records from %s", len(records), path)
    return records


def load_queries(path: str) -> List[QueryVehicle]:
    def parse(row: Dict[str, Any]) -> QueryVehicle:
        if not isinstance(row, dict):
            raise TypeError(f"query must be an object, got {type(row).__name__}")
        return QueryVehicle.from_dict(row)

    queries = _parse_rows(_read_rows(path, "query"), parse, "query")
    logger.info("Loaded %d queries from %s", len(queries), path)
    return queries


def load_listings(path: str) -> List["AuctionListing"]:
    from oanca_engine.replication import AuctionListing

    listings = _parse_rows(_read_rows(path, "listing"), AuctionListing.from_dict, "listing")
    logger.info("Loaded %d auction listings from %s", len(listings), path)
    return listings
