"""
Synthetic sales-history generator for the OANCA pricing engine.

Produces a sales pool (JSONL) that exercises every engine path:
  - Fast sellers with healthy gross (BUY)
  - Known hard-work cars that sell quickly anyway (override to HIT_IT)
  - Slow Euro stock (hard_work, velocity discount)
  - Loss-making stock (poison, WALK)
  - Late-model American trucks with thin data (ESCALATE)
  - Heavy-duty trucks bought cheaply (floor breach, ESCALATE)
  - Malformed rows (bad dates, blank costs, junk numbers)

Also writes a matching query file and auction-listing file.
"""
from __future__ import annotations

import json
import random
import uuid
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# name: (make, model, variants, drivetrain, base cost, (min days, max days), (min gross, max gross), weight)
PROFILES: Dict[str, Tuple[str, str, Tuple[str, ...], str, int, Tuple[int, int], Tuple[int, int], int]] = {
    "hilux_fast":     ("Toyota", "Hilux", ("SR5 Double Cab", "SR Cab Chassis"), "4X4",
                       38000, (7, 20), (2500, 5500), 5),
    "lc200_fast":     ("Toyota", "Landcruiser 200", ("GXL", "VX"), "4X4",
                       72000, (6, 18), (3500, 7000), 3),
    "ranger_average": ("Ford", "Ranger", ("XLT Double Cab", "Wildtrak"), "4X4",
                       41000, (18, 34), (1200, 2600), 4),
    "dmax_average":   ("Isuzu", "D-Max", ("LS-U Crew Cab", "SX Space Cab"), "4X4",
                       33000, (20, 40), (1000, 2500), 3),
    "cruze_override": ("Holden", "Cruze", ("CDX", "Equipe"), "2WD",
                       9000, (8, 18), (2200, 3500), 2),
    "euro_slow":      ("Peugeot", "308", ("Allure", "GT-Line"), "2WD",
                       14000, (55, 110), (300, 1400), 2),
    "navara_poison":  ("Nissan", "Navara", ("ST Dual Cab",), "4X4",
                       29000, (40, 120), (-4000, 600), 2),
}

# Pinned so the truck rules always have the data shape they need.
PINNED: Tuple[Tuple[str, str, str, str, int, int, int], ...] = (
    # make, model, variant, drivetrain, year, cost, count
    ("Chevrolet", "Silverado 2500HD", "LTZ", "4X4", 2020, 118000, 2),
    ("Ram", "3500", "Laramie", "4X4", 2019, 40000, 4),
)

MALFORMED_ROWS = 6


def _record_id(rng: random.Random) -> str:
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def _sale(
    rng: random.Random,
    now: date,
    make: str,
    model: str,
    variant: str,
    drivetrain: str,
    year: int,
    cost: int,
    days: int,
    gross: int,
) -> Dict[str, Any]:
    sold = now - timedelta(days=rng.randint(5, 1000))
    return {
        "record_id": _record_id(rng),
        "source": rng.choice(["dealer_feed", "auction_result", "manual"]),
        "dealer_name": rng.choice(["Northside Motors", "Coastal Autos", "Outback 4WD"]),
        "make": make,
        "model": model,
        "year": year,
        "variant": variant,
        "drivetrain": drivetrain,
        "transmission": "Automatic",
        "km": rng.randint(15000, 180000),
        "sale_date": sold.isoformat(),
        "days_in_stock": days,
        "sell_price": cost + gross,
        "total_cost": cost,
        "gross_profit": gross,
    }


def _malformed(rng: random.Random, now: date) -> Dict[str, Any]:
    row = _sale(rng, now, "Toyota", "Hilux", "SR5", "4X4", now.year - 3, 36000, 15, 3000)
    breakage = rng.choice(["date", "cost", "days", "gross"])
    if breakage == "date":
        row["sale_date"] = "not-a-date"
    elif breakage == "cost":
        row["total_cost"] = ""
    elif breakage == "days":
        row["days_in_stock"] = "n/a"
    else:
        row["gross_profit"] = "unknown"
    return row


def build_history(count: int, seed: int, now: date) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    rows: List[Dict[str, Any]] = []

    for make, model, variant, drive, year, cost, pinned in PINNED:
        for _ in range(pinned):
            rows.append(_sale(
                rng, now, make, model, variant, drive, year,
                cost + rng.randint(-2000, 2000), rng.randint(20, 60), rng.randint(2000, 6000),
            ))

    for _ in range(MALFORMED_ROWS):
        rows.append(_malformed(rng, now))

    names = list(PROFILES)
    weights = [PROFILES[n][7] for n in names]
    for _ in range(max(0, count - len(rows))):
        make, model, variants, drive, base, days, gross, _w = PROFILES[
            rng.choices(names, weights=weights)[0]
        ]
        year = now.year - rng.randint(1, 7)
        # Older cars cost less
        cost = base - (now.year - year) * base // 20 + rng.randint(-base // 15, base // 15)
        rows.append(_sale(
            rng, now, make, model, rng.choice(variants), drive, year,
            cost, rng.randint(*days), rng.randint(*gross),
        ))

    rows.sort(key=lambda r: (str(r["sale_date"]), r["record_id"]))
    return rows


def build_queries(now: date) -> List[Dict[str, Any]]:
    """One query per engine path, plus one with no history at all."""
    y = now.year
    return [
        {"make": "Toyota", "model": "Hilux", "year": y - 3, "variant_family": "SR5", "drivetrain": "4X4"},
        {"make": "Toyota", "model": "Landcruiser 200", "year": y - 4, "variant_family": "GXL"},
        {"make": "Ford", "model": "Ranger", "year": y - 3, "variant_family": "XLT"},
        {"make": "Isuzu", "model": "D-Max", "year": y - 4},
        {"make": "Holden", "model": "Cruze", "year": y - 4},
        {"make": "Peugeot", "model": "308", "year": y - 4},
        {"make": "Nissan", "model": "Navara", "year": y - 4},
        {"make": "Chevrolet", "model": "Silverado 2500HD", "year": 2020},
        {"make": "Ram", "model": "3500", "year": 2019, "variant_family": "Laramie"},
        {"make": "Suzuki", "model": "Jimny", "year": y - 2},
    ]


def build_listings(sales: List[Dict[str, Any]], seed: int, limit: int = 40) -> List[Dict[str, Any]]:
    """Auction lots cloned from profitable sales, priced around their old sell price."""
    rng = random.Random(seed + 1)
    listings: List[Dict[str, Any]] = []
    usable = [s for s in sales if isinstance(s.get("total_cost"), int) and s["gross_profit"] != "unknown"
              and s["gross_profit"] > 0]
    for sale in rng.sample(usable, min(limit, len(usable))):
        listings.append({
            "listing_id": f"LOT-{rng.randint(100000, 999999)}",
            "make": sale["make"],
            "model": sale["model"],
            "variant": sale["variant"],
            "drivetrain": sale["drivetrain"],
            "year": sale["year"] + rng.choice([-1, 0, 0, 1]),
            "km": sale["km"] + rng.randint(-12000, 12000),
            "asking_price": sale["sell_price"] - rng.randint(-2000, 8000),
            "url": f"https://auctions.example/lot/{sale['record_id'][:8]}",
        })
    listings.sort(key=lambda l: l["listing_id"])
    return listings


def _write_jsonl(rows: List[Dict[str, Any]], output_path: str) -> None:
    p = Path(output_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, sort_keys=True) + "\n")


def generate_history(
    output_path: str,
    count: int = 500,
    seed: int = 42,
    now: Optional[date] = None,
    queries_path: Optional[str] = None,
    listings_path: Optional[str] = None,
) -> int:
    """Write a seeded sales pool (and optionally queries/listings).  Returns rows written."""
    if now is None:
        now = date.today()
    rows = build_history(count, seed, now)
    _write_jsonl(rows, output_path)
    if queries_path:
        _write_jsonl(build_queries(now), queries_path)
    if listings_path:
        _write_jsonl(build_listings(rows, seed), listings_path)
    return len(rows)


if __name__ == "__main__":
    generate_history("sales_history.jsonl", 500, 42, queries_path="queries.jsonl")
    print("Generated sales_history.jsonl")
