"""
CLI interface for the OANCA pricing engine.

Supports five modes:
  price     — Price one vehicle against a sales history file, print JSON.
  batch     — Price a file of queries, write the audit log.
  replay    — Re-price a batch and verify the combined hash matches.
  replicate — Match auction listings against profitable historical sales.
  generate  — Generate synthetic sales history (and queries/listings).
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date


def _setup_logging(verbose: bool = False) -> None:
    """Configure structured logging."""
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from exc


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="oanca_engine",
        description="OANCA buy-side pricing engine",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug-level logging",
    )
    parser.add_argument(
        "--now", type=_iso_date, default=None,
        help="Evaluation date (YYYY-MM-DD) for recency weighting; defaults to today",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # --- price ---
    price_p = sub.add_parser("price", help="Price a single vehicle")
    price_p.add_argument("--history", required=True, help="Path to sales history (JSON/JSONL)")
    price_p.add_argument("--make", required=True)
    price_p.add_argument("--model", required=True)
    price_p.add_argument("--year", required=True, type=int)
    price_p.add_argument("--variant", default=None, help="Variant family / badge")
    price_p.add_argument("--km", type=int, default=None)
    price_p.add_argument("--drivetrain", default=None)
    price_p.add_argument("--location", default=None)

    # --- batch ---
    batch_p = sub.add_parser("batch", help="Price a file of queries and write the audit log")
    batch_p.add_argument("--history", required=True, help="Path to sales history (JSON/JSONL)")
    batch_p.add_argument("--queries", required=True, help="Path to queries.jsonl")
    batch_p.add_argument("--audit", required=True, help="Path to audit_log.jsonl")
    batch_p.add_argument("--hash-out", default=None, help="Write the batch hash to this file")

    # --- replay ---
    replay_p = sub.add_parser("replay", help="Re-price a batch and verify hash")
    replay_p.add_argument("--history", required=True, help="Path to sales history (JSON/JSONL)")
    replay_p.add_argument("--queries", required=True, help="Path to queries.jsonl")
    replay_p.add_argument("--audit", required=True, help="Path to audit_log.jsonl")
    replay_p.add_argument("--verify", required=True, help="Path to expected_hash.txt")

    # --- replicate ---
    rep_p = sub.add_parser("replicate", help="Find auction lots that replicate past wins")
    rep_p.add_argument("--history", required=True, help="Path to sales history (JSON/JSONL)")
    rep_p.add_argument("--listings", required=True, help="Path to listings.jsonl")
    rep_p.add_argument("--output", required=True, help="Path to opportunities.jsonl")

    # --- generate ---
    gen_p = sub.add_parser("generate", help="Generate synthetic test data")
    gen_p.add_argument("--output", required=True, help="Path to output sales_history.jsonl")
    gen_p.add_argument(
        "--count", type=int, default=500, help="Number of sales records (default 500)"
    )
    gen_p.add_argument(
        "--seed", type=int, default=42, help="Random seed for reproducibility"
    )
    gen_p.add_argument("--queries", default=None, help="Also write sample queries here")
    gen_p.add_argument("--listings", default=None, help="Also write sample auction listings here")

    args = parser.parse_args(argv)
    _setup_logging(verbose=args.verbose)

    logger = logging.getLogger("oanca_engine.cli")

    if args.command == "price":
        from oanca_engine.engine import PricingEngine
        from oanca_engine.history import load_sales_history
        from oanca_engine.models import QueryVehicle

        try:
            query = QueryVehicle(
                make=args.make,
                model=args.model,
                year=args.year,
                variant_family=args.variant,
                km=args.km,
                drivetrain=args.drivetrain,
                location=args.location,
            )
            engine = PricingEngine(load_sales_history(args.history), now=args.now)
            result = engine.price(query)
            print(json.dumps(result.to_dict(), indent=2))
        except Exception as exc:
            logger.exception("Pricing failed")
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

    elif args.command == "batch":
        from oanca_engine.engine import run_batch

        try:
            batch_hash = run_batch(args.history, args.queries, args.audit, args.now)
            if args.hash_out:
                with open(args.hash_out, "w", encoding="utf-8") as f:
                    f.write(batch_hash + "\n")
            print(f"BATCH OK: hash {batch_hash}")
        except Exception as exc:
            logger.exception("Batch failed")
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

    elif args.command == "replay":
        from oanca_engine.engine import replay_batch

        try:
            ok = replay_batch(args.history, args.queries, args.audit, args.verify, args.now)
            if ok:
                print("REPLAY OK: hash matches")
            else:
                print("REPLAY FAILED: hash does NOT match", file=sys.stderr)
                sys.exit(1)
        except Exception as exc:
            logger.exception("Replay failed")
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

    elif args.command == "replicate":
        from oanca_engine.history import load_listings, load_sales_history
        from oanca_engine.replication import run_replication, write_opportunities

        try:
            run = run_replication(load_listings(args.listings), load_sales_history(args.history))
            write_opportunities(run.opportunities, args.output)
            print(json.dumps(run.counters(), sort_keys=True))
        except Exception as exc:
            logger.exception("Replication failed")
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)

    elif args.command == "generate":
        from oanca_engine.generate_history import generate_history

        try:
            written = generate_history(
                args.output, args.count, args.seed, args.now,
                queries_path=args.queries, listings_path=args.listings,
            )
            print(f"Generated {written} sales records → {args.output}")
        except Exception as exc:
            logger.exception("Generation failed")
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
