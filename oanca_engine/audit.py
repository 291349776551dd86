"""
Audit logging for the OANCA pricing engine.

Each priced query is persisted alongside its result and a SHA-256 over the
canonical result JSON (sorted keys, no whitespace).  Identical inputs at the
same instant must produce an identical hash.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from oanca_engine.models import OancaPriceObject, QueryVehicle


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def compute_result_hash(price: OancaPriceObject) -> str:
    """SHA-256 of the canonical price-object JSON."""
    return hashlib.sha256(canonical_json(price.to_dict()).encode("utf-8")).hexdigest()


def combine_hashes(hashes: Iterable[str]) -> str:
    """One hash for a whole batch, sensitive to result order."""
    digest = hashlib.sha256()
    for h in hashes:
        digest.update(h.encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


def summarize(price: OancaPriceObject) -> str:
    """Plain one-line rendering of a result.  Never restates the numbers differently."""
    if not price.allow_price:
        reason = price.escalation_reason or (price.notes[-1] if price.notes else "")
        return f"{price.verdict}: {reason} (comps={price.n_comps})"
    return (
        f"{price.verdict} ${price.buy_low:,}-${price.buy_high:,} "
        f"({price.demand_class}, {price.confidence} confidence, comps={price.n_comps})"
    )


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """A single line of the audit log."""

    query:        QueryVehicle
    result:       OancaPriceObject
    result_hash:  str
    evaluated_at: str
    narration:    Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query.to_dict(),
            "result": self.result.to_dict(),
            "result_hash": self.result_hash,
            "evaluated_at": self.evaluated_at,
            "narration": self.narration,
        }


def write_audit_log(records: List[AuditRecord], path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec.to_dict(), sort_keys=True) + "\n")
