"""Quick API verification for the scenario runner."""
import os
import sys

import requests

base = os.environ.get("SCENARIO_RUNNER_URL", "http://127.0.0.1:5050")

tests = [
    ("Scenarios loaded", "GET", "/api/scenarios", None, lambda r: len(r.json()) == 6),
    ("Thin data (1 comp = NEED_PICS)", "POST", "/api/run-test", {
        "scenario": "thin_data",
        "params": {"comp_count": 1, "owe": 15000, "expected_verdict": "NEED_PICS"}
    }, lambda r: r.json()["passed"]),
    ("Thin data (3 comps = priced)", "POST", "/api/run-test", {
        "scenario": "thin_data",
        "params": {"comp_count": 3, "owe": 15000, "expected_verdict": "HARD_WORK"}
    }, lambda r: r.json()["passed"] and r.json()["result"]["allow_price"]),
    ("Fast seller (BUY)", "POST", "/api/run-test", {
        "scenario": "fast_seller",
        "params": {"owes": "10000,10500,11000,11500,12000", "days": 15, "gross": 3000,
                   "months_ago": 2, "expected_verdict": "BUY"}
    }, lambda r: r.json()["passed"] and r.json()["result"]["buy_high"] == 12000),
    ("Known hard work (Cruze)", "POST", "/api/run-test", {
        "scenario": "known_hard_work",
        "params": {"make": "Holden", "model": "Cruze", "comp_count": 4, "owe": 9000,
                   "expected_demand": "hard_work"}
    }, lambda r: r.json()["passed"]),
    ("Forced escalation (Silverado 2500)", "POST", "/api/run-test", {
        "scenario": "forced_escalation",
        "params": {"make": "Chevrolet", "model": "Silverado 2500", "year": 2020,
                   "comp_count": 2, "expect_escalation": "yes"}
    }, lambda r: r.json()["passed"]),
    ("Heavy-duty floor (Ram 3500)", "POST", "/api/run-test", {
        "scenario": "heavy_duty_floor",
        "params": {"make": "Ram", "model": "3500", "year": 2019, "owe": 40000,
                   "expect_floor": "yes"}
    }, lambda r: r.json()["passed"]),
    ("Custom pool", "POST", "/api/run-test", {
        "scenario": "custom_pool",
        "params": {
            "query": {"make": "Toyota", "model": "Corolla", "year": 2019},
            "records": [
                {"make": "Toyota", "model": "Corolla", "year": 2019, "total_cost": 15000,
                 "sale_date": "2025-12-01"},
            ],
            "assertions": [
                {"field": "verdict", "operator": "==", "expected": "NEED_PICS"},
                {"field": "n_comps", "operator": "==", "expected": 1},
            ],
        }
    }, lambda r: r.json()["passed"]),
    ("Frontend HTML", "GET", "/", None,
     lambda r: "OANCA Scenario Runner" in r.text and len(r.text) > 5000),
]

print("=" * 60)
ok = 0
for name, method, path, body, check in tests:
    try:
        if method == "GET":
            r = requests.get(base + path, timeout=10)
        else:
            r = requests.post(base + path, json=body, timeout=10)
        passed = check(r)
        status = "PASS" if passed else "FAIL"
        detail = ""
        if not passed and method == "POST":
            detail = f" | {r.text[:120]}"
    except Exception as exc:
        status = "ERR"
        detail = f" | {exc}"
        passed = False
    print(f"  {'✅' if passed else '❌'} [{status}] {name}{detail}")
    if passed:
        ok += 1

print(f"\n  {ok}/{len(tests)} passed")
print("=" * 60)
if ok != len(tests):
    sys.exit(1)
