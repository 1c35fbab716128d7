#!/usr/bin/env python3
"""
Smoke check for a running Matchday API.

Checks:
  1. /health returns 200 + status ok
  2. /v1/quota returns the daily budget and per-credential usage
  3. /v1/matches?date=YYYY-MM-DD returns a sync result with a known source
  4. A second /v1/matches call for the same date spends no quota
  5. /v1/history lists analysed dates

Usage:
  python backend/scripts/smoke_check.py [BASE_URL]

  BASE_URL defaults to http://localhost:8000.
"""
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"

BASE = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
KNOWN_SOURCES = {"cache", "secondary-feed", "primary-provider", "empty"}

passed = 0
failed = 0
warnings = 0


def _get_json(url: str, timeout: int = 30) -> dict | list | None:
    try:
        req = Request(url, headers={"Accept": "application/json"})
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read())
    except HTTPError as e:
        return {"__http_error__": e.code, "__url__": url}
    except (URLError, TimeoutError, OSError) as e:
        return {"__network_error__": str(e), "__url__": url}


def ok(msg: str) -> None:
    global passed
    passed += 1
    print(f"  {GREEN}PASS{RESET}  {msg}")


def fail(msg: str) -> None:
    global failed
    failed += 1
    print(f"  {RED}FAIL{RESET}  {msg}")


def warn(msg: str) -> None:
    global warnings
    warnings += 1
    print(f"  {YELLOW}WARN{RESET}  {msg}")


def main() -> None:
    print("\n=== Matchday Smoke Check ===")
    print(f"Backend: {BASE}\n")

    print("[1] Health check")
    data = _get_json(f"{BASE}/health")
    if isinstance(data, dict) and data.get("status") == "ok":
        ok("/health returns status=ok")
    else:
        fail(f"/health unexpected: {data}")

    print("[2] Quota")
    quota = _get_json(f"{BASE}/v1/quota")
    if isinstance(quota, dict) and "remaining" in quota:
        ok(f"/v1/quota: used={quota.get('used')} remaining={quota.get('remaining')} limit={quota.get('limit')}")
        if quota.get("key_count") == 0:
            warn("No primary credentials configured; only cached data can be served")
    else:
        fail(f"/v1/quota unexpected: {quota}")

    print("[3] Matches")
    today_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    first = _get_json(f"{BASE}/v1/matches?date={today_str}")
    if isinstance(first, dict) and first.get("source") in KNOWN_SOURCES:
        ok(f"/v1/matches: {len(first.get('matches', []))} fixtures from {first['source']}")
        if first["source"] == "empty":
            warn("No fixtures served; quota may be exhausted with a cold cache")
    else:
        fail(f"/v1/matches unexpected: {first}")

    print("[4] Repeat read spends no quota")
    second = _get_json(f"{BASE}/v1/matches?date={today_str}")
    if isinstance(second, dict) and second.get("api_calls") == 0:
        ok(f"second /v1/matches served from {second.get('source')} with 0 upstream calls")
    elif isinstance(second, dict):
        fail(f"second /v1/matches made {second.get('api_calls')} upstream calls")
    else:
        fail(f"/v1/matches unexpected: {second}")

    print("[5] History")
    history = _get_json(f"{BASE}/v1/history")
    if isinstance(history, dict) and "dates" in history:
        ok(f"/v1/history: {len(history['dates'])} analysed dates")
    else:
        fail(f"/v1/history unexpected: {history}")

    print(f"\n=== Results: {GREEN}{passed} passed{RESET}, {RED}{failed} failed{RESET}, {YELLOW}{warnings} warnings{RESET} ===\n")
    sys.exit(1 if failed > 0 else 0)


if __name__ == "__main__":
    main()
