#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import sys
import time

from urllib.error import URLError
from urllib.request import Request, urlopen


def main() -> int:
    base_url = os.getenv("AYUDOST_API_URL", "http://localhost:8000").rstrip("/")
    question = os.getenv("AYUDOST_SMOKE_QUESTION", "What are the benefits of Ashwagandha?")
    headers = {"Content-Type": "application/json"}
    if os.getenv("AYUDOST_API_KEY"):
        headers["X-API-Key"] = os.environ["AYUDOST_API_KEY"]
    try:
        with urlopen(f"{base_url}/healthz", timeout=5) as r:
            print("/healthz:", r.read().decode("utf-8"))
        # Give the service a moment to finish boot
        time.sleep(0.5)
        with urlopen(f"{base_url}/healthz/ready", timeout=5) as r2:
            print("/healthz/ready:", r2.read().decode("utf-8"))
        body = json.dumps({"query": question}).encode("utf-8")
        with urlopen(Request(f"{base_url}/query", data=body, headers=headers), timeout=120) as r3:
            payload = json.loads(r3.read().decode("utf-8"))
    except (URLError, OSError, ValueError) as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1
    steps = ", ".join(f"{s['name']}={s['durationMs']}ms" for s in payload["steps"] if "durationMs" in s)
    print("/query steps:", steps)
    print("/query answer:", payload["answer"][:200])
    print("Smoke test passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
