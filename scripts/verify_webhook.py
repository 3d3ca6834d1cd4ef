#!/usr/bin/env python3
"""Smoke-check a running Mockhook server: create, trigger, inspect, clean up."""
import json
import os
import sys
import urllib.error
import urllib.request
from typing import Optional

API_BASE = os.getenv("API_BASE", "http://localhost:8080").rstrip("/")
HEADERS = {"Content-Type": "application/json"}
WEBHOOK_PATH = os.getenv("VERIFY_WEBHOOK_PATH", "test-webhook-1")


def request(method: str, path: str, body: Optional[dict] = None, expected: tuple[int, ...] = (200,)):
    url = f"{API_BASE}{path}"
    payload = None if body is None else json.dumps(body).encode("utf-8")
    req = urllib.request.Request(url, data=payload, method=method)
    for k, v in HEADERS.items():
        req.add_header(k, v)

    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            raw = resp.read().decode("utf-8")
            data = json.loads(raw) if raw else {}
            if resp.status not in expected:
                raise RuntimeError(f"Unexpected status {resp.status} for {method} {path}: {data}")
            return resp.status, data
    except urllib.error.HTTPError as exc:
        raw = exc.read().decode("utf-8")
        data = json.loads(raw) if raw else {}
        if exc.code in expected:
            return exc.code, data
        raise RuntimeError(f"HTTP {exc.code} for {method} {path}: {data}") from exc


def main() -> int:
    print("Creating webhook...")
    _, webhook = request(
        "POST",
        "/api/v1/webhooks",
        {
            "path": WEBHOOK_PATH,
            "method": "POST",
            "responseStatus": 201,
            "responseData": json.dumps({"success": True, "message": "Hello"}),
        },
        expected=(201,),
    )
    print(f"Webhook created: {webhook['id']}")

    try:
        _, webhooks = request("GET", "/api/v1/webhooks")
        if not any(item["id"] == webhook["id"] for item in webhooks):
            print("Webhook not found in list", file=sys.stderr)
            return 1

        print("Triggering webhook...")
        _, reply = request("POST", f"/webhook/{WEBHOOK_PATH}", {"foo": "bar"}, expected=(201,))
        print(f"Trigger response: {reply}")

        _, details = request("GET", f"/api/v1/webhooks/{webhook['id']}")
        if not details["requests"]:
            print("No history recorded", file=sys.stderr)
            return 1
        if details["requests"][0]["body"].get("foo") != "bar":
            print(f"Request body mismatch: {details['requests'][0]['body']}", file=sys.stderr)
            return 1
        print("History verified successfully")
    finally:
        request("DELETE", f"/api/v1/webhooks/{webhook['id']}")
        print("Cleaned up")

    return 0


if __name__ == "__main__":
    sys.exit(main())
