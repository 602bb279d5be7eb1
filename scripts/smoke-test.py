#!/usr/bin/env python3
"""
Smoke test for a deployed OneShot API.

Checks that secrets are destroyed once their view budget is spent. Uses only
the standard library. A failing step prints its name with the HTTP status
and the start of the response body.

Steps:
1. GET /health answers 200
2. POST /api/v1/secrets stores a secret with viewLimit 2
3. Two reveals return the text, the third answers 404
4. Revealing an id that was never issued answers 404
5. Two simultaneous reveals of a single-view secret: exactly one gets 200

Usage:
    ./scripts/smoke-test.py https://staging.example.com
    ./scripts/smoke-test.py https://staging.example.com --health-only
"""

import argparse
import json
import secrets
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

DEFAULT_TIMEOUT_SECONDS = 30.0
BODY_PREVIEW_CHARS = 200


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body[:BODY_PREVIEW_CHARS]}")
        self.status_code = status_code
        self.body = body


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def request(
        self, method: str, path: str, data: dict[str, Any] | None = None
    ) -> tuple[int, str]:
        body = json.dumps(data).encode() if data is not None else None
        request = Request(
            f"{self.base_url}{path}",
            data=body,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                return response.getcode(), response.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            return e.code, error_body
        except (URLError, TimeoutError) as e:
            raise RuntimeError(f"Network error on {method} {path}: {e}") from e

    def api_json(
        self, method: str, path: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        status, body = self.request(method, f"/api/v1{path}", data)
        if status < 200 or status >= 300:
            raise ApiError(status, body)
        return json.loads(body)

    def expect_status(self, method: str, path: str, expected: int) -> None:
        status, body = self.request(method, f"/api/v1{path}")
        if status != expected:
            raise ApiError(status, f"expected {expected}, got body: {body}")


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    for attempt in range(1, max_attempts + 1):
        try:
            status, _ = client.request("GET", "/health")
            if status == 200:
                return True
        except RuntimeError as e:
            log(f"  health attempt {attempt}: {e}")
        time.sleep(delay)
    return False


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int
    text: str = field(default_factory=lambda: f"smoke-{secrets.token_hex(8)}")
    secret_id: str | None = None

    def require_secret_id(self) -> str:
        if not self.secret_id:
            raise RuntimeError("Missing secret_id (step ordering bug)")
        return self.secret_id


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_create_secret(ctx: SmokeContext) -> None:
    data = ctx.client.api_json(
        "POST", "/secrets", {"text": ctx.text, "viewLimit": 2, "expirationMinutes": 10}
    )
    ctx.secret_id = data["id"]
    log(f"  created secret {ctx.secret_id}")


def step_reveal_budget(ctx: SmokeContext) -> None:
    secret_id = ctx.require_secret_id()
    for view in (1, 2):
        data = ctx.client.api_json("GET", f"/secrets/{secret_id}")
        if data.get("text") != ctx.text:
            raise RuntimeError(f"View {view} returned unexpected text")
    ctx.client.expect_status("GET", f"/secrets/{secret_id}", 404)


def step_unknown_id(ctx: SmokeContext) -> None:
    ctx.client.expect_status("GET", f"/secrets/{secrets.token_hex(16)}", 404)


def step_concurrent_reveal(ctx: SmokeContext) -> None:
    secret_id = ctx.client.api_json("POST", "/secrets", {"text": ctx.text})["id"]
    barrier = threading.Barrier(2)
    statuses: list[int] = []
    lock = threading.Lock()

    def reveal() -> None:
        barrier.wait()
        status, _ = ctx.client.request("GET", f"/api/v1/secrets/{secret_id}")
        with lock:
            statuses.append(status)

    threads = [threading.Thread(target=reveal) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    if sorted(statuses) != [200, 404]:
        raise RuntimeError(f"Expected exactly one winner, got statuses {statuses}")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    overall_start = time.time()
    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            log(f"FAILED: {step.name} ({time.time() - start:.2f}s) - {e}")
            return False
        log(f"OK: {step.name} ({time.time() - start:.2f}s)")
    log(f"Total: {time.time() - overall_start:.2f}s")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="OneShot smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://staging.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only check /health, skip the secret flow",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    client = HttpClient(base_url=args.base_url.rstrip("/"), timeout_seconds=args.timeout)
    ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

    steps = [Step("health", step_health)]
    if args.health_only:
        log("Health-only mode: skipping the secret flow")
    else:
        steps.extend(
            [
                Step("create secret", step_create_secret),
                Step("reveal budget", step_reveal_budget),
                Step("unknown id", step_unknown_id),
                Step("concurrent reveal", step_concurrent_reveal),
            ]
        )

    return 0 if run_steps(ctx, steps) else 1


if __name__ == "__main__":
    sys.exit(main())
