"""Locust burst test: per-IP sliding window rate limiter validation.

Validates the Redis sliding window limiter against bursty clients:

Validation checklist:
  1. BurstClient: the first rate_limit_read_per_window (default 120) reads of
     the public vote tally succeed, then 429 responses appear.
  2. BurstClient: every 429 carries a Retry-After header (the window length).
  3. RecoveringClient: after a 429, waiting one full window (60s) empties the
     sorted set and requests are admitted again.
  4. Distinct client IPs: each simulated user sends its own X-Forwarded-For
     address and gets an independent window (no cross-user interference).

Run command:
    locust -f tests/load/locustfile_rate_limit.py \\
      --host http://localhost:8000 \\
      --users 5 --spawn-rate 5 --run-time 90s \\
      --headless --only-summary --csv=results/rate_limit

    # Interpretation:
    # - BurstClient 429 count should be > 0 (window exhaustion confirmed)
    # - BurstClient 200 count should be ~120 per user per window
    # - RecoveringClient should log successes after its wait phase

Prerequisites:
    1. Start stack: docker compose up
    2. mkdir -p results/
    3. The API must trust X-Forwarded-For (it uses the first hop)
"""

import itertools
import time

from locust import HttpUser, constant, task

_ip_counter = itertools.count(1)

VOTES_PATH = "/api/v1/items/1/votes"


def next_client_ip() -> str:
    n = next(_ip_counter)
    return f"198.18.{n // 256}.{n % 256}"


def accept_ok_or_limited(resp) -> bool:
    """Mark 200 and 429 as expected; 429 must carry Retry-After. Returns True on 429."""
    if resp.status_code == 200:
        resp.success()
        return False
    if resp.status_code == 429:
        if resp.headers.get("Retry-After") is None:
            resp.failure("429 response missing Retry-After header")
        else:
            resp.success()
        return True
    resp.failure(f"Unexpected status {resp.status_code}")
    return False


class BurstClient(HttpUser):
    """Reads the vote tally as fast as possible from one client IP."""

    wait_time = constant(0)

    def on_start(self) -> None:
        self.headers = {"X-Forwarded-For": next_client_ip()}
        self.success_count = 0
        self.rate_limited_count = 0

    @task
    def read_burst(self) -> None:
        with self.client.get(
            VOTES_PATH,
            headers=self.headers,
            catch_response=True,
            name=f"{VOTES_PATH} [burst]",
        ) as resp:
            if accept_ok_or_limited(resp):
                self.rate_limited_count += 1
            elif resp.status_code == 200:
                self.success_count += 1


class RecoveringClient(HttpUser):
    """Exhausts its window, waits one window length, then expects admission again."""

    wait_time = constant(0)

    def on_start(self) -> None:
        self.headers = {"X-Forwarded-For": next_client_ip()}
        self._phase = "exhaust"  # exhaust -> wait -> verify -> done
        self._retry_after = 60

    @task
    def recover(self) -> None:
        if self._phase == "done":
            time.sleep(5)
            return

        if self._phase == "wait":
            time.sleep(self._retry_after + 1)
            self._phase = "verify"
            return

        with self.client.get(
            VOTES_PATH,
            headers=self.headers,
            catch_response=True,
            name=f"{VOTES_PATH} [recover-{self._phase}]",
        ) as resp:
            if self._phase == "exhaust":
                if accept_ok_or_limited(resp):
                    self._retry_after = int(resp.headers.get("Retry-After", "60"))
                    self._phase = "wait"
            elif resp.status_code == 200:
                resp.success()
                self._phase = "done"
            else:
                resp.failure(f"still limited after a full window: {resp.status_code}")
                self._phase = "done"
