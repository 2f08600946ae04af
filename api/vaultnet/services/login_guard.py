"""Failed-login throttling per email and per client IP.

Sign-in itself happens at the identity provider. Clients ask this service
whether another attempt is allowed before signing in, and report the outcome
afterwards. Only failed attempts inside the rolling window count.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import structlog

from vaultnet.errors import RateLimited

log = structlog.get_logger()


class LoginAttemptStore(Protocol):
    async def count_failed_for_email(self, email: str, since: datetime) -> int: ...

    async def count_failed_for_ip(self, ip_address: str, since: datetime) -> int: ...

    async def add(self, email: str, ip_address: str, successful: bool) -> None: ...


@dataclass(frozen=True)
class LoginCheck:
    allowed: bool
    remaining_attempts: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoginGuard:
    def __init__(
        self,
        store: LoginAttemptStore,
        window_minutes: int = 15,
        max_failed_per_email: int = 5,
        max_failed_per_ip: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.window = timedelta(minutes=window_minutes)
        self.window_minutes = window_minutes
        self.max_failed_per_email = max_failed_per_email
        self.max_failed_per_ip = max_failed_per_ip
        self.clock = clock

    async def check(self, email: str, ip_address: str) -> LoginCheck:
        """Raise RateLimited if either the email or the IP is over its failure cap."""
        email = email.lower()
        since = self.clock() - self.window
        email_failures = await self.store.count_failed_for_email(email, since)
        ip_failures = await self.store.count_failed_for_ip(ip_address, since)

        if email_failures >= self.max_failed_per_email:
            log.warning("login_throttled", reason="email", failures=email_failures)
            raise RateLimited(
                f"{email_failures} failed attempts for email",
                message=(
                    "Too many failed attempts. "
                    f"Please try again in {self.window_minutes} minutes."
                ),
                retry_after=int(self.window.total_seconds()),
            )

        if ip_failures >= self.max_failed_per_ip:
            log.warning("login_throttled", reason="ip", ip_address=ip_address, failures=ip_failures)
            raise RateLimited(
                f"{ip_failures} failed attempts from {ip_address}",
                message="Too many failed attempts from this location. Please try again later.",
                retry_after=int(self.window.total_seconds()),
            )

        return LoginCheck(
            allowed=True,
            remaining_attempts=self.max_failed_per_email - email_failures,
        )

    async def record(self, email: str, ip_address: str, successful: bool) -> None:
        await self.store.add(email.lower(), ip_address, successful)
        log.info("login_attempt_recorded", ip_address=ip_address, successful=successful)
