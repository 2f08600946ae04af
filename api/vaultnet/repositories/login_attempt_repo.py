from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vaultnet.database import store_errors
from vaultnet.models.login_attempt import LoginAttempt


class LoginAttemptRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_failed_for_email(self, email: str, since: datetime) -> int:
        with store_errors("login_attempts.count_failed_for_email"):
            result = await self.session.execute(
                select(func.count())
                .select_from(LoginAttempt)
                .where(
                    LoginAttempt.email == email,
                    LoginAttempt.successful.is_(False),
                    LoginAttempt.attempted_at >= since,
                )
            )
            return result.scalar_one()

    async def count_failed_for_ip(self, ip_address: str, since: datetime) -> int:
        with store_errors("login_attempts.count_failed_for_ip"):
            result = await self.session.execute(
                select(func.count())
                .select_from(LoginAttempt)
                .where(
                    LoginAttempt.ip_address == ip_address,
                    LoginAttempt.successful.is_(False),
                    LoginAttempt.attempted_at >= since,
                )
            )
            return result.scalar_one()

    async def add(self, email: str, ip_address: str, successful: bool) -> None:
        with store_errors("login_attempts.add"):
            self.session.add(
                LoginAttempt(email=email, ip_address=ip_address, successful=successful)
            )
            await self.session.commit()
