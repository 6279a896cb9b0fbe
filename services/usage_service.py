"""
Usage accounting for billable actions.

Recording usage is advisory: it runs after the gated action has been
committed, and a failed increment is logged and swallowed so the action
still completes.
"""
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import User

logger = logging.getLogger(__name__)


class UsageService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _increment(self, user_id: int) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(usage_count=User.usage_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def record_usage(self, user: User) -> bool:
        """
        Increment the user's usage counter by one.

        Admins are exempt. Must only be called once the action has been
        permitted and committed. The increment runs in a savepoint, so a
        failure leaves the caller's loaded objects usable.

        Returns:
            True if the counter was incremented, False if skipped or failed
        """
        if user.is_admin:
            return False

        user_id = user.id
        try:
            async with self.db.begin_nested():
                await self._increment(user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Usage increment failed for user {user_id}: {e}")
            return False

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Usage commit failed for user {user_id}: {e}")
            await self.db.rollback()
            return False
        return True
