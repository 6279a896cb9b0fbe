"""
MotorcycleRepository and session persistence
"""

from typing import List, Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Motorcycle, RaceSession


class MotorcycleRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, motorcycle_id: str) -> Optional[Motorcycle]:
        return await self.db.get(Motorcycle, motorcycle_id)

    async def list_visible(self, user_id: int, team_ids: List[int]) -> List[Motorcycle]:
        """Owned by the user, owned by one of team_ids, or unowned legacy rows."""
        conditions = [
            Motorcycle.user_id == user_id,
            and_(Motorcycle.user_id.is_(None), Motorcycle.team_id.is_(None)),
        ]
        if team_ids:
            conditions.append(Motorcycle.team_id.in_(team_ids))
        result = await self.db.execute(
            select(Motorcycle).where(or_(*conditions)).order_by(Motorcycle.created_at.desc())
        )
        return list(result.scalars().all())

    async def save(self, motorcycle: Motorcycle) -> Motorcycle:
        self.db.add(motorcycle)
        await self.db.flush()
        await self.db.refresh(motorcycle)
        return motorcycle

    async def delete_with_sessions(self, motorcycle: Motorcycle) -> None:
        await self.db.execute(delete(RaceSession).where(RaceSession.motorcycle_id == motorcycle.id))
        await self.db.execute(delete(Motorcycle).where(Motorcycle.id == motorcycle.id))
        await self.db.flush()

    # --------------------------------------------------------------- sessions

    async def get_session(self, session_id: str) -> Optional[RaceSession]:
        return await self.db.get(RaceSession, session_id)

    async def save_session(self, race_session: RaceSession) -> RaceSession:
        self.db.add(race_session)
        await self.db.flush()
        await self.db.refresh(race_session)
        return race_session

    async def list_sessions(self, motorcycle_ids: List[str], event_id: Optional[str] = None) -> List[RaceSession]:
        if not motorcycle_ids:
            return []
        query = select(RaceSession).where(RaceSession.motorcycle_id.in_(motorcycle_ids))
        if event_id:
            query = query.where(RaceSession.event_id == event_id)
        result = await self.db.execute(query.order_by(RaceSession.updated_at.desc()))
        return list(result.scalars().all())
