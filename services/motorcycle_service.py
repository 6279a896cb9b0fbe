"""
Motorcycle Service - motorcycle ownership rules and setup session persistence
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.motorcycle import MotorcycleRepository
from crud.team import TeamRepository
from database_models import Motorcycle, RaceSession, User
from errors import InsufficientRole, NotFound
from models.motorcycle import MotorcycleRequest, SessionRequest
from utils.shared_utils import isoformat_or_none

logger = logging.getLogger(__name__)


def serialize_motorcycle(motorcycle: Motorcycle, can_edit: bool) -> dict:
    return {
        "id": motorcycle.id,
        "make": motorcycle.make,
        "model": motorcycle.model,
        "class": motorcycle.bike_class,
        "number": motorcycle.number,
        "variant": motorcycle.variant,
        "userId": motorcycle.user_id,
        "teamId": motorcycle.team_id,
        "canEdit": can_edit,
        "createdAt": isoformat_or_none(motorcycle.created_at),
        "updatedAt": isoformat_or_none(motorcycle.updated_at),
    }


def serialize_session(race_session: RaceSession) -> dict:
    data = {
        column.name: getattr(race_session, column.key)
        for column in RaceSession.__table__.columns
        if column.name not in ("created_at", "updated_at", "weather_captured_at")
    }
    data["weather_captured_at"] = isoformat_or_none(race_session.weather_captured_at)
    data["updated_at"] = isoformat_or_none(race_session.updated_at)
    return data


def can_edit_motorcycle(motorcycle: Motorcycle, user_id: int, active_team_ids: List[int]) -> bool:
    """
    Individual owner, or any active member of the owning team regardless of
    role. Legacy rows with no owner are read-only.
    """
    if motorcycle.user_id is not None and motorcycle.user_id == user_id:
        return True
    return motorcycle.team_id is not None and motorcycle.team_id in active_team_ids


class MotorcycleService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.motorcycles = MotorcycleRepository(db)
        self.teams = TeamRepository(db)

    async def _editable(self, user: User, motorcycle_id: str) -> Motorcycle:
        motorcycle = await self.motorcycles.get(motorcycle_id)
        if not motorcycle:
            raise NotFound("Motorcycle not found")
        team_ids = await self.teams.active_team_ids_for_user(user.id)
        if not can_edit_motorcycle(motorcycle, user.id, team_ids):
            raise InsufficientRole("You do not have permission to edit this motorcycle")
        return motorcycle

    async def _require_team_member(self, user: User, team_id: int) -> None:
        if not await self.teams.get_membership(team_id, user.id, active_only=True):
            raise InsufficientRole("You are not an active member of this team")

    async def list_visible(self, user: User) -> List[dict]:
        team_ids = await self.teams.active_team_ids_for_user(user.id)
        return [
            serialize_motorcycle(motorcycle, can_edit_motorcycle(motorcycle, user.id, team_ids))
            for motorcycle in await self.motorcycles.list_visible(user.id, team_ids)
        ]

    async def save(self, user: User, request: MotorcycleRequest) -> Motorcycle:
        """Create a motorcycle, or update one the user may edit."""
        existing = await self.motorcycles.get(request.id) if request.id else None

        if existing:
            motorcycle = await self._editable(user, existing.id)
            if request.team_id is not None and request.team_id != motorcycle.team_id:
                await self._require_team_member(user, request.team_id)
                motorcycle.team_id = request.team_id
                motorcycle.user_id = None
        else:
            motorcycle = Motorcycle(id=request.id or uuid.uuid4().hex)
            if request.team_id is not None:
                await self._require_team_member(user, request.team_id)
                motorcycle.team_id = request.team_id
            else:
                motorcycle.user_id = user.id

        motorcycle.make = request.make
        motorcycle.model = request.model
        motorcycle.bike_class = request.bike_class
        motorcycle.number = request.number
        motorcycle.variant = request.variant

        motorcycle = await self.motorcycles.save(motorcycle)
        logger.info(f"Motorcycle {motorcycle.id} {'updated' if existing else 'created'} by user {user.id}")
        return motorcycle

    async def delete(self, user: User, motorcycle_id: str) -> None:
        motorcycle = await self._editable(user, motorcycle_id)
        await self.motorcycles.delete_with_sessions(motorcycle)
        logger.info(f"Motorcycle {motorcycle_id} deleted by user {user.id}")

    # --------------------------------------------------------------- sessions

    async def save_session(self, user: User, request: SessionRequest) -> RaceSession:
        """
        Upsert the setup sheet keyed by event, motorcycle and session.
        Entitlement is checked by the caller before this runs.
        """
        await self._editable(user, request.motorcycle_id)

        session_id = f"{request.event}_{request.motorcycle_id}_{request.session}"
        race_session = await self.motorcycles.get_session(session_id)
        if race_session is None:
            race_session = RaceSession(
                id=session_id,
                event_id=request.event,
                motorcycle_id=request.motorcycle_id,
                session_type=request.session,
            )
        for field, value in request.setup_fields().items():
            setattr(race_session, field, value)

        return await self.motorcycles.save_session(race_session)

    async def list_sessions(self, user: User, event_id: Optional[str] = None) -> List[RaceSession]:
        team_ids = await self.teams.active_team_ids_for_user(user.id)
        visible = await self.motorcycles.list_visible(user.id, team_ids)
        return await self.motorcycles.list_sessions([m.id for m in visible], event_id)
