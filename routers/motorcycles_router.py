"""
Motorcycles Router - motorcycles visible to the user and their setup sessions
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_active_subscription
from backend.utils.responses import success_response
from database import get_db
from database_models import User
from models.motorcycle import MotorcycleRequest, SessionRequest
from services.motorcycle_service import MotorcycleService, serialize_motorcycle, serialize_session
from services.usage_service import UsageService
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

motorcycles_router = APIRouter(prefix="/api/motorcycles", tags=["motorcycles"])
sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@motorcycles_router.get("")
async def list_motorcycles(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    motorcycles = await MotorcycleService(db).list_visible(user)
    return success_response({"motorcycles": motorcycles})


@motorcycles_router.post("")
async def save_motorcycle(
    request: MotorcycleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    motorcycle = await MotorcycleService(db).save(user, request)
    await db.commit()
    return success_response({"motorcycle": serialize_motorcycle(motorcycle, True)}, "Motorcycle saved")


@motorcycles_router.delete("/{motorcycle_id}")
async def delete_motorcycle(motorcycle_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await MotorcycleService(db).delete(user, motorcycle_id)
    await db.commit()
    return success_response({"id": motorcycle_id}, "Motorcycle deleted")


@sessions_router.post("")
async def save_session(
    request: SessionRequest,
    user: User = Depends(require_active_subscription),
    db: AsyncSession = Depends(get_db),
):
    """
    Save a setup sheet. This is the billable action: usage is recorded only
    after the session itself has been committed.
    """
    race_session = await MotorcycleService(db).save_session(user, request)
    await db.commit()
    data = {"session": serialize_session(race_session)}
    user_id = user.id

    usage_recorded = await UsageService(db).record_usage(user)
    log_endpoint_event("/sessions/save", user_id, "success", {"session_id": data["session"]["id"], "usage_recorded": usage_recorded})
    return success_response(data, "Session saved successfully")


@sessions_router.get("")
async def list_sessions(
    event_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sessions = await MotorcycleService(db).list_sessions(user, event_id)
    return success_response({"sessions": [serialize_session(s) for s in sessions]})
