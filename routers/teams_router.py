"""
Teams Router - team creation, membership and invitations
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response
from database import get_db
from database_models import User
from models.team import CancelInvitationRequest, CreateTeamRequest, InvitationTokenRequest, InviteMemberRequest
from services.team_service import TeamService, serialize_team
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

teams_router = APIRouter(prefix="/api/teams", tags=["teams"])


@teams_router.post("")
async def create_team(
    request: CreateTeamRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    team = await TeamService(db).create_team(user, request.name, request.description)
    await db.commit()
    log_endpoint_event("/teams/create", user.id, "success", {"team_id": team.id})
    return success_response({"team": serialize_team(team)}, "Team created successfully", status=201)


@teams_router.get("")
async def get_user_teams(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return success_response(await TeamService(db).get_user_teams(user))


# Public: the invitee may not be logged in yet
@teams_router.post("/invitations/validate")
async def validate_invitation(request: InvitationTokenRequest, db: AsyncSession = Depends(get_db)):
    invitation = await TeamService(db).validate_invitation(request.token)
    return success_response({"invitation": invitation}, "Invitation is valid")


@teams_router.post("/invitations/accept")
async def accept_invitation(
    request: InvitationTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    team = await TeamService(db).accept_invitation(user, request.token)
    log_endpoint_event("/teams/invitations/accept", user.id, "success", {"team_id": team.id})
    return success_response({"team": {"id": team.id, "name": team.name}}, f'Successfully joined team "{team.name}"')


@teams_router.get("/{team_id}/members")
async def get_team_members(team_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return success_response(await TeamService(db).get_team_members(user, team_id))


@teams_router.post("/{team_id}/invitations")
async def invite_member(
    team_id: int,
    request: InviteMemberRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await TeamService(db).invite_member(user, team_id, request.email, request.role)
    log_endpoint_event("/teams/invitations", user.id, "success", {"team_id": team_id, "email_sent": result["emailSent"]})
    message = "Invitation sent successfully" if result["emailSent"] else "Invitation created but email could not be sent"
    return success_response(result, message, status=201)


@teams_router.delete("/{team_id}/invitations")
async def cancel_invitation(
    team_id: int,
    request: CancelInvitationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    email = await TeamService(db).cancel_invitation(user, team_id, request.email)
    await db.commit()
    return success_response({"email": email}, "Invitation cancelled")


@teams_router.delete("/{team_id}/members/{user_id}")
async def remove_member(
    team_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TeamService(db).remove_member(user, team_id, user_id)
    await db.commit()
    log_endpoint_event("/teams/members/remove", user.id, "success", {"team_id": team_id, "removed": user_id})
    return success_response({"teamId": team_id, "userId": user_id}, "Member removed from team")


@teams_router.post("/{team_id}/leave")
async def leave_team(team_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await TeamService(db).leave_team(user, team_id)
    await db.commit()
    return success_response({"teamId": team_id}, "You have left the team")
