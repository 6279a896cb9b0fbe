"""
Team Service - team creation, membership management and invitations
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import INVITATION_EXPIRY_DAYS, PLAN_PREMIER
from crud.team import TeamRepository
from crud.user import UserRepository
from database_models import Team, TeamInvitation, TeamMembership, User
from errors import (
    AlreadyMember,
    CannotRemoveOwner,
    EmailMismatch,
    EmailNotVerified,
    EntitlementRequired,
    InsufficientRole,
    InvitationAcceptFailed,
    InvitationAlreadyProcessed,
    InvitationExists,
    InvitationExpired,
    NotFound,
    TeamInactive,
    TeamLimitExceeded,
    UseLeaveTeam,
)
from services.email_service import EmailService
from services.entitlement_service import has_premier_entitlement
from utils.shared_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

MANAGER_ROLES = ("owner", "admin")


def serialize_team(team: Team) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "ownerId": team.owner_id,
        "subscriptionPlan": team.subscription_plan,
        "isActive": team.is_active,
        "createdAt": isoformat_or_none(team.created_at),
    }


class TeamService:
    """
    Service class for team ownership and membership rules.

    Permission checks raise errors from errors.py; callers map them to
    HTTP responses.
    """

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.teams = TeamRepository(db)
        self.users = UserRepository(db)
        self.email_service = email_service or EmailService()

    async def _require_manager(self, team_id: int, user_id: int, action: str) -> TeamMembership:
        membership = await self.teams.get_membership(team_id, user_id, active_only=True)
        if not membership:
            raise InsufficientRole("You are not a member of this team")
        if membership.role not in MANAGER_ROLES:
            raise InsufficientRole(f"Only team owners and admins can {action}")
        return membership

    async def _require_active_team(self, team_id: int) -> Team:
        team = await self.teams.get_team(team_id)
        if not team:
            raise NotFound("Team not found")
        if not team.is_active:
            raise TeamInactive()
        return team

    # --------------------------------------------------------------- teams

    async def create_team(self, user: User, name: str, description: Optional[str] = None) -> Team:
        """
        Create a team owned by `user`.

        Requires admin, or an active premier subscription that has not run
        past its end date. Non-admin owners may own one active team.
        """
        now = utcnow()
        is_admin = bool(user.is_admin)

        if not is_admin and not has_premier_entitlement(user, now):
            message = "Premier subscription or Admin access required to create teams"
            if user.subscription_plan == PLAN_PREMIER:
                message = "Subscription expired. Please renew to create teams."
            raise EntitlementRequired(
                message,
                error="Entitlement required",
                currentPlan=user.subscription_plan,
                status=user.subscription_status,
                isAdmin=is_admin,
            )

        if not is_admin:
            existing = await self.teams.get_active_owned_team(user.id)
            if existing:
                raise TeamLimitExceeded(existingTeamId=existing.id)

        # Admins get premier-level access for their teams
        team_plan = PLAN_PREMIER if is_admin else user.subscription_plan
        team = await self.teams.create_team_with_owner(
            name=name.strip(),
            description=(description or "").strip() or None,
            owner_id=user.id,
            subscription_plan=team_plan,
            now=now,
        )
        logger.info(f"Team {team.id} created by user {user.id}")
        return team

    async def get_user_teams(self, user: User) -> dict:
        teams = []
        for team, membership, owner, member_count in await self.teams.list_user_teams(user.id):
            data = serialize_team(team)
            data.update({
                "role": membership.role,
                "membershipStatus": membership.status,
                "joinedAt": isoformat_or_none(membership.joined_at),
                "ownerName": owner.name,
                "ownerEmail": owner.email,
                "memberCount": member_count,
            })
            teams.append(data)

        invitations = [
            {
                "id": invitation.id,
                "teamId": team.id,
                "teamName": team.name,
                "teamDescription": team.description,
                "email": invitation.email,
                "role": invitation.role,
                "token": invitation.token,
                "invitedByName": inviter.name,
                "expiresAt": isoformat_or_none(invitation.expires_at),
                "createdAt": isoformat_or_none(invitation.created_at),
            }
            for invitation, team, inviter in await self.teams.list_pending_invitations_for_email(user.email, utcnow())
        ]

        return {
            "teams": teams,
            "pendingInvitations": invitations,
            "userRole": teams[0]["role"] if teams else None,
        }

    async def get_team_members(self, user: User, team_id: int) -> dict:
        membership = await self.teams.get_membership(team_id, user.id, active_only=True)
        if not membership:
            raise InsufficientRole("You are not a member of this team")

        team = await self.teams.get_team(team_id)
        if not team or not team.is_active:
            raise NotFound("Team not found")

        members = [
            {
                "userId": member.user_id,
                "name": account.name,
                "email": account.email,
                "role": member.role,
                "status": member.status,
                "joinedAt": isoformat_or_none(member.joined_at),
                "invitedAt": isoformat_or_none(member.invited_at),
            }
            for member, account in await self.teams.list_team_members(team_id)
        ]
        return {
            "team": serialize_team(team),
            "members": members,
            "totalMembers": len(members),
            "activeMembers": sum(1 for m in members if m["status"] == "active"),
        }

    # ---------------------------------------------------------- invitations

    async def invite_member(self, user: User, team_id: int, email: str, role: str = "member") -> dict:
        """
        Create an invitation and try to email it.

        Email failure does not undo the invitation; the result carries
        emailSent/emailError instead.
        """
        email = email.strip().lower()
        await self._require_manager(team_id, user.id, "invite members")
        team = await self._require_active_team(team_id)

        existing_member = await self.teams.get_membership_by_email(team_id, email)
        if existing_member:
            if existing_member.status == "active":
                raise AlreadyMember("User is already a team member")
            raise InvitationExists("User already has a pending invitation")

        now = utcnow()
        pending = await self.teams.get_pending_invitation(team_id, email)
        if pending:
            if pending.expires_at > now:
                raise InvitationExists(expiresAt=isoformat_or_none(pending.expires_at))
            await self.teams.delete_invitation(pending)

        invitation = await self.teams.add_invitation(TeamInvitation(
            team_id=team_id,
            email=email,
            role=role,
            invited_by=user.id,
            token=secrets.token_hex(32),
            expires_at=now + timedelta(days=INVITATION_EXPIRY_DAYS),
            status="pending",
        ))
        # Persist before the slow outbound email call
        await self.db.commit()

        email_result = await self.email_service.send_team_invitation(
            to_email=email,
            team_name=team.name,
            inviter_name=user.name,
            invitation_token=invitation.token,
            expires_at=invitation.expires_at,
        )
        if not email_result.get("success"):
            logger.warning(f"Failed to send invitation email to {email}: {email_result.get('error')}")

        return {
            "invitation": {
                "id": invitation.id,
                "token": invitation.token,
                "email": email,
                "teamId": team.id,
                "teamName": team.name,
                "role": invitation.role,
                "expiresAt": isoformat_or_none(invitation.expires_at),
            },
            "emailSent": bool(email_result.get("success")),
            "emailError": None if email_result.get("success") else email_result.get("error"),
        }

    async def cancel_invitation(self, user: User, team_id: int, email: str) -> str:
        await self._require_manager(team_id, user.id, "cancel invitations")
        invitation = await self.teams.get_pending_invitation(team_id, email.strip().lower())
        if not invitation:
            raise NotFound("No pending invitation found for this email")
        await self.teams.delete_invitation(invitation)
        return invitation.email

    async def validate_invitation(self, token: str) -> dict:
        """Public check of an invitation link, no authentication required."""
        invitation = await self.teams.get_invitation_by_token(token)
        if not invitation:
            raise NotFound("The invitation link is invalid or has already been used.", error="Invalid invitation token")
        if utcnow() > invitation.expires_at:
            raise InvitationExpired(
                "This invitation has expired. Please ask the team administrator to send a new invitation.",
                expired=True,
            )
        if invitation.status != "pending":
            raise InvitationAlreadyProcessed(status=invitation.status)

        team = await self.teams.get_team(invitation.team_id)
        inviter = await self.users.get_user_by_id(invitation.invited_by)
        return {
            "id": invitation.id,
            "email": invitation.email,
            "role": invitation.role,
            "teamId": invitation.team_id,
            "teamName": team.name if team else None,
            "inviterName": inviter.name if inviter else None,
            "expiresAt": isoformat_or_none(invitation.expires_at),
        }

    async def accept_invitation(self, user: User, token: str) -> Team:
        """
        Accept an invitation addressed to the user's email.

        The membership insert and the invitation status change commit
        together; if either fails both are rolled back.
        """
        invitation = await self.teams.get_invitation_by_token(token)
        if not invitation:
            raise NotFound(error="Invalid invitation token")

        if invitation.email.lower() != user.email.lower():
            raise EmailMismatch()

        if not user.email_verified:
            raise EmailNotVerified()

        if utcnow() > invitation.expires_at:
            raise InvitationExpired()

        team = await self.teams.get_team(invitation.team_id)
        if not team or not team.is_active:
            raise TeamInactive()

        if invitation.status != "pending":
            raise InvitationAlreadyProcessed()

        if await self.teams.get_membership(team.id, user.id):
            raise AlreadyMember()

        team_id, team_name, user_id, invitation_id = team.id, team.name, user.id, invitation.id
        try:
            await self.teams.add_membership(TeamMembership(
                team_id=team_id,
                user_id=user_id,
                role=invitation.role or "member",
                status="active",
                invited_by=invitation.invited_by,
                joined_at=utcnow(),
            ))
            invitation.status = "accepted"
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Accepting invitation {invitation_id} for user {user_id} failed: {e}", exc_info=True)
            raise InvitationAcceptFailed(details=str(e))

        logger.info(f"User {user_id} joined team {team_id} ({team_name})")
        return team

    # ---------------------------------------------------------- memberships

    async def remove_member(self, user: User, team_id: int, target_user_id: int) -> None:
        requester = await self._require_manager(team_id, user.id, "remove members")

        target = await self.teams.get_membership(team_id, target_user_id)
        if not target:
            raise NotFound("User is not a member of this team")

        if target.role == "owner":
            raise CannotRemoveOwner()

        if target_user_id == user.id:
            raise UseLeaveTeam()

        if requester.role == "admin" and target.role == "admin":
            raise InsufficientRole("Only the team owner can remove other admins")

        removed = await self.teams.delete_membership(team_id, target_user_id)
        if not removed:
            raise NotFound("Membership not found")
        logger.info(f"User {target_user_id} removed from team {team_id} by user {user.id}")

    async def leave_team(self, user: User, team_id: int) -> None:
        membership = await self.teams.get_membership(team_id, user.id)
        if not membership:
            raise NotFound("You are not a member of this team")
        if membership.role == "owner":
            raise CannotRemoveOwner("The team owner cannot leave the team")
        await self.teams.delete_membership(team_id, user.id)
        logger.info(f"User {user.id} left team {team_id}")
