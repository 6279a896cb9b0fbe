"""
TeamRepository for teams, memberships and invitations
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Team, TeamInvitation, TeamMembership, User

ROLE_ORDER = case(
    (TeamMembership.role == "owner", 1),
    (TeamMembership.role == "admin", 2),
    else_=3,
)


class TeamRepository:
    """
    Repository class for Team, TeamMembership and TeamInvitation operations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------ teams

    async def get_team(self, team_id: int) -> Optional[Team]:
        return await self.db.get(Team, team_id)

    async def get_active_owned_team(self, owner_id: int) -> Optional[Team]:
        result = await self.db.execute(
            select(Team).where(Team.owner_id == owner_id, Team.is_active.is_(True)).limit(1)
        )
        return result.scalar_one_or_none()

    async def create_team_with_owner(
        self, name: str, description: Optional[str], owner_id: int, subscription_plan: str, now: datetime
    ) -> Team:
        """Insert the team and its owner membership in the same flush."""
        team = Team(
            name=name,
            description=description,
            owner_id=owner_id,
            subscription_plan=subscription_plan,
            is_active=True,
        )
        self.db.add(team)
        await self.db.flush()

        self.db.add(TeamMembership(
            team_id=team.id,
            user_id=owner_id,
            role="owner",
            status="active",
            joined_at=now,
        ))
        await self.db.flush()
        await self.db.refresh(team)
        return team

    async def list_user_teams(self, user_id: int) -> List[Tuple[Team, TeamMembership, User, int]]:
        """Active teams the user actively belongs to, with owner and active member count."""
        member_count = (
            select(func.count(TeamMembership.id))
            .where(TeamMembership.team_id == Team.id, TeamMembership.status == "active")
            .correlate(Team)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Team, TeamMembership, User, member_count)
            .join(TeamMembership, TeamMembership.team_id == Team.id)
            .join(User, User.id == Team.owner_id)
            .where(
                TeamMembership.user_id == user_id,
                TeamMembership.status == "active",
                Team.is_active.is_(True),
            )
            .order_by(ROLE_ORDER, Team.created_at.desc())
        )
        return [tuple(row) for row in result.all()]

    async def active_team_ids_for_user(self, user_id: int) -> List[int]:
        result = await self.db.execute(
            select(TeamMembership.team_id).where(
                TeamMembership.user_id == user_id,
                TeamMembership.status == "active",
            )
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------ memberships

    async def get_membership(self, team_id: int, user_id: int, active_only: bool = False) -> Optional[TeamMembership]:
        query = select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
        )
        if active_only:
            query = query.where(TeamMembership.status == "active")
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_membership_by_email(self, team_id: int, email: str) -> Optional[TeamMembership]:
        result = await self.db.execute(
            select(TeamMembership)
            .join(User, User.id == TeamMembership.user_id)
            .where(TeamMembership.team_id == team_id, User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def list_team_members(self, team_id: int) -> List[Tuple[TeamMembership, User]]:
        result = await self.db.execute(
            select(TeamMembership, User)
            .join(User, User.id == TeamMembership.user_id)
            .where(TeamMembership.team_id == team_id, TeamMembership.status == "active")
            .order_by(ROLE_ORDER, TeamMembership.joined_at.asc())
        )
        return [tuple(row) for row in result.all()]

    async def add_membership(self, membership: TeamMembership) -> TeamMembership:
        self.db.add(membership)
        await self.db.flush()
        return membership

    async def delete_membership(self, team_id: int, user_id: int) -> int:
        result = await self.db.execute(
            delete(TeamMembership).where(
                TeamMembership.team_id == team_id,
                TeamMembership.user_id == user_id,
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------ invitations

    async def get_pending_invitation(self, team_id: int, email: str) -> Optional[TeamInvitation]:
        result = await self.db.execute(
            select(TeamInvitation).where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.email == email.lower(),
                TeamInvitation.status == "pending",
            )
        )
        return result.scalar_one_or_none()

    async def get_invitation_by_token(self, token: str) -> Optional[TeamInvitation]:
        result = await self.db.execute(select(TeamInvitation).where(TeamInvitation.token == token))
        return result.scalar_one_or_none()

    async def list_pending_invitations_for_email(self, email: str, now: datetime) -> List[Tuple[TeamInvitation, Team, User]]:
        result = await self.db.execute(
            select(TeamInvitation, Team, User)
            .join(Team, Team.id == TeamInvitation.team_id)
            .join(User, User.id == TeamInvitation.invited_by)
            .where(
                TeamInvitation.email == email.lower(),
                TeamInvitation.status == "pending",
                TeamInvitation.expires_at > now,
            )
            .order_by(TeamInvitation.created_at.desc())
        )
        return [tuple(row) for row in result.all()]

    async def add_invitation(self, invitation: TeamInvitation) -> TeamInvitation:
        self.db.add(invitation)
        await self.db.flush()
        await self.db.refresh(invitation)
        return invitation

    async def delete_invitation(self, invitation: TeamInvitation) -> None:
        await self.db.execute(delete(TeamInvitation).where(TeamInvitation.id == invitation.id))
        await self.db.flush()
