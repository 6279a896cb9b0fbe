"""
Account Service - email verification, password resets and profile updates
"""

import logging
import math
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import hash_password
from config.settings import (
    EMAIL_VERIFICATION_EXPIRY_HOURS,
    PASSWORD_RESET_EXPIRY_HOURS,
    VERIFICATION_RESEND_COOLDOWN_SECONDS,
)
from crud.user import UserRepository
from database_models import PasswordReset, User
from errors import InvalidInput, NotFound, RateLimited
from services.email_service import EmailService
from utils.shared_utils import utcnow

logger = logging.getLogger(__name__)


def email_outcome(result: dict) -> dict:
    """emailSent/emailError fields for a response, from an EmailService result."""
    sent = bool(result.get("success"))
    return {"emailSent": sent, "emailError": None if sent else result.get("error")}


class AccountService:
    """
    Account lifecycle flows that send email.

    Tokens are committed before the outbound call, so a failed delivery
    never loses them; the caller reports emailSent/emailError instead.
    """

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.users = UserRepository(db)
        self.email_service = email_service or EmailService()

    async def _issue_verification_token(self, user: User) -> str:
        now = utcnow()
        token = secrets.token_hex(32)
        await self.users.update_user(user, {
            "email_verification_token": token,
            "email_verification_expires": now + timedelta(hours=EMAIL_VERIFICATION_EXPIRY_HOURS),
            "email_verification_sent_at": now,
        })
        return token

    async def send_verification(self, user: User) -> dict:
        """Issue a fresh verification token, commit it and email the link."""
        token = await self._issue_verification_token(user)
        await self.db.commit()

        result = await self.email_service.send_verification(user.email, user.name, token)
        if not result.get("success"):
            logger.warning(f"Verification email to user {user.id} not sent: {result.get('error')}")
        return email_outcome(result)

    async def verify_email(self, token: str) -> Tuple[User, bool]:
        """
        Mark the account owning `token` as verified.

        Returns:
            (user, already_verified)
        """
        user = await self.users.get_user_by_verification_token(token)
        if not user:
            raise NotFound(
                "The verification link is invalid or has already been used.",
                error="Invalid verification token",
            )
        if user.email_verified:
            return user, True
        if user.email_verification_expires and utcnow() > user.email_verification_expires:
            raise InvalidInput(
                "The verification link has expired. Please request a new verification email.",
                error="Verification token expired",
                expired=True,
            )

        await self.users.update_user(user, {
            "email_verified": True,
            "email_verification_token": None,
            "email_verification_expires": None,
        })
        logger.info(f"Email verified for user {user.id}")
        return user, False

    async def resend_verification(self, email: str) -> Optional[dict]:
        """
        Send a new verification link.

        Returns:
            emailSent/emailError fields, or None when the address is already verified
        """
        user = await self.users.get_user_by_email(email)
        if not user:
            raise NotFound("No account found with this email address.", error="User not found")
        if user.email_verified:
            return None

        if user.email_verification_sent_at:
            elapsed = (utcnow() - user.email_verification_sent_at).total_seconds()
            if elapsed < VERIFICATION_RESEND_COOLDOWN_SECONDS:
                wait_seconds = math.ceil(VERIFICATION_RESEND_COOLDOWN_SECONDS - elapsed)
                raise RateLimited(
                    f"Please wait {wait_seconds} seconds before requesting another verification email.",
                    waitSeconds=wait_seconds,
                )

        return await self.send_verification(user)

    async def request_password_reset(self, email: str) -> None:
        """
        Store a one-hour reset token and email it.

        Unknown addresses are a silent no-op so the endpoint does not reveal
        which emails have accounts.
        """
        user = await self.users.get_user_by_email(email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        reset = await self.users.add_password_reset(PasswordReset(
            user_id=user.id,
            token=secrets.token_hex(32),
            expires_at=utcnow() + timedelta(hours=PASSWORD_RESET_EXPIRY_HOURS),
        ))
        await self.db.commit()

        result = await self.email_service.send_password_reset(user.email, user.name, reset.token)
        if not result.get("success"):
            logger.warning(f"Password reset email to user {user.id} not sent: {result.get('error')}")

    async def reset_password(self, token: str, new_password: str) -> User:
        reset = await self.users.get_password_reset(token)
        if not reset:
            raise NotFound("The reset link is invalid.", error="Invalid reset token")
        if reset.used:
            raise InvalidInput("This reset link has already been used.", error="Reset token used")
        if utcnow() > reset.expires_at:
            raise InvalidInput("This reset link has expired.", error="Reset token expired", expired=True)

        user = await self.users.get_user_by_id(reset.user_id)
        if not user:
            raise NotFound("User not found")

        reset.used = True
        await self.users.update_user(user, {"hashed_password": hash_password(new_password)})
        logger.info(f"Password reset completed for user {user.id}")
        return user

    async def update_profile(self, user: User, name: str, team: Optional[str]) -> User:
        return await self.users.update_user(user, {"name": name, "team": team})
