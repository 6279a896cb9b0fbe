"""
Email Service - outbound email through the Resend HTTP API
"""

import html
import logging
from datetime import datetime
from typing import Optional

import httpx

from config.settings import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
APP_NAME = "MotoSetup Pro"


class EmailService:
    """
    Sends transactional emails.

    send() never raises: delivery problems come back as
    {"success": False, "error": "..."} so callers can treat email as
    non-fatal to the operation that triggered it.
    """

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.from_email = from_email or settings.from_email

    async def send(self, to_email: str, subject: str, html_body: str, text: Optional[str] = None) -> dict:
        if not self.api_key:
            logger.warning("RESEND_API_KEY not configured - email not sent")
            return {"success": False, "error": "Email service not configured"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_body,
        }
        if text:
            payload["text"] = text

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(RESEND_API_URL, headers=headers, json=payload)
        except httpx.RequestError as e:
            logger.warning(f"Email request to {to_email} failed: {e}")
            return {"success": False, "error": str(e)}

        if not response.is_success:
            logger.warning(f"Resend API returned {response.status_code}: {response.text}")
            return {"success": False, "error": f"Email API error {response.status_code}: {response.text}"}

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info(f"Email sent to {to_email} (id={message_id})")
        return {"success": True, "message_id": message_id}

    async def send_team_invitation(
        self,
        to_email: str,
        team_name: str,
        inviter_name: str,
        invitation_token: str,
        expires_at: datetime,
    ) -> dict:
        invitation_url = f"{settings.base_url}/?invitation={invitation_token}"
        expires_date = expires_at.strftime("%Y-%m-%d")
        subject = f'Team Invitation: Join "{team_name}" on {APP_NAME}'

        safe_team = html.escape(team_name)
        safe_inviter = html.escape(inviter_name)
        html_body = (
            f"<h2>You've been invited to join a team!</h2>"
            f"<p><strong>{safe_inviter}</strong> has invited you to join the "
            f"<strong>\"{safe_team}\"</strong> team on {APP_NAME}.</p>"
            f"<p>As a team member you can share motorcycle setups, access team-owned "
            f"motorcycle data and collaborate on race weekend setups.</p>"
            f"<p><a href=\"{invitation_url}\">Accept invitation</a></p>"
            f"<p>This invitation expires on {expires_date}. You must have a {APP_NAME} "
            f"account to accept it.</p>"
            f"<p>If you weren't expecting this invitation, you can safely ignore this email.</p>"
        )
        text = (
            f"{APP_NAME} - Team Invitation\n\n"
            f"{inviter_name} has invited you to join the \"{team_name}\" team on {APP_NAME}.\n\n"
            f"Accept your invitation: {invitation_url}\n\n"
            f"This invitation expires on {expires_date}. You must have a {APP_NAME} account to accept it.\n"
            f"Don't have an account yet? Create one at {settings.base_url}, then use the link above.\n"
        )
        return await self.send(to_email, subject, html_body, text)

    async def send_verification(self, to_email: str, user_name: str, verification_token: str) -> dict:
        verification_url = f"{settings.base_url}/?verify={verification_token}"
        subject = f"Welcome to {APP_NAME} - Please verify your email"

        html_body = (
            f"<h2>Welcome to {APP_NAME}, {html.escape(user_name)}!</h2>"
            f"<p>Thank you for creating your account. Please verify your email address "
            f"to complete your registration.</p>"
            f"<p><a href=\"{verification_url}\">Verify my email address</a></p>"
            f"<p><strong>This link expires in 24 hours.</strong> Team features stay "
            f"unavailable until your email is verified.</p>"
            f"<p>If you didn't create this account, you can safely ignore this email.</p>"
        )
        text = (
            f"{APP_NAME} - Email Verification Required\n\n"
            f"Welcome to {APP_NAME}, {user_name}!\n\n"
            f"Verify your email: {verification_url}\n\n"
            f"This link expires in 24 hours. Team features stay unavailable until your email is verified.\n"
        )
        return await self.send(to_email, subject, html_body, text)

    async def send_password_reset(self, to_email: str, user_name: str, reset_token: str) -> dict:
        reset_url = f"{settings.base_url}/?reset={reset_token}"
        subject = f"{APP_NAME} - Password reset"

        html_body = (
            f"<h2>Password reset</h2>"
            f"<p>Hi {html.escape(user_name)}, we received a request to reset your {APP_NAME} password.</p>"
            f"<p><a href=\"{reset_url}\">Choose a new password</a></p>"
            f"<p>This link expires in 1 hour and can be used once. If you didn't ask for a reset, "
            f"you can ignore this email.</p>"
        )
        text = (
            f"{APP_NAME} - Password reset\n\n"
            f"Hi {user_name}, reset your password here: {reset_url}\n\n"
            f"This link expires in 1 hour and can be used once.\n"
        )
        return await self.send(to_email, subject, html_body, text)
