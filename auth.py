"""
Authentication routes and dependencies
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import create_jwt, decode_jwt, hash_password, verify_password
from backend.utils.responses import success_response
from config.settings import PLAN_TRIAL, STATUS_TRIAL, TRIAL_DAYS, TRIAL_USAGE_LIMIT, settings
from crud.plan import PlanRepository
from crud.user import UserRepository
from database import get_db
from database_models import User
from errors import (
    Conflict,
    EntitlementRequired,
    InsufficientRole,
    InvalidInput,
    NotFound,
    Unauthenticated,
    UsageLimitReached,
)
from models.user import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SwitchUserRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from services import entitlement_service
from services.account_service import AccountService
from utils.shared_utils import isoformat_or_none, log_endpoint_event, utcnow

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

AUTH_COOKIE = "auth_token"


def serialize_user(user: User) -> dict:
    """Public profile of a user, never including the password hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "team": user.team,
        "isAdmin": bool(user.is_admin),
        "emailVerified": bool(user.email_verified),
        "subscriptionStatus": user.subscription_status,
        "subscriptionPlan": user.subscription_plan,
        "trialEndDate": isoformat_or_none(user.trial_end_date),
        "subscriptionEndDate": isoformat_or_none(user.subscription_end_date),
        "usageCount": user.usage_count or 0,
        "usageLimit": user.usage_limit,
        "lastLogin": isoformat_or_none(user.last_login),
        "createdAt": isoformat_or_none(user.created_at),
    }


def _set_auth_cookie(response, token: str) -> None:
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=int(timedelta(days=settings.jwt_expire_days).total_seconds()),
    )


# ============================================================================
# DEPENDENCIES
# ============================================================================

async def get_token_payload(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    auth_token: Optional[str] = Cookie(None),
) -> dict:
    """
    Verify the caller's token.

    Token sources, in order:
    1. Authorization: Bearer <token> header
    2. auth_token httpOnly cookie (set by login)
    """
    token = None
    if authorization:
        if not authorization.startswith("Bearer "):
            raise Unauthenticated("Malformed authorization header")
        token = authorization[len("Bearer "):].strip()
    elif auth_token:
        token = auth_token

    if not token:
        raise Unauthenticated("Access denied. No token provided.")

    payload = decode_jwt(token)
    if not payload:
        raise Unauthenticated("Invalid or expired token")

    try:
        payload["user_id"] = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token payload")
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await UserRepository(db).get_user_by_id(payload["user_id"])
    if not user:
        raise Unauthenticated("User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise InsufficientRole("Admin access required")
    return user


async def require_active_subscription(user: User = Depends(get_current_user)) -> User:
    """
    Gate for billable actions. Admins always pass; everyone else needs an
    active subscription or trial that has not exhausted its usage limit.
    """
    if user.is_admin:
        return user

    status = entitlement_service.evaluate(user)
    if not status.is_active:
        raise EntitlementRequired(
            subscriptionStatus={
                "isActive": status.is_active,
                "daysRemaining": status.days_remaining,
                "status": status.status,
            },
        )
    if status.has_reached_limit:
        raise UsageLimitReached(usageCount=status.usage_count, usageLimit=status.usage_limit)
    return user


# ============================================================================
# ROUTES
# ============================================================================

@auth_router.post("/register")
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create an account on a 14-day trial"""
    user_repo = UserRepository(db)
    if await user_repo.get_user_by_email(request.email):
        raise Conflict("An account with this email already exists", error="Email already registered")

    trial_plan = await PlanRepository(db).get_by_key(PLAN_TRIAL)
    usage_limit = trial_plan.usage_limit if trial_plan and trial_plan.usage_limit else TRIAL_USAGE_LIMIT

    now = utcnow()
    user = await user_repo.create_user({
        "name": request.name,
        "email": request.email,
        "hashed_password": hash_password(request.password),
        "team": request.team,
        "subscription_status": STATUS_TRIAL,
        "subscription_plan": PLAN_TRIAL,
        "trial_start_date": now,
        "trial_end_date": now + timedelta(days=TRIAL_DAYS),
        "usage_count": 0,
        "usage_limit": usage_limit,
    })
    await db.commit()

    # Registration succeeds even when the verification email cannot be sent
    email_result = await AccountService(db).send_verification(user)

    token = create_jwt(user.id, user.email)
    log_endpoint_event("/auth/register", user.id, "success", {"email_sent": email_result["emailSent"]})

    response = success_response(
        {"token": token, "user": serialize_user(user), **email_result},
        "Account created. Please check your email to verify your address.",
        status=201,
    )
    _set_auth_cookie(response, token)
    return response


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get JWT token"""
    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_email(request.email)
    if not user or not verify_password(request.password, user.hashed_password):
        raise Unauthenticated("Invalid email or password", error="Invalid credentials")

    user = await user_repo.update_user(user, {"last_login": utcnow()})
    await db.commit()
    token = create_jwt(user.id, user.email)
    log_endpoint_event("/auth/login", user.id, "success")

    response = success_response({
        "token": token,
        "user": serialize_user(user),
        "subscription": entitlement_service.evaluate(user).to_dict(),
    }, "Login successful")
    _set_auth_cookie(response, token)
    return response


@auth_router.get("/verify")
async def verify(payload: dict = Depends(get_token_payload)):
    data = {"userId": payload["user_id"], "email": payload.get("email")}
    if payload.get("admin_switched"):
        data["adminSwitched"] = True
        data["originalAdminId"] = int(payload["original_admin_id"])
    return success_response(data, "Token is valid")


@auth_router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return success_response({
        "user": serialize_user(user),
        "subscription": entitlement_service.evaluate(user).to_dict(),
    })


@auth_router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(request.current_password, user.hashed_password):
        raise InvalidInput("Current password is incorrect")
    await UserRepository(db).update_user(user, {"hashed_password": hash_password(request.new_password)})
    await db.commit()
    log_endpoint_event("/auth/change-password", user.id, "success")
    return success_response(message="Password updated successfully")


@auth_router.post("/logout")
async def logout():
    """Logout and clear auth token cookie"""
    response = success_response(message="Logged out successfully")
    response.set_cookie(key=AUTH_COOKIE, value="", httponly=True, secure=True, samesite="Lax", max_age=0)
    return response


@auth_router.post("/verify-email")
async def verify_email(request: VerifyEmailRequest, db: AsyncSession = Depends(get_db)):
    user, already_verified = await AccountService(db).verify_email(request.token)
    if already_verified:
        return success_response({"alreadyVerified": True}, "Email already verified")
    await db.commit()
    log_endpoint_event("/auth/verify-email", user.id, "success")
    return success_response({"user": serialize_user(user)}, "Email verified successfully")


@auth_router.post("/resend-verification")
async def resend_verification(request: EmailRequest, db: AsyncSession = Depends(get_db)):
    email_result = await AccountService(db).resend_verification(request.email)
    if email_result is None:
        return success_response({"alreadyVerified": True}, "Email is already verified")
    message = "Verification email sent" if email_result["emailSent"] else "Verification email could not be sent"
    return success_response(email_result, message)


@auth_router.post("/reset-password")
async def request_password_reset(request: EmailRequest, db: AsyncSession = Depends(get_db)):
    """Same answer whether or not the email has an account."""
    await AccountService(db).request_password_reset(request.email)
    return success_response(message="If an account with that email exists, reset instructions have been sent.")


@auth_router.post("/reset-password/confirm")
async def confirm_password_reset(request: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    user = await AccountService(db).reset_password(request.token, request.new_password)
    await db.commit()
    log_endpoint_event("/auth/reset-password/confirm", user.id, "success")
    return success_response(message="Password has been reset. You can now log in.")


@auth_router.put("/profile")
async def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await AccountService(db).update_profile(user, request.name, request.team)
    await db.commit()
    return success_response({"user": serialize_user(user)}, "Profile updated successfully")


@auth_router.get("/admin/users")
async def list_users(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    users = await UserRepository(db).list_users()
    return success_response({"users": [serialize_user(u) for u in users], "total": len(users)})


@auth_router.post("/admin/switch-user")
async def switch_user(
    request: SwitchUserRequest,
    payload: dict = Depends(get_token_payload),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Issue a token for another user, flagged as an admin-switched session."""
    target = await UserRepository(db).get_user_by_id(request.target_user_id)
    if not target:
        raise NotFound("User not found")

    # Switching again from a switched session keeps pointing at the real admin
    original_admin_id = int(payload.get("original_admin_id") or admin.id)
    token = create_jwt(target.id, target.email, original_admin_id=original_admin_id)
    logger.info(f"Admin {original_admin_id} switched to user {target.id}")

    return success_response({
        "token": token,
        "user": serialize_user(target),
        "originalAdminId": original_admin_id,
    }, f"Switched to {target.email}")
