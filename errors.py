"""
Application errors.

Every error carries the HTTP status it maps to, a short machine-readable
error string and a human-readable message. Extra keyword arguments become
top-level fields of the JSON error body (see main.py).
"""
from typing import Any, Optional


class AppError(Exception):
    """Base error for anything the API reports with a specific status."""

    status_code = 500
    error = "Internal error"
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        if error:
            self.error = error
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message, **self.details}


class Unauthenticated(AppError):
    status_code = 401
    error = "Unauthenticated"
    default_message = "Access denied. Please login."


class InvalidInput(AppError):
    status_code = 400
    error = "Invalid input"
    default_message = "The request is missing required fields or contains invalid values."


class EntitlementRequired(AppError):
    status_code = 403
    error = "Subscription expired"
    default_message = "Your subscription has expired. Please upgrade to continue using the service."


class UsageLimitReached(AppError):
    status_code = 403
    error = "Usage limit reached"
    default_message = "You have reached your usage limit. Please upgrade your plan to continue."


class InsufficientRole(AppError):
    status_code = 403
    error = "Insufficient role"
    default_message = "You do not have permission to perform this action."


class CannotRemoveOwner(AppError):
    status_code = 403
    error = "Cannot remove owner"
    default_message = "Cannot remove the team owner."


class EmailMismatch(AppError):
    status_code = 403
    error = "Email mismatch"
    default_message = "This invitation was sent to a different email address."


class UseLeaveTeam(AppError):
    status_code = 400
    error = "Use leave team"
    default_message = "Use the leave team function to remove yourself."


class InvitationExpired(AppError):
    status_code = 400
    error = "Invitation expired"
    default_message = "This invitation has expired."


class TeamInactive(AppError):
    status_code = 400
    error = "Team inactive"
    default_message = "This team is no longer active."


class NotFound(AppError):
    status_code = 404
    error = "Not found"
    default_message = "The requested resource was not found."


class Conflict(AppError):
    status_code = 409
    error = "Conflict"
    default_message = "The request conflicts with existing data."


class TeamLimitExceeded(Conflict):
    error = "Team limit exceeded"
    default_message = "You already own a team. Each premier subscriber can own one team."


class AlreadyMember(Conflict):
    error = "Already a member"
    default_message = "You are already a member of this team."


class InvitationExists(Conflict):
    error = "Invitation exists"
    default_message = "A pending invitation already exists for this email."


class InvitationAlreadyProcessed(Conflict):
    error = "Invitation already processed"
    default_message = "This invitation has already been processed."


class InvitationAcceptFailed(AppError):
    status_code = 500
    error = "Invitation accept failed"
    default_message = "Failed to accept invitation."


class UpstreamUnavailable(AppError):
    status_code = 502
    error = "Upstream unavailable"
    default_message = "An external service is unavailable. Please try again later."


class EmailNotVerified(AppError):
    status_code = 403
    error = "Email not verified"
    default_message = "Please verify your email address before joining a team."


class RateLimited(AppError):
    status_code = 429
    error = "Rate limited"
    default_message = "Too many requests. Please try again shortly."
