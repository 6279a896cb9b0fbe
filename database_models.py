from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from database import Base
from config.settings import PLAN_TRIAL, STATUS_TRIAL
from utils.shared_utils import utcnow


class User(Base):
    """
    Account with its subscription and usage state.
    usage_limit NULL means unlimited.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    team = Column(String(255), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)

    email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String(255), unique=True, nullable=True, index=True)
    email_verification_expires = Column(DateTime, nullable=True)
    email_verification_sent_at = Column(DateTime, nullable=True)

    subscription_status = Column(String(32), default=STATUS_TRIAL, nullable=False)
    subscription_plan = Column(String(50), default=PLAN_TRIAL, nullable=False)
    trial_start_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    usage_limit = Column(Integer, nullable=True)

    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)

    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PasswordReset(Base):
    """Single-use password reset token, valid for one hour."""
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    plan_key = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price_monthly = Column(Numeric(10, 2), nullable=False)
    price_yearly = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    features = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Team(Base):
    """
    One active team per owner is enforced by a pre-check in TeamService,
    not by a constraint.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_plan = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TeamMembership(Base):
    __tablename__ = "team_memberships"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_memberships_team_user"),)

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default="member", nullable=False)  # owner/admin/member
    status = Column(String(20), default="pending", nullable=False)  # pending/active
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    invited_at = Column(DateTime, default=utcnow, nullable=True)
    joined_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TeamInvitation(Base):
    __tablename__ = "team_invitations"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), default="member", nullable=False)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    token = Column(String(255), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending/accepted
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Motorcycle(Base):
    """
    Owned by a user (user_id) or by a team (team_id). Rows with neither are
    legacy records visible to everyone.
    """
    __tablename__ = "motorcycles"

    id = Column(String(255), primary_key=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    bike_class = Column("class", String(100), nullable=False, default="")
    number = Column(String(10), nullable=False, default="")
    variant = Column(String(10), nullable=False, default="")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class RaceSession(Base):
    """Suspension and geometry setup logged for one motorcycle in one event session."""
    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_event_motorcycle", "event_id", "motorcycle_id"),)

    id = Column(String(512), primary_key=True)  # {event}_{motorcycle_id}_{session}
    event_id = Column(String(255), nullable=False)
    motorcycle_id = Column(String(255), ForeignKey("motorcycles.id"), nullable=False, index=True)
    session_type = Column(String(100), nullable=False)

    front_spring = Column(String(50), default="")
    front_preload = Column(String(50), default="")
    front_compression = Column(String(50), default="")
    front_rebound = Column(String(50), default="")
    rear_spring = Column(String(50), default="")
    rear_preload = Column(String(50), default="")
    rear_compression = Column(String(50), default="")
    rear_rebound = Column(String(50), default="")
    front_sprocket = Column(String(50), default="")
    rear_sprocket = Column(String(50), default="")
    swingarm_length = Column(String(50), default="")
    front_tire = Column(String(100), default="")
    rear_tire = Column(String(100), default="")
    front_pressure = Column(String(50), default="")
    rear_pressure = Column(String(50), default="")
    rake = Column(String(50), default="")
    trail = Column(String(50), default="")
    front_ride_height = Column(String(50), default="")
    rear_ride_height = Column(String(50), default="")
    front_sag = Column(String(50), default="")
    rear_sag = Column(String(50), default="")
    swingarm_angle = Column(String(50), default="")
    notes = Column(Text, default="")
    feedback = Column(Text, default="")

    weather_temperature = Column(String(50), default="")
    weather_condition = Column(String(100), default="")
    weather_description = Column(String(255), default="")
    weather_humidity = Column(String(50), default="")
    weather_wind_speed = Column(String(50), default="")
    weather_captured_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
