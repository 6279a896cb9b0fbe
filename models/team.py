from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from models.user import NormalizedEmail


class CreateTeamRequest(BaseModel):
    name: str
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Team name must be at least 2 characters long")
        return value


class InviteMemberRequest(BaseModel):
    email: NormalizedEmail
    role: Literal["member", "admin"] = "member"


class CancelInvitationRequest(BaseModel):
    email: str = Field(min_length=1)


class InvitationTokenRequest(BaseModel):
    token: str = Field(min_length=1)
