from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from storefront.models.user import UserRole
from storefront.schemas.intent import ResumeOutcome


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None = None
    role: UserRole
    created_at: datetime
    updated_at: datetime


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenPair
    resume: ResumeOutcome | None = None
