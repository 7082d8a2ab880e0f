# multiverse_backend/models/user.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone

from multiverse_backend.config import DEFAULT_CREDITS, DEFAULT_PLAN


class RegisterRequest(BaseModel):
    name: str = ""
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class RedeemRequest(BaseModel):
    userId: str
    code: str


class UserInDB(BaseModel):
    name: str = ""
    email: str
    password: str
    credits: int = DEFAULT_CREDITS
    plan_type: str = DEFAULT_PLAN
    referral_code: str
    referred_by: Optional[str] = None
    referral_count: int = 0
    is_banned: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def public_user(doc: dict) -> dict:
    """Render a user document for the outside world: string ids, no password hash."""
    user = {k: v for k, v in doc.items() if k != "password"}
    user["_id"] = str(doc["_id"])
    if user.get("referred_by") is not None:
        user["referred_by"] = str(user["referred_by"])
    if isinstance(user.get("created_at"), datetime):
        user["created_at"] = user["created_at"].isoformat()
    return user
