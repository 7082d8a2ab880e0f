import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pymongo.errors import DuplicateKeyError

from multiverse_backend.models.user import UserInDB, public_user
from multiverse_backend.utils.security import (
    get_password_hash,
    verify_password,
    generate_referral_code,
    create_access_token,
)

logger = logging.getLogger("uvicorn.error")


class RegisterOutcome(Enum):
    CREATED = "created"
    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_CODE = "duplicate_code"


class LoginOutcome(Enum):
    SUCCESS = "success"
    USER_NOT_FOUND = "user_not_found"
    ACCOUNT_BANNED = "account_banned"
    INVALID_PASSWORD = "invalid_password"


REGISTER_MESSAGES = {
    RegisterOutcome.CREATED: "Account created successfully!",
    RegisterOutcome.DUPLICATE_EMAIL: "Email already registered.",
    RegisterOutcome.DUPLICATE_CODE: "Could not assign a referral code, please try again.",
}

LOGIN_MESSAGES = {
    LoginOutcome.SUCCESS: "Login successful",
    LoginOutcome.USER_NOT_FOUND: "User not found",
    LoginOutcome.ACCOUNT_BANNED: "Account banned",
    LoginOutcome.INVALID_PASSWORD: "Invalid password",
}


@dataclass(frozen=True)
class RegisterResult:
    outcome: RegisterOutcome
    user_id: Optional[str] = None
    referral_code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is RegisterOutcome.CREATED

    @property
    def message(self) -> str:
        return REGISTER_MESSAGES[self.outcome]


@dataclass(frozen=True)
class LoginResult:
    outcome: LoginOutcome
    token: Optional[str] = None
    user: Optional[dict] = None

    @property
    def success(self) -> bool:
        return self.outcome is LoginOutcome.SUCCESS

    @property
    def message(self) -> str:
        return LOGIN_MESSAGES[self.outcome]


def _duplicate_field(exc: DuplicateKeyError) -> Optional[str]:
    details = exc.details or {}
    for key in ("keyPattern", "keyValue"):
        if details.get(key):
            return next(iter(details[key]))
    return None


def register_user(users, name: str, email: str, password: str) -> RegisterResult:
    if users.find_one({"email": email}):
        return RegisterResult(RegisterOutcome.DUPLICATE_EMAIL)

    user = UserInDB(
        name=name,
        email=email,
        password=get_password_hash(password),
        referral_code=generate_referral_code(),
    )
    try:
        result = users.insert_one(user.model_dump())
    except DuplicateKeyError as exc:
        # Without key details from the server, a concurrent signup that took the
        # email in the meantime is the only way the email can be the culprit
        field = _duplicate_field(exc)
        if field == "email" or (field is None and users.find_one({"email": email})):
            return RegisterResult(RegisterOutcome.DUPLICATE_EMAIL)
        logger.warning("Referral code collision on %s", user.referral_code)
        return RegisterResult(RegisterOutcome.DUPLICATE_CODE)

    logger.info("Registered user %s", result.inserted_id)
    return RegisterResult(
        RegisterOutcome.CREATED,
        user_id=str(result.inserted_id),
        referral_code=user.referral_code,
    )


def authenticate_user(users, email: str, password: str) -> LoginResult:
    user = users.find_one({"email": email})
    if not user:
        return LoginResult(LoginOutcome.USER_NOT_FOUND)
    # Banned accounts are rejected before the password is looked at
    if user.get("is_banned"):
        return LoginResult(LoginOutcome.ACCOUNT_BANNED)
    if not verify_password(password, user.get("password")):
        return LoginResult(LoginOutcome.INVALID_PASSWORD)

    token = create_access_token(str(user["_id"]))
    logger.info("User %s logged in", user["_id"])
    return LoginResult(LoginOutcome.SUCCESS, token=token, user=public_user(user))
