import secrets
import string
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext
from jose import jwt

from multiverse_backend.config import (
    SECRET_KEY,
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_DAYS,
    REFERRAL_CODE_PREFIX,
    REFERRAL_CODE_LENGTH,
)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

BASE36_UPPER = string.digits + string.ascii_uppercase


def _truncate_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72].decode("utf-8", errors="ignore")


def verify_password(plain_password, hashed_password):
    if not hashed_password:
        return False
    return pwd_context.verify(_truncate_password(plain_password), hashed_password)


def get_password_hash(password):
    return pwd_context.hash(_truncate_password(password))


def generate_referral_code() -> str:
    suffix = "".join(secrets.choice(BASE36_UPPER) for _ in range(REFERRAL_CODE_LENGTH))
    return REFERRAL_CODE_PREFIX + suffix


def create_access_token(user_id: str, expires_delta: timedelta = None, secret_key: str = SECRET_KEY):
    if expires_delta is None:
        expires_delta = timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": user_id,
        "id": user_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: str = SECRET_KEY) -> dict:
    """Verify signature and expiry. Raises jose.JWTError (ExpiredSignatureError included)."""
    return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
