import os
from dotenv import load_dotenv
from pathlib import Path

# Project root (the directory holding multiverse_backend/ and .env)
BASE_DIR = Path(__file__).resolve().parent.parent

dotenv_path = os.path.join(BASE_DIR, ".env")
load_dotenv(dotenv_path=dotenv_path)

APP_ENV = os.getenv("APP_ENV", "development")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Token signing
DEV_SECRET_KEY = "change-me-in-development"
SECRET_KEY = os.getenv("JWT_SECRET", DEV_SECRET_KEY)
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

# Document store
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "multiverse")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
# Multi-document transactions need a replica set (Atlas always has one)
MONGO_TRANSACTIONS = os.getenv("MONGO_TRANSACTIONS", "false").lower() in ("1", "true", "yes")


def parse_origins(value: str) -> list:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


CORS_ORIGINS = parse_origins(os.getenv("CORS_ORIGINS", "*"))

# Business rules
DEFAULT_CREDITS = 1000
DEFAULT_PLAN = "free"
REFERRAL_BONUS = 200
REFERRAL_CAP = 100
REFERRAL_CODE_PREFIX = "REF-"
REFERRAL_CODE_LENGTH = 6


def is_production() -> bool:
    return APP_ENV == "production"
