import logging

import certifi
from pymongo import MongoClient, IndexModel, ASCENDING

from multiverse_backend.config import MONGO_URI, DB_NAME, MONGO_TIMEOUT_MS

logger = logging.getLogger("uvicorn.error")

USERS = "users"
REFERRAL_TRANSACTIONS = "referral_transactions"


def create_client(uri: str = MONGO_URI, timeout_ms: int = MONGO_TIMEOUT_MS) -> MongoClient:
    """Open the process-wide client. MongoClient keeps its own connection pool."""
    options = {"serverSelectionTimeoutMS": timeout_ms}
    # Atlas (mongodb+srv) requires TLS; use certifi's CA bundle for it
    if uri.startswith("mongodb+srv://") or "tls=true" in uri.lower():
        options["tlsCAFile"] = certifi.where()
    client = MongoClient(uri, **options)
    logger.info("MongoDB client created for database %s", DB_NAME)
    return client


def get_database(client, name: str = DB_NAME):
    return client[name]


def ensure_indexes(db) -> None:
    db[USERS].create_indexes([
        IndexModel([("email", ASCENDING)], unique=True, name="email_unique"),
        IndexModel([("referral_code", ASCENDING)], unique=True, name="referral_code_unique"),
        IndexModel([("referred_by", ASCENDING)], name="referred_by"),
    ])
    db[REFERRAL_TRANSACTIONS].create_indexes([
        IndexModel([("referrer_id", ASCENDING), ("timestamp", -1)]),
        IndexModel([("redeemer_id", ASCENDING)], unique=True),
    ])


def check_connection(client) -> bool:
    try:
        client.admin.command("ping")
        return True
    except Exception:
        logger.warning("MongoDB ping failed", exc_info=True)
        return False
