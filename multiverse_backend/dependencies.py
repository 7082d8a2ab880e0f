from fastapi import Request

from multiverse_backend.config import MONGO_TRANSACTIONS
from multiverse_backend.db import USERS
from multiverse_backend.referral_engine import ReferralEngine


def get_users_collection(request: Request):
    return request.app.state.db[USERS]


def get_referral_engine(request: Request) -> ReferralEngine:
    return ReferralEngine(
        request.app.state.db,
        client=request.app.state.mongo_client,
        use_transactions=MONGO_TRANSACTIONS,
    )
