"""
Referral redemption.

A redeemer spends someone else's referral code once; both sides receive the
bonus and the referrer's counter goes up by one. The preconditions are checked
on a read first so each rejection gets its own outcome, and are then repeated
in the filters of the conditional updates that apply the bonus, so concurrent
redemptions cannot push a referrer past the cap or credit a redeemer twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from multiverse_backend.config import REFERRAL_BONUS, REFERRAL_CAP
from multiverse_backend.db import USERS, REFERRAL_TRANSACTIONS

logger = logging.getLogger("uvicorn.error")


class RedeemOutcome(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ALREADY_REDEEMED = "already_redeemed"
    SELF_REFERRAL = "self_referral"
    INVALID_CODE = "invalid_code"
    REFERRER_LIMIT_REACHED = "referrer_limit_reached"


MESSAGES = {
    RedeemOutcome.SUCCESS: "Success! {bonus} Credits added.",
    RedeemOutcome.NOT_FOUND: "User not found",
    RedeemOutcome.ALREADY_REDEEMED: "Already redeemed",
    RedeemOutcome.SELF_REFERRAL: "Cannot redeem own code",
    RedeemOutcome.INVALID_CODE: "Invalid code",
    RedeemOutcome.REFERRER_LIMIT_REACHED: "Referrer has reached the referral limit",
}


@dataclass(frozen=True)
class RedeemResult:
    outcome: RedeemOutcome
    referrer_id: Optional[str] = None
    bonus: int = REFERRAL_BONUS

    @property
    def success(self) -> bool:
        return self.outcome is RedeemOutcome.SUCCESS

    @property
    def message(self) -> str:
        return MESSAGES[self.outcome].format(bonus=self.bonus)

    def to_response(self) -> dict:
        body = {"success": self.success, "message": self.message}
        if not self.success:
            body["code"] = self.outcome.value
        return body


class RedemptionRejected(Exception):
    """A conditional update matched nothing; carries the rejection it stands for."""

    def __init__(self, outcome: RedeemOutcome):
        super().__init__(outcome.value)
        self.outcome = outcome


def parse_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class ReferralEngine:
    def __init__(self, db, client=None, use_transactions=False,
                 bonus: int = REFERRAL_BONUS, cap: int = REFERRAL_CAP):
        self.users = db[USERS]
        self.transactions = db[REFERRAL_TRANSACTIONS]
        self.client = client
        self.use_transactions = use_transactions and client is not None
        self.bonus = bonus
        self.cap = cap

    def _load_redeemer(self, redeemer_id: ObjectId) -> Optional[dict]:
        return self.users.find_one({"_id": redeemer_id})

    def _load_referrer(self, code: str) -> Optional[dict]:
        return self.users.find_one({"referral_code": code})

    def _result(self, outcome: RedeemOutcome, referrer_id=None) -> RedeemResult:
        return RedeemResult(outcome, referrer_id=referrer_id, bonus=self.bonus)

    def redeem(self, redeemer_id, code) -> RedeemResult:
        code = (code or "").strip()

        oid = parse_object_id(redeemer_id)
        if oid is None:
            return self._result(RedeemOutcome.NOT_FOUND)

        redeemer = self._load_redeemer(oid)
        if redeemer is None:
            return self._result(RedeemOutcome.NOT_FOUND)
        if redeemer.get("referred_by") is not None:
            return self._result(RedeemOutcome.ALREADY_REDEEMED)
        if redeemer.get("referral_code") == code:
            return self._result(RedeemOutcome.SELF_REFERRAL)

        referrer = self._load_referrer(code)
        if referrer is None:
            return self._result(RedeemOutcome.INVALID_CODE)
        if referrer.get("referral_count", 0) >= self.cap:
            return self._result(RedeemOutcome.REFERRER_LIMIT_REACHED)

        try:
            if self.use_transactions:
                with self.client.start_session() as session:
                    session.with_transaction(
                        lambda s: self._apply(redeemer["_id"], referrer["_id"], code, session=s)
                    )
            else:
                self._apply(redeemer["_id"], referrer["_id"], code)
        except RedemptionRejected as exc:
            logger.info("Referral %s rejected for %s: %s", code, oid, exc.outcome.value)
            return self._result(exc.outcome)

        logger.info("Referral %s redeemed by %s (referrer %s)", code, oid, referrer["_id"])
        return self._result(RedeemOutcome.SUCCESS, referrer_id=str(referrer["_id"]))

    def _apply(self, redeemer_id: ObjectId, referrer_id: ObjectId, code: str, session=None) -> None:
        reserved = self.users.find_one_and_update(
            {"_id": referrer_id, "referral_code": code, "referral_count": {"$lt": self.cap}},
            {"$inc": {"referral_count": 1, "credits": self.bonus}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if reserved is None:
            raise RedemptionRejected(RedeemOutcome.REFERRER_LIMIT_REACHED)

        try:
            claimed = self.users.update_one(
                {"_id": redeemer_id, "referred_by": None, "referral_code": {"$ne": code}},
                {"$set": {"referred_by": referrer_id}, "$inc": {"credits": self.bonus}},
                session=session,
            )
        except PyMongoError:
            if session is None:
                self._release(referrer_id)
            raise
        if claimed.modified_count == 0:
            if session is None:
                self._release(referrer_id)
            raise RedemptionRejected(RedeemOutcome.ALREADY_REDEEMED)

        entry = {
            "referrer_id": referrer_id,
            "redeemer_id": redeemer_id,
            "code": code,
            "bonus": self.bonus,
            "timestamp": datetime.now(timezone.utc),
        }
        if session is not None:
            self.transactions.insert_one(entry, session=session)
            return
        try:
            self.transactions.insert_one(entry)
        except PyMongoError:
            # Both bonuses are already durable; only the ledger row is missing
            logger.warning(
                "Referral %s applied but not recorded in %s", code, REFERRAL_TRANSACTIONS, exc_info=True
            )

    def _release(self, referrer_id: ObjectId) -> None:
        # Outside a transaction the referrer side has already landed; undo it
        logger.warning("Reverting referral reservation on %s", referrer_id)
        self.users.update_one(
            {"_id": referrer_id},
            {"$inc": {"referral_count": -1, "credits": -self.bonus}},
        )
