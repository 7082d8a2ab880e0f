import logging
import traceback

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from multiverse_backend.dependencies import get_referral_engine
from multiverse_backend.models.user import RedeemRequest
from multiverse_backend.referral_engine import ReferralEngine

logger = logging.getLogger("uvicorn.error")

router = APIRouter()


@router.post("/redeem")
def redeem(request: RedeemRequest, engine: ReferralEngine = Depends(get_referral_engine)):
    # Business rejections are 200 with success=false and a stable `code`
    try:
        result = engine.redeem(request.userId, request.code)
    except Exception:
        logger.error("redeem failed for request: %s\n%s", request.model_dump(), traceback.format_exc())
        return JSONResponse(status_code=500, content={"success": False, "message": "Referral failed"})
    return result.to_response()
