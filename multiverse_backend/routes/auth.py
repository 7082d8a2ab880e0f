import logging
import traceback

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from multiverse_backend.accounts import (
    register_user,
    authenticate_user,
    RegisterOutcome,
    LoginOutcome,
)
from multiverse_backend.dependencies import get_users_collection
from multiverse_backend.middleware.auth_middleware import get_current_user_id
from multiverse_backend.models.user import RegisterRequest, LoginRequest, public_user
from multiverse_backend.referral_engine import parse_object_id

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

REGISTER_STATUS = {
    RegisterOutcome.CREATED: 200,
    RegisterOutcome.DUPLICATE_EMAIL: 400,
    RegisterOutcome.DUPLICATE_CODE: 409,
}


# Plain `def` handlers: pymongo is blocking, so FastAPI runs these in its threadpool
@router.post("/register")
def register(request: RegisterRequest, users=Depends(get_users_collection)):
    try:
        result = register_user(users, request.name, request.email, request.password)
    except Exception:
        logger.error("register failed for %s\n%s", request.email, traceback.format_exc())
        return JSONResponse(status_code=500, content={"success": False, "message": "Server Error"})

    content = {"success": result.success, "message": result.message}
    if not result.success:
        content["code"] = result.outcome.value
    return JSONResponse(status_code=REGISTER_STATUS[result.outcome], content=content)


@router.post("/login")
def login(credentials: LoginRequest, users=Depends(get_users_collection)):
    try:
        result = authenticate_user(users, credentials.email, credentials.password)
    except Exception:
        logger.error("login failed for %s\n%s", credentials.email, traceback.format_exc())
        return JSONResponse(status_code=500, content={"success": False, "message": "Login failed"})

    if not result.success:
        content = {"success": False, "message": result.message, "code": result.outcome.value}
        if result.outcome is LoginOutcome.ACCOUNT_BANNED:
            content["isBanned"] = True
        return JSONResponse(status_code=400, content=content)

    return {"success": True, "token": result.token, "user": result.user}


@router.get("/me")
def me(user_id: str = Depends(get_current_user_id), users=Depends(get_users_collection)):
    # A token can outlive its user (or carry a mangled id): that is a 404, not a crash
    oid = parse_object_id(user_id)
    user = users.find_one({"_id": oid}, {"password": 0}) if oid is not None else None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(user)
