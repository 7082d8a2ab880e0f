from fastapi import Header, HTTPException
from jose import JWTError
from jose.exceptions import ExpiredSignatureError

from multiverse_backend.utils.security import decode_access_token


async def get_current_user_id(authorization: str = Header(None)) -> str:
    """Resolve the bearer token to the user id it was issued for."""
    token = None
    if authorization:
        parts = authorization.split(" ")
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]
    if not token:
        raise HTTPException(status_code=401, detail="No token")

    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid Token")

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid Token")
    return user_id
