from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from lostlink import config

bearer_scheme_required = HTTPBearer(auto_error=True)


def decode_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload


def get_current_user_required(token: HTTPAuthorizationCredentials = Depends(bearer_scheme_required)):
    payload = decode_token(token.credentials)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload


def get_current_user_id(current_user=Depends(get_current_user_required)) -> str:
    return str(current_user["sub"])
