from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from badger.db import get_db
from badger.domain.auth import AuthContext, ADMIN_ROLE, USER_ROLE
from badger.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

def get_caller(token: str | None = Depends(oauth2_scheme)) -> AuthContext:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": "Authentication required"},
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise cred_exc
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise cred_exc
    user_id: str | None = payload.get("sub")
    if not user_id:
        raise cred_exc
    role = payload.get("role") or USER_ROLE
    if role not in (ADMIN_ROLE, USER_ROLE):
        role = USER_ROLE
    return AuthContext(user_id=user_id, role=role)

__all__ = ["get_db", "get_caller"]
