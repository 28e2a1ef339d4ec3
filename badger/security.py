from datetime import datetime, timedelta, timezone
from jose import jwt

from badger.core.settings import SECRET_KEY, JWT_ALGORITHM

ACCESS_TOKEN_EXPIRE_MINUTES = 60

def create_access_token(subject: str, role: str = "user", expires_delta: timedelta | None = None) -> str:
    """Solo para scripts y tests: en producción el token lo emite el proveedor de identidad."""
    expires_delta = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(tz=timezone.utc) + expires_delta
    to_encode = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str) -> dict:
    return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
