import os
from typing import List
from dotenv import load_dotenv

load_dotenv()

# === Base de datos ===
# En local basta con SQLite; en despliegue se define DATABASE_URL (postgresql+psycopg://...)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./badger.db")
DEV_AUTO_CREATE = os.getenv("DEV_AUTO_CREATE", "0") == "1"

# === Tokens (el proveedor de identidad firma con la misma clave) ===
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# === HTTP ===
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# === Reglas de negocio ===
MAX_BADGES_PER_REQUEST = int(os.getenv("MAX_BADGES_PER_REQUEST", "100"))
MAX_REASON_LENGTH = int(os.getenv("MAX_REASON_LENGTH", "2000"))


def cors_origins_list() -> List[str]:
    if not CORS_ORIGINS:
        return ["http://localhost:4321"]
    return [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
