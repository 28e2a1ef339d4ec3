import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from badger.core.settings import DEV_AUTO_CREATE, LOG_LEVEL, cors_origins_list
from badger.db import Base, engine
import badger.models  # noqa: F401  (registra las tablas en Base.metadata)
from badger.domain.errors import BadgerError

from badger.routers import badge_applications as badge_applications_router
from badger.routers import promotions as promotions_router
from badger.routers.errors import badger_error_handler, unexpected_error_handler

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

if DEV_AUTO_CREATE:
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Badger API")

# ==== CORS ====
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==== Errores de dominio -> HTTP ====
app.add_exception_handler(BadgerError, badger_error_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

# ==== Routers ====
app.include_router(badge_applications_router.router)
app.include_router(promotions_router.router)

@app.get("/health")
def health():
    return {"status": "ok"}
