"""Live basket API service entrypoint."""

import logging
import os

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.routers.audit import router as audit_router
from services.api.app.routers.baskets import router as baskets_router
from services.api.app.routers.lives import router as lives_router

logging.basicConfig(
    level=os.getenv("LIVEBASKET_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Live Basket API")

app.include_router(lives_router)
app.include_router(baskets_router)
app.include_router(audit_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
