"""
friends.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn friends.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from friends.api.deps import get_config, get_engine  # noqa: E402
from friends.api.routes.users import router as users_router  # noqa: E402
from friends.database.engine import init_db  # noqa: E402
from friends.database.seed import seed_applications  # noqa: E402
from friends.errors import FriendsError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from CORS_ALLOW_ORIGINS (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables and seed application keys."""
    engine = get_engine()
    init_db(engine)
    created = seed_applications(engine, get_config().applications)
    logger.info("Friends API started — engine ready (%s), %d new application(s)",
                engine.url.database, created)
    yield
    logger.info("Friends API shutting down")


app = FastAPI(
    title="Friends Platform API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------
@app.exception_handler(FriendsError)
async def friends_error_handler(request: Request, exc: FriendsError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.setdefault(".".join(loc) or "body", []).append(err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=422,
        content={"error": {"message": "Invalid payload", "status_code": 422, "errors": errors}},
    )


# Mount routers
app.include_router(users_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
