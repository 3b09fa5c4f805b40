# File: civicvoice/main.py
# Project: civicvoice-backend

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from civicvoice.core.config import cors_origins_list, settings
from civicvoice.core.errors import CivicError
from civicvoice.core.ratelimit import limiter
from civicvoice.db.base import Base
from civicvoice.db.session import engine
from civicvoice.models import issue as _issue, issue_activity as _activity, user as _user, vote as _vote  # noqa: F401
from civicvoice.routers import auth, issues, issues_stats, map as map_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="CivicVoice API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(CivicError)
async def civic_error_handler(request: Request, err: CivicError):
    if err.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {err.code}: {err.message}")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"ok": True}

app.include_router(auth.router)
app.include_router(issues_stats.router)
app.include_router(issues.router)
app.include_router(map_router.router)
