"""Teaching practicum platform — FastAPI application entry point."""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from practicum.config import settings
from practicum.database import engine, Base
from practicum.errors import PracticumError
from practicum.middleware.rate_limit import limiter
from practicum.routers import (
    admin,
    auth,
    evaluation,
    feedback,
    mentor_info,
    observations,
    profile,
    reports,
    school_info,
    student,
    system,
)
from practicum.services.audit_service import record_error

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("practicum")

# Create all tables on startup
Base.metadata.create_all(bind=engine)

# Uploaded objects are public once stored
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

# ── CORS origins from env ───────────────────────────────────────────────────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Teaching Practicum Platform",
    description="Observation periods, practicum schools, mentors and rubric evaluations.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error envelope ──────────────────────────────────────────────────────────


def _session_user_id(request: Request):
    ctx = getattr(request.state, "session", None)
    return ctx.user_id if ctx else None


@app.exception_handler(PracticumError)
async def practicum_error_handler(request: Request, exc: PracticumError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        record_error(exc.message, user_id=_session_user_id(request), details={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid {field}: {first.get('msg')}" if field else "Invalid request data"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    record_error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        user_id=_session_user_id(request),
        details={"path": request.url.path, "type": type(exc).__name__},
    )
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# Routers
app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(school_info.router)
app.include_router(mentor_info.router)
app.include_router(evaluation.router)
app.include_router(student.router)
app.include_router(observations.router)
app.include_router(reports.router)
app.include_router(system.router)
app.include_router(feedback.router)
app.include_router(admin.router)

app.mount(settings.PUBLIC_FILES_URL, StaticFiles(directory=settings.UPLOAD_DIR), name="files")


@app.get("/")
def root():
    return {"name": "Teaching Practicum Platform", "version": "1.0.0", "docs": "/docs"}


@app.get("/health")
def health():
    return {"status": "ok"}
