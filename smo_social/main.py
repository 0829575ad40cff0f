import os
import uuid
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import settings
from .db import engine, SessionLocal
from .errors import SMOError
from .logging_setup import setup_logging, log_event, request_id_var
from .models import Base, User
from .responses import json_error
from .routes import (
    ajax_analytics,
    ajax_comments,
    ajax_demographics,
    ajax_media,
    ajax_memory,
    ajax_organizer,
    ajax_permissions,
    ajax_posts,
    ajax_team,
    auth,
    pages,
)
from .security.auth import get_password_hash
from .services.scheduler import start_scheduler

setup_logging()

if settings.secret_key == "change-me-in-production-for-jwt":
    log_event("startup_insecure_secret", level="warning", detail="Using the default JWT secret")

app = FastAPI(title="SMO Social Admin", version=settings.version)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_var.set(req_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = req_id
    return response

@app.exception_handler(SMOError)
async def smo_error_handler(request: Request, exc: SMOError):
    log_event("request_error", level="warning", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    return json_error(exc.message, status_code=exc.status_code)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = errors[0]["loc"][-1] if errors and errors[0].get("loc") else "request"
    log_event("request_invalid", level="warning", path=request.url.path, field=str(field), error_count=len(errors))
    return json_error(f"Invalid value for {field}", status_code=400)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log_event("unhandled_error", level="error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"success": False, "data": f"Internal Server Error: {str(exc)}"},
    )

@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": settings.version,
        "now": datetime.now(timezone.utc).isoformat(),
    }

@app.get("/ready")
def readiness_check():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as e:
        log_event("readiness_failed", level="error", error=str(e))
        return JSONResponse(status_code=503, content={"status": "not_ready", "detail": "Database unreachable."})

# Serve uploads
os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")

# Include Routers
app.include_router(auth.router)
app.include_router(pages.router)
app.include_router(ajax_analytics.router)
app.include_router(ajax_demographics.router)
app.include_router(ajax_comments.router)
app.include_router(ajax_organizer.router)
app.include_router(ajax_posts.router)
app.include_router(ajax_media.router)
app.include_router(ajax_memory.router)
app.include_router(ajax_team.router)
app.include_router(ajax_permissions.router)

def bootstrap_superadmin():
    """Seed the superadmin user from settings when none exists."""
    if not (settings.superadmin_email and settings.superadmin_password):
        return
    db = SessionLocal()
    try:
        if db.query(User).filter(User.is_superadmin == True).first():
            return
        db.add(User(
            email=settings.superadmin_email.strip().lower(),
            name="Platform Superadmin",
            role="admin",
            password_hash=get_password_hash(settings.superadmin_password),
            granted_permissions=[],
            revoked_permissions=[],
            is_superadmin=True,
            is_active=True,
        ))
        db.commit()
        log_event("bootstrap_superadmin", email=settings.superadmin_email)
    except Exception as e:
        log_event("bootstrap_failed", level="error", error=str(e))
        db.rollback()
    finally:
        db.close()

@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    bootstrap_superadmin()

    if not settings.openai_api_key:
        log_event("startup_ai_missing", level="warning", detail="AI features are disabled until OPENAI_API_KEY is set")

    try:
        app.state.scheduler = start_scheduler(SessionLocal)
    except Exception as e:
        log_event("scheduler_start_failed", level="error", error=repr(e))
        app.state.scheduler = None

@app.on_event("shutdown")
def on_shutdown():
    sched = getattr(app.state, "scheduler", None)
    if sched:
        sched.shutdown(wait=False)
