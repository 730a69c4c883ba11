"""Verma and Company storefront auth – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from storefront.config import get_settings
from storefront.database import Base, SessionLocal, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from storefront.models import User  # noqa: F401
from storefront.routers import auth
from storefront.services.accounts import seed_admin
from storefront.services.notifications import email_configured

log = logging.getLogger("uvicorn.error")

settings = get_settings()
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)


@app.exception_handler(RedisError)
@app.exception_handler(SQLAlchemyError)
async def backend_failure(request: Request, exc: Exception):
    log.exception("[App] %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
def startup():
    if not email_configured(settings):
        log.warning("[Email] Not configured - verification codes will not be emailed; set MAILGUN_API_KEY and MAILGUN_DOMAIN (or SENDGRID_API_KEY) in .env")
    try:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            seed_admin(db)
        finally:
            db.close()
    except SQLAlchemyError as e:
        log.warning("Database startup failed (tables/seed skipped). Check DATABASE_URL. Error: %s", e)

    if settings.kv_backend == "memory":
        from apscheduler.schedulers.background import BackgroundScheduler
        from storefront.services.kv_store import run_store_purge_job
        scheduler = BackgroundScheduler()
        scheduler.add_job(run_store_purge_job, "interval", seconds=settings.store_purge_interval_seconds)
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
def shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
