import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from motomarket.core.config import settings
from motomarket.core.database import Base, SessionLocal, engine
from motomarket.core.errors import install_error_handlers
from motomarket.core.logging_config import configure_logging
from motomarket.core.scheduler import start_scheduler, stop_scheduler
from motomarket.models import account, favorite, listing  # noqa: F401 register tables
from motomarket.services.account_service import account_service
from motomarket.storage.local_storage import UPLOAD_URL_PREFIX, storage
from motomarket.api.routes import auth, motos

logger = logging.getLogger(__name__)


def init_database():
    """Create tables (no migrations) and optionally seed the admin account"""
    Base.metadata.create_all(bind=engine)
    if settings.SEED_ADMIN:
        db = SessionLocal()
        try:
            account_service.seed_admin(db)
        finally:
            db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: configure logging, create tables, start the image cleanup scheduler
    Shutdown: stop the scheduler
    """
    configure_logging()
    init_database()
    start_scheduler()
    logger.info(f"MotoMarket API started ({settings.ENVIRONMENT})")
    yield
    stop_scheduler()


app = FastAPI(
    title="MotoMarket API",
    description="Motorcycle classifieds marketplace",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

install_error_handlers(app)

# All routes are prefixed with /api
app.include_router(auth.router, prefix="/api")
app.include_router(motos.router, prefix="/api")

# Uploaded listing images
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=storage.upload_dir), name="uploads")


@app.get("/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
    }


@app.get("/api")
async def api_info():
    """API information"""
    return {
        "name": "MotoMarket API",
        "description": "Marketplace for buying and selling motorcycles",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "auth": "/api/auth/*",
            "motos": "/api/motos/*",
        },
    }
