from dotenv import load_dotenv

# Settings and db_config read the environment at import time
load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import traceback

from app.config import Capabilities, ConfigError, get_settings, get_env_presence
from app.admin import router as admin_router
from app.services import build_services

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifecycle events."""
    if settings.is_dev:
        logger.info("[jobrelay] env: JOBRELAY_ENV=dev (mock mail, test collection, admin routes open)")
    else:
        logger.info(f"[jobrelay] env: JOBRELAY_ENV={settings.env}")

    services = None
    try:
        services = build_services(settings)
        app.state.services = services
        await services.start()
    except ConfigError as e:
        logger.error(f"[jobrelay] Pipeline not started: {e}")

    yield

    # Shutdown
    if services:
        await services.stop()


app = FastAPI(title="jobrelay", version="0.1.0", lifespan=lifespan)


@app.middleware("http")
async def error_masking_middleware(request: Request, call_next):
    """Mask detailed errors in production; show full errors in dev."""
    try:
        return await call_next(request)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unhandled error: {str(e)}")
        if settings.is_dev:
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "error": str(e),
                    "traceback": traceback.format_exc()
                }
            )
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": "Internal server error"}
        )


app.include_router(admin_router)


@app.get("/api/healthz")
def healthz():
    return Capabilities.get_status(settings)


@app.get("/api/env")
async def env_presence():
    if not settings.is_dev:
        raise HTTPException(status_code=403, detail="Only available in dev mode")
    return get_env_presence()
