"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.routes import api_router
from app.core.config import get_settings
from app.core.validation import ConfigurationError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Validates Supabase configuration
    - Subscribes to lead table changes

    Shutdown:
    - Releases the realtime channel
    """
    # ========================
    # STARTUP
    # ========================
    logger.info("Starting Lead Dashboard API...")

    settings = get_settings()
    strict_validation = settings.environment == "production"

    try:
        from app.core.validation import validate_config_on_startup
        validate_config_on_startup(strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        else:
            logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    app.state.realtime_bridge = None
    if settings.realtime_enabled and settings.supabase_url and settings.supabase_anon_key:
        from app.domain.services.notification_hub import get_notification_hub
        from app.domain.services.query_cache import get_invalidation_bus, get_query_cache
        from app.services.realtime_bridge import RealtimeBridge

        get_query_cache()
        bridge = RealtimeBridge(
            settings.supabase_url,
            settings.supabase_anon_key,
            bus=get_invalidation_bus(),
            hub=get_notification_hub(),
            channel_name=settings.realtime_channel,
            tables=settings.realtime_tables,
        )
        try:
            await bridge.start()
            app.state.realtime_bridge = bridge
        except Exception as e:
            if strict_validation:
                raise
            logger.warning(f"Realtime subscription unavailable: {e}")
    else:
        logger.info("Realtime sync disabled")

    logger.info("Lead Dashboard API started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down Lead Dashboard API...")

    bridge = app.state.realtime_bridge
    if bridge is not None:
        await bridge.stop()

    logger.info("Lead Dashboard API shutdown complete")


settings = get_settings()

app = FastAPI(
    title="Lead Dashboard API",
    description="Unified lead management over the leads and hire-helper tables",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=503, content={"detail": exc.message})


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Lead Dashboard API", "status": "running", "docs": "/docs"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns basic health status, realtime subscription state and the
    number of connected dashboard clients.
    """
    from app.domain.services.notification_hub import get_notification_hub

    bridge = getattr(app.state, "realtime_bridge", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "realtime": bool(bridge and bridge.is_running),
        "connected_clients": get_notification_hub().connection_count,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
