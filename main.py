"""
FastAPI Application Entry Point

Integrates:
  - WeChat webhook handler (server verification + messages)
  - Task callback handler
  - Health checks
  - Middleware for logging & error handling

Run: uvicorn main:app --reload --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Config
from infra.bootstrap import InfraBootstrap
from webhook.callback import router as callback_router
from webhook.wechat import router as wechat_router

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan: startup and shutdown handlers.
    """
    # Startup
    bootstrap = InfraBootstrap.get_instance()
    logger.info("=" * 60)
    logger.info("WeChat bridge starting up...")
    logger.info(f"AppID: {Config.WECHAT_APP_ID}")
    logger.info(f"Secure mode key: {'set' if Config.WECHAT_ENCODING_AES_KEY else 'not set'}")
    logger.info(f"Bridge URL: {Config.BRIDGE_BASE_URL}")
    logger.info(f"Environment: {Config.ENVIRONMENT}")
    logger.info(f"Infrastructure: {bootstrap!r}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("WeChat bridge shutting down...")
    await bootstrap.close()


# Create FastAPI app
app = FastAPI(
    title="WeChat Bridge API",
    description="Relays WeChat Official Account messages to per-user task endpoints",
    version="1.0.0",
    lifespan=lifespan,
)


# Middleware for logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests."""
    logger.debug(f"{request.method} {request.url.path}")
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Request error: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# Include routers
app.include_router(wechat_router)
app.include_router(callback_router)


# Health check endpoints
@app.get("/health/live")
async def health_live():
    """Live health check (Kubernetes liveness probe)."""
    return {"status": "alive"}


@app.get("/health/ready")
async def health_ready():
    """Readiness health check (Kubernetes readiness probe)."""
    if Config.validate():
        return {"status": "ready"}
    return {"status": "not_ready", "reason": "missing configuration"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "WeChat Bridge API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "wechat_verify": "GET /wechat",
            "wechat_messages": "POST /wechat",
            "task_callback": "POST /callback/{user_id}",
            "task_stream_callback": "POST /callback/{user_id}/stream",
            "health_live": "GET /health/live",
            "health_ready": "GET /health/ready",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=Config.BRIDGE_PORT,
        reload=Config.ENVIRONMENT == "development",
    )
