"""Session Auth Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from session_auth.api.routes import auth
from session_auth.config.settings import get_settings
from session_auth.core.auth import AuthFlowController, get_auth_flow
from session_auth.core.auth.flow import INVALID_REQUEST
from session_auth.infrastructure.redis.client import close_redis

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    # Build the auth flow; configuration errors abort startup
    try:
        await get_auth_flow()
        logger.info("Authentication flow ready")
    except Exception as e:
        logger.error(f"Failed to initialize authentication flow: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Session Auth Service")
    await close_redis()


# Create FastAPI application
app = FastAPI(
    title="Session Auth Service",
    version=settings.service_version,
    description="Session-based authentication with local credentials and OAuth providers",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Health check endpoint
@app.get("/health")
async def root_health_check(flow: AuthFlowController = Depends(get_auth_flow)):
    """Root health check endpoint"""
    store_healthy = await flow.sessions.store.health_check()
    return JSONResponse(
        status_code=200 if store_healthy else 503,
        content={
            "status": "healthy" if store_healthy else "degraded",
            "service": settings.service_name,
            "version": settings.service_version,
            "environment": settings.environment,
            "providers": [p.value for p in flow.providers],
        },
    )


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "Session Auth Service",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(auth.router, tags=["authentication"])


# Malformed request bodies use the same envelope as validation failures
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Answer unparseable or wrongly typed input with 400"""
    problems = [(e.get("loc"), e.get("type")) for e in exc.errors()]
    logger.info(f"Rejected malformed request to {request.url.path}: {problems}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": INVALID_REQUEST}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "session_auth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
