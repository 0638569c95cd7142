"""
AI Mock Interview - Backend
FastAPI application entry point
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import get_cors_origins, settings
from app.db.client import get_record_store, validate_supabase_config
from app.dependencies import active_dispatcher
from app.routers import analytics, auth, interview
from app.utils.exceptions import AppException

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# Lifespan event handler (replaces deprecated @app.on_event)
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate storage on startup; finish pending analytics updates on shutdown"""
    logger.info(f"[STARTUP] Storage backend: {settings.storage_type}")

    if settings.storage_type.strip().lower() != "memory":
        config_valid = validate_supabase_config(raise_on_missing=False)
        if not config_valid:
            logger.warning("[STARTUP] Supabase configuration incomplete - database operations will fail")
        else:
            try:
                await get_record_store().ping()
                logger.info("[STARTUP] Supabase connection successful")
            except Exception as conn_error:
                logger.error(f"[STARTUP] Supabase connection failed: {str(conn_error)}")

    if not settings.openai_api_key:
        logger.warning("[STARTUP] OPENAI_API_KEY not set - question generation and grading will fail")

    logger.info("[STARTUP] Application startup complete.")

    yield

    dispatcher = active_dispatcher()
    if dispatcher is not None and dispatcher.pending_count:
        logger.info(f"[SHUTDOWN] Waiting for {dispatcher.pending_count} analytics update(s)...")
        await dispatcher.drain()
    logger.info("[SHUTDOWN] Application shutting down...")


app = FastAPI(
    title="AI Mock Interview",
    description="Backend API for AI-powered technical interview practice and accuracy analytics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# Standardize error responses to {'error': 'message'} format
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Domain errors keep their status and carry a machine-readable code"""
    if exc.status_code >= 500:
        logger.error(f"[ERROR] {request.method} {request.url.path}: {exc.code} {exc.message}")
    content = {"error": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring"""
    db_status = "unknown"
    try:
        store = get_record_store()
        await store.ping()
        db_status = "connected"
    except AppException as e:
        logger.warning(f"[HEALTH] Record store unavailable: {e.message}")
        db_status = "disconnected"

    return {
        "status": "healthy",
        "service": "AI Mock Interview Backend",
        "database": db_status
    }


cors_origins = get_cors_origins()
use_wildcard = "*" in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if use_wildcard else cors_origins,
    allow_credentials=not use_wildcard,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests for 1 hour
)

app.include_router(auth.router)
app.include_router(interview.router)
app.include_router(analytics.router)


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {
        "message": "AI Mock Interview API",
        "status": "running",
        "version": "1.0.0",
        "docs": "/docs",
        "api_base": "/api"
    }


if __name__ == "__main__":
    import uvicorn

    server_host = "127.0.0.1" if settings.environment == "development" else "0.0.0.0"
    logger.info(f"Server binding to: {server_host}:{settings.backend_port}")

    if settings.environment == "development":
        uvicorn.run(
            "app.main:app",  # Use import string for reload to work
            host=server_host,
            port=settings.backend_port,
            reload=True,
            log_level="info"
        )
    else:
        uvicorn.run(
            app,
            host=server_host,
            port=settings.backend_port,
            reload=False,
            log_level="info"
        )
