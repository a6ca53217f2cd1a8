"""
Main FastAPI application
OAB exam preparation: AI-generated timed exams, results history and mentor analytics
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import asyncio
import logging
import time

from oab_prep.config import settings
from oab_prep.database import init_db
from oab_prep.exceptions import ExamPrepError
from oab_prep.api import analytics, auth, exams, preferences
from oab_prep.services.result_store import result_store
from oab_prep.services.session_service import session_service
from oab_prep.utils.cache import cache_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Backend for OAB exam preparation with AI-generated questions and diagnostics",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""

    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration:.3f}s"
    )

    return response


# Domain exception handler
@app.exception_handler(ExamPrepError)
async def exam_prep_exception_handler(request: Request, exc: ExamPrepError):
    """Render domain errors with their own status code"""

    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    else:
        logger.info(f"{exc.error_code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "status_code": exc.status_code
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything not mapped to a domain error is a 500"""

    logger.error(f"Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "Erro inesperado. Tente novamente em instantes.",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


# HTTP exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Same envelope as domain errors"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.get("/health")
async def health_check():
    """
    Liveness check

    Reports the question cache backend and how many exam sessions are open
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "cache_backend": "redis" if cache_service.redis_client else "memory",
        "active_sessions": session_service.active_count(),
        "timestamp": time.time()
    }


@app.get("/")
async def root():
    return {
        "message": "OAB Exam Prep API",
        "version": settings.APP_VERSION,
        "endpoints": ["/api/auth", "/api/exams", "/api/users", "/api/mentors", "/api/preferences"],
        "docs": "/docs"
    }


# Include routers
app.include_router(auth.router)
app.include_router(exams.router)
app.include_router(analytics.router)
app.include_router(preferences.router)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize storage, rehydrate state and start the session timer"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    result_store.load_all()

    app.state.session_ticker = asyncio.create_task(session_service.run_ticker())

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down application")

    ticker = getattr(app.state, "session_ticker", None)
    if ticker is not None:
        ticker.cancel()

    await session_service.drain()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "oab_prep.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
