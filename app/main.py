# ============================================================================
# FastAPI Application Entry Point
# ============================================================================
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from app.config import get_settings
from app.core.exceptions import PracticeEngineException
from app.api.v1.router import api_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    logger.info(f"Starting {settings.APP_NAME}...")

    # Register models on the metadata before create_all
    from app import models  # noqa: F401
    from app.core.database import engine, Base

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Shutting down...")
    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    description="Adaptive question selection and mastery tracking for aptitude practice",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handlers
@app.exception_handler(PracticeEngineException)
async def practice_exception_handler(request: Request, exc: PracticeEngineException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code}
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    missing = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Missing or invalid fields",
            "error_code": "VALIDATION_ERROR",
            "fields": missing
        }
    )

@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Data store error", "error_code": "STORE_ERROR"}
    )

# Health Check - Root level
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

app.include_router(api_router, prefix=settings.API_V1_PREFIX)
