"""
Main application entry point for the Sistahology API.

This module configures logging, initializes the FastAPI application,
sets up CORS, registers the error handlers, initializes the rate
limiter with a Redis backend and includes the routers.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis: In-process Redis used when the real one is unreachable
- sistahology.auth: Authentication router
- sistahology.profiles: Profiles router
- sistahology.journals: Journals and entries routers
- sistahology.content: Pages, sections, blog posts and writing prompts
- sistahology.admin_tokens: Admin registration tokens router
- sistahology.contact: Contact form router
- sistahology.core: Application settings
"""

import logging

import redis.asyncio as redis
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from sistahology import admin_tokens, contact, content, journals, models, profiles
from sistahology.auth import router as auth_router
from sistahology.core import get_settings
from sistahology.database import engine
from sistahology.errors import SistahologyError

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables (for development only)
models.Base.metadata.create_all(bind=engine)

# Initialize FastAPI application
app = FastAPI(title="Sistahology API")

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    FastAPI startup event handler.

    Initializes the rate limiter with Redis backend. Falls back to
    fakeredis if Redis is unavailable (e.g., during tests or offline).
    """
    redis_client = redis.from_url(
        settings.REDIS_URL, encoding="utf-8", decode_responses=True
    )
    try:
        await FastAPILimiter.init(redis_client)
    except Exception:
        logger.warning("Redis at %s is unreachable; rate limiting in memory", settings.REDIS_URL)
        await FastAPILimiter.init(FakeRedis(decode_responses=True))


@app.on_event("shutdown")
async def shutdown_event():
    await FastAPILimiter.close()


@app.exception_handler(SistahologyError)
async def sistahology_error_handler(request: Request, exc: SistahologyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(ValidationError)
async def payload_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(include_url=False, include_context=False)},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.info("Constraint violation on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Conflicts with existing data"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Include routers for application areas
app.include_router(auth_router)
app.include_router(profiles.router)
app.include_router(journals.router)
app.include_router(journals.entries_router)
app.include_router(content.router)
app.include_router(admin_tokens.router)
app.include_router(contact.router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "Sistahology API. Visit /docs for Swagger UI"}
