import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv, find_dotenv

# Load environment variables
_ = load_dotenv(find_dotenv())

from app.core.logging_config import setup_logging
from app.exception_handlers import (
    ai_service_error_handler,
    app_exception_handler,
    unhandled_exception_handler,
)
from app.exceptions import AppException
from app.services.errors import AIServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    logger.info("Course Q&A API starting")

    yield

    logger.info("Course Q&A API stopping")


app = FastAPI(
    title="Course Forum Q&A API",
    description="Answers course questions from uploaded documents and forum history",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust this for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(AIServiceError, ai_service_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Import and register routers
from app.api.routers import llm, posts, resources, health as queue_health
app.include_router(llm.router, prefix="/api")
app.include_router(posts.router, prefix="/api")
app.include_router(resources.router, prefix="/api")
app.include_router(queue_health.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Root health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/health")
async def api_health_check():
    """API health check endpoint."""
    return {"status": "healthy", "service": "forum-qa-api"}
