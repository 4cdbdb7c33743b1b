"""Task Pool: Main FastAPI Application.

Distributes units of work among a team: an atomic claim marker, formal
assignment, two-phase handoffs, completion with follow-up routing, and a
review loop for AI-suggested tasks.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .api import api_router
from .core import close_db, get_dispatcher, get_settings, init_db
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup - skip init_db in production (migrations own the schema)
    if settings.environment != "production":
        try:
            await init_db()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Could not initialize database: {e}")
    yield
    # Shutdown - let in-flight notifications and feedback finish
    await get_dispatcher().drain()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Task Pool API

    Shared work queue for a team.

    ### Key Features

    - **Atomic Claims**: At most one user works on a task; concurrent claimants get 409.
    - **Assignment**: Formal ownership, independent of who is working on it.
    - **Handoffs**: Two-phase transfer that the recipient must accept.
    - **Routing**: Completing a task can spawn a follow-up linked to its origin.
    - **AI Suggestions**: Approve or decline proposed tasks; overrides feed learning.
    - **Activity Log**: Every transition is recorded.

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug or settings.environment != "production":
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "task_pool.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
