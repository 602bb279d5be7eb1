from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import inspect

from oneshot.config import settings
from oneshot.database import Base, engine
from oneshot.logging_config import get_logger, setup_logging
from oneshot.middleware.logging import CORRELATION_HEADER, LoggingMiddleware, current_correlation_id
from oneshot.middleware.rate_limit import limiter
from oneshot.routers import secrets
from oneshot.scheduler import shutdown_scheduler, start_scheduler

# Database tables are managed by Alembic migrations
# Run: alembic -c backend/alembic.ini upgrade head

setup_logging()
logger = get_logger(__name__)


def check_database_tables() -> None:
    """Fail fast when migrations have not been applied."""
    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(missing)}. "
            "Run `alembic -c backend/alembic.ini upgrade head` before starting the server."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the schema and manage the cleanup scheduler."""
    check_database_tables()
    if settings.cleanup_enabled:
        start_scheduler()
    logger.info("application_started")
    yield
    if settings.cleanup_enabled:
        shutdown_scheduler()


app = FastAPI(
    title="OneShot",
    description="Encrypted secrets that self-destruct after a number of views or a time limit",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer 500 without leaking internals, keeping the correlation ID."""
    response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
    correlation_id = current_correlation_id()
    if correlation_id:
        response.headers[CORRELATION_HEADER] = correlation_id
    return response


# Middleware (the last one added runs outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)
app.add_middleware(LoggingMiddleware)

# Routers
app.include_router(secrets.router, prefix="/api/v1", tags=["secrets"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
