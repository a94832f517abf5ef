import asyncio
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings
from app.db.db import create_tables
from app.providers.sql_roster_store import SqlRosterStore
from app.services.roster.roster_source import live_roster
from app.utils.logging import get_logger
from app.routers import main_router
from app.utils.errors import setup_error_handlers
from app.middlewares import RequestIDMiddleware, SecurityHeadersMiddleware

# Initialize the logger
logger = get_logger()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"{settings.NAME} is starting up ({settings.ENVIRONMENT})...")
    await create_tables()
    roster_follower = await live_roster.start(SqlRosterStore())
    yield
    logger.info(f"{settings.NAME} is shutting down...")
    roster_follower.cancel()
    with suppress(asyncio.CancelledError):
        await roster_follower


def create_application() -> FastAPI:
    """Initialize the FastAPI application with settings and lifespan events."""
    application = FastAPI(
        title=settings.NAME, version=settings.VERSION, lifespan=lifespan
    )

    setup_error_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-ID", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(
        SecurityHeadersMiddleware, environment=settings.ENVIRONMENT
    )
    # Added last so it runs first and every later log line carries the id
    application.add_middleware(RequestIDMiddleware)

    application.include_router(main_router, prefix=settings.API_PREFIX, tags=["APIs"])

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_config=None,
        log_level=None,
    )
