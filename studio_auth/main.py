import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

# Load environment variables as early as possible
load_dotenv()

from .config import settings
from .database import create_db_and_tables, engine
from .utils import utcnow
from .exceptions import AppError, app_error_handler, http_exception_handler
from .middleware import SecurityMiddleware, LoggingMiddleware, ErrorHandlingMiddleware
from .routers import auth_router
from .application.services.cleaner import OTPCleaner, run_periodically
from .infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOTPRepository

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def sweep_expired_codes() -> int:
    """One cleanup pass on its own session, outside any request."""
    with Session(engine) as session:
        return OTPCleaner(SqlOTPRepository(session)).sweep_expired()


def log_config_warnings(cfg) -> None:
    if cfg.SECRET_KEY == "change-me-in-prod":
        logger.warning("JWT_SECRET_KEY is not configured; using the insecure default")
    if not cfg.mail_configured:
        logger.warning(
            f"No mail credentials configured; OTP delivery may fail unless {cfg.MAIL_SERVER} accepts unauthenticated mail"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Studio Auth API...")
    app.state.db_init_ok = True
    app.state.db_init_error = None
    try:
        create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        # Do not crash the app; report via health endpoint
        app.state.db_init_ok = False
        app.state.db_init_error = str(e)
        logger.exception("Database initialization failed")

    log_config_warnings(settings)

    cleanup_task = None
    if settings.OTP_CLEANUP_ENABLED:
        cleanup_task = asyncio.create_task(
            run_periodically(sweep_expired_codes, settings.OTP_CLEANUP_INTERVAL_SECONDS)
        )
    yield
    # Shutdown
    if cleanup_task:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
    logger.info("Shutting down Studio Auth API...")

# Initialize FastAPI
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

# Add custom exception handlers
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)

# Add middleware
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include authentication router
app.include_router(auth_router.router)

# Health check endpoint
@app.get("/health")
def health_check():
    return {
        "status": "healthy" if getattr(app.state, "db_init_ok", True) else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
    }
