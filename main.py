"""Main FastAPI application"""
import os
import logging
import logging.config
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient

from routes import router as api_router

# --- slowapi imports ---
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False,
        },
    },
    "loggers": {
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": {  # Root logger for our application
            "handlers": ["default"],
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

load_dotenv()  # Searches for .env in current dir and parent dirs

MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "expense_tracker")
COLLECTION_NAME = "expenses"
DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT", "60/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

if not MONGODB_URI:
    logger.error("MONGODB_URI environment variable not set! Database connection will fail.")

# Application state to hold the database client and collection
app_state = {}


# --- Rate Limiter Setup (in-memory storage) ---
def create_limiter(rate_limit: str = DEFAULT_RATE_LIMIT, enabled: bool = RATE_LIMIT_ENABLED) -> Limiter:
    """Per-client-address limiter applied to every route."""
    return Limiter(key_func=get_remote_address, default_limits=[rate_limit], enabled=enabled)


def install_rate_limiting(app: FastAPI, limiter: Limiter) -> None:
    """Attaches the limiter, its 429 handler and the enforcing middleware to ``app``."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


limiter = create_limiter()


async def ensure_indexes(collection) -> None:
    """Indexes backing the owner-scoped list, sort and dashboard queries."""
    await collection.create_index([("user_id", 1), ("date", -1)])
    await collection.create_index([("user_id", 1), ("amount", -1)])


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Connect to MongoDB
    if MONGODB_URI:
        logger.info(f"Connecting to MongoDB database '{DB_NAME}'...")
        try:
            app_state["db_client"] = AsyncIOMotorClient(MONGODB_URI)
            app_state["db"] = app_state["db_client"][DB_NAME]
            app_state["expenses_collection"] = app_state["db"].get_collection(COLLECTION_NAME)
            await app_state["db_client"].admin.command("ping")
            logger.info("MongoDB ping successful.")
            await ensure_indexes(app_state["expenses_collection"])
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            app_state["expenses_collection"] = None
    else:
        app_state["expenses_collection"] = None

    yield  # Application runs here

    # Shutdown: Close MongoDB connection
    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")
    app_state.clear()


app = FastAPI(
    title="Expense Tracker API",
    description="API for recording expenses and summarising them on a dashboard.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- Middleware (Order Matters) ---
install_rate_limiting(app, limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api", tags=["api"])


@app.middleware("http")
async def add_app_config_to_request(request: Request, call_next):
    """Adds the expenses collection to the request state."""
    request.state.expenses_collection = app_state.get("expenses_collection")
    response = await call_next(request)
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_config=None,  # keep the Rich handlers configured above
    )
