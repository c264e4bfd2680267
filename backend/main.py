import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded
from app.api.routes import router
from app.api.metrics import router as metrics_router
from app.core.cache import QueryCache
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.core.middleware import CORRELATION_HEADER, CorrelationIDMiddleware, TimeoutMiddleware
from app.core.rate_limit import limiter, rate_limit_handler
from app.core.security import SecurityHeadersMiddleware, validate_production_security
from app.core.storage import create_store

# Load environment variables
load_dotenv()

# Load and validate configuration
try:
    settings = get_settings()
except Exception as e:
    # Basic logger for startup errors
    logging.basicConfig(level=logging.ERROR)
    logger = logging.getLogger(__name__)
    logger.error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Data Explorer API",
    description="Profile, filter, chart and aggregate tabular datasets",
    version="1.0.0"
)

# Shared state for the routes
app.state.limiter = limiter
app.state.settings = settings
app.state.store = create_store(settings)
app.state.query_cache = QueryCache(
    max_entries=settings.query_cache_max_entries,
    ttl=settings.query_cache_ttl_seconds,
)

app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Middleware (last added is first executed)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", CORRELATION_HEADER],
    expose_headers=[CORRELATION_HEADER, "Content-Disposition"]
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(CorrelationIDMiddleware)

# Validate production security settings
validate_production_security(settings)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Data Explorer API is running"}


logger.info("Application started successfully")
