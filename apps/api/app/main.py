import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.api.errors import register_exception_handlers
from app.api.responses import error_response, success_response
from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.request_id import RequestIdMiddleware
from app.redis_client import redis_available

configure_logging()

logger = structlog.get_logger(__name__)

API_NAME = "Event Registration API"

app = FastAPI(title=API_NAME)

# Middleware ordering matters.
# Starlette runs the LAST added middleware FIRST (outermost).
# We want:
# - RequestId to apply even to CORS preflight + rate limit responses
# - CORS to handle preflight properly
# - RateLimit to be closest to the app (innermost)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

if settings.metrics_enabled:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/")
def root():
    return success_response(
        {"name": API_NAME, "status": "ok", "api_prefix": settings.api_prefix},
        f"{API_NAME} is running",
    )


@app.get("/health")
def health():
    try:
        db.ping()
    except SQLAlchemyError:
        logger.exception("health_check_failed")
        return error_response("API health check failed", 503, errors={"database": ["unreachable"]})

    data = {"status": "ok", "database": "ok"}
    if settings.rate_limit_enabled:
        data["redis"] = "ok" if redis_available() else "unavailable"
    return success_response(data, "API is healthy")


app.include_router(v1_router, prefix=settings.api_prefix)
