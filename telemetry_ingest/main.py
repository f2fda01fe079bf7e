"""
Telemetry Ingest - batch ingestion service for industrial machine events.

Features:
- Batch validation and reconciliation against the event store
- Machine and production line defect statistics
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger, SERVICE_NAME
from .middleware.correlation import CorrelationIdMiddleware
from .middleware.error_handler import register_error_handlers
from .middleware.metrics import MetricsMiddleware
from .middleware.validation import ValidationMiddleware
from .metrics import Metrics
from .health import HealthChecker
from .services.ingestion import service, set_metrics
from .api.router import router

VERSION = "0.1.0"

# Initialize configuration
settings = get_settings()

# Setup logging
setup_logging(json_output=settings.LOG_JSON, service_name=SERVICE_NAME, level=settings.LOG_LEVEL)
logger = get_logger()

# Initialize metrics
metrics = Metrics(service_name=SERVICE_NAME, version=VERSION)
set_metrics(metrics)

# Initialize health checker
health_checker = HealthChecker(service.store, service_name=SERVICE_NAME, version=VERSION)


app = FastAPI(
    title="Telemetry Ingest",
    version=VERSION,
    description="Batch ingestion and defect statistics for machine telemetry events",
)

# Added last runs first: correlation ID, then metrics, then request guards
app.add_middleware(ValidationMiddleware)
app.add_middleware(MetricsMiddleware, metrics=metrics)
app.add_middleware(CorrelationIdMiddleware)

register_error_handlers(app)

app.include_router(router)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app(registry=metrics.registry)
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    """
    Liveness probe - basic health check.

    Returns 200 if service is running.
    """
    logger.debug("health_check_liveness")
    return health_checker.liveness()


@app.get("/health/ready")
async def health_ready():
    """
    Readiness probe - comprehensive health check.

    Checks:
    - Event store connectivity
    - Disk space availability
    - Memory availability

    Returns:
        200: Service is ready to handle traffic
        503: Service is not ready
    """
    logger.debug("health_check_readiness")
    metrics.update_system_metrics()
    result = await health_checker.readiness()
    status_code = 200 if result["status"] == "ready" else 503
    return JSONResponse(content=result, status_code=status_code)


@app.on_event("startup")
async def startup_event():
    """Logs service startup."""
    logger.info(
        "service_starting",
        version=VERSION,
        env=settings.ENV,
        store_adapter=type(service.store).__name__,
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Logs service shutdown and marks the app down."""
    logger.info("service_stopping")
    metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)
    close = getattr(service.store, "close", None)
    if close is not None:
        close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "telemetry_ingest.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=True,
    )
