"""
Module: main.py
Description: FastAPI application entry point for the webhook service.

Initializes the FastAPI application with all routes and error
handlers, and acts as the composition root: startup builds the store,
sender, retry queue and delivery manager once and shares them through
app.state.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tweet_webhooks.config.settings import Settings, settings
from tweet_webhooks.delivery.manager import DeliveryManager
from tweet_webhooks.delivery.queue import RetryQueue
from tweet_webhooks.delivery.sender import WebhookSender
from tweet_webhooks.handlers.events import router as events_router
from tweet_webhooks.handlers.logs import router as logs_router
from tweet_webhooks.handlers.webhooks import router as webhooks_router
from tweet_webhooks.storage.dynamodb import WebhookStore
from tweet_webhooks.utils.logger import get_logger
from tweet_webhooks.utils.metrics import MetricsClient

logger = get_logger(__name__)

app = FastAPI(
    title="Tweet Webhooks",
    description="Relays captured tweet likes, bookmarks and views to webhooks",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.include_router(webhooks_router)
app.include_router(logs_router)
app.include_router(events_router)


def build_delivery_manager(config: Settings) -> DeliveryManager:
    """
    Wire the delivery pipeline from settings.

    Args:
        config: Application settings

    Returns:
        DeliveryManager owning a RetryQueue that shares its sender and store
    """
    store = WebhookStore(
        configs_table_name=config.configs_table_name,
        logs_table_name=config.logs_table_name,
        region_name=config.aws_region,
        endpoint_url=config.dynamodb_endpoint_url
    )
    sender = WebhookSender(
        timeout_ms=config.delivery_timeout_ms,
        test_timeout_ms=config.test_timeout_ms
    )
    metrics = (
        MetricsClient(namespace=config.metrics_namespace, region_name=config.aws_region)
        if config.metrics_enabled
        else None
    )
    queue = RetryQueue(
        sender,
        store,
        base_delay_ms=config.retry_base_delay_ms,
        max_delay_ms=config.retry_max_delay_ms,
        metrics=metrics
    )
    return DeliveryManager(store, sender, queue=queue, metrics=metrics)


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns basic application health information including the
    number of retries waiting in memory.
    """
    manager: DeliveryManager = request.app.state.delivery_manager
    logger.info("Health check requested")

    return {
        "status": "ok",
        "message": "Tweet Webhooks is healthy",
        "version": settings.app_version,
        "environment": settings.stage,
        "retry_queue_size": manager.queue.size,
        "configs_loaded": len(manager.get_configs())
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global HTTP exception handler.

    Logs HTTP exceptions and returns structured error responses.
    """
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.status_code,
                "message": exc.detail,
                "type": "http_exception"
            }
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return request validation failures as 400 with the offending fields."""
    logger.warning(
        "Request validation failed",
        path=request.url.path,
        method=request.method,
        errors=len(exc.errors())
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": 400,
                "message": "Request validation failed",
                "type": "validation_error",
                "details": [
                    {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
                    for err in exc.errors()
                ]
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Logs unexpected exceptions and returns generic error responses.
    """
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": 500,
                "message": "Internal server error",
                "type": "internal_error"
            }
        }
    )


@app.on_event("startup")
async def startup_event():
    """Build the pipeline, load configs and start the retry queue."""
    logger.info(
        "Starting Tweet Webhooks",
        version=settings.app_version,
        stage=settings.stage,
        region=settings.aws_region
    )

    manager = build_delivery_manager(settings)
    app.state.delivery_manager = manager
    app.state.webhook_store = manager.store

    await manager.load_configs()
    manager.start_queue()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the retry queue; queued retries are dropped with the process."""
    manager: DeliveryManager = app.state.delivery_manager
    manager.stop_queue()
    logger.info("Shutting down Tweet Webhooks", dropped_retries=manager.queue.size)
