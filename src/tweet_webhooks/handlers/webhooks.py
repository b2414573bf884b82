"""
Module: webhooks.py
Description: Webhook configuration handlers.

Implements the operator endpoints for managing delivery targets:
- GET /webhooks: List configs
- POST /webhooks: Create a config
- GET/PATCH/DELETE /webhooks/{config_id}: Read, update, delete
- POST /webhooks/test: Connectivity test against a URL

Every mutation goes through the DeliveryManager so its config mirror
is reloaded right after the write.

Dependencies: FastAPI, typing, models, delivery
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi import status as status_codes

from tweet_webhooks.delivery.formatter import generate_webhook_config_id
from tweet_webhooks.delivery.manager import DeliveryManager
from tweet_webhooks.handlers.dependencies import get_delivery_manager
from tweet_webhooks.models.request import (
    CreateWebhookConfigRequest,
    UpdateWebhookConfigRequest,
    WebhookTestRequest,
)
from tweet_webhooks.models.response import WebhookTestResponse
from tweet_webhooks.models.webhook import WebhookConfig
from tweet_webhooks.utils.clock import now_ms
from tweet_webhooks.utils.logger import get_logger

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


@router.get("", response_model=List[WebhookConfig])
async def list_webhook_configs(
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> List[WebhookConfig]:
    """
    List webhook configs in creation order.

    The mirror is reloaded first so edits made by another process
    are visible.
    """
    await manager.load_configs()
    return manager.get_configs()


@router.post("", status_code=status_codes.HTTP_201_CREATED, response_model=WebhookConfig)
async def create_webhook_config(
    request: CreateWebhookConfigRequest,
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> WebhookConfig:
    """
    Create a webhook config.

    Args:
        request: Validated config fields
        manager: Delivery manager

    Returns:
        The stored config with generated id and timestamps

    Raises:
        HTTPException: 500 if the config could not be stored

    Example:
        POST /webhooks
        {
            "name": "n8n likes",
            "url": "https://n8n.example.com/webhook/likes",
            "events": ["like"],
            "max_retries": 3
        }
    """
    now = now_ms()
    config = WebhookConfig(
        id=generate_webhook_config_id(),
        created_at=now,
        updated_at=now,
        **request.model_dump()
    )

    if not await manager.add_config(config):
        logger.error("Failed to create webhook config", name=config.name)
        raise HTTPException(
            status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create webhook config"
        )

    logger.info("Webhook config created", config_id=config.id, url=config.url)
    return config


@router.post("/test", response_model=WebhookTestResponse)
async def test_webhook(
    request: WebhookTestRequest,
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> WebhookTestResponse:
    """
    Send a synthetic like event to a URL.

    Delivery failures are reported in the body with success=false,
    not as HTTP errors.
    """
    result = await manager.test_webhook(request.url, request.headers)
    logger.info("Webhook test completed", url=request.url, success=result.success)
    return WebhookTestResponse(success=result.success, message=result.message)


@router.get("/{config_id}", response_model=WebhookConfig)
async def get_webhook_config(
    config_id: str,
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> WebhookConfig:
    """Retrieve a single webhook config."""
    config = manager.get_config(config_id)
    if config is None:
        await manager.load_configs()
        config = manager.get_config(config_id)

    if config is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Webhook config {config_id} not found"
        )
    return config


@router.patch("/{config_id}", response_model=WebhookConfig)
async def update_webhook_config(
    config_id: str,
    request: UpdateWebhookConfigRequest,
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> WebhookConfig:
    """
    Partially update a webhook config.

    Raises:
        HTTPException: 400 if no fields were supplied
        HTTPException: 404 if the config does not exist
    """
    updates = request.to_updates()
    if not updates:
        raise HTTPException(
            status_code=status_codes.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    if not await manager.update_config(config_id, updates):
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Webhook config {config_id} not found"
        )

    config = manager.get_config(config_id)
    if config is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Webhook config {config_id} not found"
        )
    return config


@router.delete("/{config_id}", status_code=status_codes.HTTP_204_NO_CONTENT)
async def delete_webhook_config(
    config_id: str,
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> Response:
    """Delete a webhook config. Pending retries for it still run."""
    if manager.get_config(config_id) is None:
        await manager.load_configs()
        if manager.get_config(config_id) is None:
            raise HTTPException(
                status_code=status_codes.HTTP_404_NOT_FOUND,
                detail=f"Webhook config {config_id} not found"
            )

    if not await manager.delete_config(config_id):
        raise HTTPException(
            status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete webhook config"
        )

    return Response(status_code=status_codes.HTTP_204_NO_CONTENT)
