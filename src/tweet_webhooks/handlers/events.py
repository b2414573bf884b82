"""
Module: events.py
Description: Event ingest handler.

POST /events/{event_type} hands captured tweets to the delivery
manager. A single tweet uses trigger_webhooks, several use
trigger_webhooks_batch. Delivery outcomes land in the delivery log;
the response only reports how many deliveries were started.

Dependencies: FastAPI, models, delivery
"""

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi import status as status_codes

from tweet_webhooks.delivery.manager import DeliveryManager
from tweet_webhooks.handlers.dependencies import get_delivery_manager
from tweet_webhooks.models.request import TriggerEventRequest
from tweet_webhooks.models.response import TriggerEventResponse
from tweet_webhooks.models.webhook import WEBHOOK_EVENT_TYPES
from tweet_webhooks.utils.logger import get_logger

router = APIRouter(prefix="/events", tags=["events"])
logger = get_logger(__name__)


@router.post(
    "/{event_type}",
    status_code=status_codes.HTTP_202_ACCEPTED,
    response_model=TriggerEventResponse
)
async def trigger_event(
    request: TriggerEventRequest,
    event_type: str = Path(..., description="like, bookmark or view"),
    manager: DeliveryManager = Depends(get_delivery_manager)
) -> TriggerEventResponse:
    """
    Trigger webhooks for captured tweets.

    Args:
        request: Tweets the event applies to
        event_type: like, bookmark or view
        manager: Delivery manager

    Returns:
        Number of tweets and matching configs

    Raises:
        HTTPException: 404 if the event type is unknown

    Example:
        POST /events/like
        {"tweets": [{"rest_id": "1790000000000000000"}]}
    """
    if event_type not in WEBHOOK_EVENT_TYPES:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Unknown event type: {event_type}"
        )

    config_count = len(manager.get_configs_for_event(event_type))

    if len(request.tweets) == 1:
        await manager.trigger_webhooks(event_type, request.tweets[0])
    else:
        await manager.trigger_webhooks_batch(event_type, request.tweets)

    logger.info(
        "Event triggered",
        event_type=event_type,
        tweet_count=len(request.tweets),
        config_count=config_count
    )

    return TriggerEventResponse(
        event_type=event_type,
        tweet_count=len(request.tweets),
        config_count=config_count,
        message="Event delivered to matching webhooks" if config_count else "No matching webhooks"
    )
