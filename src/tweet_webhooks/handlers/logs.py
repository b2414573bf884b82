"""
Module: logs.py
Description: Delivery log inspection handlers.

- GET /webhook-logs: Page through logs, optionally by status
- DELETE /webhook-logs: Operator-triggered bulk clear

Dependencies: FastAPI, typing, models, storage
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as status_codes

from tweet_webhooks.handlers.dependencies import get_webhook_store
from tweet_webhooks.models.response import ClearLogsResponse, WebhookLogListResponse
from tweet_webhooks.storage.dynamodb import WebhookStore
from tweet_webhooks.utils.logger import get_logger

router = APIRouter(prefix="/webhook-logs", tags=["webhook-logs"])
logger = get_logger(__name__)


@router.get("", response_model=WebhookLogListResponse)
async def list_webhook_logs(
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    status: Optional[str] = Query(default=None, pattern=r"^(pending|success|failed)$"),
    since: Optional[int] = Query(default=None, ge=0, description="created_at lower bound (epoch ms)"),
    until: Optional[int] = Query(default=None, ge=0, description="created_at upper bound (epoch ms)"),
    store: WebhookStore = Depends(get_webhook_store)
) -> WebhookLogListResponse:
    """
    Retrieve delivery logs, newest first.

    With a status filter the StatusIndex is queried, optionally
    bounded by since/until; total then counts only matching rows.

    Example:
        GET /webhook-logs?status=pending&limit=20
    """
    if since is not None and until is not None and since > until:
        raise HTTPException(
            status_code=status_codes.HTTP_400_BAD_REQUEST,
            detail="since must not be after until"
        )

    if status:
        matching = await store.list_logs_by_status(status, since=since, until=until)
        logs = matching[offset:offset + limit]
        total = len(matching)
    else:
        logs = await store.list_logs(limit=limit, offset=offset)
        total = await store.count_logs()

    logger.info(
        "Webhook logs retrieved",
        count=len(logs),
        total=total,
        status_filter=status
    )

    return WebhookLogListResponse(logs=logs, total=total, limit=limit, offset=offset)


@router.delete("", response_model=ClearLogsResponse)
async def clear_webhook_logs(
    store: WebhookStore = Depends(get_webhook_store)
) -> ClearLogsResponse:
    """Delete every delivery log row."""
    deleted = await store.clear_logs()
    logger.info("Webhook logs cleared via API", deleted=deleted)
    return ClearLogsResponse(deleted=deleted, message=f"Cleared {deleted} webhook logs")
