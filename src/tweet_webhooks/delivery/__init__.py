"""
Package: delivery
Description: Webhook delivery pipeline.

Provides payload formatting, HTTP delivery, the retry queue with
exponential backoff, and the manager that ties them together.
"""

from .manager import DeliveryManager
from .queue import RetryQueue, calculate_delay
from .sender import WebhookSender

__all__ = ["DeliveryManager", "RetryQueue", "WebhookSender", "calculate_delay"]
