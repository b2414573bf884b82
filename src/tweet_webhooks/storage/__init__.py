"""
Module: storage
Description: Package initialization for data persistence layer.

This package contains data storage implementations for the webhook
service:
- dynamodb: Config and delivery log storage in DynamoDB

All storage implementations follow async interfaces for consistency.
"""

from .dynamodb import WebhookStore, ensure_tables

__all__ = ["WebhookStore", "ensure_tables"]
