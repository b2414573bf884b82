#!/usr/bin/env python3
"""
Script: create_tables.py
Description: Create the webhook config and delivery log tables.

Creates both DynamoDB tables with their secondary indexes if they do
not exist yet. Intended for DynamoDB Local and fresh dev accounts.

Usage:
    python scripts/create_tables.py
    python scripts/create_tables.py --endpoint-url http://localhost:8001
"""

import argparse
import sys

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tweet_webhooks.config.settings import settings
from tweet_webhooks.storage.dynamodb import ensure_tables
from tweet_webhooks.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    """Main script execution."""
    parser = argparse.ArgumentParser(
        description="Create DynamoDB tables for Tweet Webhooks"
    )
    parser.add_argument(
        '--endpoint-url',
        type=str,
        default=settings.dynamodb_endpoint_url,
        help='DynamoDB endpoint override (defaults to DYNAMODB_ENDPOINT_URL)'
    )
    parser.add_argument(
        '--region',
        type=str,
        default=settings.aws_region,
        help='AWS region'
    )

    args = parser.parse_args()

    dynamodb = boto3.resource(
        'dynamodb',
        region_name=args.region,
        endpoint_url=args.endpoint_url
    )

    try:
        ensure_tables(dynamodb, settings.configs_table_name, settings.logs_table_name)
    except (ClientError, BotoCoreError) as e:
        logger.error("Failed to create tables", error=str(e))
        print(f"❌ Failed to create tables: {e}")
        sys.exit(1)

    print("✅ Tables ready:")
    print(f"   {settings.configs_table_name}")
    print(f"   {settings.logs_table_name}")


if __name__ == "__main__":
    main()
