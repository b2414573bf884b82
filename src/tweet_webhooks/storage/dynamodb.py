"""
Module: dynamodb.py
Description: DynamoDB storage for webhook configs and delivery logs.

Provides async operations for storing, updating, and querying webhook
configurations and delivery logs. Storage failures are logged and
reported as "no effect" (None, empty list, False or 0) so the
delivery pipeline keeps running when the store is unavailable.

Key Components:
- WebhookStore: Config and log table operations
- finalize_log(): Conditional terminal write, a no-op on terminal rows
- ensure_tables(): Schema creation for local development and tests

Dependencies: boto3, botocore, json, typing
"""

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from tweet_webhooks.models.webhook import (
    LOG_STATUS_PENDING,
    TERMINAL_LOG_STATUSES,
    WebhookConfig,
    WebhookLog,
)
from tweet_webhooks.utils.clock import now_ms
from tweet_webhooks.utils.logger import get_logger

logger = get_logger(__name__)

ENABLED_INDEX = 'EnabledIndex'
STATUS_INDEX = 'StatusIndex'

_CONFIG_FIELDS = (
    'name', 'url', 'enabled', 'events', 'headers',
    'retry_on_failure', 'max_retries', 'created_at', 'updated_at',
)
_LOG_FIELDS = (
    'status', 'response_status', 'error_message', 'retry_count', 'request_payload',
)


def _to_int(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value)
    return value


def _log_storage_error(message: str, error: Exception, **context: Any) -> None:
    if isinstance(error, ClientError):
        logger.error(
            message,
            error_code=error.response['Error']['Code'],
            error_message=error.response['Error']['Message'],
            **context
        )
    else:
        logger.error(message, error=str(error), **context)


def _is_condition_failure(error: Exception) -> bool:
    return (
        isinstance(error, ClientError)
        and error.response['Error']['Code'] == 'ConditionalCheckFailedException'
    )


def ensure_tables(dynamodb, configs_table_name: str, logs_table_name: str) -> None:
    """
    Create the config and log tables if they do not exist yet.

    Args:
        dynamodb: boto3 DynamoDB service resource
        configs_table_name: Name of the webhook config table
        logs_table_name: Name of the delivery log table
    """
    existing = {table.name for table in dynamodb.tables.all()}

    if configs_table_name not in existing:
        dynamodb.create_table(
            TableName=configs_table_name,
            KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'},
                {'AttributeName': 'enabled', 'AttributeType': 'N'},
                {'AttributeName': 'created_at', 'AttributeType': 'N'},
            ],
            GlobalSecondaryIndexes=[{
                'IndexName': ENABLED_INDEX,
                'KeySchema': [
                    {'AttributeName': 'enabled', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'},
                ],
                'Projection': {'ProjectionType': 'ALL'},
            }],
            BillingMode='PAY_PER_REQUEST'
        ).wait_until_exists()
        logger.info("Created webhook config table", table_name=configs_table_name)

    if logs_table_name not in existing:
        dynamodb.create_table(
            TableName=logs_table_name,
            KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'},
                {'AttributeName': 'status', 'AttributeType': 'S'},
                {'AttributeName': 'created_at', 'AttributeType': 'N'},
            ],
            GlobalSecondaryIndexes=[{
                'IndexName': STATUS_INDEX,
                'KeySchema': [
                    {'AttributeName': 'status', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'},
                ],
                'Projection': {'ProjectionType': 'ALL'},
            }],
            BillingMode='PAY_PER_REQUEST'
        ).wait_until_exists()
        logger.info("Created webhook log table", table_name=logs_table_name)


class WebhookStore:
    """
    DynamoDB store for webhook configs and delivery logs.

    Attributes:
        configs_table_name: Name of the webhook config table
        logs_table_name: Name of the delivery log table
        dynamodb: boto3 DynamoDB resource
        configs_table: boto3 table resource for configs
        logs_table: boto3 table resource for logs

    Example:
        >>> store = WebhookStore("webhook-configs", "webhook-logs")
        >>> await store.put_config(config)
        >>> configs = await store.list_enabled_configs()
    """

    def __init__(
        self,
        configs_table_name: str,
        logs_table_name: str,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        dynamodb=None
    ):
        """
        Initialize the store.

        Args:
            configs_table_name: Name of the webhook config table
            logs_table_name: Name of the delivery log table
            region_name: AWS region for a newly created resource
            endpoint_url: Optional DynamoDB endpoint override
            dynamodb: Existing boto3 DynamoDB resource to reuse

        Raises:
            ValueError: If a table name is empty or invalid
        """
        for table_name in (configs_table_name, logs_table_name):
            if not table_name or not isinstance(table_name, str):
                raise ValueError("table_name must be a non-empty string")

        self.configs_table_name = configs_table_name
        self.logs_table_name = logs_table_name
        self.dynamodb = dynamodb or boto3.resource(
            'dynamodb',
            region_name=region_name,
            endpoint_url=endpoint_url
        )
        self.configs_table = self.dynamodb.Table(configs_table_name)
        self.logs_table = self.dynamodb.Table(logs_table_name)

        logger.info(
            "Webhook store initialized",
            configs_table=configs_table_name,
            logs_table=logs_table_name
        )

    # Serialization

    @staticmethod
    def _config_to_item(config: WebhookConfig) -> Dict[str, Any]:
        item = config.model_dump()
        # GSI keys cannot be booleans
        item['enabled'] = 1 if config.enabled else 0
        item['headers'] = json.dumps(config.headers)
        return item

    @staticmethod
    def _item_to_config(item: Dict[str, Any]) -> WebhookConfig:
        item = {k: _to_int(v) for k, v in item.items()}
        item['enabled'] = bool(item.get('enabled', 0))
        if isinstance(item.get('headers'), str):
            item['headers'] = json.loads(item['headers'])
        item['events'] = list(item.get('events') or [])
        return WebhookConfig(**item)

    def _parse_configs(self, items: List[Dict[str, Any]]) -> List[WebhookConfig]:
        """Deserialize config rows, skipping any that no longer validate."""
        configs = []
        for item in items:
            try:
                configs.append(self._item_to_config(item))
            except ValueError as e:
                logger.error(
                    "Skipping unreadable webhook config",
                    config_id=item.get('id'),
                    error=str(e),
                    table_name=self.configs_table_name
                )
        return configs

    @staticmethod
    def _log_to_item(log: WebhookLog) -> Dict[str, Any]:
        # DynamoDB doesn't allow None values
        return {k: v for k, v in log.model_dump().items() if v is not None}

    @staticmethod
    def _item_to_log(item: Dict[str, Any]) -> WebhookLog:
        return WebhookLog(**{k: _to_int(v) for k, v in item.items()})

    @staticmethod
    def _build_update(
        fields: Dict[str, Any],
        only_pending: bool = False
    ) -> Dict[str, Any]:
        names = {'#id': 'id'}
        values: Dict[str, Any] = {}
        assignments = []
        for i, (field, value) in enumerate(fields.items()):
            names[f'#f{i}'] = field
            values[f':v{i}'] = value
            assignments.append(f'#f{i} = :v{i}')

        condition = 'attribute_exists(#id)'
        if only_pending:
            names['#status'] = 'status'
            values[':pending'] = LOG_STATUS_PENDING
            condition += ' AND #status = :pending'

        return {
            'UpdateExpression': 'SET ' + ', '.join(assignments),
            'ConditionExpression': condition,
            'ExpressionAttributeNames': names,
            'ExpressionAttributeValues': values,
        }

    def _scan_all(self, table, **kwargs) -> List[Dict[str, Any]]:
        items = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def _query_all(self, table, **kwargs) -> List[Dict[str, Any]]:
        items = []
        while True:
            response = table.query(**kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    # Config operations

    async def put_config(self, config: WebhookConfig) -> bool:
        """
        Store (insert or replace) a webhook config.

        Args:
            config: Config to store

        Returns:
            True if stored, False if the write failed

        Raises:
            ValueError: If config is not a WebhookConfig
        """
        if not isinstance(config, WebhookConfig):
            raise ValueError("config must be a WebhookConfig instance")

        try:
            self.configs_table.put_item(Item=self._config_to_item(config))
            logger.info(
                "Webhook config stored",
                config_id=config.id,
                enabled=config.enabled,
                events=config.events
            )
            return True
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to store webhook config",
                e,
                config_id=config.id,
                table_name=self.configs_table_name
            )
            return False

    async def update_config(self, config_id: str, updates: Dict[str, Any]) -> bool:
        """
        Apply partial updates to an existing config and stamp updated_at.

        Args:
            config_id: Config identifier
            updates: Fields to change; unknown fields are ignored

        Returns:
            True if the config existed and was updated

        Raises:
            ValueError: If config_id is invalid
        """
        if not config_id or not isinstance(config_id, str):
            raise ValueError("config_id must be a non-empty string")

        fields = {k: v for k, v in updates.items() if k in _CONFIG_FIELDS and v is not None}
        fields.setdefault('updated_at', now_ms())
        if 'enabled' in fields:
            fields['enabled'] = 1 if fields['enabled'] else 0
        if 'headers' in fields:
            fields['headers'] = json.dumps(fields['headers'])

        try:
            self.configs_table.update_item(
                Key={'id': config_id},
                **self._build_update(fields)
            )
            logger.info(
                "Webhook config updated",
                config_id=config_id,
                fields=sorted(fields)
            )
            return True
        except (ClientError, BotoCoreError) as e:
            if _is_condition_failure(e):
                logger.warning("Webhook config not found for update", config_id=config_id)
                return False
            _log_storage_error(
                "Failed to update webhook config",
                e,
                config_id=config_id,
                table_name=self.configs_table_name
            )
            return False

    async def delete_config(self, config_id: str) -> bool:
        """Delete a config by id. Deleting a missing config is not an error."""
        if not config_id or not isinstance(config_id, str):
            raise ValueError("config_id must be a non-empty string")

        try:
            self.configs_table.delete_item(Key={'id': config_id})
            logger.info("Webhook config deleted", config_id=config_id)
            return True
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to delete webhook config",
                e,
                config_id=config_id,
                table_name=self.configs_table_name
            )
            return False

    async def get_config(self, config_id: str) -> Optional[WebhookConfig]:
        """Fetch a config by id, None if missing or unreadable."""
        if not config_id or not isinstance(config_id, str):
            raise ValueError("config_id must be a non-empty string")

        try:
            response = self.configs_table.get_item(Key={'id': config_id})
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to retrieve webhook config",
                e,
                config_id=config_id,
                table_name=self.configs_table_name
            )
            return None

        if 'Item' not in response:
            return None
        configs = self._parse_configs([response['Item']])
        return configs[0] if configs else None

    async def list_configs(self) -> List[WebhookConfig]:
        """
        List all configs in creation order.

        Returns:
            Configs sorted by created_at, then id; empty on storage failure
        """
        try:
            items = self._scan_all(self.configs_table)
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to list webhook configs",
                e,
                table_name=self.configs_table_name
            )
            return []

        configs = self._parse_configs(items)
        configs.sort(key=lambda c: (c.created_at, c.id))
        return configs

    async def list_enabled_configs(self) -> List[WebhookConfig]:
        """List enabled configs through the EnabledIndex, oldest first."""
        try:
            items = self._query_all(
                self.configs_table,
                IndexName=ENABLED_INDEX,
                KeyConditionExpression=Key('enabled').eq(1),
                ScanIndexForward=True
            )
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to list enabled webhook configs",
                e,
                table_name=self.configs_table_name
            )
            return []

        return self._parse_configs(items)

    # Log operations

    async def put_log(self, log: WebhookLog) -> bool:
        """
        Store a new delivery log row.

        Args:
            log: Log row to store

        Returns:
            True if stored, False if the write failed

        Raises:
            ValueError: If log is not a WebhookLog
        """
        if not isinstance(log, WebhookLog):
            raise ValueError("log must be a WebhookLog instance")

        try:
            self.logs_table.put_item(Item=self._log_to_item(log))
            logger.debug(
                "Webhook log stored",
                log_id=log.id,
                event_type=log.event_type,
                status=log.status
            )
            return True
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to store webhook log",
                e,
                log_id=log.id,
                table_name=self.logs_table_name
            )
            return False

    async def update_log(
        self,
        log_id: str,
        updates: Dict[str, Any],
        only_pending: bool = False
    ) -> bool:
        """
        Apply partial updates to a delivery log row.

        Args:
            log_id: Log identifier
            updates: Fields to change; None values are skipped
            only_pending: Refuse the update unless the row is still pending

        Returns:
            True if the row was updated
        """
        if not log_id or not isinstance(log_id, str):
            raise ValueError("log_id must be a non-empty string")

        fields = {k: v for k, v in updates.items() if k in _LOG_FIELDS and v is not None}
        if not fields:
            return False

        try:
            self.logs_table.update_item(
                Key={'id': log_id},
                **self._build_update(fields, only_pending=only_pending)
            )
            return True
        except (ClientError, BotoCoreError) as e:
            if _is_condition_failure(e):
                logger.warning(
                    "Webhook log update skipped",
                    log_id=log_id,
                    reason="missing or no longer pending"
                )
                return False
            _log_storage_error(
                "Failed to update webhook log",
                e,
                log_id=log_id,
                table_name=self.logs_table_name
            )
            return False

    async def finalize_log(
        self,
        log_id: str,
        status: str,
        response_status: Optional[int] = None,
        error_message: Optional[str] = None,
        retry_count: Optional[int] = None
    ) -> bool:
        """
        Move a pending log row to a terminal status.

        The write is conditional on the row still being pending, so
        finalizing twice leaves the first outcome in place.

        Args:
            log_id: Log identifier
            status: success or failed
            response_status: HTTP status of the last response
            error_message: Last delivery error
            retry_count: Retries performed

        Returns:
            True if this call finalized the row, False otherwise

        Raises:
            ValueError: If status is not terminal
        """
        if status not in TERMINAL_LOG_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(TERMINAL_LOG_STATUSES)}")

        finalized = await self.update_log(
            log_id,
            {
                'status': status,
                'response_status': response_status,
                'error_message': error_message,
                'retry_count': retry_count,
            },
            only_pending=True
        )
        if finalized:
            logger.info(
                "Webhook log finalized",
                log_id=log_id,
                status=status,
                response_status=response_status,
                retry_count=retry_count
            )
        return finalized

    async def get_log(self, log_id: str) -> Optional[WebhookLog]:
        """Fetch a log row by id, None if missing or unreadable."""
        if not log_id or not isinstance(log_id, str):
            raise ValueError("log_id must be a non-empty string")

        try:
            response = self.logs_table.get_item(Key={'id': log_id})
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to retrieve webhook log",
                e,
                log_id=log_id,
                table_name=self.logs_table_name
            )
            return None

        if 'Item' not in response:
            return None
        return self._item_to_log(response['Item'])

    async def list_logs(self, limit: int = 100, offset: int = 0) -> List[WebhookLog]:
        """
        List delivery logs, newest first.

        Args:
            limit: Maximum number of rows to return (1-1000)
            offset: Number of rows to skip

        Returns:
            Page of log rows; empty on storage failure

        Raises:
            ValueError: If limit or offset is out of range
        """
        if limit <= 0 or limit > 1000:
            raise ValueError("limit must be between 1 and 1000")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            items = self._scan_all(self.logs_table)
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to list webhook logs",
                e,
                table_name=self.logs_table_name
            )
            return []

        logs = [self._item_to_log(item) for item in items]
        logs.sort(key=lambda log: (log.created_at, log.id), reverse=True)
        return logs[offset:offset + limit]

    async def list_logs_by_status(
        self,
        status: str,
        since: Optional[int] = None,
        until: Optional[int] = None
    ) -> List[WebhookLog]:
        """
        Query logs with a given status through the StatusIndex.

        Args:
            status: pending, success or failed
            since: Inclusive lower bound on created_at (epoch ms)
            until: Inclusive upper bound on created_at (epoch ms)

        Returns:
            Matching rows, newest first; empty on storage failure
        """
        if status not in (LOG_STATUS_PENDING,) + TERMINAL_LOG_STATUSES:
            raise ValueError("status must be one of: pending, success, failed")

        condition = Key('status').eq(status)
        if since is not None and until is not None:
            condition = condition & Key('created_at').between(since, until)
        elif since is not None:
            condition = condition & Key('created_at').gte(since)
        elif until is not None:
            condition = condition & Key('created_at').lte(until)

        try:
            items = self._query_all(
                self.logs_table,
                IndexName=STATUS_INDEX,
                KeyConditionExpression=condition,
                ScanIndexForward=False
            )
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to query webhook logs by status",
                e,
                status=status,
                table_name=self.logs_table_name
            )
            return []

        return [self._item_to_log(item) for item in items]

    async def list_pending_logs(self) -> List[WebhookLog]:
        """Logs still waiting for an outcome, including ones orphaned by a restart."""
        return await self.list_logs_by_status(LOG_STATUS_PENDING)

    async def count_logs(self) -> int:
        try:
            total = 0
            kwargs: Dict[str, Any] = {'Select': 'COUNT'}
            while True:
                response = self.logs_table.scan(**kwargs)
                total += response.get('Count', 0)
                if 'LastEvaluatedKey' not in response:
                    return total
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to count webhook logs",
                e,
                table_name=self.logs_table_name
            )
            return 0

    async def clear_logs(self) -> int:
        """
        Delete every delivery log row.

        Returns:
            Number of rows deleted (0 on storage failure)
        """
        try:
            items = self._scan_all(
                self.logs_table,
                ProjectionExpression='#id',
                ExpressionAttributeNames={'#id': 'id'}
            )
            with self.logs_table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={'id': item['id']})
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to clear webhook logs",
                e,
                table_name=self.logs_table_name
            )
            return 0

        logger.info("Webhook logs cleared", deleted=len(items))
        return len(items)

    async def count(self) -> Dict[str, int]:
        """Row counts per table."""
        try:
            configs = len(self._scan_all(
                self.configs_table,
                ProjectionExpression='#id',
                ExpressionAttributeNames={'#id': 'id'}
            ))
        except (ClientError, BotoCoreError) as e:
            _log_storage_error(
                "Failed to count webhook configs",
                e,
                table_name=self.configs_table_name
            )
            configs = 0

        return {
            'webhook_configs': configs,
            'webhook_logs': await self.count_logs(),
        }
