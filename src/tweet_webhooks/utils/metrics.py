"""
Module: metrics.py
Description: CloudWatch delivery counters.

Publishes one Count datapoint per delivery outcome (delivered, failed,
retry queued, retry succeeded, retry exhausted), dimensioned by event
type. Publishing failures are logged and never reach the pipeline.

Dependencies: boto3, typing, logger
"""

from typing import Optional

import boto3

from tweet_webhooks.utils.logger import get_logger

logger = get_logger(__name__)


class MetricsClient:
    """CloudWatch counter publisher."""

    def __init__(self, namespace: str = "TweetWebhooks", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region (defaults to the boto3 session region)
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.info("Metrics client initialized", namespace=namespace)

    def increment(self, metric_name: str, event_type: Optional[str] = None) -> None:
        """
        Publish a single count.

        Args:
            metric_name: Counter name, e.g. WebhookDelivered
            event_type: EventType dimension, omitted when not given
        """
        datum = {'MetricName': metric_name, 'Value': 1.0, 'Unit': 'Count'}
        if event_type:
            datum['Dimensions'] = [{'Name': 'EventType', 'Value': event_type}]

        try:
            self.cloudwatch.put_metric_data(Namespace=self.namespace, MetricData=[datum])
        except Exception as e:
            # Don't fail delivery if metrics fail
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                event_type=event_type,
                error=str(e),
                namespace=self.namespace
            )
            return

        logger.debug("Metric published", metric_name=metric_name, event_type=event_type)
