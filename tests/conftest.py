"""
Module: conftest.py
Description: Shared pytest fixtures for Tweet Webhooks tests.

Provides reusable test fixtures for the webhook store, sample tweets,
config factories, and a controllable clock. Uses moto for AWS service
mocking to enable fast, isolated unit tests.
"""

import boto3
import pytest
from moto import mock_aws
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tweet_webhooks.models.webhook import WebhookConfig
from tweet_webhooks.storage.dynamodb import WebhookStore, ensure_tables

BASE_TIME_MS = 1_715_774_400_000


class TestSettings(BaseSettings):
    """Test settings that don't require environment variables."""

    __test__ = False

    model_config = SettingsConfigDict(
        env_file=None,  # Disable .env file loading for tests
        case_sensitive=False,
        extra="ignore"
    )

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")

    # DynamoDB settings
    configs_table_name: str = Field(
        default="test-webhook-configs",
        description="Name of the DynamoDB webhook config table"
    )
    logs_table_name: str = Field(
        default="test-webhook-logs",
        description="Name of the DynamoDB webhook log table"
    )


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = BASE_TIME_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so no test can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def test_settings():
    """
    Provide test configuration settings.

    Disables environment variable loading for predictable tests.
    """
    return TestSettings()


@pytest.fixture
def mock_dynamodb(test_settings):
    """
    Mocked DynamoDB resource with both webhook tables created.

    The moto context stays open for the whole test.
    """
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name=test_settings.aws_region)
        ensure_tables(
            dynamodb,
            test_settings.configs_table_name,
            test_settings.logs_table_name
        )
        yield dynamodb


@pytest.fixture
def store(test_settings, mock_dynamodb):
    """Provide a WebhookStore bound to the mocked tables."""
    return WebhookStore(
        configs_table_name=test_settings.configs_table_name,
        logs_table_name=test_settings.logs_table_name,
        dynamodb=mock_dynamodb
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_config():
    """
    Factory for WebhookConfig instances.

    Each call gets a distinct id and a creation time one millisecond
    after the previous one, so creation order is predictable.
    """
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        n = counter['n']
        fields = {
            'id': f"webhook-config-{n}",
            'name': f"Target {n}",
            'url': f"https://hooks.example.com/target-{n}",
            'enabled': True,
            'events': ['like'],
            'headers': {},
            'retry_on_failure': True,
            'max_retries': 3,
            'created_at': BASE_TIME_MS + n,
            'updated_at': BASE_TIME_MS + n,
        }
        fields.update(overrides)
        return WebhookConfig(**fields)

    return _make


@pytest.fixture
def minimal_tweet():
    """Tweet stub carrying only its id."""
    return {"rest_id": "1790000000000000099"}


@pytest.fixture
def sample_tweet():
    """
    Fully populated GraphQL tweet result.

    Author names sit in both core and legacy, with different values,
    so tests can tell which one the formatter picked.
    """
    return {
        "rest_id": "1790000000000000001",
        "core": {
            "user_results": {
                "result": {
                    "rest_id": "44196397",
                    "core": {"screen_name": "alice", "name": "Alice Example"},
                    "legacy": {"screen_name": "alice_legacy", "name": "Alice Legacy"}
                }
            }
        },
        "legacy": {
            "full_text": "Shipping today https://t.co/abc",
            "created_at": "Wed May 15 12:00:00 +0000 2024",
            "favorite_count": 120,
            "retweet_count": 14,
            "reply_count": 9,
            "quote_count": 3,
            "bookmark_count": 27,
            "entities": {
                "urls": [
                    {
                        "url": "https://t.co/abc",
                        "expanded_url": "https://example.com/release-notes",
                        "display_url": "example.com/release-notes"
                    }
                ]
            },
            "extended_entities": {
                "media": [
                    {
                        "type": "photo",
                        "media_url_https": "https://pbs.twimg.com/media/photo-1.jpg"
                    },
                    {
                        "type": "video",
                        "media_url_https": "https://pbs.twimg.com/media/video-thumb.jpg",
                        "video_info": {
                            "variants": [
                                {
                                    "content_type": "application/x-mpegURL",
                                    "url": "https://video.twimg.com/playlist.m3u8"
                                },
                                {
                                    "content_type": "video/mp4",
                                    "bitrate": 832000,
                                    "url": "https://video.twimg.com/low.mp4"
                                },
                                {
                                    "content_type": "video/mp4",
                                    "bitrate": 2176000,
                                    "url": "https://video.twimg.com/high.mp4"
                                }
                            ]
                        }
                    }
                ]
            }
        }
    }
