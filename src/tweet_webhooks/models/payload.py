"""
Module: payload.py
Description: Wire format of the JSON body POSTed to webhook endpoints.

Optional blocks (retweeted_tweet, quoted_tweet, urls, article) are
left as None when the source tweet lacks them and are dropped from
the serialized body.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class WebhookAuthor(BaseModel):
    id: str = ""
    screen_name: str = "unknown"
    name: str = ""


class WebhookStats(BaseModel):
    likes: int = 0
    retweets: int = 0
    replies: int = 0
    quotes: int = 0
    bookmarks: int = 0


class WebhookMediaItem(BaseModel):
    type: str = Field(..., pattern=r"^(photo|video|animated_gif)$")
    url: str


class WebhookUrl(BaseModel):
    url: str
    display_url: str = ""


class WebhookArticle(BaseModel):
    id: str = ""
    title: str = ""
    preview_text: str = ""


class WebhookTweetData(BaseModel):
    """Tweet data included in a webhook payload."""

    id: str
    text: str = ""
    author: WebhookAuthor = Field(default_factory=WebhookAuthor)
    url: str
    created_at: str = ""
    stats: WebhookStats = Field(default_factory=WebhookStats)
    media: List[WebhookMediaItem] = Field(default_factory=list)
    retweeted_tweet: Optional["WebhookTweetData"] = None
    quoted_tweet: Optional["WebhookTweetData"] = None
    urls: Optional[List[WebhookUrl]] = None
    article: Optional[WebhookArticle] = None


class WebhookPayload(BaseModel):
    """
    Webhook payload sent to external endpoints.

    Attributes:
        event: Event type (like, bookmark, view)
        timestamp: When the payload was built (epoch ms)
        data: Formatted tweet data
    """

    event: str = Field(..., pattern=r"^(like|bookmark|view)$")
    timestamp: int = Field(..., ge=0)
    data: WebhookTweetData

    def to_wire(self) -> dict:
        """Payload as a plain dict, without absent optional blocks."""
        return self.model_dump(exclude_none=True)

    def to_json(self) -> str:
        """Payload serialized exactly as it is sent."""
        return self.model_dump_json(exclude_none=True)


WebhookTweetData.model_rebuild()
