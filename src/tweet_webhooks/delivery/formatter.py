"""
Module: formatter.py
Description: Builds webhook payloads from captured tweets.

Tweets arrive as GraphQL tweet results, either fully populated or as
a stub holding only rest_id. Every lookup tolerates missing fields so
a stub still yields a valid payload with empty defaults.
"""

from typing import Any, Dict, List, Optional
from uuid import uuid4

from tweet_webhooks.models.payload import (
    WebhookArticle,
    WebhookAuthor,
    WebhookMediaItem,
    WebhookPayload,
    WebhookStats,
    WebhookTweetData,
    WebhookUrl,
)
from tweet_webhooks.utils.clock import now_ms

TWEET_URL_TEMPLATE = "https://x.com/{screen_name}/status/{tweet_id}"

_MEDIA_TYPES = ("photo", "video", "animated_gif")


def _dig(source: Any, *path: str) -> Any:
    """Follow nested dict keys, returning None at the first gap."""
    for key in path:
        if not isinstance(source, dict):
            return None
        source = source.get(key)
    return source


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ''


def _unwrap(result: Any) -> Optional[Dict[str, Any]]:
    """Strip the TweetWithVisibilityResults wrapper, if present."""
    if not isinstance(result, dict):
        return None
    if isinstance(result.get('tweet'), dict) and 'rest_id' not in result:
        return result['tweet']
    return result


def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _format_author(tweet: Dict[str, Any]) -> WebhookAuthor:
    user = _as_dict(_dig(tweet, 'core', 'user_results', 'result'))
    # Newer responses move screen_name/name from legacy to core
    screen_name = _text(_dig(user, 'core', 'screen_name')) or _text(_dig(user, 'legacy', 'screen_name'))
    name = _text(_dig(user, 'core', 'name')) or _text(_dig(user, 'legacy', 'name'))
    return WebhookAuthor(
        id=str(user.get('rest_id') or ''),
        screen_name=screen_name or 'unknown',
        name=name or '',
    )


def _best_video_url(media: Dict[str, Any]) -> Optional[str]:
    variants = _as_list(_dig(media, 'video_info', 'variants'))
    mp4s = [
        v for v in variants
        if isinstance(v, dict) and v.get('content_type') == 'video/mp4' and _text(v.get('url'))
    ]
    if not mp4s:
        return None
    return max(mp4s, key=lambda v: _count(v.get('bitrate')))['url']


def format_media_items(tweet: Dict[str, Any]) -> List[WebhookMediaItem]:
    """Photos, videos and GIFs attached to a tweet."""
    legacy = _as_dict(_as_dict(tweet).get('legacy'))
    media_list = (
        _as_list(_dig(legacy, 'extended_entities', 'media'))
        or _as_list(_dig(legacy, 'entities', 'media'))
    )

    items = []
    for media in media_list:
        if not isinstance(media, dict) or media.get('type') not in _MEDIA_TYPES:
            continue
        if media['type'] == 'photo':
            url = _text(media.get('media_url_https'))
        else:
            url = _best_video_url(media) or _text(media.get('media_url_https'))
        if url:
            items.append(WebhookMediaItem(type=media['type'], url=url))
    return items


def _format_urls(legacy: Dict[str, Any]) -> Optional[List[WebhookUrl]]:
    urls = [
        WebhookUrl(url=entry['expanded_url'], display_url=_text(entry.get('display_url')))
        for entry in _as_list(_dig(legacy, 'entities', 'urls'))
        if isinstance(entry, dict) and _text(entry.get('expanded_url'))
    ]
    return urls or None


def _format_article(tweet: Dict[str, Any]) -> Optional[WebhookArticle]:
    article = _dig(tweet, 'article', 'article_results', 'result')
    if not isinstance(article, dict):
        return None
    return WebhookArticle(
        id=str(article.get('rest_id') or ''),
        title=_text(article.get('title')),
        preview_text=_text(article.get('preview_text')),
    )


def format_tweet_data(tweet: Dict[str, Any], include_nested: bool = True) -> WebhookTweetData:
    """
    Format tweet data for a webhook payload.

    Args:
        tweet: GraphQL tweet result or a {"rest_id": ...} stub
        include_nested: Also format the retweeted and quoted tweets

    Returns:
        Formatted tweet data
    """
    tweet = _unwrap(tweet) or {}
    legacy = _as_dict(tweet.get('legacy'))
    tweet_id = str(tweet.get('rest_id') or '')
    author = _format_author(tweet)
    text = (
        _text(_dig(tweet, 'note_tweet', 'note_tweet_results', 'result', 'text'))
        or _text(legacy.get('full_text'))
    )

    retweeted = quoted = None
    if include_nested:
        retweeted_source = _unwrap(_dig(legacy, 'retweeted_status_result', 'result'))
        if retweeted_source:
            retweeted = format_tweet_data(retweeted_source, include_nested=False)
        quoted_source = _unwrap(_dig(tweet, 'quoted_status_result', 'result'))
        if quoted_source:
            quoted = format_tweet_data(quoted_source, include_nested=False)

    return WebhookTweetData(
        id=tweet_id,
        text=text,
        author=author,
        url=TWEET_URL_TEMPLATE.format(screen_name=author.screen_name, tweet_id=tweet_id),
        created_at=_text(legacy.get('created_at')),
        stats=WebhookStats(
            likes=_count(legacy.get('favorite_count')),
            retweets=_count(legacy.get('retweet_count')),
            replies=_count(legacy.get('reply_count')),
            quotes=_count(legacy.get('quote_count')),
            bookmarks=_count(legacy.get('bookmark_count')),
        ),
        media=format_media_items(tweet),
        retweeted_tweet=retweeted,
        quoted_tweet=quoted,
        urls=_format_urls(legacy),
        article=_format_article(tweet),
    )


def format_webhook_payload(tweet: Dict[str, Any], event_type: str) -> WebhookPayload:
    """
    Format a tweet into a webhook payload.

    Args:
        tweet: Tweet data
        event_type: Event that triggered the webhook

    Returns:
        Payload stamped with the current time
    """
    return WebhookPayload(
        event=event_type,
        timestamp=now_ms(),
        data=format_tweet_data(tweet),
    )


def generate_webhook_log_id(event_type: str, tweet_id: str, timestamp: int) -> str:
    return f"webhook-{event_type}-{tweet_id}-{timestamp}"


def generate_webhook_config_id() -> str:
    return f"webhook-config-{now_ms()}-{uuid4().hex[:9]}"
