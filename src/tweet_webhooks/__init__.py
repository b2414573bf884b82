"""
Tweet Webhooks: relays captured tweet likes, bookmarks and views to
operator-configured webhook endpoints with logged, retried delivery.
"""

__version__ = "0.3.0"
