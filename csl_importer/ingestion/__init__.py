"""
CSL Importer Ingestion Module
=============================

Feed retrieval and item normalization components.

This module handles:
- Fetching the feed document over HTTP(S)
- Strict RSS parsing into raw feed items
- Content cleaning and per-field normalization
"""

from .feed_fetcher import FeedFetcher
from .feed_parser import FeedParser
from .item_normalizer import ItemNormalizer
from .content_cleaner import ContentCleaner

__all__ = [
    "FeedFetcher",
    "FeedParser",
    "ItemNormalizer",
    "ContentCleaner",
]
