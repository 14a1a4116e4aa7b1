"""
SarkariFeed Ingestion Module
============================

Feed document parsing and item interpretation.

This module handles:
- Syndication parsing into normalized feed items
- HTML to text cleaning of item descriptions
- Keyword classification into jobs, results and admissions
- Labelled application date extraction
"""

from .classifier import classify, CLASSIFICATION_RULES, ClassificationRule
from .content_cleaner import ContentCleaner
from .date_extractor import extract_dates, ExtractedDates
from .feed_parser import FeedParser, RawFeedItem

__all__ = [
    "classify",
    "CLASSIFICATION_RULES",
    "ClassificationRule",
    "ContentCleaner",
    "extract_dates",
    "ExtractedDates",
    "FeedParser",
    "RawFeedItem",
]
