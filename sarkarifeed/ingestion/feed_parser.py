"""
Feed Parser
===========

Turns one raw syndication payload into normalized items using feedparser.

The document is parsed up front so a payload that is not a feed fails
immediately with ``ParseError``. So does a document that is not well-formed
XML, even when feedparser recovered some entries from it. Items are then
produced lazily, in document order, by a one-shot generator. A malformed
entry is skipped and reported; the remaining entries are still produced.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional, Union

import feedparser
from feedparser.exceptions import CharacterEncodingOverride, NonXMLContentType

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ItemSkipped, ParseError, ValidationError
from ..utils.validators import ContentValidator, URLValidator
from .content_cleaner import ContentCleaner


@dataclass
class RawFeedItem:
    """One syndication entry as delivered by a source."""

    title: str
    link: str
    description: str = ""
    published_at: Optional[datetime] = None
    categories: List[str] = field(default_factory=list)


SkipCallback = Callable[[ItemSkipped], None]

# feedparser warnings that leave the document intact
BENIGN_BOZO_WARNINGS = (CharacterEncodingOverride, NonXMLContentType)


class FeedParser:
    """Syndication payload parser (RSS 2.0, RSS 1.0, Atom)."""

    def __init__(self, cleaner: Optional[ContentCleaner] = None):
        self.cleaner = cleaner or ContentCleaner()
        self.logger = get_logger_for_component("feed_parser")

    def parse(
        self,
        payload: Union[bytes, str],
        feed_url: str = "",
        on_skip: Optional[SkipCallback] = None,
    ) -> Iterator[RawFeedItem]:
        """Parse a payload into a lazy sequence of items.

        Args:
            payload: Raw feed document
            feed_url: Source URL, used for log context
            on_skip: Called with an ``ItemSkipped`` for each malformed entry

        Returns:
            Generator of RawFeedItem in document order

        Raises:
            ParseError: If the payload is not a syndication document
        """
        if isinstance(payload, str):
            # feedparser treats str arguments as URLs or file paths
            payload = payload.encode("utf-8")

        if not payload or not payload.strip():
            raise ParseError("Empty feed payload", feed_url=feed_url)

        parsed = feedparser.parse(payload)
        entries = parsed.get("entries", [])

        if parsed.get("bozo"):
            error = parsed.get("bozo_exception")
            if not isinstance(error, BENIGN_BOZO_WARNINGS):
                # A truncated body still yields entries; the last one would be clipped
                raise ParseError(f"Feed is not well-formed: {error}", feed_url=feed_url) from error
            self.logger.warning(
                f"Feed has parse warnings but is usable: {feed_url}: {error}",
                extra={"event": "parse_warning", "feed_url": feed_url},
            )

        if not parsed.get("version") and not entries:
            raise ParseError("Payload is not a recognised syndication format", feed_url=feed_url)

        self.logger.debug(
            f"Parsed {parsed.get('version') or 'unknown'} document with {len(entries)} entries",
            extra={"feed_url": feed_url},
        )
        return self._iter_items(entries, feed_url, on_skip)

    def _iter_items(
        self,
        entries: List[Any],
        feed_url: str,
        on_skip: Optional[SkipCallback],
    ) -> Iterator[RawFeedItem]:
        for position, entry in enumerate(entries):
            try:
                item = self._to_item(entry)
            except Exception as e:
                skipped = ItemSkipped(
                    f"Malformed entry #{position} in {feed_url}: {e}",
                    reason=ItemSkipped.MALFORMED,
                    external_key=(entry.get("link") or None) if hasattr(entry, "get") else None,
                    title=(entry.get("title") or None) if hasattr(entry, "get") else None,
                )
                self.logger.warning(
                    f"Skipping entry #{position}: {e}",
                    extra={
                        "event": "item_skipped",
                        "feed_url": feed_url,
                        "reason": skipped.reason,
                        "position": position,
                    },
                )
                if on_skip:
                    on_skip(skipped)
                continue

            yield item

    def _to_item(self, entry: Any) -> RawFeedItem:
        """Normalize one feedparser entry.

        Raises:
            ValidationError: If the entry has no usable title or link
        """
        title = ContentValidator.validate_item_title(entry.get("title"))

        link = entry.get("link")
        if not link or not link.strip():
            raise ValidationError("Entry has no link", field_name="link")
        link = URLValidator.validate_item_link(link)

        raw_description = self._extract_description(entry)
        description = ContentValidator.truncate_description(
            self.cleaner.html_to_text(raw_description)
        )

        return RawFeedItem(
            title=title,
            link=link,
            description=description,
            published_at=self._parse_date(entry),
            categories=self._extract_categories(entry),
        )

    @staticmethod
    def _extract_description(entry: Any) -> str:
        description = entry.get("summary") or entry.get("description")
        if description:
            return description

        # Atom entries may only carry a content list
        for content in entry.get("content") or []:
            value = content.get("value") if isinstance(content, dict) else None
            if value:
                return value
        return ""

    @staticmethod
    def _extract_categories(entry: Any) -> List[str]:
        categories = []
        for tag in entry.get("tags") or []:
            term = tag.get("term") if isinstance(tag, dict) else str(tag)
            if term and term.strip():
                categories.append(term.strip())

        if not categories and entry.get("category"):
            categories.append(str(entry.get("category")).strip())

        return categories

    @staticmethod
    def _parse_date(entry: Any) -> Optional[datetime]:
        for field_name in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = entry.get(field_name)
            if date_tuple:
                try:
                    return datetime(*date_tuple[:6], tzinfo=timezone.utc)
                except (ValueError, TypeError):
                    continue
        return None
