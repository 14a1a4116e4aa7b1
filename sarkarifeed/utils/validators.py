"""
SarkariFeed Input Validators
===========================

URL and text validation for configured feed sources and ingested items.
"""

import re
from urllib.parse import urlparse, urlunparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    # Allowed schemes for feed sources and item links
    ALLOWED_SCHEMES = {"http", "https"}

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed source URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL (lower-cased scheme and host, no fragment)

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be one of {sorted(cls.ALLOWED_SCHEMES)}: {url}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not parsed.netloc:
            raise ValidationError(
                f"URL must include a hostname: {url}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        return urlunparse(
            parsed._replace(
                scheme=parsed.scheme.lower(),
                netloc=parsed.netloc.lower(),
                path=parsed.path or "/",
                fragment="",
            )
        )

    @classmethod
    def validate_item_link(cls, link: str) -> str:
        """Validate an item link used as a record's external key.

        The link is returned stripped but otherwise untouched, so the key
        stays byte-identical across runs for the same source entry.
        """
        cls.validate_feed_url(link)
        return link.strip()


class ContentValidator:
    """Text sanitization for ingested items."""

    MAX_TITLE_LENGTH = 1000
    MAX_DESCRIPTION_LENGTH = 50000

    WHITESPACE_PATTERN = re.compile(r"\s+")

    @classmethod
    def validate_item_title(cls, title: Optional[str]) -> str:
        """Validate and normalize an item title.

        Raises:
            ValidationError: If the title is missing or blank
        """
        if not title or not isinstance(title, str) or not title.strip():
            raise ValidationError(
                "Title is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="title",
            )

        title = cls.WHITESPACE_PATTERN.sub(" ", title).strip()
        if len(title) > cls.MAX_TITLE_LENGTH:
            title = title[: cls.MAX_TITLE_LENGTH]
        return title

    @classmethod
    def truncate_description(cls, description: str) -> str:
        if len(description) > cls.MAX_DESCRIPTION_LENGTH:
            return description[: cls.MAX_DESCRIPTION_LENGTH] + "... [truncated]"
        return description
