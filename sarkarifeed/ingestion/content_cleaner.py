"""
Content Cleaner
===============

HTML to plain-text conversion for feed item descriptions.

Syndication descriptions frequently wrap their date labels in markup
(``<p><b>Last Date:</b> 15/08/2024</p>``); the text is flattened so labels
and their values sit next to each other before date extraction.
"""

import re
import html

from bs4 import BeautifulSoup, Comment


class ContentCleaner:
    """HTML cleaner producing whitespace-normalized text."""

    # Elements removed together with their content
    NON_CONTENT_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "noscript",
        "form",
        "head",
    }

    WHITESPACE_PATTERN = re.compile(r"[ \t\r\f\v\xa0]+")
    BLANK_LINES_PATTERN = re.compile(r"\n\s*\n+")

    def __init__(self):
        self.parser = "html.parser"

    def html_to_text(self, raw: str) -> str:
        """Strip markup from ``raw`` and return readable text.

        Block elements become line breaks so labels from separate paragraphs
        do not run together.
        """
        if not raw or not raw.strip():
            return ""

        if "<" not in raw and "&" not in raw:
            return self._normalize(raw)

        soup = BeautifulSoup(raw, self.parser)

        for element in soup(list(self.NON_CONTENT_ELEMENTS)):
            element.decompose()
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        text = soup.get_text(separator="\n")
        return self._normalize(text)

    def _normalize(self, text: str) -> str:
        text = html.unescape(text)
        lines = [self.WHITESPACE_PATTERN.sub(" ", line).strip() for line in text.split("\n")]
        text = "\n".join(line for line in lines if line)
        return self.BLANK_LINES_PATTERN.sub("\n", text).strip()
