"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for SarkariFeed tests.

- File-backed SQLite databases per test (tmp_path)
- Settings built directly, independent of the process environment
- Sample RSS and Atom payloads
- Fake fetcher serving canned payloads without network access
"""

import pytest
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Union

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["SARKARIFEED_DEBUG"] = "true"
os.environ["SARKARIFEED_LOGGING__FILE_PATH"] = ""


SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Sarkari Updates</title>
    <link>https://example.gov.in/</link>
    <description>Latest government notices</description>
    <item>
      <title>SSC CGL Recruitment 2024</title>
      <link>https://example.gov.in/ssc-cgl-2024</link>
      <description><![CDATA[<p>Apply online for 17727 posts.</p><p><b>Start Date:</b> 01/08/2024</p><p><b>Last Date:</b> 15/08/2024</p>]]></description>
      <category>Staff Selection Commission</category>
      <pubDate>Thu, 01 Aug 2024 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>UPSC Prelims Result Declared</title>
      <link>https://example.gov.in/upsc-prelims-result</link>
      <description>The result of the preliminary examination is out.</description>
      <category>Results</category>
      <pubDate>Wed, 31 Jul 2024 09:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Delhi University Admission Open</title>
      <link>https://example.gov.in/du-admission</link>
      <description>Opening Date: 10-09-2024 Closing Date: 30-09-2024</description>
    </item>
    <item>
      <title>Quarterly Newsletter</title>
      <link>https://example.gov.in/newsletter</link>
      <description>Highlights from the last quarter.</description>
    </item>
  </channel>
</rss>
"""

MALFORMED_ENTRY_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Sarkari Updates</title>
    <link>https://example.gov.in/</link>
    <description>Feed with a broken entry</description>
    <item>
      <title>Railway Vacancy Without Link</title>
      <description>Last Date: 20/08/2024</description>
    </item>
    <item>
      <title></title>
      <link>https://example.gov.in/untitled</link>
    </item>
    <item>
      <title>Railway Group D Recruitment</title>
      <link>https://example.gov.in/rrb-group-d</link>
      <description>Last Date: 20/08/2024</description>
    </item>
  </channel>
</rss>
"""

SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Admissions</title>
  <id>urn:uuid:60a76c80-d399-11d9-b91C-0003939e0af6</id>
  <updated>2024-08-01T00:00:00Z</updated>
  <entry>
    <title>IIT Admission 2024</title>
    <link href="https://example.ac.in/iit-admission"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2024-08-02T08:30:00Z</updated>
    <category term="Education"/>
    <content type="html">&lt;p&gt;Closing Date: 31/08/2024&lt;/p&gt;</content>
  </entry>
</feed>
"""

NOT_A_FEED = "<html><head><title>Maintenance</title></head><body><p>Back soon</p></body></html>"


# ============================================================================
# Time and Settings Fixtures
# ============================================================================


@pytest.fixture
def fixed_now():
    """Ingestion instant used by deterministic tests."""
    return datetime(2024, 8, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings(tmp_path):
    """Settings with fast retries and a temporary database."""
    from sarkarifeed.config.settings import (
        SarkariFeedSettings,
        IngestionSettings,
        DatabaseSettings,
        LoggingSettings,
    )

    return SarkariFeedSettings(
        ingestion=IngestionSettings(
            feed_urls=["https://example.gov.in/rss.xml"],
            parallel_feeds=2,
            fetch_retries=1,
            retry_backoff_seconds=0.0,
        ),
        database=DatabaseSettings(path=str(tmp_path / "sarkarifeed_test.db"), pool_size=2),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_path(test_settings):
    """Path to a fresh database with the schema created."""
    from sarkarifeed.database.schema import DatabaseSchema

    schema = DatabaseSchema(test_settings.database.path)
    schema.create_tables()
    return test_settings.database.path


@pytest.fixture
def db_connection(db_path):
    """Database connection for testing."""
    from sarkarifeed.database.connection import DatabaseConnection

    conn = DatabaseConnection(db_path, pool_size=2)
    yield conn
    conn.close_all_connections()


@pytest.fixture
def record_store(db_connection):
    """SQLite record store on the test database."""
    from sarkarifeed.storage.record_store import SQLiteRecordStore

    return SQLiteRecordStore(db_connection)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def make_item():
    """Factory for RawFeedItem instances."""
    from sarkarifeed.ingestion.feed_parser import RawFeedItem

    def _make(
        title: str = "SSC CGL Recruitment 2024",
        link: str = "https://example.gov.in/ssc-cgl-2024",
        description: str = "",
        published_at=None,
        categories=None,
    ) -> RawFeedItem:
        return RawFeedItem(
            title=title,
            link=link,
            description=description,
            published_at=published_at,
            categories=list(categories or []),
        )

    return _make


class FakeFeedFetcher:
    """Serves canned payloads or raises canned errors per URL."""

    def __init__(self, responses: Dict[str, List[Union[bytes, str, Exception]]]):
        self.responses = {url: list(queue) for url, queue in responses.items()}
        self.calls: List[str] = []

    @asynccontextmanager
    async def get_session(self):
        yield None

    async def fetch(self, feed_url, session):
        self.calls.append(feed_url)
        queue = self.responses[feed_url]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response.encode("utf-8")
        return response


@pytest.fixture
def fake_fetcher_factory():
    """Build a FakeFeedFetcher from ``{url: [response, ...]}``."""
    return FakeFeedFetcher
