"""
SarkariFeed - Public Sector Announcement Aggregator
===================================================

Ingests syndication feeds of government job openings, examination results
and admission notices into a canonical, de-duplicated record store.

Main Components:
- Ingestion: feed parsing, HTML cleaning, classification, date extraction
- Processing: HTTP fetching, record upserts, run orchestration
- Scheduler: periodic, non-overlapping ingestion runs
- Storage: keyed record store contract with a SQLite backend
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__author__ = "SarkariFeed Development Team"
__description__ = "Feed ingestion pipeline for public sector announcements"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import SarkariFeedError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "SarkariFeedError",
]
