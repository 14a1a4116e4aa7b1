"""
Date Extractor
==============

Pulls labelled application dates out of free-text item descriptions.

Recognised labels, scanned in this order::

    start date:    -> start
    last date:     -> end
    opening date:  -> start
    closing date:  -> end

Each label is followed by a numeric day-first token such as ``15/08/2024``,
``5-8-24`` or ``05.08.2024``. Only the first occurrence of each label is
read. When two labels fill the same slot, the one scanned later wins; this
follows pattern order, not position in the text.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Pattern, Tuple


_DATE_TOKEN = r"(\d{1,2})[-./ ](\d{1,2})[-./ ](\d{2,4})"


@dataclass(frozen=True)
class DatePattern:
    """A labelled date pattern and the slot it fills."""

    label: str
    slot: str  # "start" or "end"
    regex: Pattern[str]


def _labelled(label: str, slot: str) -> DatePattern:
    return DatePattern(
        label=label,
        slot=slot,
        regex=re.compile(rf"{label}:?\s*{_DATE_TOKEN}", re.IGNORECASE),
    )


DATE_PATTERNS: Tuple[DatePattern, ...] = (
    _labelled("start date", "start"),
    _labelled("last date", "end"),
    _labelled("opening date", "start"),
    _labelled("closing date", "end"),
)


@dataclass(frozen=True)
class ExtractedDates:
    """Candidate application window; either side may be missing."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None


def parse_date_token(day: str, month: str, year: str) -> Optional[date]:
    """Build a calendar date from day-first numeric parts.

    Two-digit years are read as 20YY. Returns None for three-digit years and
    impossible dates such as 31/02/2024.
    """
    if len(year) == 2:
        full_year = 2000 + int(year)
    elif len(year) == 4:
        full_year = int(year)
    else:
        return None

    try:
        return date(full_year, int(month), int(day))
    except ValueError:
        return None


def extract_dates(description: Optional[str]) -> ExtractedDates:
    """Extract start/end dates from ``description``.

    Missing slots are returned as None; defaults are the caller's policy.
    """
    if not description:
        return ExtractedDates()

    slots = {"start": None, "end": None}

    for pattern in DATE_PATTERNS:
        match = pattern.regex.search(description)
        if not match:
            continue

        parsed = parse_date_token(*match.groups())
        if parsed is None:
            continue

        slots[pattern.slot] = parsed

    return ExtractedDates(start_date=slots["start"], end_date=slots["end"])
