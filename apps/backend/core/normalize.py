"""
Normalization helpers shared by the extractor and the job record.

- Whitespace collapsing and length caps for scraped text
- Lenient date parsing into aware UTC datetimes
"""

from typing import Optional, Any
from datetime import datetime, timezone
import re

from dateutil import parser as date_parser

_WHITESPACE_RE = re.compile(r'\s+')

TITLE_MAX = 500
COMPANY_MAX = 500
LOCATION_MAX = 500
QUALIFICATIONS_MAX = 1500
DESCRIPTION_MAX = 2000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_text(value: Any, max_length: Optional[int] = None) -> str:
    """Collapse runs of whitespace to single spaces, trim, and cap length."""
    if value is None:
        return ""
    text = _WHITESPACE_RE.sub(' ', str(value)).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date-ish value into an aware UTC datetime.

    Accepts datetimes, ISO strings and the loose formats dateutil
    understands (e.g. "3/14/2024"). Naive values are taken as UTC.

    Returns:
        datetime or None if the value cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.parse(str(value).strip())
        except (ValueError, OverflowError, TypeError):
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_date_or_now(value: Any) -> datetime:
    return parse_date(value) or utcnow()
