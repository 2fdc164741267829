"""
Heuristic fallbacks for job-page fields.

Used when a site profile's selectors find nothing usable:
- boilerplate (cookie/consent banner) detection
- title from the <title> element
- company guessed from the URL
- posted date from meta tags or "Posted:" text
- headed sections ("RESPONSIBILITIES ...") in plain body text
"""

import re
import logging
from typing import Optional, List, Tuple
from datetime import datetime
from urllib.parse import urlparse
from bs4 import BeautifulSoup

from core.normalize import clean_text, parse_date

logger = logging.getLogger(__name__)

BOILERPLATE_PHRASES = (
    'we use cookies',
    'this website uses cookies',
    'this site uses cookies',
    'cookie policy',
    'cookie settings',
    'cookie preferences',
    'cookie consent',
    'accept all cookies',
    'accept cookies',
    'manage cookies',
    'privacy preferences',
    'your privacy choices',
    'gdpr',
)

# Boilerplate phrases inside long text (e.g. a description with a footer) are tolerated
BOILERPLATE_MAX_LENGTH = 300

GENERIC_TITLES = {
    'home', 'jobs', 'job', 'careers', 'career', 'apply', 'apply now',
    'job details', 'job search', 'search jobs', 'careers home', 'open positions',
}

JOB_BOARD_DOMAINS = (
    'myworkdayjobs.com',
    'workday.com',
    'greenhouse.io',
    'lever.co',
    'ashbyhq.com',
    'icims.com',
    'smartrecruiters.com',
    'jobvite.com',
    'workable.com',
    'bamboohr.com',
    'recruitee.com',
    'breezy.hr',
)

GENERIC_URL_LABELS = {
    'www', 'jobs', 'job', 'boards', 'board', 'careers', 'career', 'apply',
    'embed', 'app', 'hire', 'recruiting', 'en-us', 'en', 'external', 'postings',
}

_WORKDAY_SHARD_RE = re.compile(r'^wd\d+$', re.IGNORECASE)
_TITLE_SPLIT_RE = re.compile(r'\s*[|–—]\s*|\s+-\s+')

DATE_META_SELECTORS = (
    'meta[property="article:published_time"]',
    'meta[name="date"]',
    'meta[property="og:updated_time"]',
    'meta[property="article:modified_time"]',
)

DATE_TEXT_PATTERNS = (
    re.compile(r'Posted:?\s*(\d{1,2}/\d{1,2}/\d{2,4})', re.IGNORECASE),
    re.compile(r'Date:?\s*(\d{1,2}/\d{1,2}/\d{2,4})', re.IGNORECASE),
)


def is_boilerplate(text: Optional[str], max_length: Optional[int] = None) -> bool:
    """
    Check if text looks like a cookie/consent banner.

    With ``max_length``, longer text is never boilerplate (a description may
    mention its cookie policy in passing).
    """
    if not text:
        return False
    if max_length is not None and len(text) > max_length:
        return False
    lowered = text.lower()
    return any(phrase in lowered for phrase in BOILERPLATE_PHRASES)


def is_generic_title(text: Optional[str]) -> bool:
    if not text:
        return True
    return text.strip().lower() in GENERIC_TITLES


def title_from_document(soup: BeautifulSoup) -> Optional[str]:
    """
    First segment of the <title> element.

    "Senior Engineer | Acme Careers" -> "Senior Engineer"
    """
    if not soup or not soup.title:
        return None

    raw = clean_text(soup.title.get_text(" "))
    if not raw:
        return None

    for segment in _TITLE_SPLIT_RE.split(raw):
        segment = segment.strip()
        if not segment:
            continue
        if is_generic_title(segment) or is_boilerplate(segment):
            return None
        return segment

    return None


def _is_generic_label(label: str) -> bool:
    return not label or label.lower() in GENERIC_URL_LABELS or bool(_WORKDAY_SHARD_RE.match(label))


def company_from_url(url: Optional[str]) -> Optional[str]:
    """
    Guess the company from a job URL.

    Plain domains give the second-to-last label (careers.acme.com -> acme).
    Hosted job boards give the tenant: the first meaningful subdomain label
    (acme.wd5.myworkdayjobs.com -> acme) or, failing that, the first
    meaningful path segment (boards.greenhouse.io/acme/jobs/1 -> acme).
    """
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    hostname = (parsed.hostname or '').lower()
    if hostname.startswith('www.'):
        hostname = hostname[4:]
    if not hostname:
        return None

    for board in JOB_BOARD_DOMAINS:
        if hostname == board or hostname.endswith('.' + board):
            subdomain = hostname[:-len(board)].rstrip('.')
            for label in subdomain.split('.'):
                if not _is_generic_label(label):
                    return label
            for segment in parsed.path.split('/'):
                if not _is_generic_label(segment):
                    return segment
            break

    parts = hostname.split('.')
    return parts[-2] if len(parts) > 1 else parts[0]


def posted_date_from_meta(soup: BeautifulSoup) -> Optional[Tuple[datetime, str]]:
    """Returns (date, selector) for the first meta tag that parses"""
    if not soup:
        return None
    for selector in DATE_META_SELECTORS:
        tag = soup.select_one(selector)
        if not tag:
            continue
        parsed = parse_date(tag.get('content'))
        if parsed:
            return parsed, selector
    return None


def posted_date_from_text(text: Optional[str]) -> Optional[Tuple[datetime, str]]:
    """Returns (date, matched snippet) for "Posted: 3/14/2024" style labels"""
    if not text:
        return None
    for pattern in DATE_TEXT_PATTERNS:
        match = pattern.search(text)
        if match:
            parsed = parse_date(match.group(1))
            if parsed:
                return parsed, match.group(0)
    return None


def extract_section(text: Optional[str], heading_pattern: str, max_length: int = 1500) -> Optional[str]:
    """
    Text following a heading, up to the next "UPPERCASE HEADING:" line.

    Args:
        text: Body text with newlines preserved
        heading_pattern: Regex alternation of heading words, e.g. 'DUTIES|RESPONSIBILITIES'
        max_length: Cap on returned text

    Returns:
        Cleaned section text or None
    """
    if not text:
        return None
    regex = re.compile(rf'({heading_pattern})([\s\S]*?)(?=\n[A-Z][A-Z\s]+:|$)', re.IGNORECASE)
    match = regex.search(text)
    if not match:
        return None
    section = clean_text(match.group(2), max_length)
    return section or None


def description_from_sections(text: Optional[str]) -> str:
    parts: List[str] = []
    for heading in ('OVERVIEW|ABOUT|DESCRIPTION', 'RESPONSIBILITIES|DUTIES|ACCOUNTABILITIES'):
        section = extract_section(text, heading)
        if section:
            parts.append(section)
    return ' '.join(parts)
