"""
Job page field extractor.

Turns a rendered job page into normalized job data using an ordered
fallback chain per field:
1. Site profile selectors (first non-empty, non-boilerplate match wins)
2. Field heuristics (<title> element, URL-derived company, section text)
3. Defaults (empty string, "now" for the posted date)

Skills are tagged from the page body; quality problems are reported as
warnings and never block a result.
"""

import logging
from typing import Dict, List, Optional, Any

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from core.normalize import (
    clean_text,
    utcnow,
    TITLE_MAX,
    COMPANY_MAX,
    LOCATION_MAX,
    QUALIFICATIONS_MAX,
    DESCRIPTION_MAX,
)
from core.skills import extract_skills
from crawler.plugins import SiteProfile, GENERIC_PROFILE
from .heuristics import (
    BOILERPLATE_MAX_LENGTH,
    is_boilerplate,
    is_generic_title,
    title_from_document,
    company_from_url,
    posted_date_from_meta,
    posted_date_from_text,
    description_from_sections,
)

logger = logging.getLogger(__name__)

FIELD_LIMITS = {
    'title': TITLE_MAX,
    'company': COMPANY_MAX,
    'location': LOCATION_MAX,
    'qualifications': QUALIFICATIONS_MAX,
    'description': DESCRIPTION_MAX,
}

MAX_SKILLS = 10
MIN_TITLE_LENGTH = 4


class FieldResult:
    """Result for a single extracted field."""

    def __init__(self, value: Any = None, source: Optional[str] = None,
                 raw_snippet: Optional[str] = None):
        self.value = value
        self.source = source
        self.raw_snippet = raw_snippet

    def to_dict(self) -> Dict:
        return {
            "value": self.value,
            "source": self.source,
            "raw_snippet": self.raw_snippet
        }


class ExtractionResult:
    """Extracted fields for one page plus where each came from."""

    def __init__(self, url: str, profile: str):
        self.url = url
        self.profile = profile
        self.fields: Dict[str, FieldResult] = {}
        self.warnings: List[str] = []

    def set_field(self, field_name: str, result: FieldResult):
        self.fields[field_name] = result

    def get_field(self, field_name: str) -> Optional[FieldResult]:
        return self.fields.get(field_name)

    def value(self, field_name: str, default: Any = "") -> Any:
        result = self.fields.get(field_name)
        if result is None or result.value is None:
            return default
        return result.value

    def to_job_data(self) -> Dict:
        """Job data map consumed by JobRecord construction."""
        posted_date = self.value('posted_date', None) or utcnow()
        return {
            'url': self.url,
            'title': self.value('title'),
            'company': self.value('company'),
            'location': self.value('location'),
            'description': self.value('description'),
            'qualifications': self.value('qualifications'),
            'skills': list(self.value('skills', [])),
            'posted_date': posted_date.isoformat(),
        }

    def to_dict(self) -> Dict:
        """Debug representation including field sources."""
        return {
            'url': self.url,
            'profile': self.profile,
            'fields': {name: result.to_dict() for name, result in self.fields.items()},
            'warnings': list(self.warnings),
        }


def element_text(element) -> str:
    """Visible text of an element; meta tags give content, images give alt."""
    if element is None:
        return ""
    if element.name == 'meta':
        return clean_text(element.get('content'))
    if element.name == 'img':
        return clean_text(element.get('alt'))
    return clean_text(element.get_text(" "))


class FieldExtractor:
    """Extracts job fields from rendered HTML using a site profile."""

    def __init__(self, parser: str = 'lxml'):
        self.parser = parser

    def extract(self, html: str, url: str, profile: Optional[SiteProfile] = None) -> ExtractionResult:
        """
        Extract job fields from HTML.

        Args:
            html: Rendered page HTML
            url: Page URL (used for the company fallback)
            profile: Site profile; the generic profile when omitted

        Returns:
            ExtractionResult with title, company, location, description,
            qualifications, skills and posted_date set
        """
        profile = profile or GENERIC_PROFILE
        result = ExtractionResult(url, profile.name)
        soup = BeautifulSoup(html or "", self.parser)

        body_text = self._body_text(soup)

        for field_name in ('title', 'company', 'location', 'qualifications', 'description'):
            found = self.select_first(
                soup,
                profile.selectors_for(field_name),
                FIELD_LIMITS[field_name],
                boilerplate_max_length=BOILERPLATE_MAX_LENGTH if field_name == 'description' else None
            )
            if found is None:
                found = self._fallback(field_name, soup, url, body_text)
            result.set_field(field_name, found)

        result.set_field('skills', FieldResult(
            value=extract_skills(clean_text(body_text), limit=MAX_SKILLS),
            source='vocabulary'
        ))
        result.set_field('posted_date', self._posted_date(soup, body_text))

        result.warnings = self.validate(result)
        for warning in result.warnings:
            logger.warning(f"[extractor] {warning} for {url[:100]} (profile={profile.name})")

        return result

    def select_first(self, soup: BeautifulSoup, selectors: List[str], max_length: int,
                     boilerplate_max_length: Optional[int] = None) -> Optional[FieldResult]:
        """
        Try selectors in order; first non-empty, non-boilerplate text wins.

        A selector the CSS engine rejects is skipped. Text longer than
        ``boilerplate_max_length`` is never treated as boilerplate.
        """
        for selector in selectors:
            try:
                element = soup.select_one(selector)
            except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
                logger.debug(f"[extractor] Skipping selector {selector!r}: {e}")
                continue

            if element is None:
                continue

            text = element_text(element)
            if not text:
                continue
            if is_boilerplate(text, boilerplate_max_length):
                logger.debug(f"[extractor] Rejected boilerplate from {selector!r}: {text[:60]}")
                continue

            return FieldResult(
                value=clean_text(text, max_length),
                source='selector',
                raw_snippet=selector
            )

        return None

    def _fallback(self, field_name: str, soup: BeautifulSoup, url: str, body_text: str) -> FieldResult:
        if field_name == 'title':
            title = title_from_document(soup)
            if title:
                return FieldResult(clean_text(title, TITLE_MAX), source='title_tag', raw_snippet=title)

        elif field_name == 'company':
            company = company_from_url(url)
            if company:
                return FieldResult(clean_text(company, COMPANY_MAX), source='domain', raw_snippet=url)

        elif field_name == 'description':
            description = description_from_sections(body_text)
            if description:
                return FieldResult(clean_text(description, DESCRIPTION_MAX), source='label')

        return FieldResult("", source='default')

    def _posted_date(self, soup: BeautifulSoup, body_text: str) -> FieldResult:
        from_meta = posted_date_from_meta(soup)
        if from_meta:
            date, selector = from_meta
            return FieldResult(date, source='meta', raw_snippet=selector)

        from_text = posted_date_from_text(body_text)
        if from_text:
            date, snippet = from_text
            return FieldResult(date, source='label', raw_snippet=snippet)

        return FieldResult(utcnow(), source='default')

    def _body_text(self, soup: BeautifulSoup) -> str:
        """Body text with scripts and styles removed, newlines kept for section matching"""
        body = soup.body or soup
        for tag in body.find_all(['script', 'style', 'noscript']):
            tag.decompose()
        return body.get_text("\n")

    def validate(self, result: ExtractionResult) -> List[str]:
        """Quality warnings for an extraction result."""
        warnings = []
        title_field = result.get_field('title')
        title = title_field.value if title_field else None

        if not title:
            warnings.append('missing_title')
        else:
            if len(title) < MIN_TITLE_LENGTH:
                warnings.append('short_title')
            if is_boilerplate(title) or is_generic_title(title):
                warnings.append('boilerplate_title')

        if not result.value('location'):
            warnings.append('missing_location')

        return warnings
