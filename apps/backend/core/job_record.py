"""
Canonical job record.

A JobRecord is built either from pipeline output (an email-provenance map
wrapping scraped fields under ``scraped_data``), from a flat map, or by
rehydrating a stored document. Records are immutable; status changes are
applied by the store, never by mutating a record in memory.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any

from core.normalize import (
    clean_text,
    parse_date,
    parse_date_or_now,
    utcnow,
    TITLE_MAX,
    COMPANY_MAX,
    LOCATION_MAX,
    QUALIFICATIONS_MAX,
    DESCRIPTION_MAX,
)
from core.skills import normalize_skills

logger = logging.getLogger(__name__)

NESTED_KEY = 'scraped_data'


class JobStatus(str, Enum):
    PENDING = 'pending'
    POSTING = 'posting'
    POSTED = 'posted'

    @classmethod
    def coerce(cls, value: Any) -> 'JobStatus':
        """Map a stored value to a status, defaulting to pending."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.POSTING},
    JobStatus.POSTING: {JobStatus.POSTED, JobStatus.PENDING},
    JobStatus.POSTED: set(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


@dataclass(frozen=True)
class JobRecord:
    """Normalized job posting as persisted in the store."""

    url: str = ""
    title: str = ""
    company: str = ""
    location: str = ""
    description: str = ""
    qualifications: str = ""
    skills: List[str] = field(default_factory=list)
    posted_date: datetime = field(default_factory=utcnow)
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    posted_at: Optional[datetime] = None
    email_subject: str = ""
    email_date: str = ""
    id: Optional[str] = None

    @classmethod
    def from_source(cls, data: Optional[Dict], doc_id: Optional[str] = None) -> 'JobRecord':
        """
        Build a record from a nested or flat source map.

        Scraped fields (url, location, description, qualifications, skills,
        posted_date) prefer the nested ``scraped_data`` map over the outer map.
        Title and company always come from the outer map when it has them.
        ``apply_link`` is used for url only when the nested url is absent.

        Args:
            data: Source map; missing keys are filled with defaults
            doc_id: Store document id when rehydrating

        Returns:
            JobRecord
        """
        data = data or {}
        nested = data.get(NESTED_KEY)
        inner = nested if isinstance(nested, dict) and nested else data

        def scraped(key: str) -> Any:
            return _first(inner.get(key), data.get(key))

        title = _first(data.get('job_title'), data.get('title'), inner.get('title'))
        company = _first(data.get('company_name'), data.get('company'), inner.get('company'))
        url = _first(inner.get('url'), data.get('apply_link'), data.get('url'))

        return cls(
            url=clean_text(url),
            title=clean_text(title, TITLE_MAX),
            company=clean_text(company, COMPANY_MAX),
            location=clean_text(scraped('location'), LOCATION_MAX),
            description=clean_text(scraped('description'), DESCRIPTION_MAX),
            qualifications=clean_text(scraped('qualifications'), QUALIFICATIONS_MAX),
            skills=normalize_skills(scraped('skills')),
            posted_date=parse_date_or_now(scraped('posted_date')),
            status=JobStatus.coerce(data.get('status') or JobStatus.PENDING),
            created_at=parse_date_or_now(data.get('created_at')),
            posted_at=parse_date(data.get('posted_at')),
            email_subject=clean_text(data.get('email_subject')),
            email_date=clean_text(data.get('email_date')),
            id=doc_id,
        )

    @classmethod
    def from_document(cls, doc_id: str, data: Dict) -> 'JobRecord':
        return cls.from_source(data, doc_id=doc_id)

    def to_dict(self) -> Dict:
        """Persisted representation. The store id is not part of the document."""
        return {
            'url': self.url,
            'title': self.title,
            'company': self.company,
            'location': self.location,
            'description': self.description,
            'qualifications': self.qualifications,
            'skills': list(self.skills),
            'posted_date': self.posted_date.isoformat(),
            'status': self.status.value,
            'created_at': self.created_at.isoformat(),
            'posted_at': self.posted_at.isoformat() if self.posted_at else None,
            'email_subject': self.email_subject,
            'email_date': self.email_date,
        }

    def __repr__(self):
        return f"JobRecord(id={self.id}, title={self.title[:40]!r}, company={self.company!r}, status={self.status.value})"
