"""
Site profile types for job-page extraction.
"""
import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Pattern

logger = logging.getLogger(__name__)

# Logical fields every profile may provide selectors for
PROFILE_FIELDS = ('title', 'company', 'location', 'qualifications', 'description')


class ProfileKind(str, Enum):
    """Closed set of known job-site families"""
    WORKDAY = 'workday'
    LEVER = 'lever'
    GREENHOUSE = 'greenhouse'
    GENERIC = 'generic'


@dataclass(frozen=True)
class SiteProfile:
    """
    Selector bundle for one family of job sites.

    Selectors are CSS (soupsieve dialect) tried in order per field. ``wait_for``
    is a selector the renderer waits for before reading the page, if any.
    """
    kind: ProfileKind
    pattern: Pattern
    selectors: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    wait_for: Optional[str] = None

    @property
    def name(self) -> str:
        return self.kind.value

    def matches(self, url: Optional[str]) -> bool:
        """Check if this profile applies to a URL"""
        if not url:
            return False
        return bool(self.pattern.search(url))

    def selectors_for(self, field_name: str) -> List[str]:
        return list(self.selectors.get(field_name, ()))

    def __repr__(self):
        return f"<SiteProfile(kind={self.kind.value}, wait_for={self.wait_for!r})>"


def make_profile(
    kind: ProfileKind,
    pattern: str,
    selectors: Dict[str, List[str]],
    wait_for: Optional[str] = None
) -> SiteProfile:
    """Helper to build a profile from plain lists"""
    unknown = set(selectors) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields for {kind.value}: {sorted(unknown)}")

    return SiteProfile(
        kind=kind,
        pattern=re.compile(pattern, re.IGNORECASE),
        selectors={name: tuple(values) for name, values in selectors.items()},
        wait_for=wait_for,
    )
