"""
Site profiles for job-page extraction.

Profiles bundle per-site CSS selectors for:
- Workday, Lever and Greenhouse hosted job pages
- A generic fallback for everything else
"""

from .base import ProfileKind, SiteProfile, PROFILE_FIELDS
from .profiles import GENERIC_PROFILE
from .registry import ProfileRegistry, get_profile_registry, classify

__all__ = [
    'ProfileKind',
    'SiteProfile',
    'PROFILE_FIELDS',
    'GENERIC_PROFILE',
    'ProfileRegistry',
    'get_profile_registry',
    'classify'
]
