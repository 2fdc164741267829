"""
Profile registry: maps a job URL to the site profile used for extraction.
"""
import logging
from typing import List, Dict, Optional, Sequence
from .base import SiteProfile, ProfileKind
from .profiles import BUILTIN_PROFILES, GENERIC_PROFILE

logger = logging.getLogger(__name__)

# Global registry instance
_registry: Optional['ProfileRegistry'] = None


class ProfileRegistry:
    """Ordered, closed registry of site profiles with a generic fallback"""

    def __init__(self, profiles: Sequence[SiteProfile] = BUILTIN_PROFILES, fallback: SiteProfile = GENERIC_PROFILE):
        kinds = [p.kind for p in profiles]
        if ProfileKind.GENERIC in kinds:
            raise ValueError("Generic profile is the fallback and cannot be registered")
        if len(set(kinds)) != len(kinds):
            raise ValueError(f"Duplicate profile kinds: {kinds}")

        self._profiles: List[SiteProfile] = list(profiles)
        self._fallback = fallback

    def classify(self, url: str, final_url: Optional[str] = None) -> SiteProfile:
        """
        Pick the profile for a job page.

        Args:
            url: URL as requested (e.g. the apply link from the alert email)
            final_url: URL after redirects, if known

        Returns:
            First matching profile in registry order, else the generic profile
        """
        for profile in self._profiles:
            if profile.matches(url) or profile.matches(final_url):
                logger.debug(f"[profiles] Selected {profile.name} for {(final_url or url or '')[:80]}")
                return profile

        logger.debug(f"[profiles] No site profile for {(final_url or url or '')[:80]}, using generic")
        return self._fallback

    def list_profiles(self) -> List[Dict]:
        """List all profiles, fallback last"""
        return [
            {
                'name': profile.name,
                'pattern': profile.pattern.pattern,
                'wait_for': profile.wait_for,
            }
            for profile in self._profiles + [self._fallback]
        ]


def get_profile_registry() -> ProfileRegistry:
    """Get or create the global profile registry"""
    global _registry
    if _registry is None:
        _registry = ProfileRegistry()
    return _registry


def classify(url: str, final_url: Optional[str] = None) -> SiteProfile:
    return get_profile_registry().classify(url, final_url)
