"""
Job page scraper: render, classify, extract.
"""
import logging
from typing import Dict, Optional

from crawler.browser_crawler import BrowserRenderer, DEFAULT_TIMEOUT_MS
from crawler.plugins import ProfileRegistry, get_profile_registry
from pipeline.extractor import FieldExtractor

logger = logging.getLogger(__name__)


class JobScraper:
    """Scrapes one job page into a job data map"""

    def __init__(
        self,
        renderer: Optional[BrowserRenderer] = None,
        registry: Optional[ProfileRegistry] = None,
        extractor: Optional[FieldExtractor] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        wait_until: str = 'networkidle'
    ):
        self.renderer = renderer or BrowserRenderer()
        self.registry = registry or get_profile_registry()
        self.extractor = extractor or FieldExtractor()
        self.timeout_ms = timeout_ms
        self.wait_until = wait_until

    async def scrape(self, url: str) -> Dict:
        """
        Render a job page and extract its fields.

        Args:
            url: Job page URL (typically the apply link from an alert email)

        Returns:
            Job data map: url, title, company, location, description,
            qualifications, skills, posted_date. ``url`` is the requested URL.

        Raises:
            Whatever the renderer raises (timeouts, navigation errors)
        """
        logger.info(f"[scraper] Scraping {url[:120]}")

        async with self.renderer.open(url, wait_until=self.wait_until, timeout_ms=self.timeout_ms) as page:
            final_url = page.url
            profile = self.registry.classify(url, final_url)

            await self.renderer.dismiss_first(page)
            await self.renderer.wait_for(page, profile.wait_for)
            await self.renderer.auto_scroll(page)

            html = await page.content()

        result = self.extractor.extract(html, final_url or url, profile)
        job_data = result.to_job_data()
        job_data['url'] = url
        logger.debug(f"[scraper] Extraction detail for {url[:120]}: {result.to_dict()}")

        logger.info(
            f"[scraper] {profile.name}: {job_data['title'][:60]!r} at {job_data['company'][:40]!r} "
            f"({len(job_data['skills'])} skills, {len(result.warnings)} warnings)"
        )
        return job_data
