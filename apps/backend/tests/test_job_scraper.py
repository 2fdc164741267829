"""
Unit tests for JobScraper with a fake renderer (no browser).
"""

from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from crawler.job_scraper import JobScraper

FIXTURES = Path(__file__).parent / "fixtures"


class FakePage:
    def __init__(self, url, html):
        self.url = url
        self._html = html

    async def content(self):
        return self._html


class FakeRenderer:
    """Records the calls JobScraper makes against the page"""

    def __init__(self, html, final_url=None, error=None):
        self.html = html
        self.final_url = final_url
        self.error = error
        self.opened = []
        self.waited_for = []
        self.dismissed = 0
        self.scrolled = 0

    @asynccontextmanager
    async def open(self, url, wait_until='networkidle', timeout_ms=30000):
        self.opened.append((url, wait_until, timeout_ms))
        if self.error:
            raise self.error
        yield FakePage(self.final_url or url, self.html)

    async def dismiss_first(self, page, selectors=None):
        self.dismissed += 1
        return None

    async def wait_for(self, page, selector, timeout_ms=10000):
        self.waited_for.append(selector)
        return True

    async def auto_scroll(self, page):
        self.scrolled += 1


@pytest.mark.asyncio
async def test_scrape_greenhouse_page():
    html = (FIXTURES / "greenhouse_job.html").read_text(encoding="utf-8")
    renderer = FakeRenderer(html)
    scraper = JobScraper(renderer=renderer, timeout_ms=5000)

    data = await scraper.scrape("https://boards.greenhouse.io/acme/jobs/1")

    assert data['url'] == "https://boards.greenhouse.io/acme/jobs/1"
    assert data['title'] == "Backend Engineer"
    assert data['company'] == "Acme"
    assert data['location'] == "Remote - US"
    assert data['posted_date'].startswith("2024-03-14")
    assert renderer.opened == [("https://boards.greenhouse.io/acme/jobs/1", 'networkidle', 5000)]
    assert renderer.waited_for == ['.app-title, #header']
    assert renderer.dismissed == 1
    assert renderer.scrolled == 1


@pytest.mark.asyncio
async def test_classifies_by_final_url_after_redirect():
    html = (FIXTURES / "greenhouse_job.html").read_text(encoding="utf-8")
    renderer = FakeRenderer(html, final_url="https://boards.greenhouse.io/acme/jobs/1")
    scraper = JobScraper(renderer=renderer)

    data = await scraper.scrape("https://notify.careers/r/abc123")

    assert renderer.waited_for == ['.app-title, #header']
    assert data['url'] == "https://notify.careers/r/abc123"
    assert data['title'] == "Backend Engineer"


@pytest.mark.asyncio
async def test_unknown_site_uses_generic_profile():
    html = (FIXTURES / "generic_cookie_job.html").read_text(encoding="utf-8")
    renderer = FakeRenderer(html)
    scraper = JobScraper(renderer=renderer)

    data = await scraper.scrape("https://careers.northwind.example/jobs/42")

    assert data['title'] == "Senior Data Analyst"
    assert data['company'] == "Northwind Traders"
    assert renderer.waited_for == [None]


@pytest.mark.asyncio
async def test_render_errors_propagate():
    renderer = FakeRenderer("", error=TimeoutError("navigation timeout"))
    scraper = JobScraper(renderer=renderer)

    with pytest.raises(TimeoutError):
        await scraper.scrape("https://jobs.lever.co/acme/1")
