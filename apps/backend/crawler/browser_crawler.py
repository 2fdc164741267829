"""
Browser-based page rendering using Playwright for JavaScript-heavy job pages.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional, List, AsyncIterator
from playwright.async_api import async_playwright, Page, Error as PlaywrightError

logger = logging.getLogger(__name__)

DEFAULT_UA = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
DEFAULT_TIMEOUT_MS = 30000
SETTLE_WAIT_MS = 2000
SCROLL_STEP_PX = 100
SCROLL_INTERVAL_MS = 100
MAX_SCROLL_STEPS = 300

# Cookie/consent banner buttons, tried in order (Playwright selector syntax)
COOKIE_DISMISS_SELECTORS = [
    # OneTrust
    '#onetrust-accept-btn-handler',
    '#onetrust-reject-all-handler',
    '.onetrust-close-btn-handler',
    # Generic patterns
    'button[id*="cookie"][id*="accept"]',
    'button[id*="cookie"][id*="reject"]',
    'button[class*="cookie"][class*="accept"]',
    'button[class*="consent"][class*="accept"]',
    '[class*="cookie-banner"] button[class*="accept"]',
    '[class*="cookie-banner"] button[class*="close"]',
    '[class*="cookie"] button:has-text("Accept")',
    '[class*="cookie"] button:has-text("OK")',
    '[class*="cookie"] button:has-text("Got it")',
    '[class*="consent"] button:has-text("Accept")',
    # GDPR
    '#gdpr-banner-accept',
    '.gdpr-accept',
    # Cookie Consent lib, Cookiebot
    '.cc-btn.cc-dismiss',
    '#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll',
]

# Scroll by a fixed step until the document stops growing
AUTO_SCROLL_JS = """
async ([step, interval, maxSteps]) => {
    await new Promise((resolve) => {
        let total = 0;
        let steps = 0;
        const timer = setInterval(() => {
            const height = document.body ? document.body.scrollHeight : 0;
            window.scrollBy(0, step);
            total += step;
            steps += 1;
            if (total >= height || steps >= maxSteps) {
                clearInterval(timer);
                resolve();
            }
        }, interval);
    });
}
"""


class BrowserRenderer:
    """Renders pages in headless Chromium"""

    def __init__(self, headless: bool = True, user_agent: str = DEFAULT_UA):
        self.headless = headless
        self.user_agent = user_agent

    @asynccontextmanager
    async def open(self, url: str, wait_until: str = 'networkidle',
                   timeout_ms: int = DEFAULT_TIMEOUT_MS) -> AsyncIterator[Page]:
        """
        Open a page and yield it; the browser is always closed afterwards.

        Args:
            url: URL to load
            wait_until: Playwright load state ('networkidle', 'domcontentloaded', ...)
            timeout_ms: Navigation timeout in milliseconds
        """
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.headless)
            try:
                context = await browser.new_context(
                    user_agent=self.user_agent,
                    extra_http_headers={
                        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
                        'Accept-Language': 'en-US,en;q=0.9'
                    }
                )
                page = await context.new_page()
                await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
                # Additional wait for dynamic content
                await page.wait_for_timeout(SETTLE_WAIT_MS)
                yield page
            finally:
                await browser.close()

    async def dismiss_first(self, page: Page, selectors: Optional[List[str]] = None) -> Optional[str]:
        """
        Click the first visible element matching one of the selectors.

        Returns:
            The selector that was clicked, or None
        """
        for selector in selectors or COOKIE_DISMISS_SELECTORS:
            try:
                locator = page.locator(selector).first
                if await locator.count() and await locator.is_visible():
                    await locator.click(timeout=2000)
                    await page.wait_for_timeout(500)
                    logger.debug(f"[browser] Dismissed banner via {selector}")
                    return selector
            except PlaywrightError as e:
                logger.debug(f"[browser] Dismiss selector {selector} failed: {e}")
        return None

    async def wait_for(self, page: Page, selector: Optional[str], timeout_ms: int = 10000) -> bool:
        """Wait for a selector; a miss is logged, never raised"""
        if not selector:
            return False
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightError as e:
            logger.warning(f"[browser] Selector {selector} not found: {e}")
            return False

    async def auto_scroll(self, page: Page):
        """Scroll to the bottom in small steps so lazy content loads"""
        try:
            await page.evaluate(AUTO_SCROLL_JS, [SCROLL_STEP_PX, SCROLL_INTERVAL_MS, MAX_SCROLL_STEPS])
        except PlaywrightError as e:
            logger.debug(f"[browser] Auto-scroll failed: {e}")
