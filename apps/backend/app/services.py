"""
Wires the pipeline collaborators from settings.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.config import Settings, ConfigError
from app.discord_client import DiscordClient
from app.gmail_service import GmailService, MockGmailService
from app.posting import JobPoster
from core.store import JobStore, MemoryJobStore, PostgresJobStore
from crawler.browser_crawler import BrowserRenderer
from crawler.job_scraper import JobScraper
from orchestrator import ScrapeOrchestrator, PeriodicRunner

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: JobStore
    mail_client: object
    scraper: JobScraper
    orchestrator: ScrapeOrchestrator
    poster: Optional[JobPoster] = None
    chat: Optional[DiscordClient] = None
    runners: List[PeriodicRunner] = field(default_factory=list)

    async def start(self):
        for runner in self.runners:
            await runner.start()

    async def stop(self):
        for runner in self.runners:
            await runner.stop()
        if self.chat:
            await self.chat.close()


def build_store(settings: Settings) -> JobStore:
    collection = settings.db.collection_name
    if settings.db.is_db_enabled:
        logger.info(f"[services] Using PostgreSQL job store (collection={collection})")
        return PostgresJobStore(settings.db.database_url, collection)
    logger.warning(f"[services] Using in-memory job store (collection={collection})")
    return MemoryJobStore(collection)


def build_mail_client(settings: Settings):
    if settings.use_mock_mail:
        logger.info(f"[services] Using mock mail fixture {settings.mock_emails_file}")
        return MockGmailService(settings.mock_emails_file)
    settings.require_gmail()
    return GmailService(
        settings.gmail_client_id,
        settings.gmail_client_secret,
        settings.gmail_refresh_token
    )


def build_services(settings: Settings) -> Services:
    """
    Build every collaborator the app needs.

    Posting is left out (poster=None) when Discord is not configured so
    the scrape side can still run.

    Raises:
        ConfigError: mail configuration is missing outside dev mode
    """
    store = build_store(settings)
    mail_client = build_mail_client(settings)
    scraper = JobScraper(
        renderer=BrowserRenderer(headless=settings.headless),
        timeout_ms=settings.page_timeout_ms
    )
    orchestrator = ScrapeOrchestrator(
        mail_client,
        store,
        scraper,
        sender=settings.alert_sender,
        cooldown_seconds=settings.scrape_cooldown_seconds,
        dedupe=settings.dedupe
    )

    services = Services(
        store=store,
        mail_client=mail_client,
        scraper=scraper,
        orchestrator=orchestrator,
    )
    services.runners.append(
        PeriodicRunner('scrape', orchestrator.run_once, settings.scrape_interval_seconds)
    )

    try:
        settings.require_discord()
    except ConfigError as e:
        logger.warning(f"[services] Posting disabled: {e}")
        return services

    services.chat = DiscordClient(settings.discord_token)
    services.poster = JobPoster(
        store,
        services.chat,
        settings.discord_channel_id,
        batch_size=settings.post_batch_size,
        send_delay=settings.post_delay_seconds
    )
    services.runners.append(
        PeriodicRunner('post', services.poster.post_pending, settings.post_interval_seconds)
    )
    return services
