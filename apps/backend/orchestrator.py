"""
Scrape pipeline orchestrator and periodic scheduling
"""
import os
import logging
import asyncio
import time
from typing import Dict, List, Optional, Callable, Awaitable

from core.job_record import JobRecord, JobStatus
from core.normalize import utcnow
from core.store import JobStore
from pipeline.email_parser import EmailJobTuple, parse_job_table

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "no-reply@notify.careers"
DEFAULT_COOLDOWN_SECONDS = 60
MAX_CONSECUTIVE_ERRORS = 5


class ScrapeOrchestrator:
    """Turns unread job-alert emails into pending job records"""

    def __init__(
        self,
        mail_client,
        store: JobStore,
        scraper,
        sender: Optional[str] = DEFAULT_SENDER,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        dedupe: bool = True,
        sleep: Optional[Callable[[float], Awaitable]] = None
    ):
        self.mail_client = mail_client
        self.store = store
        self.scraper = scraper
        self.sender = sender
        self.cooldown_seconds = cooldown_seconds
        self.dedupe = dedupe
        self.is_processing = False
        self._sleep = sleep or asyncio.sleep

    def parse_message(self, message) -> List[EmailJobTuple]:
        """Job tuples from one alert email, stamped with the email's provenance"""
        parsed = parse_job_table(message.html)
        logger.info(f"[orchestrator] Email {message.id} ({message.subject[:60]!r}): {len(parsed)} jobs")
        return [job.with_provenance(message.subject, message.date, message.sender) for job in parsed]

    async def process_job(self, job: EmailJobTuple) -> str:
        """
        Scrape and store one job.

        Returns:
            'stored' or 'duplicate'
        """
        if self.dedupe:
            existing = await self.store.query('url', job.apply_link, limit=1)
            if existing:
                logger.info(f"[orchestrator] Already stored, skipping: {job.apply_link[:100]}")
                return 'duplicate'

        scraped = await self.scraper.scrape(job.apply_link)

        source = job.to_dict()
        source.update({
            'scraped_data': scraped,
            'status': JobStatus.PENDING.value,
            'created_at': utcnow(),
            'posted_at': None,
        })
        record = JobRecord.from_source(source)
        doc_id = await self.store.add(record)

        logger.info(f"[orchestrator] Stored {doc_id}: {record.title[:60]!r} at {record.company[:40]!r}")
        return 'stored'

    async def run_once(self) -> Dict:
        """
        Run one pass of the pipeline.

        Each email is marked read only after all of its jobs were handled. A
        failed mark-read counts as an error and the email comes back on the
        next run, where its stored jobs are skipped as duplicates.

        Returns:
            {'status': 'ok', 'processed': int, 'errors': int, 'duplicates': int, 'duration_ms': int}
            {'status': 'skipped', 'message': str} if a run is already in progress
            {'status': 'fail', 'message': str, 'duration_ms': int} on a fatal error
        """
        if self.is_processing:
            logger.warning("[orchestrator] Previous run still in progress, skipping")
            return {'status': 'skipped', 'message': 'Run already in progress'}

        self.is_processing = True
        start_time = time.time()

        try:
            messages = await self.mail_client.fetch_unread(self.sender)
            if not messages:
                logger.info("[orchestrator] No unread alert emails")
                return self._summary(start_time, 0, 0, 0)

            logger.info(f"[orchestrator] Processing {len(messages)} alert emails")

            processed = 0
            errors = 0
            duplicates = 0
            attempted = 0

            for message in messages:
                for job in self.parse_message(message):
                    if attempted and self.cooldown_seconds > 0:
                        await self._sleep(self.cooldown_seconds)
                    attempted += 1

                    try:
                        outcome = await self.process_job(job)
                        processed += 1
                        if outcome == 'duplicate':
                            duplicates += 1
                    except Exception as e:
                        errors += 1
                        logger.error(f"[orchestrator] Error processing {job.apply_link[:100]}: {e}")

                try:
                    await self.mail_client.mark_read(message.id)
                except Exception as e:
                    errors += 1
                    logger.error(f"[orchestrator] Could not mark email {message.id} read, it will be retried: {e}")

            return self._summary(start_time, processed, errors, duplicates)

        except Exception as e:
            logger.error(f"[orchestrator] Run failed: {e}", exc_info=True)
            return {
                'status': 'fail',
                'message': str(e)[:500],
                'duration_ms': int((time.time() - start_time) * 1000)
            }
        finally:
            self.is_processing = False

    def _summary(self, start_time: float, processed: int, errors: int, duplicates: int) -> Dict:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[orchestrator] Run done: processed {processed}, errors {errors}, duplicates {duplicates} ({duration_ms}ms)")
        return {
            'status': 'ok',
            'processed': processed,
            'errors': errors,
            'duplicates': duplicates,
            'duration_ms': duration_ms
        }


class PeriodicRunner:
    """Runs an async job on a fixed interval until stopped"""

    def __init__(self, name: str, job: Callable[[], Awaitable[Dict]], interval_seconds: float):
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def scheduler_loop(self):
        """Background loop; errors are logged and the loop keeps going"""
        logger.info(f"[scheduler] {self.name} started (every {self.interval_seconds}s)")

        consecutive_errors = 0

        while self.running:
            try:
                result = await self.job()
                logger.info(f"[scheduler] {self.name} result: {result}")
                consecutive_errors = 0
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"[scheduler] {self.name} error: {e}", exc_info=True)
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    logger.error(f"[scheduler] {self.name}: too many consecutive errors, backing off")
                    consecutive_errors = 0
                    await asyncio.sleep(self.interval_seconds * 2)
                    continue

            await asyncio.sleep(self.interval_seconds)

        logger.info(f"[scheduler] {self.name} stopped")

    async def start(self):
        """Start the loop"""
        if os.getenv("JOBRELAY_DISABLE_SCHEDULER", "").lower() == "true":
            logger.info(f"[scheduler] {self.name} disabled by JOBRELAY_DISABLE_SCHEDULER")
            return

        self.running = True
        self._task = asyncio.create_task(self.scheduler_loop())
        logger.info(f"[scheduler] {self.name} task created")

    async def stop(self):
        """Stop the loop"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"[scheduler] {self.name} stopping...")
