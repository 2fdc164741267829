"""
Publishing pending jobs to the chat channel.

Status flow per record: pending -> posting (claim) -> posted, or back to
pending when the send fails. The claim is a single conditional batch update,
so two concurrent runs can never both own the same record.
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional, Callable, Awaitable

from core.job_record import JobRecord, JobStatus, can_transition
from core.normalize import utcnow
from core.store import JobStore, StoreError, ClaimConflictError
from app.embeds import build_job_embed, build_digest_embeds, group_for_messages

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_SEND_DELAY_SECONDS = 1.0


class JobPoster:
    """Claims pending jobs and publishes them one message per job"""

    def __init__(
        self,
        store: JobStore,
        chat,
        channel_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        send_delay: float = DEFAULT_SEND_DELAY_SECONDS,
        sleep: Optional[Callable[[float], Awaitable]] = None
    ):
        self.store = store
        self.chat = chat
        self.channel_id = channel_id
        self.batch_size = batch_size
        self.send_delay = send_delay
        self._sleep = sleep or asyncio.sleep

    async def list_pending(self, limit: Optional[int] = None) -> List[JobRecord]:
        """Up to ``limit`` pending records in store order"""
        limit = self.batch_size if limit is None else limit
        return await self.store.query('status', JobStatus.PENDING.value, limit=limit)

    async def transition(self, ids: List[str], current: JobStatus, target: JobStatus, **changes):
        """
        Move records from ``current`` to ``target`` in one conditional update.

        Raises:
            ValueError: the status change is not allowed (e.g. out of posted)
            ClaimConflictError: some record was not in ``current``; nothing changed
        """
        if not can_transition(current, target):
            raise ValueError(f"Status change {current.value} -> {target.value} is not allowed")
        if not ids:
            return
        update = dict(changes, status=target.value)
        await self.store.batch_update(
            {doc_id: dict(update) for doc_id in ids},
            expected={'status': current.value}
        )

    async def claim_batch(self, ids: List[str]):
        """
        Move records pending -> posting in one atomic step.

        Raises:
            ClaimConflictError: some record was no longer pending; nothing changed
        """
        if not ids:
            return
        await self.transition(ids, JobStatus.PENDING, JobStatus.POSTING)
        logger.info(f"[poster] Claimed {len(ids)} jobs")

    async def release_batch(self, ids: List[str]):
        """Return claimed records that were never sent to pending"""
        try:
            await self.transition(ids, JobStatus.POSTING, JobStatus.PENDING)
        except StoreError as e:
            logger.error(f"[poster] Could not release {len(ids)} claimed jobs: {e}")
            return
        logger.warning(f"[poster] Released {len(ids)} unsent jobs back to pending")

    async def publish_one(self, record: JobRecord) -> bool:
        """
        Send one claimed record.

        Returns:
            True if the message was sent. On failure the record is returned
            to pending so a later run retries it.
        """
        try:
            embed = build_job_embed(record)
            await self.chat.send(self.channel_id, embed)
        except Exception as e:
            logger.error(f"[poster] Failed to post {record.id} ({record.title[:60]}): {e}")
            try:
                await self.transition([record.id], JobStatus.POSTING, JobStatus.PENDING)
            except StoreError as store_error:
                logger.error(f"[poster] Could not return {record.id} to pending: {store_error}")
            return False

        try:
            await self.transition([record.id], JobStatus.POSTING, JobStatus.POSTED, posted_at=utcnow())
        except StoreError as e:
            # Sent but not recorded; leaving it in posting keeps it out of later batches
            logger.error(f"[poster] Posted {record.id} but could not mark it posted: {e}")

        logger.info(f"[poster] Posted {record.id}: {record.title[:60]}")
        return True

    async def post_pending(self, limit: Optional[int] = None) -> Dict:
        """
        Claim and publish a batch of pending jobs.

        If the run is cancelled part way, claimed jobs not yet sent go back
        to pending.

        Returns:
            {'status': 'ok'|'fail', 'posted': int, 'failed': int, 'duration_ms': int}
        """
        start_time = time.time()

        try:
            pending = await self.list_pending(limit)
        except StoreError as e:
            logger.error(f"[poster] Could not list pending jobs: {e}")
            return {
                'status': 'fail',
                'message': str(e)[:500],
                'posted': 0,
                'failed': 0,
                'duration_ms': int((time.time() - start_time) * 1000)
            }

        if not pending:
            logger.info("[poster] No pending jobs to post")
            return {'status': 'ok', 'posted': 0, 'failed': 0, 'duration_ms': int((time.time() - start_time) * 1000)}

        ids = [record.id for record in pending]
        try:
            await self.claim_batch(ids)
        except (ClaimConflictError, StoreError) as e:
            logger.warning(f"[poster] Claim rejected, skipping batch of {len(ids)}: {e}")
            return {
                'status': 'fail',
                'message': f"Claim rejected: {e}",
                'posted': 0,
                'failed': len(ids),
                'duration_ms': int((time.time() - start_time) * 1000)
            }

        posted = 0
        failed = 0
        started = 0
        try:
            for index, record in enumerate(pending):
                started = index + 1
                if await self.publish_one(record):
                    posted += 1
                else:
                    failed += 1

                if index < len(pending) - 1 and self.send_delay > 0:
                    await self._sleep(self.send_delay)
        finally:
            unsent = ids[started:]
            if unsent:
                await self.release_batch(unsent)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[poster] Batch done: posted {posted}, failed {failed} ({duration_ms}ms)")

        return {
            'status': 'ok',
            'posted': posted,
            'failed': failed,
            'duration_ms': duration_ms
        }

    async def post_digest(self, limit: Optional[int] = None) -> Dict:
        """
        Post a listing of pending jobs without claiming them.

        Returns:
            {'status': 'ok'|'fail', 'jobs': int, 'messages': int}
        """
        try:
            pending = await self.list_pending(limit)
        except StoreError as e:
            logger.error(f"[poster] Could not list pending jobs: {e}")
            return {'status': 'fail', 'message': str(e)[:500], 'jobs': 0, 'messages': 0}

        if not pending:
            return {'status': 'ok', 'jobs': 0, 'messages': 0}

        groups = group_for_messages(build_digest_embeds(pending))
        sent = 0
        for group in groups:
            try:
                await self.chat.send_embeds(self.channel_id, group)
                sent += 1
            except Exception as e:
                logger.error(f"[poster] Digest message failed: {e}")
                return {'status': 'fail', 'message': str(e)[:500], 'jobs': len(pending), 'messages': sent}

        return {'status': 'ok', 'jobs': len(pending), 'messages': sent}
