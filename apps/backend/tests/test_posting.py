"""
Unit tests for the posting state machine.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.discord_client import ChatSendError
from app.posting import JobPoster
from core.job_record import JobRecord, JobStatus
from core.store import MemoryJobStore, ClaimConflictError


async def seed(store, *titles, status='pending'):
    ids = []
    for title in titles:
        record = JobRecord.from_source({
            'title': title,
            'company': 'Acme',
            'url': f'https://acme.example/{title}',
            'status': status,
        })
        ids.append(await store.add(record))
    return ids


class FlakyChat:
    """Chat stub that fails on the given 1-based call numbers."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def send(self, channel_id, embed):
        self.calls.append((channel_id, embed))
        if len(self.calls) in self.fail_on:
            raise ChatSendError("boom", 500)
        return {'id': str(len(self.calls))}

    async def send_embeds(self, channel_id, embeds):
        self.calls.append((channel_id, embeds))
        return {'id': str(len(self.calls))}


@pytest.fixture
def store():
    return MemoryJobStore()


class TestPostPending:
    """Test batch posting."""

    @pytest.mark.asyncio
    async def test_failure_mid_batch(self, store):
        """Send fails on the second of three: posted / pending / posted."""
        ids = await seed(store, 'one', 'two', 'three')
        chat = FlakyChat(fail_on={2})
        sleep = AsyncMock()
        poster = JobPoster(store, chat, 'chan-1', send_delay=1.0, sleep=sleep)

        result = await poster.post_pending(10)

        assert result['status'] == 'ok'
        assert result['posted'] == 2
        assert result['failed'] == 1
        assert len(chat.calls) == 3
        statuses = [(await store.get(doc_id)).status for doc_id in ids]
        assert statuses == [JobStatus.POSTED, JobStatus.PENDING, JobStatus.POSTED]
        assert (await store.get(ids[0])).posted_at is not None
        assert (await store.get(ids[1])).posted_at is None

    @pytest.mark.asyncio
    async def test_delay_between_sends_only(self, store):
        await seed(store, 'one', 'two', 'three')
        sleep = AsyncMock()
        poster = JobPoster(store, FlakyChat(), 'chan-1', send_delay=1.0, sleep=sleep)

        await poster.post_pending()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_failed_record_is_pending_again(self, store):
        """A claimed record whose publish fails is listed as pending again."""
        ids = await seed(store, 'only')
        poster = JobPoster(store, FlakyChat(fail_on={1}), 'chan-1', send_delay=0)

        await poster.post_pending()

        pending = await poster.list_pending()
        assert [r.id for r in pending] == ids

    @pytest.mark.asyncio
    async def test_respects_limit_and_order(self, store):
        await seed(store, 'a', 'b', 'c', 'd')
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1', send_delay=0)

        result = await poster.post_pending(2)

        assert result['posted'] == 2
        assert [embed['title'] for _, embed in chat.calls] == ['a', 'b']
        assert [r.title for r in await poster.list_pending()] == ['c', 'd']

    @pytest.mark.asyncio
    async def test_nothing_pending(self, store):
        await seed(store, 'done', status='posted')
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1')

        result = await poster.post_pending()

        assert result['posted'] == 0
        assert chat.calls == []

    @pytest.mark.asyncio
    async def test_rejected_claim_sends_nothing(self, store):
        await seed(store, 'one', 'two')
        store.batch_update = AsyncMock(side_effect=ClaimConflictError("taken", ['x']))
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1', send_delay=0)

        result = await poster.post_pending()

        assert result['status'] == 'fail'
        assert result['failed'] == 2
        assert chat.calls == []


class TestClaim:
    """Test the claim step."""

    @pytest.mark.asyncio
    async def test_concurrent_claims_cannot_both_win(self, store):
        ids = await seed(store, 'one', 'two')
        first = JobPoster(store, FlakyChat(), 'chan-1')
        second = JobPoster(store, FlakyChat(), 'chan-1')

        await first.claim_batch(ids)
        with pytest.raises(ClaimConflictError):
            await second.claim_batch(ids)

        assert all((await store.get(doc_id)).status == JobStatus.POSTING for doc_id in ids)

    @pytest.mark.asyncio
    async def test_claimed_records_not_listed(self, store):
        ids = await seed(store, 'one', 'two')
        poster = JobPoster(store, FlakyChat(), 'chan-1')

        await poster.claim_batch(ids[:1])

        assert [r.id for r in await poster.list_pending()] == ids[1:]


class TestDigest:
    @pytest.mark.asyncio
    async def test_digest_does_not_claim(self, store):
        await seed(store, *[f'job{i}' for i in range(12)])
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1')

        result = await poster.post_digest(limit=12)

        assert result == {'status': 'ok', 'jobs': 12, 'messages': 1}
        channel, embeds = chat.calls[0]
        assert [e['title'] for e in embeds] == ['Pending jobs (1/2)', 'Pending jobs (2/2)']
        assert len(await poster.list_pending(limit=50)) == 12


class TestInterruptedBatch:
    @pytest.mark.asyncio
    async def test_cancelled_batch_releases_unsent_claims(self, store):
        """Cancelling between sends puts claimed but unsent jobs back to pending."""
        ids = await seed(store, 'one', 'two', 'three')
        chat = FlakyChat()
        waiting = asyncio.Event()

        async def blocking_sleep(seconds):
            waiting.set()
            await asyncio.Event().wait()

        poster = JobPoster(store, chat, 'chan-1', send_delay=1.0, sleep=blocking_sleep)

        task = asyncio.create_task(poster.post_pending())
        await waiting.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        statuses = [(await store.get(doc_id)).status for doc_id in ids]
        assert statuses == [JobStatus.POSTED, JobStatus.PENDING, JobStatus.PENDING]
        assert [r.id for r in await poster.list_pending()] == ids[1:]
        assert len(chat.calls) == 1


class TestTransitions:
    @pytest.mark.asyncio
    async def test_posted_records_cannot_be_moved(self, store):
        ids = await seed(store, 'done', status='posted')
        poster = JobPoster(store, FlakyChat(), 'chan-1')

        with pytest.raises(ValueError):
            await poster.transition(ids, JobStatus.POSTED, JobStatus.PENDING)

        assert (await store.get(ids[0])).status == JobStatus.POSTED

    @pytest.mark.asyncio
    async def test_publish_of_unclaimed_record_does_not_mark_posted(self, store):
        """Only a record still in posting can become posted."""
        ids = await seed(store, 'one')
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1')
        record = await store.get(ids[0])

        assert await poster.publish_one(record) is True

        assert (await store.get(ids[0])).status == JobStatus.PENDING
        assert (await store.get(ids[0])).posted_at is None


class TestLimits:
    @pytest.mark.asyncio
    async def test_zero_limit_lists_nothing(self, store):
        await seed(store, 'one', 'two')
        poster = JobPoster(store, FlakyChat(), 'chan-1', batch_size=10)

        assert await poster.list_pending(0) == []
        assert len(await poster.list_pending()) == 2

    @pytest.mark.asyncio
    async def test_zero_limit_posts_nothing(self, store):
        await seed(store, 'one')
        chat = FlakyChat()
        poster = JobPoster(store, chat, 'chan-1')

        result = await poster.post_pending(0)

        assert result['posted'] == 0
        assert chat.calls == []
