"""
Unit tests for JobRecord construction and persistence shape.
"""

from datetime import datetime, timezone

import pytest

from core.job_record import JobRecord, JobStatus, can_transition


@pytest.fixture
def nested_source():
    return {
        'company_name': 'Acme',
        'job_title': 'Backend Engineer',
        'apply_link': 'https://notify.careers/r/abc',
        'email_subject': '2 new jobs',
        'email_date': 'Mon, 14 Oct 2024 09:00:00 +0000',
        'location': 'Outer Location',
        'scraped_data': {
            'url': 'https://boards.greenhouse.io/acme/jobs/1',
            'title': 'Scraped Title',
            'company': 'Scraped Co',
            'location': 'Remote - US',
            'description': 'Build   things.',
            'qualifications': 'Python',
            'skills': ['python', 'aws'],
            'posted_date': '2024-03-14T10:00:00Z',
        },
        'status': 'pending',
    }


class TestFromSource:
    """Test nested/flat precedence and defaults."""

    @pytest.mark.parametrize("source", [
        {},
        {'title': 'Engineer'},
        {'job_title': 'Engineer', 'company_name': 'Acme', 'apply_link': 'https://x.test/1'},
        None,
    ])
    def test_defaults_without_nested_shape(self, source):
        record = JobRecord.from_source(source)

        assert record.skills == []
        assert record.qualifications == ""
        assert record.status == JobStatus.PENDING
        assert isinstance(record.posted_date, datetime)
        assert record.posted_at is None

    def test_nested_values_win_for_scraped_fields(self, nested_source):
        record = JobRecord.from_source(nested_source)

        assert record.location == 'Remote - US'
        assert record.url == 'https://boards.greenhouse.io/acme/jobs/1'
        assert record.description == 'Build things.'
        assert record.skills == ['aws', 'python']
        assert record.posted_date == datetime(2024, 3, 14, 10, 0, tzinfo=timezone.utc)

    def test_outer_title_and_company_win(self, nested_source):
        record = JobRecord.from_source(nested_source)

        assert record.title == 'Backend Engineer'
        assert record.company == 'Acme'

    def test_inner_title_used_when_outer_missing(self, nested_source):
        del nested_source['job_title']
        del nested_source['company_name']

        record = JobRecord.from_source(nested_source)

        assert record.title == 'Scraped Title'
        assert record.company == 'Scraped Co'

    def test_apply_link_fallback_for_url(self, nested_source):
        del nested_source['scraped_data']['url']

        record = JobRecord.from_source(nested_source)

        assert record.url == 'https://notify.careers/r/abc'

    def test_outer_field_used_when_nested_lacks_it(self, nested_source):
        del nested_source['scraped_data']['location']

        record = JobRecord.from_source(nested_source)

        assert record.location == 'Outer Location'

    def test_invalid_posted_date_defaults_to_now(self):
        before = datetime.now(timezone.utc)
        record = JobRecord.from_source({'posted_date': 'sometime soon'})
        assert record.posted_date >= before

    def test_invalid_status_defaults_to_pending(self):
        assert JobRecord.from_source({'status': 'archived'}).status == JobStatus.PENDING

    def test_comma_separated_skills(self):
        record = JobRecord.from_source({'skills': 'Python, AWS'})
        assert record.skills == ['aws', 'python']

    def test_length_caps(self):
        record = JobRecord.from_source({
            'qualifications': 'q' * 5000,
            'description': 'd' * 5000,
            'title': 't' * 1000,
        })
        assert len(record.qualifications) == 1500
        assert len(record.description) == 2000
        assert len(record.title) == 500

    def test_record_is_immutable(self):
        record = JobRecord.from_source({})
        with pytest.raises(Exception):
            record.status = JobStatus.POSTED


class TestPersistence:
    """Test conversion to and from stored documents."""

    def test_to_dict_has_no_id(self, nested_source):
        record = JobRecord.from_source(nested_source, doc_id='abc')

        data = record.to_dict()

        assert 'id' not in data
        assert 'scraped_data' not in data
        assert data['status'] == 'pending'
        assert data['posted_at'] is None
        assert data['posted_date'] == '2024-03-14T10:00:00+00:00'

    def test_document_roundtrip_keeps_fields(self, nested_source):
        record = JobRecord.from_source(nested_source)

        restored = JobRecord.from_document('doc-1', record.to_dict())

        assert restored.id == 'doc-1'
        assert restored.title == record.title
        assert restored.url == record.url
        assert restored.skills == record.skills
        assert restored.posted_date == record.posted_date
        assert restored.created_at == record.created_at
        assert restored.email_subject == '2 new jobs'

    def test_posted_record_roundtrip(self):
        posted_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        record = JobRecord.from_source({'status': 'posted', 'posted_at': posted_at.isoformat()})

        assert record.status == JobStatus.POSTED
        assert record.posted_at == posted_at


class TestTransitions:
    @pytest.mark.parametrize("current,target,allowed", [
        (JobStatus.PENDING, JobStatus.POSTING, True),
        (JobStatus.POSTING, JobStatus.POSTED, True),
        (JobStatus.POSTING, JobStatus.PENDING, True),
        (JobStatus.PENDING, JobStatus.POSTED, False),
        (JobStatus.POSTED, JobStatus.PENDING, False),
        (JobStatus.POSTED, JobStatus.POSTING, False),
    ])
    def test_allowed_transitions(self, current, target, allowed):
        assert can_transition(current, target) is allowed
