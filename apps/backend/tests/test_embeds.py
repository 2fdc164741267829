"""
Unit tests for Discord embed formatting.
"""

from datetime import datetime, timezone

import pytest

from app.embeds import (
    build_job_embed,
    build_digest_embeds,
    group_for_messages,
    validate_embed,
    embed_length,
    MessageLimitError,
    MAX_EMBED_CHARS,
)
from core.job_record import JobRecord


CREATED = datetime(2024, 10, 14, 9, 30, tzinfo=timezone.utc)


def make_record(**overrides):
    data = {
        'title': 'Backend Engineer',
        'company': 'Acme',
        'location': 'Remote - US',
        'url': 'https://boards.greenhouse.io/acme/jobs/1',
        'description': 'Build payment systems.',
        'skills': ['python', 'aws', 'docker', 'go', 'kubernetes', 'react'],
        'created_at': CREATED.isoformat(),
    }
    data.update(overrides)
    return JobRecord.from_source(data)


class TestJobEmbed:
    def test_layout(self):
        embed = build_job_embed(make_record())

        assert embed['title'] == 'Backend Engineer'
        assert embed['url'] == 'https://boards.greenhouse.io/acme/jobs/1'
        assert embed['color'] == 0x0099ff
        assert embed['footer'] == {'text': 'Posted: 2024-10-14'}
        assert embed['timestamp'] == CREATED.isoformat()

        names = [f['name'] for f in embed['fields']]
        assert names == ['🏢 Company', '📍 Location', '💻 Skills', '📝 Description']
        assert [f['inline'] for f in embed['fields']] == [True, True, False, False]

    def test_only_first_five_skills(self):
        embed = build_job_embed(make_record())
        skills = next(f for f in embed['fields'] if f['name'] == '💻 Skills')
        # from_source sorts skills
        assert skills['value'] == 'aws, docker, go, kubernetes, python'

    def test_long_description_preview(self):
        embed = build_job_embed(make_record(description='x' * 1000))
        field = next(f for f in embed['fields'] if f['name'] == '📝 Description')
        assert field['value'] == 'x' * 300 + '...'

    def test_empty_fields_omitted(self):
        embed = build_job_embed(make_record(location='', skills=[], description='', url=''))

        assert [f['name'] for f in embed['fields']] == ['🏢 Company']
        assert 'url' not in embed

    def test_missing_title_placeholder(self):
        assert build_job_embed(make_record(title=''))['title'] == 'Job Posting'


class TestValidation:
    def test_rejects_long_title(self):
        with pytest.raises(MessageLimitError):
            validate_embed({'title': 'x' * 257})

    def test_rejects_too_many_fields(self):
        fields = [{'name': str(i), 'value': 'v'} for i in range(26)]
        with pytest.raises(MessageLimitError):
            validate_embed({'title': 't', 'fields': fields})

    def test_rejects_total_length(self):
        fields = [{'name': 'n', 'value': 'v' * 1000} for _ in range(7)]
        with pytest.raises(MessageLimitError):
            validate_embed({'title': 't', 'fields': fields})


class TestDigest:
    def test_chunking_and_titles(self):
        records = [make_record(title=f'Job {i}') for i in range(23)]

        embeds = build_digest_embeds(records)

        assert [e['title'] for e in embeds] == ['Pending jobs (1/3)', 'Pending jobs (2/3)', 'Pending jobs (3/3)']
        assert [len(e['fields']) for e in embeds] == [10, 10, 3]
        assert embeds[0]['fields'][0]['name'] == 'Job 0 · Acme'
        assert '[Apply](https://boards.greenhouse.io/acme/jobs/1)' in embeds[0]['fields'][0]['value']
        assert embeds[0]['footer'] == {'text': '23 jobs'}

    def test_single_embed_has_plain_title(self):
        assert build_digest_embeds([make_record()])[0]['title'] == 'Pending jobs'

    def test_empty(self):
        assert build_digest_embeds([]) == []

    def test_huge_records_stay_within_limits(self):
        records = [make_record(title='t' * 500, company='c' * 500, location='l' * 500) for _ in range(10)]

        embeds = build_digest_embeds(records)

        assert embed_length(embeds[0]) <= MAX_EMBED_CHARS

    def test_grouping_respects_message_limits(self):
        small = {'title': 'x', 'fields': []}
        assert [len(g) for g in group_for_messages([small] * 12)] == [10, 2]

        big = {'title': 'x', 'description': 'd' * 4000}
        assert [len(g) for g in group_for_messages([big, big])] == [1, 1]
