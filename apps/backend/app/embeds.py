"""
Discord embed formatting for job postings.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from core.job_record import JobRecord
from core.normalize import utcnow

logger = logging.getLogger(__name__)

EMBED_COLOR = 0x0099ff

# Discord embed limits
TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
FIELD_NAME_LIMIT = 256
FIELD_VALUE_LIMIT = 1024
FOOTER_LIMIT = 2048
MAX_FIELDS = 25
MAX_EMBED_CHARS = 6000
MAX_EMBEDS_PER_MESSAGE = 10

SKILLS_SHOWN = 5
DESCRIPTION_PREVIEW = 300
DIGEST_CHUNK_SIZE = 10
DIGEST_NAME_LIMIT = 150
DIGEST_VALUE_LIMIT = 400


class MessageLimitError(ValueError):
    """Embed exceeds a Discord size limit"""


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + '...'


def _field(name: str, value: str, inline: bool) -> Dict:
    return {
        'name': _truncate(name, FIELD_NAME_LIMIT),
        'value': _truncate(value, FIELD_VALUE_LIMIT),
        'inline': inline,
    }


def embed_length(embed: Dict) -> int:
    """Character count Discord uses for the 6000-char total limit"""
    total = len(embed.get('title', '')) + len(embed.get('description', ''))
    total += len(embed.get('footer', {}).get('text', ''))
    for f in embed.get('fields', []):
        total += len(f.get('name', '')) + len(f.get('value', ''))
    return total


def validate_embed(embed: Dict):
    """Raise MessageLimitError if the embed would be rejected by Discord"""
    if len(embed.get('title', '')) > TITLE_LIMIT:
        raise MessageLimitError(f"Embed title longer than {TITLE_LIMIT}")
    if len(embed.get('description', '')) > DESCRIPTION_LIMIT:
        raise MessageLimitError(f"Embed description longer than {DESCRIPTION_LIMIT}")
    fields = embed.get('fields', [])
    if len(fields) > MAX_FIELDS:
        raise MessageLimitError(f"Embed has {len(fields)} fields (max {MAX_FIELDS})")
    for f in fields:
        if len(f.get('name', '')) > FIELD_NAME_LIMIT or len(f.get('value', '')) > FIELD_VALUE_LIMIT:
            raise MessageLimitError(f"Embed field {f.get('name', '')[:40]!r} too long")
    if len(embed.get('footer', {}).get('text', '')) > FOOTER_LIMIT:
        raise MessageLimitError(f"Embed footer longer than {FOOTER_LIMIT}")
    if embed_length(embed) > MAX_EMBED_CHARS:
        raise MessageLimitError(f"Embed exceeds {MAX_EMBED_CHARS} characters")


def build_job_embed(record: JobRecord, now: Optional[datetime] = None) -> Dict:
    """
    Embed for a single job posting.

    Company and location are inline fields, followed by the first few skills
    and a description preview. The footer and timestamp use the record's
    creation time.
    """
    fields = []

    if record.company:
        fields.append(_field('🏢 Company', record.company, True))

    if record.location:
        fields.append(_field('📍 Location', record.location, True))

    if record.skills:
        fields.append(_field('💻 Skills', ', '.join(record.skills[:SKILLS_SHOWN]), False))

    if record.description:
        preview = record.description[:DESCRIPTION_PREVIEW]
        if len(record.description) > DESCRIPTION_PREVIEW:
            preview += '...'
        fields.append(_field('📝 Description', preview, False))

    created = record.created_at or now or utcnow()

    embed = {
        'title': _truncate(record.title or 'Job Posting', TITLE_LIMIT),
        'color': EMBED_COLOR,
        'fields': fields,
        'footer': {'text': f"Posted: {created.strftime('%Y-%m-%d')}"},
        'timestamp': created.isoformat(),
    }
    if record.url:
        embed['url'] = record.url

    validate_embed(embed)
    return embed


def _digest_line(record: JobRecord) -> Dict:
    # 10 lines per embed must stay under the 6000-char total
    name = record.title or 'Job Posting'
    if record.company:
        name = f"{name} · {record.company}"

    parts = []
    if record.location:
        parts.append(_truncate(record.location, 100))
    if record.url:
        parts.append(f"[Apply]({record.url})")
    value = ' | '.join(parts) or '-'
    return _field(_truncate(name, DIGEST_NAME_LIMIT), _truncate(value, DIGEST_VALUE_LIMIT), False)


def build_digest_embeds(records: List[JobRecord], chunk_size: int = DIGEST_CHUNK_SIZE,
                        title: str = 'Pending jobs') -> List[Dict]:
    """
    Listing embeds for several jobs, ``chunk_size`` jobs per embed.

    When more than one embed is needed each title gets an "(i/N)" suffix.
    """
    if not records:
        return []

    chunk_size = max(1, min(chunk_size, MAX_FIELDS))
    chunks = [records[i:i + chunk_size] for i in range(0, len(records), chunk_size)]
    total = len(chunks)

    embeds = []
    for index, chunk in enumerate(chunks, start=1):
        embed_title = f"{title} ({index}/{total})" if total > 1 else title
        embed = {
            'title': _truncate(embed_title, TITLE_LIMIT),
            'color': EMBED_COLOR,
            'fields': [_digest_line(record) for record in chunk],
            'footer': {'text': f"{len(records)} jobs"},
        }
        validate_embed(embed)
        embeds.append(embed)

    return embeds


def group_for_messages(embeds: List[Dict]) -> List[List[Dict]]:
    """Split embeds into message-sized groups (10 embeds, 6000 chars per message)"""
    groups: List[List[Dict]] = []
    current: List[Dict] = []
    current_chars = 0

    for embed in embeds:
        size = embed_length(embed)
        if current and (len(current) >= MAX_EMBEDS_PER_MESSAGE or current_chars + size > MAX_EMBED_CHARS):
            groups.append(current)
            current, current_chars = [], 0
        current.append(embed)
        current_chars += size

    if current:
        groups.append(current)
    return groups
