"""
Mail clients for job-alert emails.

GmailService reads unread messages through the Gmail API.
MockGmailService serves messages from a JSON fixture file for dev mode.
"""

import asyncio
import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ['https://www.googleapis.com/auth/gmail.modify']
TOKEN_URI = "https://oauth2.googleapis.com/token"


class MailError(Exception):
    """Mail provider call failed"""


@dataclass(frozen=True)
class MailMessage:
    id: str
    subject: str
    date: str
    sender: str
    html: str


def decode_body(data: Optional[str]) -> str:
    """Decode a Gmail base64url body, tolerating missing padding"""
    if not data:
        return ""
    padded = data + '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode('ascii')).decode('utf-8', errors='replace')


def _find_part(payload: Dict, mime_type: str) -> Optional[Dict]:
    """Depth-first search for the first part with a body of the given type"""
    if payload.get('mimeType') == mime_type and payload.get('body', {}).get('data'):
        return payload
    for part in payload.get('parts', []) or []:
        found = _find_part(part, mime_type)
        if found:
            return found
    return None


def extract_body(payload: Dict) -> str:
    """
    Body of a Gmail message payload.

    Prefers the text/html part, falls back to text/plain, then to the body
    of a single-part message.
    """
    for mime_type in ('text/html', 'text/plain'):
        part = _find_part(payload, mime_type)
        if part:
            return decode_body(part['body']['data'])
    return decode_body(payload.get('body', {}).get('data'))


def _headers(payload: Dict) -> Dict[str, str]:
    return {h.get('name', '').lower(): h.get('value', '') for h in payload.get('headers', []) or []}


class GmailService:
    """Gmail API client (the API client is blocking, calls run in threads)"""

    def __init__(self, client_id: str, client_secret: str, refresh_token: str, user_id: str = "me"):
        self.user_id = user_id
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=TOKEN_URI,
            scopes=GMAIL_SCOPES,
        )
        self.service = build('gmail', 'v1', credentials=creds, cache_discovery=False)

    def _list_unread(self, sender: Optional[str]) -> List[MailMessage]:
        query = f"is:unread from:{sender}" if sender else "is:unread"
        messages = []
        request = self.service.users().messages().list(userId=self.user_id, q=query)

        while request is not None:
            response = request.execute()
            for ref in response.get('messages', []) or []:
                detail = self.service.users().messages().get(
                    userId=self.user_id, id=ref['id'], format='full'
                ).execute()
                payload = detail.get('payload', {})
                headers = _headers(payload)
                messages.append(MailMessage(
                    id=ref['id'],
                    subject=headers.get('subject', ''),
                    date=headers.get('date', ''),
                    sender=headers.get('from', ''),
                    html=extract_body(payload),
                ))
            request = self.service.users().messages().list_next(request, response)

        return messages

    def _mark_read(self, message_id: str):
        self.service.users().messages().modify(
            userId=self.user_id,
            id=message_id,
            body={'removeLabelIds': ['UNREAD']}
        ).execute()

    async def fetch_unread(self, sender: Optional[str] = None) -> List[MailMessage]:
        """
        Fetch unread messages, optionally only from one sender.

        Raises:
            MailError: the Gmail API call failed
        """
        try:
            messages = await asyncio.to_thread(self._list_unread, sender)
        except HttpError as e:
            raise MailError(f"Gmail list failed: {e}") from e
        logger.info(f"[gmail] Fetched {len(messages)} unread messages (sender={sender})")
        return messages

    async def mark_read(self, message_id: str):
        try:
            await asyncio.to_thread(self._mark_read, message_id)
        except HttpError as e:
            raise MailError(f"Gmail modify failed for {message_id}: {e}") from e
        logger.debug(f"[gmail] Marked {message_id} as read")


class MockGmailService:
    """
    Serves alert emails from a JSON fixture.

    Fixture format: a list of {"id", "from", "subject", "date", "html"} objects.
    Read state is instance-local; ``reset()`` makes every message unread again.
    """

    def __init__(self, fixture_file: str, mark_on_fetch: bool = False):
        self.fixture_file = fixture_file
        self.mark_on_fetch = mark_on_fetch
        self.processed_ids: Set[str] = set()

    def _load(self) -> List[Dict]:
        if not os.path.exists(self.fixture_file):
            logger.warning(f"[gmail] Mock fixture file not found: {self.fixture_file}")
            return []
        with open(self.fixture_file, 'r', encoding='utf-8') as f:
            return json.load(f)

    async def fetch_unread(self, sender: Optional[str] = None) -> List[MailMessage]:
        emails = self._load()

        if sender:
            emails = [e for e in emails if sender.lower() in (e.get('from') or '').lower()]

        emails = [e for e in emails if str(e.get('id')) not in self.processed_ids]

        if self.mark_on_fetch:
            self.processed_ids.update(str(e.get('id')) for e in emails)

        logger.info(f"[gmail] Returning {len(emails)} mock messages (sender={sender})")
        return [
            MailMessage(
                id=str(e.get('id')),
                subject=e.get('subject') or '',
                date=e.get('date') or '',
                sender=e.get('from') or '',
                html=e.get('html') or '',
            )
            for e in emails
        ]

    async def mark_read(self, message_id: str):
        self.processed_ids.add(message_id)

    def reset(self):
        self.processed_ids.clear()
        logger.info("[gmail] Mock reset - all messages are unread again")
