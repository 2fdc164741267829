"""
Discord REST client for posting job embeds to a channel.
"""
import asyncio
import logging
from typing import Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.embeds import validate_embed, MAX_EMBEDS_PER_MESSAGE, MessageLimitError

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
DEFAULT_TIMEOUT = 15.0
MAX_RETRIES = 2
MAX_RATE_LIMIT_WAITS = 3
DEFAULT_UA = "DiscordBot (https://github.com/jobrelay, 1.0)"


class ChatSendError(Exception):
    """Discord rejected or failed to accept a message"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscordServerError(ChatSendError):
    """5xx from Discord; the message may already exist, so it is not retried"""


class DiscordClient:
    """Posts messages to Discord channels with retries and rate-limit handling"""

    def __init__(self, token: str, api_base: str = DISCORD_API_BASE,
                 client: Optional[httpx.AsyncClient] = None):
        """
        Initialize client.

        Args:
            token: Bot token
            api_base: API root (overridable for tests)
            client: Optional pre-built httpx client (e.g. with a mock transport)
        """
        if not token:
            raise ValueError("Discord bot token is required")
        self.api_base = api_base.rstrip('/')
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(DEFAULT_TIMEOUT))
        self._headers = {
            "Authorization": f"Bot {token}",
            "User-Agent": DEFAULT_UA,
            "Content-Type": "application/json",
        }

    async def _wait_rate_limit(self, response: httpx.Response, channel_id: str):
        retry_after = None
        try:
            retry_after = float(response.json().get('retry_after'))
        except (ValueError, TypeError, AttributeError):
            pass
        if retry_after is None:
            try:
                retry_after = float(response.headers.get('Retry-After', '1'))
            except ValueError:
                retry_after = 1.0
        logger.warning(f"[discord] Rate limited on channel {channel_id}, waiting {retry_after:.2f}s")
        await asyncio.sleep(max(0.0, retry_after))

    @retry(
        stop=stop_after_attempt(MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        # Retry only when the request never reached Discord
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True
    )
    async def send_embeds(self, channel_id: str, embeds: List[Dict]) -> Dict:
        """
        Post one message carrying up to 10 embeds.

        Returns:
            Created message object from Discord

        Raises:
            MessageLimitError: embeds violate Discord limits (not sent)
            ChatSendError: Discord rejected the message or did not answer
        """
        if not embeds:
            raise MessageLimitError("No embeds to send")
        if len(embeds) > MAX_EMBEDS_PER_MESSAGE:
            raise MessageLimitError(f"{len(embeds)} embeds in one message (max {MAX_EMBEDS_PER_MESSAGE})")
        for embed in embeds:
            validate_embed(embed)

        url = f"{self.api_base}/channels/{channel_id}/messages"

        for _ in range(MAX_RATE_LIMIT_WAITS + 1):
            try:
                response = await self._client.post(url, headers=self._headers, json={'embeds': embeds})
            except (httpx.ReadTimeout, httpx.WriteTimeout) as e:
                raise ChatSendError(f"Discord did not answer, delivery unknown: {e}") from e

            if response.status_code == 429:
                await self._wait_rate_limit(response, channel_id)
                continue

            if response.status_code >= 500:
                raise DiscordServerError(f"Discord error {response.status_code}", response.status_code)

            if response.status_code >= 400:
                raise ChatSendError(
                    f"Discord rejected message: {response.status_code} {response.text[:200]}",
                    response.status_code
                )

            return response.json()

        raise ChatSendError(f"Still rate limited after {MAX_RATE_LIMIT_WAITS} waits", 429)

    async def send(self, channel_id: str, embed: Dict) -> Dict:
        return await self.send_embeds(channel_id, [embed])

    async def close(self):
        await self._client.aclose()
