"""
Ollama chat client with bounded retries.

One request, one response: a non-streaming POST to /api/chat whose reply text
sits under message.content. Transient failures are retried with a fixed
sleep; after the last attempt a FetchError is raised.
"""

import logging
import time
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from storyweaver.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODEL,
    DEFAULT_RETRY_SLEEP,
    DEFAULT_TIMEOUT,
)
from storyweaver.errors import FetchError

logger = logging.getLogger(__name__)


class _TransientError(Exception):
    """Attempt failed in a way worth retrying."""


class OllamaClient:
    """Wrapper for the Ollama chat API with retries."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_sleep: float = DEFAULT_RETRY_SLEEP,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_sleep = retry_sleep
        self._transport = transport

    @property
    def base_url(self) -> str:
        parts = urlsplit(self.endpoint)
        return urlunsplit((parts.scheme, parts.netloc, "", "", ""))

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def _attempt(self, client: httpx.Client, payload: dict) -> str:
        try:
            response = client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise _TransientError(f"timed out after {self.timeout:.0f}s") from e
        except httpx.RequestError as e:
            raise _TransientError(f"connection failed: {e}") from e

        if response.status_code >= 500:
            raise _TransientError(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise FetchError(f"AI service rejected the request: HTTP {response.status_code} {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise _TransientError("response body is not JSON") from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise _TransientError("empty response")
        return content

    def fetch(self, prompt: str) -> str:
        """
        Send a prompt and return the raw reply text.

        Args:
            prompt: Full instruction text (sent as a single user message)

        Returns:
            Raw content string from message.content

        Raises:
            FetchError: After max_retries failed attempts, or at once on a 4xx
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }

        last_error = "no attempt made"
        with self._client() as client:
            for attempt in range(self.max_retries):
                logger.info(f"Calling AI API (attempt {attempt + 1}/{self.max_retries}, model {self.model})")
                try:
                    return self._attempt(client, payload)
                except _TransientError as e:
                    last_error = str(e)
                    logger.warning(f"AI request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_sleep)

        raise FetchError(f"AI service unavailable after {self.max_retries} attempts: {last_error}")

    def list_models(self) -> list[str]:
        """
        List models known to the Ollama service (GET /api/tags).

        Raises:
            FetchError: If the service is unreachable or answers with an error
        """
        url = f"{self.base_url}/api/tags"
        try:
            with httpx.Client(timeout=10.0, transport=self._transport) as client:
                response = client.get(url)
        except httpx.RequestError as e:
            raise FetchError(f"Ollama service not reachable at {self.base_url}: {e}") from e

        if response.status_code != 200:
            raise FetchError(f"Ollama service at {self.base_url} answered HTTP {response.status_code}")

        try:
            models = response.json().get("models", [])
        except (ValueError, AttributeError) as e:
            raise FetchError(f"Unexpected /api/tags response from {self.base_url}") from e
        return [m.get("name", "") for m in models if isinstance(m, dict)]
