"""HTTP client wrapper with rate limiting for job-board provider calls."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import SecretStr

from core.errors import AgentInputError, AgentTransportError

# Statuses that mean "try again later" rather than "your request is wrong"
_RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}


@dataclass
class RateLimiter:
    """Minimum spacing between requests."""

    rate: float  # requests per second
    _last_request: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    async def acquire(self) -> None:
        """Wait if needed to respect rate limit."""
        if self.rate <= 0:
            return

        async with self._lock:
            min_interval = 1.0 / self.rate
            elapsed = time.monotonic() - self._last_request
            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)
            self._last_request = time.monotonic()


class HttpClient:
    """Async HTTP client for provider APIs.

    Failures are classified rather than retried here; the dispatcher owns
    the retry policy.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        rate_limit: float = 0.0,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.rate_limiter = RateLimiter(rate=rate_limit)
        self.user_agent = user_agent or "SourcingAgent/1.0 (Job Discovery)"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        credential: SecretStr | None = None,
    ) -> Any:
        """GET a JSON document, classifying failures."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        await self.rate_limiter.acquire()

        headers = {"Accept": "application/json"}
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.get_secret_value()}"

        try:
            response = await self._client.get(url, params=params, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise AgentTransportError(f"{type(e).__name__} calling provider") from e

        if response.status_code in _RETRYABLE_STATUS:
            raise AgentTransportError(f"Provider returned HTTP {response.status_code}")
        if response.is_client_error:
            raise AgentInputError(f"Provider rejected request: HTTP {response.status_code}")
        if not response.is_success:
            raise AgentTransportError(f"Provider returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise AgentTransportError("Provider returned a non-JSON body") from e
