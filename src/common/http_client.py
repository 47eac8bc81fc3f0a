"""Shared HTTP client for downloading package archives.

Wraps a single aiohttp session so every concurrent install task reuses the
same connection pool. Transport errors and non-2xx responses surface as
``aiohttp.ClientError``; callers translate them into domain errors.
"""
from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


class ArtifactDownloader:
    """Fetch archive bytes over HTTP(S)."""

    def __init__(
        self,
        timeout: int = Constants.REQUEST_TIMEOUT,
        max_connections: int = Constants.MAX_CONCURRENCY,
        user_agent: str = Constants.USER_AGENT,
    ):
        """Initialize the downloader.

        Args:
            timeout: Total per-request timeout in seconds.
            max_connections: Connection pool size.
            user_agent: Value of the User-Agent header.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_connections = max_connections
        self._headers = {"User-Agent": user_agent, "Accept": "*/*"}
        self._session: Optional[aiohttp.ClientSession] = None
        self.fetch_count = 0

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self._max_connections)
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=connector,
                headers=self._headers,
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str) -> bytes:
        """Download ``url`` and return the response body.

        Raises:
            aiohttp.ClientResponseError: on a non-2xx status.
            aiohttp.ClientError: on transport failures.
        """
        if self._session is None:
            await self.start()
        assert self._session is not None

        self.fetch_count += 1
        safe_target = safe_url(url)
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                    ),
                )
            async with self._session.get(url) as response:
                response.raise_for_status()
                body = await response.read()

            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response ok",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="success",
                        status_code=response.status,
                        duration_ms=t.duration_ms(),
                        size=len(body),
                        target=safe_target,
                    ),
                )
        return body

    async def __aenter__(self) -> "ArtifactDownloader":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
