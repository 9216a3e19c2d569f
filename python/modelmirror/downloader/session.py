"""Shared HTTP session for tree listings and file transfers.

One process-wide HubSession is created lazily by get_session(). Tests build
their own HubSession around an httpx.MockTransport instead.
"""
import asyncio
import logging
import os
from typing import Callable, Dict, Optional

import httpx

from . import __version__
from .registry import hf_token

logger = logging.getLogger(__name__)

USER_AGENT = f"modelmirror/{__version__} (HuggingFaceDownloader)"
PROXY_ENV_VARS = ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy")


class HubSession:
    """Wraps one httpx.AsyncClient with the hub request conventions.

    The token is resolved on every request so that a token exported after the
    session was created is still picked up.
    """

    def __init__(self, *, token: Optional[str] = None, timeout: float = 1800.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 token_provider: Callable[[], Optional[str]] = hf_token):
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._token_provider = token_provider
        self._client: Optional[httpx.AsyncClient] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client(self) -> httpx.AsyncClient:
        loop = _running_loop()
        if self._client is not None and loop is not self._loop:
            # pooled connections belong to the loop that opened them
            logger.debug("Event loop changed, recreating HTTP client")
            self._client = None
        if self._client is None or self._client.is_closed:
            if self._transport is None:
                for key in PROXY_ENV_VARS:
                    if os.environ.get(key):
                        logger.info(f"Using proxy from {key}")
                        break
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
                follow_redirects=True,
            )
            self._loop = loop
        return self._client

    def current_token(self) -> Optional[str]:
        return self.token or self._token_provider()

    def auth_headers(self) -> Dict[str, str]:
        token = self.current_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def download_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/octet-stream"}
        headers.update(self.auth_headers())
        return headers

    async def get(self, url: str, *, timeout: Optional[float] = None) -> httpx.Response:
        return await self.client.get(url, headers=self.auth_headers(),
                                     timeout=timeout if timeout is not None else self.timeout)

    def stream(self, url: str, *, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None):
        """Async context manager yielding a streaming httpx.Response."""
        return self.client.stream("GET", url, headers=headers if headers is not None else self.download_headers(),
                                  timeout=timeout if timeout is not None else self.timeout)

    async def aclose(self) -> None:
        if self._client is not None:
            if self._loop is _running_loop():
                await self._client.aclose()
            self._client = None
            self._loop = None


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


_shared_session: Optional[HubSession] = None


def get_session(**kwargs) -> HubSession:
    """Return the process-wide session, creating it with kwargs on first use."""
    global _shared_session
    if _shared_session is None:
        _shared_session = HubSession(**kwargs)
    return _shared_session


async def reset_session() -> None:
    global _shared_session
    if _shared_session is not None:
        await _shared_session.aclose()
    _shared_session = None
