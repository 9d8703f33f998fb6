#!/usr/bin/env python3
"""aiohttp session ownership shared by the HTTP venue adapters."""

from __future__ import annotations

from typing import Any, Dict, Optional

import aiohttp


class HttpSessionMixin:
    """Lazily creates an ``aiohttp.ClientSession`` unless one is injected.

    An injected session is shared and never closed here; a session created
    by the adapter is closed by ``close()``.
    """

    _session: Optional[aiohttp.ClientSession] = None
    _owns_session: bool = False
    _timeout_sec: float = 30.0
    _session_headers: Optional[Dict[str, str]] = None

    def _init_session(
        self,
        session: Optional[aiohttp.ClientSession],
        timeout_sec: float,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout_sec = float(timeout_sec)
        self._session_headers = headers

    def _ensure_session(self) -> Any:
        if self._session is None or self._session.closed:
            if not self._owns_session:
                raise RuntimeError("HTTP session not available (injected session is closed)")
            connector = aiohttp.TCPConnector(limit=20, keepalive_timeout=30)
            timeout = aiohttp.ClientTimeout(total=self._timeout_sec)
            self._session = aiohttp.ClientSession(
                headers=self._session_headers or {"Content-Type": "application/json"},
                connector=connector,
                timeout=timeout,
            )
        return self._session

    async def close(self) -> None:
        """Close the adapter-owned aiohttp session to avoid resource leaks."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
