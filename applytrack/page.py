"""The current page as seen by a page session.

A ``Page`` holds the URL and the latest DOM snapshot of a job-board tab.
Whatever drives the browser feeds new snapshots in with ``update()``; code
that needs to react to the page changing awaits ``wait_for()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

PagePredicate = Callable[[BeautifulSoup], bool]


class Page:
    """URL + parsed DOM of one job-board page."""

    def __init__(self, url: str, html: str = ""):
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")
        self.version = 0
        self._watchers: set[asyncio.Event] = set()

    @property
    def host(self) -> str:
        return (urlparse(self.url).hostname or "").lower()

    def update(self, html: str, url: Optional[str] = None) -> None:
        """Replace the DOM snapshot and wake anything waiting on a change."""
        self.soup = BeautifulSoup(html, "html.parser")
        if url:
            self.url = url
        self.version += 1
        for event in list(self._watchers):
            event.set()

    def select_one(self, selector: str) -> Tag | None:
        """``soup.select_one`` that treats a bad selector as no match."""
        try:
            return self.soup.select_one(selector)
        except Exception as exc:
            logger.warning("Invalid selector %r: %s", selector, exc)
            return None

    async def wait_for(self, predicate: PagePredicate, timeout: float) -> bool:
        """Wait until ``predicate`` holds on the page, for at most ``timeout`` seconds.

        Re-checks on every ``update()``. Returns True as soon as the predicate
        holds and False once the time is up. Cancelling the awaiting task
        stops the wait.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if self._check(predicate):
                return True

            remaining = deadline - loop.time()
            if remaining <= 0:
                return False

            changed = asyncio.Event()
            self._watchers.add(changed)
            try:
                await asyncio.wait_for(changed.wait(), remaining)
            except asyncio.TimeoutError:
                return self._check(predicate)
            finally:
                self._watchers.discard(changed)

    def _check(self, predicate: PagePredicate) -> bool:
        try:
            return bool(predicate(self.soup))
        except Exception as exc:
            logger.debug("Page predicate raised: %s", exc)
            return False
