"""Bring a deep-linked message into view after navigation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .host import TranscriptView

__all__ = ["DeepLinkScroller"]

LOGGER = logging.getLogger(__name__)


class DeepLinkScroller:
    """Scrolls to a message index and flashes a highlight on it.

    The transcript may not be rendered yet when navigation completes, so
    a missing message is looked up once more after ``retry_delay``.
    """

    def __init__(
        self,
        transcript: TranscriptView | None,
        *,
        retry_delay: float = 0.5,
        highlight_seconds: float = 2.0,
    ) -> None:
        self._transcript = transcript
        self._retry_delay = retry_delay
        self._highlight_seconds = highlight_seconds
        self._highlight_handle: asyncio.TimerHandle | None = None
        self._highlighted: Any = None

    async def scroll_to(self, message_id: int) -> bool:
        """Scroll to ``message_id``, retrying exactly once; returns success."""

        if self.try_scroll(message_id):
            return True
        await asyncio.sleep(self._retry_delay)
        if self.try_scroll(message_id):
            return True
        LOGGER.debug("Message %s not found after retry; giving up", message_id)
        return False

    def try_scroll(self, message_id: int) -> bool:
        if self._transcript is None:
            LOGGER.debug("No transcript view attached; cannot scroll to %s", message_id)
            return False
        element = self._transcript.find_message(message_id)
        if element is None:
            LOGGER.debug("Message %s not rendered yet", message_id)
            return False
        self._transcript.scroll_into_view(element)
        self._flash(self._transcript, element)
        return True

    def _flash(self, transcript: TranscriptView, element: Any) -> None:
        if self._highlight_handle is not None:
            self._highlight_handle.cancel()
            self._clear_highlight()
        transcript.set_highlight(element, True)
        self._highlighted = element
        loop = asyncio.get_running_loop()
        self._highlight_handle = loop.call_later(self._highlight_seconds, self._clear_highlight)

    def _clear_highlight(self) -> None:
        element, self._highlighted = self._highlighted, None
        self._highlight_handle = None
        if element is not None and self._transcript is not None:
            self._transcript.set_highlight(element, False)
