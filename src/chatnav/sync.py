"""Project the host's active chat into the browser URL and title."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from . import codec
from .events import (
    ChatChanged,
    EventBus,
    LocationSynced,
    NavigationLockChanged,
    WindowTitleChanged,
)
from .host import BrowserWindow
from .identity import ChatIdentity
from .navigation import NavigationController
from .resolver import ChatStateResolver, format_title
from .settings import NavigatorSettings

__all__ = ["Debouncer", "SyncScheduler"]

LOGGER = logging.getLogger(__name__)


class Debouncer:
    """Trailing-edge debounce: each :meth:`trigger` restarts the quiet period."""

    def __init__(self, delay: float, callback: Callable[[], object]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:
            LOGGER.exception("Debounced callback failed")


class SyncScheduler:
    """Debounced listener that writes the canonical URL for the active chat.

    ``ChatChanged`` bursts collapse into one :meth:`sync_now` call, which
    reads host state at the moment it fires.
    """

    def __init__(
        self,
        resolver: ChatStateResolver,
        browser: BrowserWindow,
        controller: NavigationController,
        event_bus: EventBus,
        settings: NavigatorSettings,
    ) -> None:
        self._resolver = resolver
        self._browser = browser
        self._controller = controller
        self._bus = event_bus
        self._settings = settings
        self._ready = False
        self._debouncer = Debouncer(settings.debounce_seconds, self.sync_now)
        self.write_count = 0

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    def mark_ready(self) -> None:
        self._ready = True

    def update_settings(self, settings: NavigatorSettings) -> None:
        self._settings = settings
        self._debouncer.cancel()
        self._debouncer = Debouncer(settings.debounce_seconds, self.sync_now)

    def attach(self) -> None:
        self._bus.subscribe(ChatChanged, self._on_chat_changed)
        self._bus.subscribe(NavigationLockChanged, self._on_lock_changed)

    def detach(self) -> None:
        self._bus.unsubscribe(ChatChanged, self._on_chat_changed)
        self._bus.unsubscribe(NavigationLockChanged, self._on_lock_changed)
        self._debouncer.cancel()

    def _on_chat_changed(self, event: ChatChanged) -> None:
        if not self._settings.enabled:
            return
        self._debouncer.trigger()

    def _on_lock_changed(self, event: NavigationLockChanged) -> None:
        # Host notifications emitted during the navigation were skipped under
        # the lock; project the final state once it is released.
        if event.locked or not self._settings.enabled:
            return
        if not self._controller.last_navigation_succeeded:
            return
        self._debouncer.trigger()

    def sync_now(self) -> bool:
        """Write the URL for the current chat; returns True if history was written."""

        settings = self._settings
        if not settings.enabled or not settings.auto_update_url:
            return False
        if not self._ready:
            LOGGER.debug("Sync skipped: host not ready")
            return False
        if self._controller.is_navigating():
            LOGGER.debug("Sync skipped: navigation in progress")
            return False

        identity = self._resolver.current_identity()
        location = self._browser.location
        if identity is None:
            since = self._controller.seconds_since_success()
            if since is not None and since < settings.empty_state_grace_seconds:
                LOGGER.debug("Sync skipped: no active chat %.2fs after navigation", since)
                return False
            return self._clear(location.pathname, location.is_bare)

        title = format_title(
            self._resolver.current_display_name(),
            settings.default_title,
            settings.title_separator,
        )
        written = False
        if not self._matches(location.query, location.fragment, identity):
            url = codec.build_url(location, identity)
            self._browser.push_state(url, title)
            self.write_count += 1
            written = True
            LOGGER.debug("History written: %s", url)
            self._bus.publish(LocationSynced(url=url, title=title))
        self._set_title(title)
        return written

    def _clear(self, pathname: str, already_bare: bool) -> bool:
        title = self._settings.default_title
        written = False
        if not already_bare:
            self._browser.push_state(pathname, title)
            self.write_count += 1
            written = True
            LOGGER.debug("History cleared to %s", pathname)
            self._bus.publish(LocationSynced(url=pathname, title=title))
        self._set_title(title)
        return written

    def _set_title(self, title: str) -> None:
        self._browser.set_title(title)
        self._bus.publish(WindowTitleChanged(title))

    @staticmethod
    def _matches(query: str, fragment: str, identity: ChatIdentity) -> bool:
        # A deep-link ``msg`` on the current chat is kept as is.
        if fragment:
            return False
        params = codec.parse_query(query)
        if codec.SHORT_LINK_PARAM in params:
            return False
        current = codec.decode(params)
        if current is None:
            return False
        return current.without_message() == identity.without_message() and "?" + query == codec.encode(current)
