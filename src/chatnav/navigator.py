"""Top-level wiring of the chat URL navigator.

:class:`ChatUrlNavigator` owns one instance of every component for the
lifetime of a page and connects them to the event bus:

* ``AppReady``: consume a pending handoff, else decode the location,
  else project the current chat into the URL.
* ``LocationChanged``: decode the new location and navigate, or close
  the active chat when the location is bare.
* ``ChatChanged``: debounced URL/title projection (see :mod:`.sync`).

It also exposes the seams a settings panel or link overlay calls into.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, replace
from typing import Any, Callable

from . import codec
from .events import (
    AppReady,
    EventBus,
    LocationChanged,
    NoticePosted,
    SettingsChanged,
    WindowTitleChanged,
)
from .handoff import HandoffStore
from .host import BrowserWindow, HostApplication, TranscriptView
from .identity import ChatIdentity
from .navigation import NavigationController
from .resolver import ChatStateResolver
from .scroller import DeepLinkScroller
from .settings import NavigatorSettings, SettingsStore
from .storage import KeyValueStorage
from .sync import SyncScheduler

__all__ = ["ChatUrlNavigator"]

LOGGER = logging.getLogger(__name__)
_NO_CHAT_MESSAGE = "No chat is currently open"


class ChatUrlNavigator:
    """Keeps the browser location in step with the host's active chat."""

    def __init__(
        self,
        host: HostApplication,
        browser: BrowserWindow,
        storage: KeyValueStorage,
        *,
        transcript: TranscriptView | None = None,
        settings: NavigatorSettings | None = None,
        settings_store: SettingsStore | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._host = host
        self._browser = browser
        self._settings = settings or NavigatorSettings()
        self._settings_store = settings_store
        self._bus = event_bus or EventBus()
        self.handoff = HandoffStore(
            storage,
            handoff_ttl=self._settings.handoff_ttl_seconds,
            short_link_ttl=self._settings.short_link_ttl_seconds,
            clock=clock,
        )
        self.scroller = DeepLinkScroller(
            transcript,
            retry_delay=self._settings.scroll_retry_seconds,
            highlight_seconds=self._settings.highlight_seconds,
        )
        self.controller = NavigationController(
            host,
            self._bus,
            scroller=self.scroller,
            grace_seconds=self._settings.lock_grace_seconds,
            clock=monotonic,
        )
        self.resolver = ChatStateResolver(host)
        self.scheduler = SyncScheduler(
            self.resolver, browser, self.controller, self._bus, self._settings
        )
        self._attached = False

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> NavigatorSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        if self._attached:
            return
        self._bus.subscribe(AppReady, self._on_app_ready)
        self._bus.subscribe(LocationChanged, self._on_location_changed)
        self.scheduler.attach()
        self._attached = True
        LOGGER.info("Chat URL navigator attached")

    def detach(self) -> None:
        if not self._attached:
            return
        self._bus.unsubscribe(AppReady, self._on_app_ready)
        self._bus.unsubscribe(LocationChanged, self._on_location_changed)
        self.scheduler.detach()
        self._attached = False

    async def _on_app_ready(self, event: AppReady) -> None:
        self.scheduler.mark_ready()
        if not self._settings.enabled:
            return
        identity = self.handoff.consume()
        if identity is not None:
            LOGGER.info("Navigating to handed-off chat %s", identity)
        else:
            identity = self.decode_location()
        if identity is not None:
            await self.apply_navigation(identity)
        else:
            self.sync_now()

    async def _on_location_changed(self, event: LocationChanged) -> None:
        if not self._settings.enabled:
            return
        if event.source == "hashchange" and self.controller.is_navigating():
            LOGGER.debug("Ignoring hashchange during navigation")
            return
        identity = self.decode_location()
        if identity is not None:
            await self.apply_navigation(identity)
        elif self._browser.location.is_bare:
            await self._close_active_chat()

    async def _close_active_chat(self) -> None:
        try:
            await self._host.close_active_chat()
        except Exception as exc:
            LOGGER.warning("Host failed to close the active chat: %s", exc)
        title = self._settings.default_title
        self._browser.set_title(title)
        self._bus.publish(WindowTitleChanged(title))

    # ------------------------------------------------------------------
    # Seams
    # ------------------------------------------------------------------

    def decode_location(self) -> ChatIdentity | None:
        return codec.decode_location(self._browser.location, self.handoff)

    async def apply_navigation(self, target: ChatIdentity) -> bool:
        return await self.controller.apply_navigation(target)

    def sync_now(self) -> bool:
        return self.scheduler.sync_now()

    def publish_handoff(self, identity: ChatIdentity) -> None:
        self.handoff.publish(identity)

    def consume_handoff(self) -> ChatIdentity | None:
        return self.handoff.consume()

    def create_short_link(self, identity: ChatIdentity) -> str:
        return self.handoff.create_short_link(identity)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def current_url(self, *, absolute: bool = True) -> str | None:
        """Canonical URL of the active chat, or None when nothing is open."""

        identity = self.resolver.current_identity()
        if identity is None:
            return None
        return codec.build_url(self._browser.location, identity, absolute=absolute)

    async def copy_current_url(self) -> bool:
        url = self.current_url()
        if url is None:
            self._bus.publish(NoticePosted(_NO_CHAT_MESSAGE, level="warning"))
            return False
        try:
            await self._browser.write_clipboard(url)
        except Exception as exc:
            LOGGER.warning("Clipboard write failed: %s", exc)
            self._bus.publish(NoticePosted("Could not copy chat URL", level="error"))
            return False
        self._bus.publish(NoticePosted("Chat URL copied to clipboard", level="success"))
        return True

    def open_in_new_tab(self) -> bool:
        """Hand the active chat to a new tab and open it there."""

        identity = self.resolver.current_identity()
        if identity is None:
            self._bus.publish(NoticePosted(_NO_CHAT_MESSAGE, level="warning"))
            return False
        self.handoff.publish(identity)
        self._browser.open_tab(codec.build_url(self._browser.location, identity, absolute=True))
        self._bus.publish(NoticePosted("Opening chat in new tab", level="info"))
        return True

    def share_link(self, message_id: int | None = None) -> str | None:
        """Return a ``?chatlink=`` URL for the active chat, optionally anchored."""

        identity = self.resolver.current_identity()
        if identity is None:
            self._bus.publish(NoticePosted(_NO_CHAT_MESSAGE, level="warning"))
            return None
        if message_id is not None:
            identity = replace(identity, message_id=message_id)
        token = self.handoff.create_short_link(identity)
        location = self._browser.location
        return f"{location.origin}{location.pathname}?{codec.SHORT_LINK_PARAM}={token}"

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, **changes: Any) -> NavigatorSettings:
        """Apply setting changes, persist them, and resync when re-enabled."""

        previous = self._settings
        self._settings = replace(previous, **changes)
        self.scheduler.update_settings(self._settings)
        if self._settings_store is not None:
            try:
                self._settings_store.save(self._settings)
            except OSError as exc:
                LOGGER.warning("Failed to persist settings: %s", exc)
        self._bus.publish(SettingsChanged(settings=asdict(self._settings)))
        turned_on = (self._settings.enabled and not previous.enabled) or (
            self._settings.auto_update_url and not previous.auto_update_url
        )
        if turned_on:
            self.sync_now()
        return self._settings
