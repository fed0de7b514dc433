"""Navigation controller: applies a chat identity to the host.

The controller holds an advisory lock while it drives the host. The
lock stays held for a grace period after each navigation finishes so
that the ``ChatChanged`` notifications the host emits as a side effect
are not projected back into the URL by the sync scheduler.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from .errors import ChatNavError, IdentityNotFoundError, OpenFailedError
from .events import EventBus, NavigationLockChanged, NoticePosted
from .host import CharacterEntry, GroupEntry, HostApplication
from .identity import CharacterIdentity, ChatIdentity, GroupIdentity, strip_avatar_suffix
from .scroller import DeepLinkScroller

__all__ = ["NavigationState", "NavigationLock", "NavigationController"]

LOGGER = logging.getLogger(__name__)


class NavigationState(enum.Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"


@dataclass(slots=True)
class NavigationLock:
    """Advisory flag read by the sync scheduler; not a mutex between navigations."""

    held: bool = False
    acquired_at: float | None = None


class NavigationController:
    """Drives the host to a target identity under the navigation lock.

    Process-wide state (the lock, the pending release timer and the time
    of the last successful navigation) lives on this object and is reset
    only by constructing a new one, i.e. on page load.
    """

    def __init__(
        self,
        host: HostApplication,
        event_bus: EventBus,
        *,
        scroller: DeepLinkScroller | None = None,
        grace_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._host = host
        self._bus = event_bus
        self._scroller = scroller
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._lock = NavigationLock()
        self._release_handle: asyncio.TimerHandle | None = None
        self._last_success_at: float | None = None
        self._last_succeeded = False
        self._in_flight = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def lock(self) -> NavigationLock:
        return self._lock

    @property
    def state(self) -> NavigationState:
        return NavigationState.NAVIGATING if self._lock.held else NavigationState.IDLE

    def is_navigating(self) -> bool:
        return self._lock.held

    @property
    def last_success_at(self) -> float | None:
        """Clock reading when the last successful navigation completed."""
        return self._last_success_at

    def seconds_since_success(self) -> float | None:
        if self._last_success_at is None:
            return None
        return self._clock() - self._last_success_at

    @property
    def last_navigation_succeeded(self) -> bool:
        """Whether the most recently completed navigation reached its chat."""
        return self._last_succeeded

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def apply_navigation(self, target: ChatIdentity) -> bool:
        """Open ``target`` in the host; returns success and never raises.

        A second call while the lock is held proceeds normally; the most
        recently completed call wins.
        """

        target = target.normalized()
        self._acquire()
        LOGGER.info("Navigating to %s", target)
        try:
            await self._navigate(target)
        except ChatNavError as exc:
            LOGGER.warning("Navigation to %s failed: %s", target, exc)
            self._last_succeeded = False
            if exc.user_visible:
                self._bus.publish(NoticePosted(str(exc), level="error"))
            return False
        except Exception:
            self._last_succeeded = False
            LOGGER.exception("Unexpected error while navigating to %s", target)
            self._bus.publish(NoticePosted("Navigation failed", level="error"))
            return False
        else:
            self._last_success_at = self._clock()
            self._last_succeeded = True
            self._bus.publish(NoticePosted(_success_message(target), level="success"))
            return True
        finally:
            self._schedule_release()

    async def _navigate(self, target: ChatIdentity) -> None:
        if isinstance(target, GroupIdentity):
            group = self._find_group(target.group_id)
            if group is None:
                raise IdentityNotFoundError(target)
            try:
                await self._host.open_group_chat(group.id, target.chat_file)
            except Exception as exc:
                raise OpenFailedError(target, exc) from exc
        else:
            character = self._find_character(target)
            if character is None:
                raise IdentityNotFoundError(target)
            try:
                if not self._is_active_character(character):
                    LOGGER.debug("Selecting character %s", character.id)
                    await self._host.select_character(character.id)
                await self._host.open_character_chat(target.chat_file)
            except Exception as exc:
                raise OpenFailedError(target, exc) from exc

        if target.message_id is not None and self._scroller is not None:
            try:
                await self._scroller.scroll_to(target.message_id)
            except Exception:
                LOGGER.exception("Scrolling to message %s failed", target.message_id)

    def _find_character(self, target: CharacterIdentity) -> CharacterEntry | None:
        for entry in self._host.list_characters():
            if strip_avatar_suffix(entry.avatar) == target.avatar_id:
                return entry
        return None

    def _find_group(self, group_id: str) -> GroupEntry | None:
        for entry in self._host.list_groups():
            if entry.id == group_id:
                return entry
        return None

    def _is_active_character(self, character: CharacterEntry) -> bool:
        active = self._host.current_active_entity()
        return active is not None and active.kind == "character" and active.id == character.id

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------

    def _acquire(self) -> None:
        self._in_flight += 1
        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None
        was_held = self._lock.held
        self._lock.held = True
        self._lock.acquired_at = self._clock()
        if not was_held:
            self._bus.publish(NavigationLockChanged(locked=True))

    def _schedule_release(self) -> None:
        self._in_flight -= 1
        if self._release_handle is not None:
            self._release_handle.cancel()
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(self._grace_seconds, self._release)

    def _release(self) -> None:
        self._release_handle = None
        if self._in_flight > 0:
            return
        self._lock.held = False
        self._lock.acquired_at = None
        LOGGER.debug("Navigation lock released")
        self._bus.publish(NavigationLockChanged(locked=False))


def _success_message(target: ChatIdentity) -> str:
    if isinstance(target, GroupIdentity):
        return "Opened group chat"
    return f"Opened chat: {target.chat_file}"
