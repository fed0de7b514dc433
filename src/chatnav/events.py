"""Typed event bus connecting the host, the browser and the navigator.

The host publishes :class:`AppReady` and :class:`ChatChanged`; the
browser glue publishes :class:`LocationChanged` for popstate and
hashchange. The navigator publishes notices, title changes and lock
transitions for whatever presentation layer is listening.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Literal, TypeVar
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

# Handlers may be plain callables or coroutine functions; coroutines are
# scheduled on the running loop.
Handler = Callable[[E], Any]

NOTICE_TITLE = "Chat URL Navigator"


@dataclass(slots=True)
class Event:
    """Base class for all navigator events."""


_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Host events
# =============================================================================


@dataclass(slots=True)
class AppReady(Event):
    """The host finished its own startup and can accept navigation."""


@dataclass(slots=True)
class ChatChanged(Event):
    """The host's active chat (or entity) changed.

    Hosts often emit several of these while settling into a final chat,
    so listeners should debounce.
    """

    chat_id: str | None = None


_QUIET_EVENT_TYPES.add(ChatChanged)


# =============================================================================
# Browser events
# =============================================================================


@dataclass(slots=True)
class LocationChanged(Event):
    """The browser location changed outside the navigator's control.

    Attributes:
        source: ``"popstate"`` for back/forward, ``"hashchange"`` for a
            manual fragment edit.
    """

    source: Literal["popstate", "hashchange"] = "popstate"


# =============================================================================
# Navigator output
# =============================================================================


@dataclass(slots=True)
class NoticePosted(Event):
    """A user-facing notice (toast).

    Attributes:
        message: Notice text.
        level: One of ``"info"``, ``"success"``, ``"warning"``, ``"error"``.
        title: Short heading shown with the notice.
    """

    message: str
    level: Literal["info", "success", "warning", "error"] = "info"
    title: str = NOTICE_TITLE


@dataclass(slots=True)
class WindowTitleChanged(Event):
    title: str


@dataclass(slots=True)
class LocationSynced(Event):
    """A history entry was written for the active chat (empty url = cleared)."""

    url: str
    title: str


@dataclass(slots=True)
class NavigationLockChanged(Event):
    locked: bool


@dataclass(slots=True)
class SettingsChanged(Event):
    settings: dict[str, Any] = field(default_factory=dict)


class EventBus(Generic[E]):
    """Publish-subscribe bus keyed by event type.

    Bound-method handlers are held weakly so a dropped component stops
    receiving events. Handlers run synchronously in subscription order;
    one that raises is logged and the rest still run. Coroutine results
    are scheduled as tasks and can be awaited with :meth:`drain`.

    Not thread-safe: use it from the event loop thread only.
    """

    __slots__ = ("_handlers", "_pending")

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)
        self._pending: set[asyncio.Task[Any]] = set()

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug(
                    "Unsubscribed %s from %s", _handler_name(handler), event_type.__name__
                )
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        quiet = event_type in _QUIET_EVENT_TYPES
        if not handlers:
            if not quiet:
                logger.debug("No handlers for %s", event_type.__name__)
            return
        if not quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[int] = []
        for index, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(index)
                continue
            try:
                result = handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for %s", _handler_name(handler), event_type.__name__
                )
                continue
            if inspect.isawaitable(result):
                self._schedule(result, handler, event_type)

        for index in reversed(dead):
            handlers.pop(index)

    async def drain(self) -> None:
        """Wait until every coroutine scheduled by :meth:`publish` has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    def _schedule(self, awaitable: Any, handler: Handler[E], event_type: type) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(
                    "Async handler %s failed for %s",
                    _handler_name(handler),
                    event_type.__name__,
                    exc_info=exc,
                )

        task.add_done_callback(_done)


class _HandlerRef:
    """Weak reference for bound methods, strong reference otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "NOTICE_TITLE",
    "AppReady",
    "ChatChanged",
    "LocationChanged",
    "NoticePosted",
    "WindowTitleChanged",
    "LocationSynced",
    "NavigationLockChanged",
    "SettingsChanged",
]
