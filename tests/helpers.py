"""Shared test fakes for the host application, browser and transcript.

Import from here instead of redefining stubs in individual test modules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from chatnav.events import ChatChanged, EventBus
from chatnav.host import ActiveEntity, CharacterEntry, GroupEntry, Location
from chatnav.settings import NavigatorSettings


def fast_settings(**changes: Any) -> NavigatorSettings:
    """Settings with short delays so timer-driven tests stay quick."""

    values: dict[str, Any] = {
        "debounce_seconds": 0.02,
        "lock_grace_seconds": 0.05,
        "scroll_retry_seconds": 0.02,
        "highlight_seconds": 0.05,
    }
    values.update(changes)
    return NavigatorSettings(**values)


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHost:
    """In-memory host application.

    ``characters`` and ``groups`` are the roster; ``active`` is what the
    host reports as open. Host calls are recorded in ``calls`` and can be
    made to fail via ``fail_on``.
    """

    def __init__(
        self,
        characters: Sequence[CharacterEntry] = (),
        groups: Sequence[GroupEntry] = (),
        *,
        bus: EventBus | None = None,
    ) -> None:
        self.characters = list(characters)
        self.groups = list(groups)
        self.active: ActiveEntity | None = None
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: set[str] = set()
        self._bus = bus

    def current_active_entity(self) -> ActiveEntity | None:
        return self.active

    def list_characters(self) -> Sequence[CharacterEntry]:
        return list(self.characters)

    def list_groups(self) -> Sequence[GroupEntry]:
        return list(self.groups)

    async def select_character(self, character_id: str) -> None:
        self.calls.append(("select_character", character_id))
        self._maybe_fail("select_character")
        entry = next(c for c in self.characters if c.id == character_id)
        self.active = ActiveEntity("character", entry.id, None, entry.name, avatar=entry.avatar)
        self._changed()

    async def open_character_chat(self, chat_file: str) -> None:
        self.calls.append(("open_character_chat", chat_file))
        self._maybe_fail("open_character_chat")
        assert self.active is not None and self.active.kind == "character"
        self.active = ActiveEntity(
            "character", self.active.id, chat_file, self.active.display_name, avatar=self.active.avatar
        )
        self._changed()

    async def open_group_chat(self, group_id: str, chat_file: str) -> None:
        self.calls.append(("open_group_chat", group_id, chat_file))
        self._maybe_fail("open_group_chat")
        group = next(g for g in self.groups if g.id == group_id)
        self.active = ActiveEntity("group", group.id, chat_file, group.name)
        self._changed()

    async def close_active_chat(self) -> None:
        self.calls.append(("close_active_chat",))
        self._maybe_fail("close_active_chat")
        self.active = None
        self._changed()

    def open_character(self, character_id: str, chat_file: str) -> None:
        """Simulate the user picking a chat in the host UI."""

        entry = next(c for c in self.characters if c.id == character_id)
        self.active = ActiveEntity("character", entry.id, chat_file, entry.name, avatar=entry.avatar)
        self._changed()

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} rejected")

    def _changed(self) -> None:
        if self._bus is not None:
            self._bus.publish(ChatChanged())


class FakeBrowser:
    """Window/history stand-in that records every history write."""

    def __init__(self, url: str = "http://localhost:8000/") -> None:
        self._location = Location.from_url(url)
        self.history: list[tuple[str, str]] = []
        self.title = ""
        self.opened_tabs: list[str] = []
        self.clipboard: str | None = None
        self.clipboard_error: Exception | None = None

    @property
    def location(self) -> Location:
        return self._location

    def navigate(self, url: str) -> None:
        """Simulate the user changing the URL (typing, back/forward)."""

        self._location = Location.from_url(self._location.origin + url)

    def push_state(self, url: str, title: str) -> None:
        self.history.append((url, title))
        self._location = Location.from_url(self._location.origin + url)

    def set_title(self, title: str) -> None:
        self.title = title

    def open_tab(self, url: str) -> None:
        self.opened_tabs.append(url)

    async def write_clipboard(self, text: str) -> None:
        if self.clipboard_error is not None:
            raise self.clipboard_error
        self.clipboard = text


@dataclass
class FakeTranscript:
    """Transcript whose rendered messages are listed in ``rendered``."""

    rendered: set[int] = field(default_factory=set)
    lookups: list[int] = field(default_factory=list)
    scrolled: list[int] = field(default_factory=list)
    highlighted: set[int] = field(default_factory=set)
    highlight_log: list[tuple[int, bool]] = field(default_factory=list)

    def find_message(self, message_id: int) -> int | None:
        self.lookups.append(message_id)
        return message_id if message_id in self.rendered else None

    def scroll_into_view(self, element: Any) -> None:
        self.scrolled.append(element)

    def set_highlight(self, element: Any, enabled: bool) -> None:
        self.highlight_log.append((element, enabled))
        if enabled:
            self.highlighted.add(element)
        else:
            self.highlighted.discard(element)


ALICE = CharacterEntry(id="0", avatar="alice.png", name="Alice")
BOB = CharacterEntry(id="1", avatar="bob.png", name="Bob")
PARTY = GroupEntry(id="g1", name="Party", active_chat_file="session1")
