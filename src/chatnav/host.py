"""Interfaces of the collaborators the navigator consumes.

The host chat application, the browser window and the rendered
transcript are owned elsewhere; the navigator only talks to them through
the protocols below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol, Sequence, runtime_checkable
from urllib.parse import urlsplit

__all__ = [
    "EntityKind",
    "ActiveEntity",
    "CharacterEntry",
    "GroupEntry",
    "Location",
    "HostApplication",
    "BrowserWindow",
    "TranscriptView",
]

EntityKind = Literal["character", "group"]


@dataclass(slots=True, frozen=True)
class ActiveEntity:
    """Snapshot of what the host currently has open.

    ``id`` is the roster id (characters) or the group id. ``avatar`` is
    only set for characters.
    """

    kind: EntityKind
    id: str
    active_chat_file: str | None
    display_name: str
    avatar: str | None = None


@dataclass(slots=True, frozen=True)
class CharacterEntry:
    id: str
    avatar: str
    name: str = ""


@dataclass(slots=True, frozen=True)
class GroupEntry:
    id: str
    name: str
    active_chat_file: str | None = None


@dataclass(slots=True, frozen=True)
class Location:
    """Browser location split into the parts the codec cares about.

    ``query`` and ``fragment`` are stored without their ``?``/``#`` prefix.
    """

    pathname: str = "/"
    query: str = ""
    fragment: str = ""
    origin: str = ""

    @classmethod
    def from_url(cls, url: str) -> Location:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}" if parts.scheme and parts.netloc else ""
        return cls(
            pathname=parts.path or "/",
            query=parts.query,
            fragment=parts.fragment,
            origin=origin,
        )

    @property
    def is_bare(self) -> bool:
        return not self.query and not self.fragment

    @property
    def relative_url(self) -> str:
        url = self.pathname
        if self.query:
            url += "?" + self.query
        if self.fragment:
            url += "#" + self.fragment
        return url


@runtime_checkable
class HostApplication(Protocol):
    """Capabilities of the host chat application."""

    def current_active_entity(self) -> ActiveEntity | None:
        ...

    def list_characters(self) -> Sequence[CharacterEntry]:
        ...

    def list_groups(self) -> Sequence[GroupEntry]:
        ...

    async def select_character(self, character_id: str) -> None:
        ...

    async def open_character_chat(self, chat_file: str) -> None:
        ...

    async def open_group_chat(self, group_id: str, chat_file: str) -> None:
        ...

    async def close_active_chat(self) -> None:
        ...


@runtime_checkable
class BrowserWindow(Protocol):
    """The slice of the browser's window/history API the navigator uses."""

    @property
    def location(self) -> Location:
        ...

    def push_state(self, url: str, title: str) -> None:
        ...

    def set_title(self, title: str) -> None:
        ...

    def open_tab(self, url: str) -> None:
        ...

    async def write_clipboard(self, text: str) -> None:
        ...


@runtime_checkable
class TranscriptView(Protocol):
    """Rendered chat transcript, addressed by message index."""

    def find_message(self, message_id: int) -> Any | None:
        ...

    def scroll_into_view(self, element: Any) -> None:
        """Scroll ``element`` to the top of the viewport without animation."""

    def set_highlight(self, element: Any, enabled: bool) -> None:
        ...
