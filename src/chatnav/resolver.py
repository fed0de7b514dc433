"""Read the host's active chat as a :data:`ChatIdentity`."""

from __future__ import annotations

import logging

from .host import ActiveEntity, HostApplication
from .identity import CharacterIdentity, ChatIdentity, GroupIdentity

__all__ = ["ChatStateResolver", "format_title"]

LOGGER = logging.getLogger(__name__)


def format_title(display_name: str | None, default_title: str, separator: str = " - ") -> str:
    """Return the document title for a chat, or the default title."""

    if not display_name:
        return default_title
    return f"{display_name}{separator}{default_title}"


class ChatStateResolver:
    """Pure reads of host state; nothing is cached between calls."""

    def __init__(self, host: HostApplication) -> None:
        self._host = host

    def current_identity(self) -> ChatIdentity | None:
        entity = self._host.current_active_entity()
        if entity is None:
            return None
        return self._identity_for(entity)

    def current_display_name(self) -> str | None:
        entity = self._host.current_active_entity()
        if entity is None or self._identity_for(entity) is None:
            return None
        return entity.display_name or None

    def _identity_for(self, entity: ActiveEntity) -> ChatIdentity | None:
        if entity.kind == "group":
            chat_file = entity.active_chat_file or self._group_chat_file(entity.id)
            if not chat_file:
                return None
            return GroupIdentity(entity.id, chat_file).normalized()
        if not entity.avatar or not entity.active_chat_file:
            LOGGER.debug("Active character %s has no avatar or chat file", entity.id)
            return None
        return CharacterIdentity(entity.avatar, entity.active_chat_file).normalized()

    def _group_chat_file(self, group_id: str) -> str | None:
        for group in self._host.list_groups():
            if group.id == group_id:
                return group.active_chat_file
        return None
