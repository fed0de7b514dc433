"""Chat identity models shared by the codec, stores and controller.

A chat identity names one conversation (and optionally one message in
it). It is always derived, either from the host's live state or from a
decoded URL, and never stored on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Union

__all__ = [
    "CharacterIdentity",
    "GroupIdentity",
    "ChatIdentity",
    "CHAT_FILE_SUFFIX",
    "AVATAR_SUFFIX",
    "strip_chat_suffix",
    "strip_avatar_suffix",
    "coerce_message_id",
    "identity_to_record",
    "identity_from_record",
]

CHAT_FILE_SUFFIX = ".jsonl"
AVATAR_SUFFIX = ".png"


def strip_chat_suffix(chat_file: str) -> str:
    """Return ``chat_file`` without the ``.jsonl`` storage suffix."""

    if chat_file.endswith(CHAT_FILE_SUFFIX):
        return chat_file[: -len(CHAT_FILE_SUFFIX)]
    return chat_file


def strip_avatar_suffix(avatar: str) -> str:
    """Return ``avatar`` without the ``.png`` storage suffix."""

    if avatar.endswith(AVATAR_SUFFIX):
        return avatar[: -len(AVATAR_SUFFIX)]
    return avatar


def coerce_message_id(value: Any) -> int | None:
    """Parse a message index, returning None for absent or invalid values."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    text = str(value).strip()
    if not text.isascii() or not text.isdigit():
        return None
    return int(text, 10)


@dataclass(slots=True, frozen=True)
class CharacterIdentity:
    """A one-on-one chat with a character, keyed by its avatar file."""

    avatar_id: str
    chat_file: str
    message_id: int | None = None

    def normalized(self) -> CharacterIdentity:
        return replace(
            self,
            avatar_id=strip_avatar_suffix(self.avatar_id),
            chat_file=strip_chat_suffix(self.chat_file),
        )

    def without_message(self) -> CharacterIdentity:
        return replace(self, message_id=None)


@dataclass(slots=True, frozen=True)
class GroupIdentity:
    """A group chat, keyed by the group id."""

    group_id: str
    chat_file: str
    message_id: int | None = None

    def normalized(self) -> GroupIdentity:
        return replace(self, chat_file=strip_chat_suffix(self.chat_file))

    def without_message(self) -> GroupIdentity:
        return replace(self, message_id=None)


ChatIdentity = Union[CharacterIdentity, GroupIdentity]


def identity_to_record(identity: ChatIdentity) -> dict[str, Any]:
    """Serialize an identity into the persisted ``chatInfo`` mapping."""

    identity = identity.normalized()
    if isinstance(identity, GroupIdentity):
        payload: dict[str, Any] = {
            "type": "group",
            "groupId": identity.group_id,
            "chatId": identity.chat_file,
        }
    else:
        payload = {
            "type": "character",
            "avatar": identity.avatar_id,
            "chatId": identity.chat_file,
        }
    if identity.message_id is not None:
        payload["messageId"] = identity.message_id
    return payload


def identity_from_record(payload: Any) -> ChatIdentity | None:
    """Rebuild an identity from a persisted ``chatInfo`` mapping.

    Returns None when the payload is not a mapping or lacks the fields
    required by its variant.
    """

    if not isinstance(payload, Mapping):
        return None
    kind = payload.get("type")
    chat_file = payload.get("chatId")
    if not isinstance(chat_file, str) or not chat_file:
        return None
    message_id = coerce_message_id(payload.get("messageId"))
    if kind == "group":
        group_id = payload.get("groupId")
        if not isinstance(group_id, str) or not group_id:
            return None
        return GroupIdentity(group_id, chat_file, message_id).normalized()
    if kind == "character":
        avatar = payload.get("avatar")
        if not isinstance(avatar, str) or not avatar:
            return None
        return CharacterIdentity(avatar, chat_file, message_id).normalized()
    return None
