"""Error types raised inside the navigator.

None of these escape :meth:`NavigationController.apply_navigation`; they
are converted to user notices (or log lines) at that seam.
"""

from __future__ import annotations

from .identity import ChatIdentity, GroupIdentity

__all__ = [
    "ChatNavError",
    "IdentityNotFoundError",
    "OpenFailedError",
    "MalformedRecordError",
]


class ChatNavError(Exception):
    """Base class for navigator failures."""

    user_visible: bool = True


class IdentityNotFoundError(ChatNavError):
    """The referenced character or group is not in the host's roster."""

    def __init__(self, identity: ChatIdentity) -> None:
        if isinstance(identity, GroupIdentity):
            message = f"Group not found: {identity.group_id}"
        else:
            message = f"Character not found: {identity.avatar_id}"
        super().__init__(message)
        self.identity = identity


class OpenFailedError(ChatNavError):
    """The host rejected opening the requested chat."""

    def __init__(self, identity: ChatIdentity, cause: BaseException | None = None) -> None:
        if isinstance(identity, GroupIdentity):
            message = "Failed to open group chat"
        else:
            message = f"Failed to open chat: {identity.chat_file}"
        super().__init__(message)
        self.identity = identity
        self.cause = cause


class MalformedRecordError(ChatNavError):
    """A persisted handoff or short-link record could not be parsed."""

    user_visible = False

    def __init__(self, key: str, detail: str) -> None:
        super().__init__(f"Malformed record under {key!r}: {detail}")
        self.key = key
        self.detail = detail
