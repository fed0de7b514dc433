"""Keeps a browser's address bar, title and history in step with a chat app."""

from .codec import decode, decode_legacy_fragment, decode_location, encode
from .events import EventBus
from .handoff import HandoffStore
from .identity import CharacterIdentity, ChatIdentity, GroupIdentity
from .navigation import NavigationController, NavigationState
from .navigator import ChatUrlNavigator
from .settings import NavigatorSettings, SettingsStore
from .sync import SyncScheduler

__version__ = "0.3.0"

__all__ = [
    "CharacterIdentity",
    "ChatIdentity",
    "ChatUrlNavigator",
    "EventBus",
    "GroupIdentity",
    "HandoffStore",
    "NavigationController",
    "NavigationState",
    "NavigatorSettings",
    "SettingsStore",
    "SyncScheduler",
    "decode",
    "decode_legacy_fragment",
    "decode_location",
    "encode",
]
