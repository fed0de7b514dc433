"""Persisted one-shot handoff records and longer-lived short links."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Mapping

from .errors import MalformedRecordError
from .identity import ChatIdentity, identity_from_record, identity_to_record
from .storage import KeyValueStorage

__all__ = [
    "HandoffStore",
    "HANDOFF_KEY",
    "SHORT_LINK_PREFIX",
    "HANDOFF_TTL_SECONDS",
    "SHORT_LINK_TTL_SECONDS",
]

LOGGER = logging.getLogger(__name__)

HANDOFF_KEY = "chatnav.handoff"
SHORT_LINK_PREFIX = "chatnav.link."
HANDOFF_TTL_SECONDS = 10.0
SHORT_LINK_TTL_SECONDS = 7 * 24 * 60 * 60.0
_TOKEN_LENGTH = 16


class HandoffStore:
    """Reads and writes ``{timestamp, chatInfo}`` records in a key-value storage.

    A handoff lives under one fixed key and is consumed at most once.
    Short links live under ``SHORT_LINK_PREFIX + token`` and may coexist;
    expired ones are pruned when they are looked up.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        handoff_ttl: float = HANDOFF_TTL_SECONDS,
        short_link_ttl: float = SHORT_LINK_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        self._storage = storage
        self._handoff_ttl = handoff_ttl
        self._short_link_ttl = short_link_ttl
        self._clock = clock
        self._token_factory = token_factory or _default_token

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Handoff
    # ------------------------------------------------------------------

    def publish(self, identity: ChatIdentity) -> None:
        """Store ``identity`` for the next page load, replacing any prior record."""

        self._write(HANDOFF_KEY, identity)
        LOGGER.debug("Handoff published: %s", identity)

    def consume(self) -> ChatIdentity | None:
        """Return and delete the pending handoff, or None if absent or expired."""

        identity = self._read_live(HANDOFF_KEY, self._handoff_ttl)
        if identity is not None:
            self._storage.remove_item(HANDOFF_KEY)
            LOGGER.debug("Handoff consumed: %s", identity)
        return identity

    # ------------------------------------------------------------------
    # Short links
    # ------------------------------------------------------------------

    def create_short_link(self, identity: ChatIdentity) -> str:
        """Persist ``identity`` under a fresh token and return the token."""

        token = self._token_factory()
        while self._storage.get_item(SHORT_LINK_PREFIX + token) is not None:
            token = self._token_factory()
        self._write(SHORT_LINK_PREFIX + token, identity)
        LOGGER.debug("Short link %s created for %s", token, identity)
        return token

    def resolve_short_link(self, token: str) -> ChatIdentity | None:
        """Return the identity behind ``token``; expired links are deleted."""

        return self._read_live(SHORT_LINK_PREFIX + token, self._short_link_ttl)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _write(self, key: str, identity: ChatIdentity) -> None:
        record = {"timestamp": self._now_ms(), "chatInfo": identity_to_record(identity)}
        self._storage.set_item(key, json.dumps(record))

    def _read_live(self, key: str, ttl: float) -> ChatIdentity | None:
        raw = self._storage.get_item(key)
        if raw is None:
            return None
        try:
            timestamp, identity = _parse_record(key, raw)
        except MalformedRecordError as exc:
            LOGGER.warning("%s; discarding", exc)
            self._storage.remove_item(key)
            return None
        age_ms = self._now_ms() - timestamp
        if age_ms >= ttl * 1000:
            LOGGER.debug("Record %s expired (age=%dms); discarding", key, age_ms)
            self._storage.remove_item(key)
            return None
        return identity


def _parse_record(key: str, raw: str) -> tuple[int, ChatIdentity]:
    try:
        payload: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(key, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(payload, Mapping):
        raise MalformedRecordError(key, "record is not an object")
    timestamp = payload.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise MalformedRecordError(key, "missing timestamp")
    identity = identity_from_record(payload.get("chatInfo"))
    if identity is None:
        raise MalformedRecordError(key, "missing or invalid chatInfo")
    return int(timestamp), identity


def _default_token() -> str:
    return uuid.uuid4().hex[:_TOKEN_LENGTH]
