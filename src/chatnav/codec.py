"""URL encoding and decoding of chat identities.

Three formats are understood:

* canonical query, ``?nav=char&avatar=<id>&cid=<file>[&msg=<n>]`` or
  ``?nav=group&gid=<id>&cid=<file>[&msg=<n>]``. This is the only format
  ever written.
* legacy fragment, ``#/char/<avatar>/<file>`` or ``#/group/<id>/<file>``,
  accepted on read only.
* short link, ``?chatlink=<token>``, resolved through a persisted record.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping
from urllib.parse import parse_qsl, quote, unquote

from .identity import (
    CharacterIdentity,
    ChatIdentity,
    GroupIdentity,
    coerce_message_id,
)

if TYPE_CHECKING:  # pragma: no cover
    from .handoff import HandoffStore
    from .host import Location

__all__ = [
    "NAV_PARAM",
    "SHORT_LINK_PARAM",
    "encode",
    "decode",
    "decode_legacy_fragment",
    "resolve_short_link",
    "decode_location",
    "build_url",
    "parse_query",
]

LOGGER = logging.getLogger(__name__)

NAV_PARAM = "nav"
SHORT_LINK_PARAM = "chatlink"
_NAV_CHARACTER = "char"
_NAV_GROUP = "group"


def _quote(value: str) -> str:
    return quote(value, safe="")


def parse_query(query: str) -> dict[str, str]:
    """Parse a query string into a first-value-wins mapping."""

    text = query[1:] if query.startswith("?") else query
    params: dict[str, str] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        params.setdefault(key, value)
    return params


def encode(identity: ChatIdentity) -> str:
    """Return the canonical query string (with leading ``?``) for ``identity``.

    Storage suffixes are stripped first, so identities that differ only by
    a suffix encode identically.
    """

    identity = identity.normalized()
    if isinstance(identity, GroupIdentity):
        parts = [
            f"{NAV_PARAM}={_NAV_GROUP}",
            f"gid={_quote(identity.group_id)}",
            f"cid={_quote(identity.chat_file)}",
        ]
    else:
        parts = [
            f"{NAV_PARAM}={_NAV_CHARACTER}",
            f"avatar={_quote(identity.avatar_id)}",
            f"cid={_quote(identity.chat_file)}",
        ]
    if identity.message_id is not None:
        parts.append(f"msg={identity.message_id}")
    return "?" + "&".join(parts)


def decode(query: str | Mapping[str, str]) -> ChatIdentity | None:
    """Decode a canonical query string; None when ``nav`` or a field is missing."""

    params = parse_query(query) if isinstance(query, str) else dict(query)
    nav = params.get(NAV_PARAM)
    chat_file = params.get("cid")
    if not nav or not chat_file:
        return None
    message_id = coerce_message_id(params.get("msg"))
    if nav == _NAV_CHARACTER:
        avatar = params.get("avatar")
        if not avatar:
            return None
        return CharacterIdentity(avatar, chat_file, message_id).normalized()
    if nav == _NAV_GROUP:
        group_id = params.get("gid")
        if not group_id:
            return None
        return GroupIdentity(group_id, chat_file, message_id).normalized()
    LOGGER.debug("Unknown nav kind in query: %s", nav)
    return None


def decode_legacy_fragment(fragment: str) -> ChatIdentity | None:
    """Decode the legacy ``#/char/...`` or ``#/group/...`` fragment."""

    if not fragment:
        return None
    path = fragment[1:] if fragment.startswith("#") else fragment
    if path.startswith("/"):
        path = path[1:]
    parts = path.split("/")
    if len(parts) < 3 or not parts[1] or not parts[2]:
        return None
    first, second = unquote(parts[1]), unquote(parts[2])
    if parts[0] == _NAV_CHARACTER:
        return CharacterIdentity(first, second).normalized()
    if parts[0] == _NAV_GROUP:
        return GroupIdentity(first, second).normalized()
    return None


def resolve_short_link(token: str, store: HandoffStore) -> ChatIdentity | None:
    """Resolve a short-link token through ``store``; expired links yield None."""

    if not token:
        return None
    return store.resolve_short_link(token)


def decode_location(location: Location, store: HandoffStore | None = None) -> ChatIdentity | None:
    """Decode an incoming location.

    Precedence is fixed: a valid short-link token, then canonical query
    parameters, then the legacy fragment.
    """

    params = parse_query(location.query)
    token = params.get(SHORT_LINK_PARAM)
    if token and store is not None:
        identity = resolve_short_link(token, store)
        if identity is not None:
            LOGGER.debug("Decoded location via short link %s", token)
            return identity
        LOGGER.debug("Short link %s did not resolve; falling back", token)
    identity = decode(params)
    if identity is not None:
        return identity
    return decode_legacy_fragment(location.fragment)


def build_url(location: Location, identity: ChatIdentity | None, *, absolute: bool = False) -> str:
    """Return the URL for ``identity`` on the current page.

    ``None`` yields the bare pathname with no query and no fragment.
    """

    base = (location.origin + location.pathname) if absolute else location.pathname
    if identity is None:
        return base
    return base + encode(identity)
