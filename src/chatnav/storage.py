"""Key-value storage backends for persisted handoff and short-link records."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, runtime_checkable

from .utils.file_io import write_text_atomic

__all__ = ["KeyValueStorage", "MemoryStorage", "JsonFileStorage"]

LOGGER = logging.getLogger(__name__)
_DEFAULT_STORAGE_PATH = Path.home() / ".chatnav" / "storage.json"


@runtime_checkable
class KeyValueStorage(Protocol):
    """String-to-string storage shared by every browsing context of an origin."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> Iterator[str]:
        ...


class MemoryStorage:
    """Process-local storage, mostly useful for tests and single-tab setups."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class JsonFileStorage:
    """Storage backed by a single JSON object on disk.

    The file is re-read on every access so several processes (tabs) see
    each other's writes. Writes go through a temporary file and an atomic
    replace.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_STORAGE_PATH

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> str | None:
        value = self._read_payload().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        payload = self._read_payload()
        payload[key] = value
        self._write_payload(payload)

    def remove_item(self, key: str) -> None:
        payload = self._read_payload()
        if key in payload:
            del payload[key]
            self._write_payload(payload)

    def keys(self) -> Iterator[str]:
        return iter(list(self._read_payload()))

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Storage file %s is not valid JSON: %s", self._path, exc)
            return {}
        if isinstance(data, Mapping):
            return dict(data)
        LOGGER.warning("Storage file %s does not contain an object", self._path)
        return {}

    def _write_payload(self, payload: Mapping[str, Any]) -> None:
        write_text_atomic(self._path, json.dumps(payload, indent=2, sort_keys=True))
