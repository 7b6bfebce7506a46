"""Durable key/value stores used for wizard drafts and verification state.

The interface mirrors a browser local store: synchronous string get/set/remove.
Implementations may raise OSError when the backing medium is unavailable;
callers in the wizard package treat that as "operation did not happen".
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from core.settings import get_setting

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Contract for a synchronous string key/value store."""

    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Useful for tests and read-only sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """JSON file-backed store. Atomic writes via temp file + replace.

    Keys are optionally prefixed with a namespace so several wizards can share
    one file without clobbering each other.
    """

    def __init__(self, path: Path, namespace: str = "") -> None:
        self._path = path
        self._temp_path = path.with_name(path.name + ".tmp")
        self._namespace = (namespace or "").strip()

    def _ns(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning("Store file %s is unreadable, treating as empty: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._temp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        self._temp_path.replace(self._path)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(self._ns(key))
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[self._ns(key)] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(self._ns(key), None) is not None:
            self._save(data)


def open_store(project_root: Path, settings: dict[str, Any]) -> JsonFileStore:
    """File store configured by the `storage` settings section."""
    cfg = get_setting(settings, "storage", {}) or {}
    path = Path(cfg.get("file") or "data/wizard_store.json")
    if not path.is_absolute():
        path = project_root / path
    return JsonFileStore(path, namespace=cfg.get("namespace") or "")
