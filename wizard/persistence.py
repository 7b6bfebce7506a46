"""Draft persistence: snapshots of form values in a key/value store.

FormPersistenceStore never raises on storage or serialization problems; it
logs and reports failure through its return value so a broken store never
breaks form input. DebouncedSaver coalesces rapid edits into one write.
"""

import asyncio
import copy
import json
import logging
from typing import Any, Callable

from core.storage import KeyValueStore
from wizard.constants import DEFAULT_AUTOSAVE_DEBOUNCE_MS

logger = logging.getLogger(__name__)

Transform = Callable[[dict[str, Any]], dict[str, Any]]


def _identity(values: dict[str, Any]) -> dict[str, Any]:
    return dict(values)


class FormPersistenceStore:
    """One snapshot per storage key; each save overwrites the previous one."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        transform: Transform | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._transform = transform or _identity

    @property
    def key(self) -> str:
        return self._key

    def _encode(self, values: dict[str, Any]) -> str:
        return json.dumps(self._transform(values), ensure_ascii=False)

    def save(self, values: dict[str, Any]) -> bool:
        """Write the transformed snapshot. False when nothing was written."""
        try:
            raw = self._encode(values)
        except (TypeError, ValueError) as e:
            logger.warning("Draft %s not serializable: %s", self._key, e)
            return False
        try:
            self._store.set_item(self._key, raw)
        except (OSError, ValueError) as e:
            logger.warning("Failed to save draft %s: %s", self._key, e)
            return False
        return True

    def load(self) -> dict[str, Any] | None:
        """Last saved snapshot, or None if missing or unreadable."""
        try:
            raw = self._store.get_item(self._key)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read draft %s: %s", self._key, e)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Draft %s is malformed, ignoring", self._key)
            return None
        if not isinstance(data, dict):
            logger.warning("Draft %s is not an object, ignoring", self._key)
            return None
        return data

    def clear(self) -> None:
        try:
            self._store.remove_item(self._key)
        except (OSError, ValueError) as e:
            logger.warning("Failed to clear draft %s: %s", self._key, e)

    def has_changed(self, current: dict[str, Any] | None) -> bool:
        """True when current differs from the stored snapshot in any field."""
        if current is None:
            return True
        stored = self.load()
        if stored is None:
            return True
        try:
            snapshot = json.loads(self._encode(current))
        except (TypeError, ValueError):
            return True
        return snapshot != stored


class DebouncedSaver:
    """Coalesces autosaves: only the last values scheduled within the delay are written.

    Must be driven from a running event loop. Values equal to the form
    defaults, or equal to what was last written, are not saved.
    """

    def __init__(
        self,
        store: FormPersistenceStore,
        delay_ms: int = DEFAULT_AUTOSAVE_DEBOUNCE_MS,
        defaults: dict[str, Any] | None = None,
        on_saved: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self._store = store
        self._delay = max(delay_ms, 0) / 1000
        self._defaults = copy.deepcopy(defaults) if defaults is not None else None
        self._on_saved = on_saved
        self._pending: dict[str, Any] | None = None
        self._last_saved: dict[str, Any] | None = None
        self._task: asyncio.Task | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, values: dict[str, Any]) -> None:
        """Replace any pending write with values and restart the delay."""
        self._pending = copy.deepcopy(values)
        self._cancel_task()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        self._task = None
        self._write()

    def flush(self) -> bool:
        """Write pending values now. True when a snapshot was written."""
        self._cancel_task()
        return self._write()

    def cancel(self) -> None:
        """Drop pending values without writing (teardown)."""
        self._cancel_task()
        self._pending = None

    def reset(self) -> None:
        """Cancel and forget the last write, so the next snapshot is saved even if identical."""
        self.cancel()
        self._last_saved = None

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _write(self) -> bool:
        values, self._pending = self._pending, None
        if values is None:
            return False
        if self._defaults is not None and values == self._defaults:
            logger.debug("Draft %s equals defaults, not saving", self._store.key)
            return False
        if values == self._last_saved:
            return False
        if not self._store.save(values):
            return False
        self._last_saved = values
        if self._on_saved is not None:
            self._on_saved(values)
        return True
