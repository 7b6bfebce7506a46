"""Per-tab validation gating.

Each wizard tab registers a validator describing the fields it owns. Adding a
tab means registering one more entry; the navigator never branches on tab ids.
"""

import logging
from typing import Iterable, Protocol, runtime_checkable

from wizard.form_state import SchemaValidator, matches_key

logger = logging.getLogger(__name__)


@runtime_checkable
class TabValidator(Protocol):
    """Validator for the field set owned by one tab."""

    keys: tuple[str, ...]

    def validate(self, schema: SchemaValidator) -> bool: ...
    def has_errors(self, errors: dict[str, str]) -> bool: ...


class FieldSetValidator:
    """Tab owning a flat list of schema keys; passes when those keys validate."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = tuple(keys)
        if not self.keys:
            raise ValueError("FieldSetValidator needs at least one key")

    def validate(self, schema: SchemaValidator) -> bool:
        return schema.validate(self.keys)

    def has_errors(self, errors: dict[str, str]) -> bool:
        return any(matches_key(path, key) for path in errors for key in self.keys)


class CompositeValidator:
    """Tab owning one array field validated as a single unit.

    Row-level problems are reported as one pass/fail, plus a summary error
    entry under the array key so the section can show a single message.
    Row entries stay in the error map for inline rendering.
    """

    def __init__(self, key: str, message: str = "Please fix the highlighted rows") -> None:
        self.key = key
        self.keys = (key,)
        self._message = message

    def validate(self, schema: SchemaValidator) -> bool:
        ok = schema.validate(self.keys)
        if not ok:
            errors = getattr(schema, "errors", {})
            if self.key not in errors:
                schema.set_error(self.key, self._message)
        return ok

    def has_errors(self, errors: dict[str, str]) -> bool:
        return any(matches_key(path, self.key) for path in errors)


class NoFieldsValidator:
    """Tab without fields of its own (e.g. a summary page)."""

    keys: tuple[str, ...] = ()

    def validate(self, schema: SchemaValidator) -> bool:
        return True

    def has_errors(self, errors: dict[str, str]) -> bool:
        return False


class TabValidationGate:
    """Registry mapping tab id -> TabValidator."""

    def __init__(self, validators: dict[str, TabValidator] | None = None) -> None:
        self._validators: dict[str, TabValidator] = dict(validators or {})

    def register(self, tab_id: str, validator: TabValidator) -> None:
        self._validators[tab_id] = validator

    def get(self, tab_id: str) -> TabValidator:
        try:
            return self._validators[tab_id]
        except KeyError:
            raise KeyError(f"No validator registered for tab '{tab_id}'") from None

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._validators

    def validate_tab(self, tab_id: str, schema: SchemaValidator) -> bool:
        """True when the tab's owned fields are free of errors. Populates field errors on failure."""
        ok = self.get(tab_id).validate(schema)
        logger.debug("Tab %s validation %s", tab_id, "passed" if ok else "failed")
        return ok

    def tab_has_errors(self, tab_id: str, errors: dict[str, str]) -> bool:
        return self.get(tab_id).has_errors(errors)
