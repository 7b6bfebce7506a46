"""In-memory form values validated against a pydantic schema.

FormState is the engine's SchemaValidator: it validates either a subset of
field keys (one tab) or the whole form, and keeps a field-level error map the
UI can render. Validation never raises; results are booleans and error maps.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "
ROOT_ERROR_KEY = "__root__"


@dataclass
class ValidationResult:
    """Outcome of validating the whole form."""

    success: bool
    errors: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] | None = None  # validated payload, only when success


@runtime_checkable
class SchemaValidator(Protocol):
    """Contract the navigator and tab gates use to validate form values."""

    def validate(self, keys: Iterable[str]) -> bool: ...
    def validate_all(self) -> ValidationResult: ...
    def set_error(self, key: str, message: str) -> None: ...


class FieldLockedError(ValueError):
    """Raised when writing a field that has been made read-only (e.g. after OTP verification)."""


def matches_key(path: str, key: str) -> bool:
    """True if the dotted error path belongs to the field key (the key itself or a child)."""
    return path == key or path.startswith(key + ".")


def _error_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or ROOT_ERROR_KEY


def _error_message(msg: str) -> str:
    if msg.startswith(_VALUE_ERROR_PREFIX):
        return msg[len(_VALUE_ERROR_PREFIX):]
    return msg


class FormState:
    """Mutable form values plus their field-level validation errors."""

    def __init__(self, schema: type[BaseModel], defaults: dict[str, Any] | None = None) -> None:
        self._schema = schema
        self._defaults: dict[str, Any] = copy.deepcopy(defaults or {})
        self._values: dict[str, Any] = copy.deepcopy(self._defaults)
        self._errors: dict[str, str] = {}
        self._locked: set[str] = set()

    @property
    def schema(self) -> type[BaseModel]:
        return self._schema

    @property
    def defaults(self) -> dict[str, Any]:
        return copy.deepcopy(self._defaults)

    @property
    def errors(self) -> dict[str, str]:
        return dict(self._errors)

    @property
    def is_dirty(self) -> bool:
        return self._values != self._defaults

    def get_values(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)

    def get_value(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._values.get(key, default))

    def set_value(self, key: str, value: Any) -> None:
        """Write one field and drop its stale errors. Locked fields raise FieldLockedError."""
        if key in self._locked:
            raise FieldLockedError(f"Field '{key}' is read-only")
        self._values[key] = copy.deepcopy(value)
        self.clear_errors([key])

    def reset(self, values: dict[str, Any] | None = None) -> None:
        """Replace all values (defaults when None); clears errors and field locks."""
        self._values = copy.deepcopy(self._defaults if values is None else {**self._defaults, **values})
        self._errors = {}
        self._locked = set()

    def lock_field(self, key: str) -> None:
        self._locked.add(key)

    def is_locked(self, key: str) -> bool:
        return key in self._locked

    def field_errors(self, key: str) -> dict[str, str]:
        return {p: m for p, m in self._errors.items() if matches_key(p, key)}

    def has_errors(self, keys: Iterable[str]) -> bool:
        keys = list(keys)
        return any(matches_key(p, k) for p in self._errors for k in keys)

    def set_error(self, key: str, message: str) -> None:
        self._errors[key] = message

    def clear_errors(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        self._errors = {
            p: m for p, m in self._errors.items() if not any(matches_key(p, k) for k in keys)
        }

    def _run_schema(self) -> tuple[dict[str, str], dict[str, Any] | None]:
        try:
            model = self._schema.model_validate(self._values)
        except ValidationError as exc:
            errors: dict[str, str] = {}
            for err in exc.errors():
                errors.setdefault(_error_path(err["loc"]), _error_message(err["msg"]))
            return errors, None
        return {}, model.model_dump(mode="json")

    def validate(self, keys: Iterable[str]) -> bool:
        """Validate only the given keys, refreshing their entries in the error map."""
        keys = list(keys)
        found, _ = self._run_schema()
        self.clear_errors(keys)
        subset = {p: m for p, m in found.items() if any(matches_key(p, k) for k in keys)}
        self._errors.update(subset)
        return not subset

    def validate_all(self) -> ValidationResult:
        """Validate the whole form; the error map is replaced by the result."""
        errors, data = self._run_schema()
        self._errors = dict(errors)
        if errors:
            logger.debug("Form %s invalid: %s", self._schema.__name__, sorted(errors))
        return ValidationResult(success=not errors, errors=dict(errors), data=data)
