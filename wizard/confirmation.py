"""Confirmation step for destructive selection changes.

Selecting a resource happens immediately; unselecting or removing one first
records a pending confirmation that the UI shows as a dialog. Only one request
is pending at a time and the latest request wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Iterable, Literal, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")
ID = TypeVar("ID", bound=Hashable)

ConfirmAction = Literal["remove", "unselect"]


@dataclass(frozen=True)
class ConfirmationState(Generic[ID]):
    show: bool = False
    resource_id: ID | None = None
    resource_name: str | None = None
    action: ConfirmAction | None = None


def _default_id(resource: Any) -> Hashable:
    return resource.id


class ResourceConfirmationGate(Generic[R, ID]):
    """Pending-confirmation state machine over a list of resources.

    resources and selected_ids are zero-argument providers so the gate always
    sees the current lists rather than a copy taken at construction time.
    """

    def __init__(
        self,
        resources: Callable[[], Iterable[R]],
        selected_ids: Callable[[], Iterable[ID]],
        on_toggle: Callable[[ID], None],
        on_remove: Callable[[ID], None],
        get_name: Callable[[R], str],
        get_id: Callable[[R], ID] = _default_id,
        resource_type: str = "Resource",
    ) -> None:
        self._resources = resources
        self._selected_ids = selected_ids
        self._on_toggle = on_toggle
        self._on_remove = on_remove
        self._get_name = get_name
        self._get_id = get_id
        self.resource_type = resource_type
        self._state: ConfirmationState[ID] = ConfirmationState()

    @property
    def state(self) -> ConfirmationState[ID]:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state.show

    def _resource_name(self, resource_id: ID) -> str:
        for resource in self._resources():
            if self._get_id(resource) == resource_id:
                return self._get_name(resource)
        return f"Unknown {self.resource_type}"

    def _request(self, resource_id: ID, action: ConfirmAction) -> None:
        if self._state.show and self._state.resource_id != resource_id:
            logger.debug(
                "Replacing pending %s of %s with %s", self._state.action, self._state.resource_id, resource_id
            )
        self._state = ConfirmationState(
            show=True,
            resource_id=resource_id,
            resource_name=self._resource_name(resource_id),
            action=action,
        )

    def request_toggle(self, resource_id: ID) -> bool:
        """Toggle selection. Returns True if applied now, False if awaiting confirmation."""
        if resource_id in set(self._selected_ids()):
            self._request(resource_id, "unselect")
            return False
        self._on_toggle(resource_id)
        return True

    def request_remove(self, resource_id: ID) -> None:
        self._request(resource_id, "remove")

    def confirm(self) -> ID | None:
        """Commit the pending request. Returns its resource id, or None if nothing was pending."""
        if not self._state.show:
            return None
        resource_id = self._state.resource_id
        self._state = ConfirmationState()
        self._on_remove(resource_id)
        return resource_id

    def cancel(self) -> None:
        self._state = ConfirmationState()

    def title(self) -> str:
        verb = "Unselect" if self._state.action == "unselect" else "Remove"
        return f"{verb} {self.resource_type}"

    def message(self) -> str:
        name = self._state.resource_name or f"Unknown {self.resource_type}"
        if self._state.action == "unselect":
            return f'Are you sure you want to unselect "{name}"?'
        return f'Are you sure you want to remove "{name}"? This will delete all its configuration settings.'

    def confirm_text(self) -> str:
        return "Unselect" if self._state.action == "unselect" else "Remove"
