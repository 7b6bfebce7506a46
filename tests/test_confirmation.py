"""Tests for ResourceConfirmationGate."""

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from wizard.confirmation import ConfirmationState, ResourceConfirmationGate


@dataclass
class Resource:
    id: int
    name: str


@pytest.fixture
def resources() -> list[Resource]:
    return [Resource(1, "Analytics"), Resource(2, "Kiosk"), Resource(3, "Loyalty")]


@pytest.fixture
def selected() -> list[int]:
    return [1, 2]


@pytest.fixture
def callbacks() -> MagicMock:
    return MagicMock()


@pytest.fixture
def gate(resources: list[Resource], selected: list[int], callbacks: MagicMock) -> ResourceConfirmationGate:
    return ResourceConfirmationGate(
        resources=lambda: resources,
        selected_ids=lambda: selected,
        on_toggle=callbacks.toggle,
        on_remove=callbacks.remove,
        get_name=lambda r: r.name,
        resource_type="Add-on",
    )


class TestToggle:
    """Selecting is immediate, unselecting needs confirmation."""

    def test_toggle_off_selected_requires_confirmation(
        self, gate: ResourceConfirmationGate, callbacks: MagicMock
    ) -> None:
        assert gate.request_toggle(1) is False
        assert gate.state == ConfirmationState(show=True, resource_id=1, resource_name="Analytics", action="unselect")
        callbacks.toggle.assert_not_called()
        assert gate.title() == "Unselect Add-on"
        assert gate.confirm_text() == "Unselect"

    def test_toggle_on_unselected_is_immediate(
        self, gate: ResourceConfirmationGate, callbacks: MagicMock
    ) -> None:
        assert gate.request_toggle(3) is True
        callbacks.toggle.assert_called_once_with(3)
        assert not gate.is_pending

    def test_providers_are_read_each_time(
        self, gate: ResourceConfirmationGate, selected: list[int]
    ) -> None:
        selected.append(3)
        assert gate.request_toggle(3) is False


class TestRemove:
    """Remove requests, confirm and cancel."""

    def test_last_request_wins(self, gate: ResourceConfirmationGate, callbacks: MagicMock) -> None:
        gate.request_toggle(1)
        gate.request_remove(2)
        assert gate.confirm() == 2
        callbacks.remove.assert_called_once_with(2)
        assert not gate.is_pending

    def test_cancel_commits_nothing(self, gate: ResourceConfirmationGate, callbacks: MagicMock) -> None:
        gate.request_remove(1)
        gate.cancel()
        gate.cancel()
        assert gate.confirm() is None
        callbacks.remove.assert_not_called()

    def test_unknown_resource_name(self, gate: ResourceConfirmationGate) -> None:
        gate.request_remove(99)
        assert gate.state.resource_name == "Unknown Add-on"
        assert gate.title() == "Remove Add-on"
        assert '"Unknown Add-on"' in gate.message()

    def test_message_quotes_name(self, gate: ResourceConfirmationGate) -> None:
        gate.request_remove(2)
        assert gate.message().startswith('Are you sure you want to remove "Kiosk"?')
        assert gate.confirm_text() == "Remove"
