"""Tests for WizardNavigator: lock invariants, tab changes, advance and submission."""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel, Field

from wizard.constants import FormMode
from wizard.form_state import FormState
from wizard.models import WizardTab
from wizard.navigator import AdvanceOutcome, WizardNavigator
from wizard.tab_validation import FieldSetValidator, NoFieldsValidator, TabValidationGate

TABS = (
    WizardTab("first", 0),
    WizardTab("second", 1),
    WizardTab("third", 2),
)


class StepForm(BaseModel):
    alpha: str = Field(min_length=1)
    beta: str = Field(min_length=1)


def _gate() -> TabValidationGate:
    return TabValidationGate(
        {
            "first": FieldSetValidator(["alpha"]),
            "second": FieldSetValidator(["beta"]),
            "third": NoFieldsValidator(),
        }
    )


@pytest.fixture
def form() -> FormState:
    return FormState(StepForm, {"alpha": "", "beta": ""})


@pytest.fixture
def submitter() -> AsyncMock:
    mock = AsyncMock()
    mock.submit.return_value = True
    return mock


@pytest.fixture
def nav(form: FormState, submitter: AsyncMock) -> WizardNavigator:
    return WizardNavigator(TABS, form, _gate(), submitter=submitter)


def _assert_monotonic(nav: WizardNavigator) -> None:
    states = [nav.tab_unlock_state[t.id] for t in nav.tabs]
    assert states[0] is True
    for earlier, later in zip(states, states[1:]):
        assert earlier or not later


class TestConstruction:
    """Definition checks and initial state."""

    def test_initial_state(self, nav: WizardNavigator) -> None:
        assert nav.active_tab == "first"
        assert nav.tab_unlock_state == {"first": True, "second": False, "third": False}
        assert nav.is_first and not nav.is_last

    def test_tabs_sorted_by_ordinal(self, form: FormState) -> None:
        nav = WizardNavigator(reversed(TABS), form, _gate())
        assert [t.id for t in nav.tabs] == ["first", "second", "third"]

    def test_duplicate_ordinals_rejected(self, form: FormState) -> None:
        with pytest.raises(ValueError):
            WizardNavigator([WizardTab("first", 0), WizardTab("second", 0)], form, _gate())

    def test_tab_without_validator_rejected(self, form: FormState) -> None:
        with pytest.raises(ValueError):
            WizardNavigator([*TABS, WizardTab("fourth", 3)], form, _gate())

    def test_unknown_target_raises(self, nav: WizardNavigator) -> None:
        with pytest.raises(ValueError):
            nav.request_tab_change("nowhere")


class TestRequestTabChange:
    """Direct tab selection."""

    def test_locked_target_never_changes_active_tab(self, nav: WizardNavigator, form: FormState) -> None:
        form.set_value("alpha", "x")
        assert nav.request_tab_change("second") is False
        assert nav.active_tab == "first"

    def test_invalid_current_tab_locks_downstream(self, nav: WizardNavigator, form: FormState) -> None:
        nav.restore("third")
        nav.request_tab_change("first")
        assert nav.active_tab == "first"
        assert nav.request_tab_change("third") is False
        assert nav.tab_unlock_state == {"first": True, "second": False, "third": False}
        assert "alpha" in form.errors

    def test_unlocked_target_switches(self, nav: WizardNavigator, form: FormState) -> None:
        form.set_value("alpha", "x")
        nav.restore("second")
        nav.retreat()
        assert nav.request_tab_change("second") is True
        assert nav.active_tab == "second"

    def test_randomized_lock_operations_keep_monotonic_lock(self, form: FormState) -> None:
        rng = random.Random(1234)
        nav = WizardNavigator(TABS, form, _gate())
        ids = [t.id for t in TABS]
        for _ in range(500):
            op = rng.choice(["lock", "restore", "change", "retreat", "edit"])
            target = rng.choice(ids)
            if op == "lock":
                nav.lock_tabs_after(target)
            elif op == "restore":
                nav.restore(target)
            elif op == "change":
                active = nav.active_tab
                locked_before = not nav.is_unlocked(target)
                changed = nav.request_tab_change(target)
                if locked_before:
                    assert nav.active_tab == active and not changed
            elif op == "retreat":
                nav.retreat()
            else:
                form.set_value(rng.choice(["alpha", "beta"]), rng.choice(["", "v"]))
            _assert_monotonic(nav)
            assert nav.is_unlocked(nav.active_tab)


class TestAdvance:
    """Next button behaviour."""

    @pytest.mark.asyncio
    async def test_blocked_on_active_tab_errors(self, nav: WizardNavigator) -> None:
        assert await nav.advance() is AdvanceOutcome.BLOCKED
        assert nav.active_tab == "first"
        assert not nav.is_unlocked("second")

    @pytest.mark.asyncio
    async def test_advances_and_unlocks_next(self, nav: WizardNavigator, form: FormState) -> None:
        form.set_value("alpha", "x")
        assert await nav.advance() is AdvanceOutcome.ADVANCED
        assert nav.active_tab == "second"
        assert nav.is_unlocked("second")
        assert nav.progress == pytest.approx(200 / 3)

    @pytest.mark.asyncio
    async def test_earlier_tab_error_does_not_block_advance(
        self, nav: WizardNavigator, form: FormState
    ) -> None:
        form.set_value("alpha", "x")
        await nav.advance()
        form.set_value("beta", "y")
        form.set_value("alpha", "")
        assert await nav.advance() is AdvanceOutcome.ADVANCED
        assert nav.active_tab == "third"
        assert "alpha" in form.errors

    @pytest.mark.asyncio
    async def test_last_tab_submits_validated_payload(
        self, nav: WizardNavigator, form: FormState, submitter: AsyncMock
    ) -> None:
        form.reset({"alpha": "x", "beta": "y"})
        nav.restore("third")
        assert await nav.advance() is AdvanceOutcome.SUBMITTED
        submitter.submit.assert_awaited_once_with({"alpha": "x", "beta": "y"})

    @pytest.mark.asyncio
    async def test_last_tab_requires_whole_form_valid(
        self, nav: WizardNavigator, form: FormState, submitter: AsyncMock
    ) -> None:
        form.reset({"alpha": "", "beta": "y"})
        nav.restore("third")
        assert await nav.advance() is AdvanceOutcome.BLOCKED
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_submission_stays_on_last_tab(
        self, nav: WizardNavigator, form: FormState, submitter: AsyncMock
    ) -> None:
        submitter.submit.return_value = False
        form.reset({"alpha": "x", "beta": "y"})
        nav.restore("third")
        assert await nav.advance() is AdvanceOutcome.SUBMISSION_FAILED
        assert nav.active_tab == "third"
        assert nav.last_error == "Submission was rejected"

    @pytest.mark.asyncio
    async def test_submission_exception_is_reported(
        self, nav: WizardNavigator, form: FormState, submitter: AsyncMock
    ) -> None:
        submitter.submit.side_effect = ConnectionError("backend down")
        form.reset({"alpha": "x", "beta": "y"})
        nav.restore("third")
        assert await nav.advance() is AdvanceOutcome.SUBMISSION_FAILED
        assert nav.last_error == "backend down"
        assert not nav.is_submitting

    @pytest.mark.asyncio
    async def test_missing_submitter_fails_without_raising(self, form: FormState) -> None:
        nav = WizardNavigator(TABS, form, _gate())
        form.reset({"alpha": "x", "beta": "y"})
        nav.restore("third")
        assert await nav.advance() is AdvanceOutcome.SUBMISSION_FAILED
        assert nav.last_error == "No submission collaborator configured"
        assert nav.active_tab == "third"
        assert not nav.is_submitting

    @pytest.mark.asyncio
    async def test_second_advance_during_submission_is_busy(
        self, nav: WizardNavigator, form: FormState, submitter: AsyncMock
    ) -> None:
        release = asyncio.Event()

        async def slow_submit(payload: dict) -> bool:
            await release.wait()
            return True

        submitter.submit.side_effect = slow_submit
        form.reset({"alpha": "x", "beta": "y"})
        nav.restore("third")

        first = asyncio.create_task(nav.advance())
        await asyncio.sleep(0)
        assert nav.is_submitting
        assert await nav.advance() is AdvanceOutcome.BUSY
        release.set()
        assert await first is AdvanceOutcome.SUBMITTED
        assert submitter.submit.await_count == 1

    @pytest.mark.asyncio
    async def test_retreat_keeps_locks(self, nav: WizardNavigator, form: FormState) -> None:
        form.set_value("alpha", "x")
        await nav.advance()
        assert nav.retreat() is True
        assert nav.active_tab == "first"
        assert nav.is_unlocked("second")
        assert nav.retreat() is False


class TestViewMode:
    """Read-only wizards bypass validation."""

    @pytest.mark.asyncio
    async def test_all_tabs_unlocked_and_free_navigation(self, form: FormState) -> None:
        nav = WizardNavigator(TABS, form, TabValidationGate(), mode=FormMode.VIEW)
        assert all(nav.tab_unlock_state.values())
        assert nav.request_tab_change("third") is True
        assert await nav.advance() is AdvanceOutcome.BLOCKED
        nav.request_tab_change("first")
        assert await nav.advance() is AdvanceOutcome.ADVANCED
        assert form.errors == {}
