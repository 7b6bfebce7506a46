"""Wizard navigator: active tab, tab locks, advance/retreat and final submission.

Lock invariants:
  - the first tab is always unlocked;
  - locking is monotonic downstream: if tab k is locked, every later tab is too;
  - the active tab is always unlocked.

Note on validation scope: request_tab_change() validates only the active tab's
own fields, while advance() validates the whole form and then looks only at
the active tab's subset of errors. An error on an earlier tab therefore does
not stop advance() past the current one. This mirrors the behaviour of the
existing screens and is kept on purpose; advance() logs a warning when it
happens. The final submission still requires the whole form to be valid.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Protocol, runtime_checkable

from wizard.constants import FormMode
from wizard.form_state import SchemaValidator
from wizard.models import WizardTab
from wizard.tab_validation import TabValidationGate

logger = logging.getLogger(__name__)


@runtime_checkable
class SubmissionCollaborator(Protocol):
    """Receives the validated payload on the last tab. Returns True on success."""

    async def submit(self, payload: dict[str, Any]) -> bool: ...


class AdvanceOutcome(str, Enum):
    ADVANCED = "advanced"
    BLOCKED = "blocked"
    SUBMITTED = "submitted"
    SUBMISSION_FAILED = "submission_failed"
    BUSY = "busy"  # a submission is already in flight


class WizardNavigator:
    """State machine over an ordered set of tabs."""

    def __init__(
        self,
        tabs: Iterable[WizardTab],
        schema: SchemaValidator,
        gate: TabValidationGate,
        submitter: SubmissionCollaborator | None = None,
        mode: FormMode = FormMode.CREATE,
    ) -> None:
        ordered = sorted(tabs, key=lambda t: t.ordinal)
        if not ordered:
            raise ValueError("A wizard needs at least one tab")
        ids = [t.id for t in ordered]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate tab ids: {ids}")
        if len({t.ordinal for t in ordered}) != len(ordered):
            raise ValueError("Tab ordinals must be unique")

        self._tabs: tuple[WizardTab, ...] = tuple(ordered)
        self._positions = {t.id: i for i, t in enumerate(self._tabs)}
        self._schema = schema
        self._gate = gate
        self._submitter = submitter
        self._mode = FormMode(mode)
        self._read_only = self._mode is FormMode.VIEW

        if not self._read_only:
            missing = [t.id for t in self._tabs if t.id not in gate]
            if missing:
                raise ValueError(f"Tabs without a registered validator: {missing}")

        self._unlocked: dict[str, bool] = {
            t.id: self._read_only or i == 0 for i, t in enumerate(self._tabs)
        }
        self._active = self._tabs[0].id
        self._submitting = False
        self.last_error: str | None = None

    # -- read-only views --------------------------------------------------

    @property
    def mode(self) -> FormMode:
        return self._mode

    @property
    def is_read_only(self) -> bool:
        return self._read_only

    @property
    def tabs(self) -> tuple[WizardTab, ...]:
        return self._tabs

    @property
    def active_tab(self) -> str:
        return self._active

    @property
    def tab_unlock_state(self) -> dict[str, bool]:
        return dict(self._unlocked)

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def is_first(self) -> bool:
        return self._positions[self._active] == 0

    @property
    def is_last(self) -> bool:
        return self._positions[self._active] == len(self._tabs) - 1

    @property
    def progress(self) -> float:
        """Percentage of the wizard reached by the active tab."""
        return (self._positions[self._active] + 1) / len(self._tabs) * 100

    def is_unlocked(self, tab_id: str) -> bool:
        self._position(tab_id)
        return self._unlocked[tab_id]

    def _position(self, tab_id: str) -> int:
        try:
            return self._positions[tab_id]
        except KeyError:
            raise ValueError(f"Unknown tab '{tab_id}'") from None

    # -- lock management --------------------------------------------------

    def lock_tabs_after(self, tab_id: str) -> None:
        """Lock every tab whose ordinal is after tab_id, including previously unlocked ones.

        If the active tab ends up locked, tab_id becomes the active tab.
        """
        pos = self._position(tab_id)
        locked = []
        for tab in self._tabs[pos + 1:]:
            if self._unlocked[tab.id]:
                locked.append(tab.id)
            self._unlocked[tab.id] = False
        if locked:
            logger.info("Locked tabs after %s: %s", tab_id, locked)
        if self._positions[self._active] > pos:
            self._active = tab_id

    def restore(self, tab_id: str) -> None:
        """Resume at tab_id (e.g. from a draft): unlock it and everything before it."""
        pos = self._position(tab_id)
        if not self._read_only:
            for i, tab in enumerate(self._tabs):
                self._unlocked[tab.id] = i <= pos
        self._active = tab_id

    # -- navigation -------------------------------------------------------

    def request_tab_change(self, target: str) -> bool:
        """Direct tab selection. Returns True when the active tab changed to target."""
        self._position(target)
        if self._read_only:
            self._active = target
            return True

        if not self._gate.validate_tab(self._active, self._schema):
            self.lock_tabs_after(self._active)
            return False

        if not self._unlocked[target]:
            logger.debug("Tab %s is locked, staying on %s", target, self._active)
            return False

        self._active = target
        return True

    def retreat(self) -> bool:
        """Move to the preceding tab. Never changes lock state."""
        pos = self._positions[self._active]
        if pos == 0:
            return False
        self._active = self._tabs[pos - 1].id
        return True

    async def advance(self) -> AdvanceOutcome:
        """Next button: validate, then unlock+move, or submit on the last tab."""
        if self._submitting:
            return AdvanceOutcome.BUSY

        pos = self._positions[self._active]
        last = len(self._tabs) - 1

        if self._read_only:
            if pos < last:
                self._active = self._tabs[pos + 1].id
                return AdvanceOutcome.ADVANCED
            return AdvanceOutcome.BLOCKED

        result = self._schema.validate_all()
        if self._gate.tab_has_errors(self._active, result.errors):
            self.lock_tabs_after(self._active)
            return AdvanceOutcome.BLOCKED

        if pos < last:
            if not result.success:
                logger.warning(
                    "Advancing past %s while other tabs hold errors: %s",
                    self._active,
                    sorted(result.errors),
                )
            nxt = self._tabs[pos + 1].id
            self._unlocked[nxt] = True
            self._active = nxt
            return AdvanceOutcome.ADVANCED

        if not result.success or result.data is None:
            logger.info("Submission blocked, form errors: %s", sorted(result.errors))
            return AdvanceOutcome.BLOCKED

        return await self._submit(result.data)

    async def _submit(self, payload: dict[str, Any]) -> AdvanceOutcome:
        if self._submitter is None:
            self.last_error = "No submission collaborator configured"
            logger.error("Cannot submit from tab %s: %s", self._active, self.last_error)
            return AdvanceOutcome.SUBMISSION_FAILED
        self._submitting = True
        self.last_error = None
        try:
            ok = await self._submitter.submit(payload)
        except Exception as e:
            logger.exception("Wizard submission failed: %s", e)
            self.last_error = str(e) or e.__class__.__name__
            return AdvanceOutcome.SUBMISSION_FAILED
        finally:
            self._submitting = False

        if not ok:
            self.last_error = self.last_error or "Submission was rejected"
            logger.warning("Wizard submission rejected on tab %s", self._active)
            return AdvanceOutcome.SUBMISSION_FAILED
        return AdvanceOutcome.SUBMITTED
