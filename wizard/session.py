"""WizardSession: form values + navigator + draft autosave, wired together."""

import logging
from typing import Any

from wizard.constants import DEFAULT_AUTOSAVE_DEBOUNCE_MS, FormMode
from wizard.form_state import FormState
from wizard.navigator import AdvanceOutcome, WizardNavigator
from wizard.persistence import DebouncedSaver, FormPersistenceStore

logger = logging.getLogger(__name__)

_ACTIVE_TAB = "active_tab"


class WizardSession:
    """One run of a multi-step form.

    Drafts are only written in create mode: every edit schedules a debounced
    save of the values, and the active tab is stored next to them so a
    reload resumes where the user was. A successful submission drops the
    draft.
    """

    def __init__(
        self,
        form: FormState,
        navigator: WizardNavigator,
        drafts: FormPersistenceStore | None = None,
        tab_drafts: FormPersistenceStore | None = None,
        debounce_ms: int = DEFAULT_AUTOSAVE_DEBOUNCE_MS,
    ) -> None:
        self.form = form
        self.navigator = navigator
        self._drafts = drafts
        self._tab_drafts = tab_drafts
        self._saver: DebouncedSaver | None = None
        if drafts is not None and navigator.mode is FormMode.CREATE:
            self._saver = DebouncedSaver(
                drafts,
                delay_ms=debounce_ms,
                defaults=form.defaults,
                on_saved=lambda _values: self._save_active_tab(),
            )

    @property
    def autosave_enabled(self) -> bool:
        return self._saver is not None

    @property
    def active_tab(self) -> str:
        return self.navigator.active_tab

    def _save_active_tab(self) -> None:
        if self._tab_drafts is not None:
            self._tab_drafts.save({_ACTIVE_TAB: self.navigator.active_tab})

    # -- editing ----------------------------------------------------------

    def set_value(self, key: str, value: Any) -> None:
        if self.navigator.is_read_only:
            raise PermissionError("Form is read-only")
        self.form.set_value(key, value)
        if self._saver is not None:
            self._saver.schedule(self.form.get_values())

    def flush(self) -> bool:
        """Write any pending autosave immediately."""
        return self._saver.flush() if self._saver is not None else False

    # -- navigation -------------------------------------------------------

    def request_tab_change(self, target: str) -> bool:
        changed = self.navigator.request_tab_change(target)
        if changed and self.has_draft():
            self._save_active_tab()
        return changed

    def retreat(self) -> bool:
        return self.navigator.retreat()

    async def advance(self) -> AdvanceOutcome:
        outcome = await self.navigator.advance()
        if outcome is AdvanceOutcome.ADVANCED and self.has_draft():
            self._save_active_tab()
        elif outcome is AdvanceOutcome.SUBMITTED:
            logger.info("Wizard submitted, clearing draft")
            self._clear_drafts()
        return outcome

    # -- drafts -----------------------------------------------------------

    def has_draft(self) -> bool:
        return self._saver is not None and self._drafts.load() is not None

    def restore_draft(self) -> bool:
        """Load the saved values and resume at the saved tab. False when there is no draft."""
        if not self.has_draft():
            return False
        values = self._drafts.load() or {}
        self.form.reset(values)
        saved_tab = (self._tab_drafts.load() or {}).get(_ACTIVE_TAB) if self._tab_drafts else None
        if saved_tab in {t.id for t in self.navigator.tabs}:
            self.navigator.restore(saved_tab)
        elif saved_tab is not None:
            logger.warning("Draft refers to unknown tab %r, staying on %s", saved_tab, self.active_tab)
        return True

    def start_fresh(self) -> None:
        """Discard the draft and reset the form to its defaults."""
        self._clear_drafts()
        self.form.reset()

    def _clear_drafts(self) -> None:
        if self._saver is not None:
            self._saver.reset()
        if self._drafts is not None:
            self._drafts.clear()
        if self._tab_drafts is not None:
            self._tab_drafts.clear()

    def close(self) -> None:
        if self._saver is not None:
            self._saver.cancel()
