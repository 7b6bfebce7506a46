"""Draft maintenance for the wizards: python -m wizard [status|clear]."""

import logging
import sys
from pathlib import Path

from core.logging_config import setup_logging
from core.settings import load_settings
from core.storage import KeyValueStore, open_store
from wizard.constants import StorageKeys
from wizard.persistence import FormPersistenceStore
from wizard.verification import VerificationStatusStore

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# wizard -> (draft key, active tab key)
DRAFT_KEYS: dict[str, tuple[str, str]] = {
    "tenant": (StorageKeys.TENANT_FORM_DRAFT, StorageKeys.TENANT_ACTIVE_TAB),
    "role": (StorageKeys.ROLE_FORM_DATA, StorageKeys.ROLE_ACTIVE_TAB),
}

EXIT_OK = 0
EXIT_USAGE = 2


def _status(store: KeyValueStore) -> None:
    for name, (draft_key, tab_key) in DRAFT_KEYS.items():
        draft = FormPersistenceStore(store, draft_key).load()
        if draft is None:
            print(f"{name}: no draft")
            continue
        tab = (FormPersistenceStore(store, tab_key).load() or {}).get("active_tab") or "-"
        print(f"{name}: draft with {len(draft)} fields, active tab {tab}")
    verified = VerificationStatusStore(store).load_verified()
    print(
        "verification: email {}, phone {}".format(
            "verified" if verified["email_verified"] else "unverified",
            "verified" if verified["phone_verified"] else "unverified",
        )
    )


def _clear(store: KeyValueStore) -> None:
    for draft_key, tab_key in DRAFT_KEYS.values():
        FormPersistenceStore(store, draft_key).clear()
        FormPersistenceStore(store, tab_key).clear()
    VerificationStatusStore(store).clear()
    logger.info("Cleared wizard drafts and verification state")
    print("Drafts cleared.")


def main(argv: list[str] | None = None, project_root: Path | None = None) -> int:
    """Run one maintenance command. Returns the process exit code."""
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "status"
    root = project_root or _PROJECT_ROOT

    settings = load_settings(root / "config")
    setup_logging(root, settings)
    store = open_store(root, settings)

    if command == "status":
        _status(store)
        return EXIT_OK
    if command == "clear":
        _clear(store)
        return EXIT_OK

    print(f"Unknown command {command!r}. Use 'status' or 'clear'.")
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
