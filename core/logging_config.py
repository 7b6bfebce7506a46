"""Process-wide logging setup driven by the `logging` settings section."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

from core.settings import get_setting

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _rotating_file_handler(path: Path, cfg: dict[str, Any]) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(project_root: Path, settings: dict[str, Any]) -> None:
    """Configure the root logger from settings.

    Always logs to the rotating file under project_root; console output only
    when logging.log_to_console is set. Existing root handlers are replaced so
    repeated calls do not duplicate output.
    """
    cfg = get_setting(settings, "logging", {}) or {}
    level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)

    handlers: list[logging.Handler] = [
        _rotating_file_handler(project_root / cfg.get("file", "data/logs/wizard.log"), cfg)
    ]
    if cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(formatter)
        root.addHandler(h)
