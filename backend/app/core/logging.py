from __future__ import annotations

import logging
import sys
from pathlib import Path

from app.core.config import settings

BACKEND_ROOT = Path(__file__).resolve().parents[2]
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str | None = None, *, to_file: bool = True) -> None:
    """Attach stdout (and optionally file) handlers to the root logger once."""
    global _configured
    if _configured:
        return

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if to_file:
        log_path = BACKEND_ROOT / settings.LOG_DIR / settings.LOG_FILE
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
