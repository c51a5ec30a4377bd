from __future__ import annotations

import contextlib
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

LOG_FILE_NAME = "run.log"
_CONSOLE_FORMAT = logging.Formatter(fmt="[%(asctime)s] %(levelname)s: %(message)s", datefmt="%H:%M:%S")


class _ComponentFilter(logging.Filter):
    """Pass only records from the listed components (last logger-name segment)."""

    def __init__(self, components: set[str]) -> None:
        super().__init__()
        self.components = components

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.rsplit(".", 1)[-1] in self.components


def _env_level(default: int) -> int:
    raw = (os.getenv("PIN_VAULT_LOG_LEVEL") or "").strip().upper()
    level = logging.getLevelName(raw) if raw else default
    return level if isinstance(level, int) else default


def setup_logger(level: int = logging.INFO, name: str = "pin_vault") -> logging.Logger:
    """Configure the ``pin_vault`` console logger; safe to call repeatedly.

    PIN_VAULT_LOG_LEVEL and PIN_VAULT_LOG_CATS (comma-separated component
    names such as ``backend,window``) are re-read on every call.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_env_level(level))

    console: logging.StreamHandler | None = None
    for h in list(logger.handlers):
        if not isinstance(h, logging.StreamHandler) or isinstance(h, logging.FileHandler):
            continue
        if getattr(h, "stream", None) is sys.stderr:
            console = h
        else:
            # stderr was replaced since the handler was made
            logger.removeHandler(h)

    if console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(console)
    console.setFormatter(_CONSOLE_FORMAT)

    console.filters.clear()
    components = {c.strip() for c in (os.getenv("PIN_VAULT_LOG_CATS") or "").split(",") if c.strip()}
    if components:
        console.addFilter(_ComponentFilter(components))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)


_logger = get_logger("runlog")


class DiagnosticLog:
    """Append-only run log shared by every component that records lifecycle events.

    One instance is created at startup and handed to the window, gateway and
    invoker. Each entry is a single ``[<ISO-8601>] <message>`` line. Writing
    never raises: a log that cannot be written is simply skipped.
    """

    def __init__(self, directory: str | Path | None, fallback_dir: str | Path | None = None) -> None:
        self._path = self._resolve_path(directory, fallback_dir)

    @staticmethod
    def _resolve_path(directory: str | Path | None, fallback_dir: str | Path | None) -> Path | None:
        for candidate in (directory, fallback_dir):
            if not candidate:
                continue
            try:
                p = Path(candidate)
                p.mkdir(parents=True, exist_ok=True)
                return p / LOG_FILE_NAME
            except OSError:
                continue
        return None

    @property
    def path(self) -> Path | None:
        return self._path

    def append(self, message: str) -> None:
        with contextlib.suppress(Exception):
            _logger.info("%s", message)
        if self._path is None:
            return
        try:
            stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(f"[{stamp}] {message}\n")
        except Exception:
            # logging must never take the workflow down with it
            pass
