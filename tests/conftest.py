"""Shared fixtures.

QProcess, QTimer and the web view all need a running ``QApplication``; one is
made in ``pytest_configure`` so it exists before any test module imports Qt
widgets, and is torn down after the session.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

STUB_BACKEND = Path(__file__).resolve().parent / "helpers" / "stub_backend.py"

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication, Qt
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    # headless by default (no display in CI/containers)
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    # Chromium will not start its sandbox as root (containers, CI)
    os.environ.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")
    app = QApplication.instance()
    if app is None:
        # must precede the application for QtWebEngine
        QCoreApplication.setAttribute(Qt.ApplicationAttribute.AA_ShareOpenGLContexts)
        app = QApplication([])
    _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    if _APP is None:
        return
    # let deferred deletes and killed backend children settle
    _APP.quit()
    _APP.processEvents()


@pytest.fixture
def run_log(tmp_path):
    from pin_vault.logger import DiagnosticLog

    return DiagnosticLog(tmp_path / "logs")


@pytest.fixture
def make_invoker(run_log):
    """Build a BackendInvoker that runs the stub backend with extra stub options."""
    from pin_vault.backend import BackendInvoker

    def _make(*stub_args: str, timeout_ms: int = 0):
        return BackendInvoker(sys.executable, [str(STUB_BACKEND), *stub_args], timeout_ms=timeout_ms, run_log=run_log)

    return _make
