from __future__ import annotations

import contextlib
from collections.abc import Callable
from typing import Any

from PySide6.QtWidgets import QFileDialog, QWidget

from pin_vault.backend import BackendInvocation, BackendInvoker
from pin_vault.logger import DiagnosticLog, get_logger
from pin_vault.models import Operation
from pin_vault.path_utils import abs_path_str
from pin_vault.settings_manager import SettingsManager

_logger = get_logger("gateway")

# (parent, caption, start_dir) -> selected path or "" when cancelled
FileDialogFn = Callable[[QWidget | None, str, str], str]


def _native_open_file(parent: QWidget | None, caption: str, start_dir: str) -> str:
    # getOpenFileName only accepts a single existing file, never a directory
    path, _selected_filter = QFileDialog.getOpenFileName(parent, caption, start_dir)
    return path


class RequestGateway:
    """Routes bridge calls to the file picker or the backend invoker.

    Encrypt/decrypt arguments are forwarded untouched: path existence,
    extensions and PIN format are the backend's business.
    """

    def __init__(
        self,
        invoker: BackendInvoker,
        run_log: DiagnosticLog | None = None,
        settings: SettingsManager | None = None,
        file_dialog: FileDialogFn | None = None,
    ) -> None:
        self._invoker = invoker
        self._run_log = run_log
        self._settings = settings
        self._file_dialog = file_dialog or _native_open_file
        self._dialog_parent: QWidget | None = None

    def set_dialog_parent(self, parent: QWidget | None) -> None:
        self._dialog_parent = parent

    def browse_file(self) -> str | None:
        """Ask the user for one file; ``None`` when the picker is dismissed."""
        start_dir = ""
        if self._settings is not None:
            start_dir = self._settings.last_open_dir or ""
        path = self._file_dialog(self._dialog_parent, "Select file", start_dir)
        if not path:
            _logger.debug("file selection cancelled")
            return None
        selected = abs_path_str(path)
        if self._settings is not None:
            with contextlib.suppress(Exception):
                self._settings.set("last_open_dir", selected)
        return selected

    def encrypt_file(self, input_path: Any, output_path: Any, pin: Any) -> BackendInvocation:
        return self._dispatch(Operation.ENCRYPT, input_path, output_path, pin)

    def decrypt_file(self, input_path: Any, output_path: Any, pin: Any) -> BackendInvocation:
        return self._dispatch(Operation.DECRYPT, input_path, output_path, pin)

    def _dispatch(self, operation: Operation, input_path: Any, output_path: Any, pin: Any) -> BackendInvocation:
        if self._run_log is not None:
            self._run_log.append(f"Request {operation.value}: {input_path} -> {output_path}")
        return self._invoker.invoke(operation, str(input_path), str(output_path), str(pin))
