from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import Protocol

from PySide6.QtCore import QCoreApplication, Qt, QUrl
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineCore import QWebEngineLoadingInfo, QWebEnginePage, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QMainWindow

from pin_vault.bridge import BRIDGE_OBJECT_NAME, VaultBridge
from pin_vault.logger import DiagnosticLog, get_logger
from pin_vault.path_utils import INDEX_HTML

_logger = get_logger("window")


def disable_hardware_acceleration() -> None:
    """Force software rendering. Must run before the QApplication exists.

    Some GPU drivers leave Chromium-backed views blank; software GL avoids that.
    """
    flags = os.environ.get("QTWEBENGINE_CHROMIUM_FLAGS", "")
    if "--disable-gpu" not in flags.split():
        os.environ["QTWEBENGINE_CHROMIUM_FLAGS"] = f"{flags} --disable-gpu".strip()
    QCoreApplication.setAttribute(Qt.ApplicationAttribute.AA_UseSoftwareOpenGL)


class Surface(Protocol):
    def show(self) -> None: ...

    def open_diagnostics(self) -> None: ...


class WindowLifecycle:
    """Hidden-until-ready state for one top-level surface.

    The surface starts hidden and becomes visible exactly once: after the
    content loads, or after a load failure / renderer crash has been logged
    and diagnostics opened. Later events are logged but change nothing.
    """

    def __init__(self, surface: Surface, run_log: DiagnosticLog) -> None:
        self._surface = surface
        self._run_log = run_log
        self.visible = False
        self.diagnostics_opened = False

    def on_load_succeeded(self, url: str) -> None:
        self._run_log.append(f"Renderer finished load: {url}")
        self._reveal()

    def on_load_failed(self, code: int, description: str, url: str) -> None:
        self._run_log.append(f"did-fail-load code={code} desc={description} url={url}")
        self._open_diagnostics()
        self._reveal()

    def on_renderer_crashed(self, status: str, exit_code: int) -> None:
        self._run_log.append(f"Renderer process crashed status={status} exit={exit_code}")
        self._open_diagnostics()
        self._reveal()

    def _open_diagnostics(self) -> None:
        if self.diagnostics_opened:
            return
        try:
            self._surface.open_diagnostics()
            self.diagnostics_opened = True
        except Exception as e:
            # a broken inspector must not keep the window hidden
            _logger.warning("failed to open diagnostics: %s", e)

    def _reveal(self) -> None:
        if self.visible:
            return
        self.visible = True
        self._surface.show()


class _LockedPage(QWebEnginePage):
    """Page that only ever displays the bundled content file."""

    def __init__(self, home: QUrl, parent=None) -> None:
        super().__init__(parent)
        self._home = home

    def acceptNavigationRequest(self, url: QUrl, nav_type, is_main_frame: bool) -> bool:  # noqa: N802
        if is_main_frame and url.adjusted(QUrl.UrlFormattingOption.RemoveFragment) != self._home:
            _logger.warning("blocked navigation to %s", url.toString())
            return False
        return super().acceptNavigationRequest(url, nav_type, is_main_frame)


class VaultWindow(QMainWindow):
    """Main window hosting the web UI and the capability bridge."""

    def __init__(
        self,
        bridge: VaultBridge,
        run_log: DiagnosticLog,
        content_path: str | Path = INDEX_HTML,
        size: tuple[int, int] = (600, 500),
    ) -> None:
        super().__init__()
        self.setWindowTitle("PIN Vault")
        self.resize(*size)

        self._run_log = run_log
        self._content_url = QUrl.fromLocalFile(str(Path(content_path).resolve()))
        self.lifecycle = WindowLifecycle(self, run_log)
        self._devtools: QWebEngineView | None = None

        self.view = QWebEngineView(self)
        page = _LockedPage(self._content_url, self.view)
        s = page.settings()
        s.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessRemoteUrls, False)
        s.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessFileUrls, False)
        self.view.setPage(page)

        # The bridge is the only object the page can reach.
        self._channel = QWebChannel(page)
        self._channel.registerObject(BRIDGE_OBJECT_NAME, bridge)
        page.setWebChannel(self._channel)

        page.loadingChanged.connect(self._on_loading_changed)
        page.renderProcessTerminated.connect(self._on_render_process_terminated)
        self.setCentralWidget(self.view)

    @property
    def content_url(self) -> QUrl:
        return self._content_url

    def load_content(self) -> None:
        self._run_log.append(f"Loading file: {self._content_url.toLocalFile()}")
        self.view.load(self._content_url)

    def open_diagnostics(self) -> None:
        if self._devtools is None:
            self._devtools = QWebEngineView()
            self._devtools.setWindowTitle("PIN Vault - DevTools")
            self.view.page().setDevToolsPage(self._devtools.page())
        self._devtools.show()

    def closeEvent(self, event) -> None:  # noqa: N802
        if self._devtools is not None:
            with contextlib.suppress(Exception):
                self._devtools.close()
        super().closeEvent(event)

    def _on_loading_changed(self, info: QWebEngineLoadingInfo) -> None:
        status = info.status()
        if status == QWebEngineLoadingInfo.LoadStatus.LoadSucceededStatus:
            self.lifecycle.on_load_succeeded(info.url().toLocalFile() or info.url().toString())
        elif status == QWebEngineLoadingInfo.LoadStatus.LoadFailedStatus:
            self.lifecycle.on_load_failed(info.errorCode(), info.errorString(), info.url().toString())

    def _on_render_process_terminated(self, status: QWebEnginePage.RenderProcessTerminationStatus, exit_code: int) -> None:
        if status == QWebEnginePage.RenderProcessTerminationStatus.NormalTerminationStatus:
            return
        self.lifecycle.on_renderer_crashed(getattr(status, "name", str(status)), exit_code)
