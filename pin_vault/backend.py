"""Backend process invoker.

Runs the external vault executable as a child ``QProcess`` with the fixed
argument contract ``<operation> <input> <output> <pin>`` and turns its exit
status and captured streams into a single :class:`VaultResult`.

Nothing here blocks the Qt event loop: every run is a
:class:`BackendInvocation` that resolves exactly once via ``finished``.
Several invocations may be in flight at the same time, each owning its own
process and buffers.
"""

from __future__ import annotations

from collections.abc import Sequence

from PySide6.QtCore import QEventLoop, QObject, QProcess, QTimer, Signal

from pin_vault.logger import DiagnosticLog, get_logger
from pin_vault.models import (
    CANCELLED_MESSAGE,
    FALLBACK_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    FailureKind,
    Operation,
    VaultRequest,
    VaultResult,
)

_logger = get_logger("backend")


def _decode(data) -> str:
    return bytes(data.data()).decode("utf-8", errors="replace")


def classify(
    exit_code: int | None,
    normal_exit: bool,
    stdout: str,
    stderr: str,
    launch_failed: bool = False,
) -> VaultResult:
    """Map a finished (or failed-to-start) process onto a tagged result.

    Success is a normal exit with code 0; its message is stdout with
    surrounding whitespace trimmed. Anything else yields stderr verbatim, or
    the generic fallback when stderr is empty.
    """
    if not launch_failed and normal_exit and exit_code == 0:
        return VaultResult.success(stdout.strip())
    kind = FailureKind.LAUNCH_FAILED if launch_failed else FailureKind.RUNTIME_FAILURE
    return VaultResult.failure(kind, stderr or FALLBACK_ERROR_MESSAGE)


class BackendInvocation(QObject):
    """Handle for one running backend process.

    ``finished`` carries the :class:`VaultResult` and is emitted exactly once,
    whether the process exits, fails to launch, times out or is cancelled.
    """

    finished = Signal(object)

    def __init__(
        self,
        program: str,
        leading_args: Sequence[str],
        request: VaultRequest,
        timeout_ms: int = 0,
        run_log: DiagnosticLog | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._program = program
        self._leading_args = list(leading_args)
        self._request = request
        self._timeout_ms = max(0, int(timeout_ms))
        self._run_log = run_log
        self._result: VaultResult | None = None
        # Set before we kill the process ourselves so the exit is reported
        # as a timeout/cancel rather than a backend failure.
        self._abort_kind: FailureKind | None = None

        self._process = QProcess(self)
        self._process.setProgram(program)
        self._process.setArguments([*self._leading_args, *request.argv()])
        self._process.finished.connect(self._on_finished)
        self._process.errorOccurred.connect(self._on_error)

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def request(self) -> VaultRequest:
        return self._request

    @property
    def result(self) -> VaultResult | None:
        return self._result

    def is_done(self) -> bool:
        return self._result is not None

    def start(self) -> None:
        self._log(f"Spawning backend: {self._program} {' '.join([*self._leading_args, *self._request.masked_argv()])}")
        self._process.start()
        if self._timeout_ms > 0 and not self.is_done():
            self._timer.start(self._timeout_ms)

    def cancel(self) -> None:
        """Kill the process; resolves with a CANCELLED failure if still running."""
        if self.is_done():
            return
        self._abort(FailureKind.CANCELLED)

    def wait(self, timeout_ms: int = 30000) -> VaultResult | None:
        """Spin a local event loop until resolved. Not for use from UI callbacks."""
        if self.is_done():
            return self._result
        loop = QEventLoop()

        def _quit(_result) -> None:
            loop.quit()

        self.finished.connect(_quit)
        guard = QTimer()
        guard.setSingleShot(True)
        guard.timeout.connect(loop.quit)
        guard.start(max(1, int(timeout_ms)))
        try:
            loop.exec()
        finally:
            guard.stop()
            self.finished.disconnect(_quit)
        return self._result

    def _abort(self, kind: FailureKind) -> None:
        self._abort_kind = kind
        self._timer.stop()
        if self._process.state() != QProcess.ProcessState.NotRunning:
            self._process.kill()
        else:
            self._resolve(self._aborted_result(""))

    def _aborted_result(self, stderr: str) -> VaultResult:
        kind = self._abort_kind or FailureKind.CANCELLED
        fallback = TIMEOUT_MESSAGE if kind is FailureKind.TIMED_OUT else CANCELLED_MESSAGE
        return VaultResult.failure(kind, stderr or fallback)

    def _on_timeout(self) -> None:
        if self.is_done():
            return
        self._log(f"Backend timed out after {self._timeout_ms} ms ({self._request.operation.value})")
        self._abort(FailureKind.TIMED_OUT)

    def _on_error(self, error: QProcess.ProcessError) -> None:
        # Only a launch failure ends the run here; crashes also emit finished.
        if error != QProcess.ProcessError.FailedToStart or self.is_done():
            return
        self._timer.stop()
        self._log(f"Backend failed to start: {self._process.errorString()}")
        if self._abort_kind is not None:
            self._resolve(self._aborted_result(""))
            return
        stderr = _decode(self._process.readAllStandardError())
        self._resolve(classify(None, False, "", stderr, launch_failed=True))

    def _on_finished(self, exit_code: int, exit_status: QProcess.ExitStatus) -> None:
        if self.is_done():
            return
        self._timer.stop()
        stdout = _decode(self._process.readAllStandardOutput())
        stderr = _decode(self._process.readAllStandardError())
        normal = exit_status == QProcess.ExitStatus.NormalExit
        self._log(
            f"Backend exited: op={self._request.operation.value} code={exit_code} "
            f"status={'normal' if normal else 'crash'}"
        )
        if self._abort_kind is not None:
            self._resolve(self._aborted_result(stderr))
            return
        self._resolve(classify(exit_code, normal, stdout, stderr))

    def _resolve(self, result: VaultResult) -> None:
        if self._result is not None:
            return
        self._result = result
        _logger.debug("invocation resolved: ok=%s kind=%s", result.ok, result.kind_name)
        self.finished.emit(result)

    def _log(self, message: str) -> None:
        if self._run_log is not None:
            self._run_log.append(message)
        else:
            _logger.info("%s", message)


class BackendInvoker(QObject):
    """Launches backend runs and keeps them alive until they resolve."""

    def __init__(
        self,
        program: str,
        leading_args: Sequence[str] | None = None,
        timeout_ms: int = 0,
        run_log: DiagnosticLog | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.program = program
        self.leading_args = list(leading_args or [])
        self.timeout_ms = max(0, int(timeout_ms))
        self._run_log = run_log
        self._in_flight: set[BackendInvocation] = set()

    def invoke(self, operation: Operation | str, input_path: str, output_path: str, pin: str) -> BackendInvocation:
        """Start ``<backend> <operation> <input> <output> <pin>`` and return its handle."""
        request = VaultRequest(Operation(operation), input_path, output_path, pin)
        return self.submit(request)

    def submit(self, request: VaultRequest) -> BackendInvocation:
        inv = BackendInvocation(
            self.program,
            self.leading_args,
            request,
            timeout_ms=self.timeout_ms,
            run_log=self._run_log,
        )
        self._in_flight.add(inv)
        inv.finished.connect(lambda _result, inv=inv: self._release(inv))
        inv.start()
        return inv

    def in_flight(self) -> int:
        return len(self._in_flight)

    def cancel_all(self) -> None:
        for inv in list(self._in_flight):
            inv.cancel()

    def _release(self, inv: BackendInvocation) -> None:
        # callers hold their own reference; the process has already exited
        self._in_flight.discard(inv)
