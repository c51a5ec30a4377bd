"""Capability bridge exposed to the web page over QWebChannel.

The page can call exactly three things: ``browseFile``, ``encryptFile`` and
``decryptFile``. Encrypt/decrypt return a request id immediately; the tagged
outcome arrives later through ``operationFinished(id, ok, kind, message)``.
"""

from __future__ import annotations

import itertools

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from pin_vault.backend import BackendInvocation
from pin_vault.gateway import RequestGateway
from pin_vault.logger import get_logger
from pin_vault.models import VaultResult

_logger = get_logger("bridge")

BRIDGE_OBJECT_NAME = "vaultApi"


class VaultBridge(QObject):
    operationFinished = Signal(int, bool, str, str)  # request id, ok, kind, message

    def __init__(self, gateway: RequestGateway, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._gateway = gateway
        self._ids = itertools.count(1)
        self._pending: dict[int, BackendInvocation] = {}

    @Slot(result="QVariant")
    def browseFile(self) -> str | None:  # noqa: N802
        return self._gateway.browse_file()

    @Slot(str, str, str, result=int)
    def encryptFile(self, input_path: str, output_path: str, pin: str) -> int:  # noqa: N802
        return self._track(self._gateway.encrypt_file(input_path, output_path, pin))

    @Slot(str, str, str, result=int)
    def decryptFile(self, input_path: str, output_path: str, pin: str) -> int:  # noqa: N802
        return self._track(self._gateway.decrypt_file(input_path, output_path, pin))

    def pending_count(self) -> int:
        return len(self._pending)

    def _track(self, inv: BackendInvocation) -> int:
        request_id = next(self._ids)
        self._pending[request_id] = inv
        if inv.is_done():
            # resolved during start(); let the caller receive its id first
            QTimer.singleShot(0, lambda: self._deliver(request_id, inv.result))
        else:
            inv.finished.connect(lambda result, rid=request_id: self._deliver(rid, result))
        return request_id

    def _deliver(self, request_id: int, result: VaultResult | None) -> None:
        if self._pending.pop(request_id, None) is None or result is None:
            return
        _logger.debug("request %d finished: ok=%s", request_id, result.ok)
        self.operationFinished.emit(request_id, result.ok, result.kind_name, result.message)
