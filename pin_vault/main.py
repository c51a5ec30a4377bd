import argparse
import contextlib
import os
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QStandardPaths, Qt
from PySide6.QtWidgets import QApplication

from pin_vault.backend import BackendInvoker
from pin_vault.bridge import VaultBridge
from pin_vault.gateway import RequestGateway
from pin_vault.logger import DiagnosticLog, get_logger
from pin_vault.path_utils import BASE_DIR, abs_path_str
from pin_vault.settings_manager import SettingsManager
from pin_vault.window import VaultWindow, disable_hardware_acceleration

APP_NAME = "pin_vault"

# Logging options are applied at import time so module loggers pick them up;
# they are reflected into PIN_VAULT_LOG_LEVEL / PIN_VAULT_LOG_CATS and removed
# from sys.argv.


def _apply_cli_logging_options() -> None:
    try:
        parser = argparse.ArgumentParser(description="PIN Vault", add_help=False)
        parser.add_argument("--log-level", help="Set log level")
        parser.add_argument("--log-cats", help="Set log categories")
        args, remaining = parser.parse_known_args(sys.argv[1:])
        if args.log_level:
            os.environ["PIN_VAULT_LOG_LEVEL"] = args.log_level
        if args.log_cats:
            os.environ["PIN_VAULT_LOG_CATS"] = args.log_cats
        sys.argv[:] = [sys.argv[0], *remaining]
    except Exception:
        # logging options must never keep the app from starting
        pass


_apply_cli_logging_options()
logger = get_logger("main")


def _writable_dir(location: QStandardPaths.StandardLocation) -> str:
    return QStandardPaths.writableLocation(location) or ""


def default_settings_path() -> str:
    cfg = _writable_dir(QStandardPaths.StandardLocation.AppConfigLocation)
    base = Path(cfg) if cfg else BASE_DIR
    return (base / "settings.json").as_posix()


def create_run_log() -> DiagnosticLog:
    """Run log under the per-user data dir, falling back to the install dir."""
    return DiagnosticLog(_writable_dir(QStandardPaths.StandardLocation.AppDataLocation), BASE_DIR)


def parse_app_args(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    """Split our options off; the rest (program name first) goes to QApplication."""
    parser = argparse.ArgumentParser(prog="pin-vault", add_help=False)
    parser.add_argument("--backend", help="Path to the vault backend executable")
    parser.add_argument("--settings", help="Path to settings.json")
    args, remaining = parser.parse_known_args(argv[1:])
    return args, [argv[0] if argv else APP_NAME, *remaining]


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv

    args, qt_argv = parse_app_args(argv)

    QCoreApplication.setApplicationName(APP_NAME)
    QCoreApplication.setOrganizationName(APP_NAME)

    settings = SettingsManager(args.settings or default_settings_path())
    if settings.hardware_acceleration_disabled:
        disable_hardware_acceleration()
    QCoreApplication.setAttribute(Qt.ApplicationAttribute.AA_ShareOpenGLContexts)

    app = QApplication(qt_argv)
    run_log = create_run_log()
    run_log.append("App ready")

    backend_path = abs_path_str(args.backend) if args.backend else settings.backend_path
    logger.debug("backend executable: %s", backend_path)
    invoker = BackendInvoker(
        backend_path,
        settings.backend_args,
        timeout_ms=settings.backend_timeout_ms,
        run_log=run_log,
    )
    gateway = RequestGateway(invoker, run_log=run_log, settings=settings)
    bridge = VaultBridge(gateway)

    run_log.append("Creating window")
    window = VaultWindow(bridge, run_log, size=settings.window_size)
    gateway.set_dialog_parent(window)
    app.aboutToQuit.connect(invoker.cancel_all)
    window.load_content()

    code = app.exec()
    with contextlib.suppress(Exception):
        run_log.append(f"App exit code={code}")
    return code


if __name__ == "__main__":
    sys.exit(run())
