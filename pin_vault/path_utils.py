"""Path helpers.

- Use absolute paths for everything handed to the backend or the file picker.
- Anchor bundled resources to the package directory (or the frozen bundle),
  never to the current working directory, so launching from removable media
  or a shortcut with an odd cwd still finds them.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

import sys
from pathlib import Path

_DRIVE_PREFIX_LEN = 2

BASE_DIR = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent))
RESOURCES_DIR = BASE_DIR / "resources"
INDEX_HTML = RESOURCES_DIR / "index.html"


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        return p.resolve(strict=False)
    except Exception:
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def abs_dir_str(path: str | Path) -> str:
    """Absolute directory; a path naming an existing file yields its parent."""
    p = abs_path(path)
    try:
        if p.exists() and not p.is_dir():
            p = p.parent
    except Exception:
        pass
    return _normalize_drive_letter(str(p))


def default_backend_path() -> str:
    name = "vault.exe" if sys.platform.startswith("win") else "vault"
    return abs_path_str(BASE_DIR / name)
