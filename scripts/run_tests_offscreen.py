#!/usr/bin/env python3
"""Run the test suite headless.

Usage:
  python scripts/run_tests_offscreen.py [--timeout SECONDS] [--verbose] [-- pytest args...]

Example:
  python scripts/run_tests_offscreen.py -- tests/test_backend_invoker.py -k timeout
"""

from __future__ import annotations

import argparse
import os
import shlex
import subprocess
import sys

# per-test limit handed to pytest-timeout; a stuck backend stub fails one test, not the run
PER_TEST_TIMEOUT_S = 60


def build_env() -> dict[str, str]:
    env = os.environ.copy()
    env.setdefault("QT_QPA_PLATFORM", "offscreen")
    env.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")
    return env


def main() -> int:
    p = argparse.ArgumentParser(description="Run pytest with the Qt offscreen platform")
    p.add_argument("--timeout", type=int, default=300, help="Limit for the whole run, in seconds")
    p.add_argument("--verbose", action="store_true", help="Full pytest output instead of -q -x")
    p.add_argument("pytest_args", nargs=argparse.REMAINDER)
    args = p.parse_args()

    cmd = [sys.executable, "-m", "pytest", f"--timeout={min(PER_TEST_TIMEOUT_S, args.timeout)}"]
    if not args.verbose:
        cmd += ["-q", "-x"]
    cmd += [a for a in args.pytest_args if a != "--"]

    print("Running:", shlex.join(cmd))
    try:
        return subprocess.run(cmd, env=build_env(), check=False, timeout=args.timeout).returncode
    except subprocess.TimeoutExpired:
        print(f"pytest run timed out after {args.timeout} seconds", file=sys.stderr)
        return 124


if __name__ == "__main__":
    raise SystemExit(main())
