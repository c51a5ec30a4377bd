from __future__ import annotations

import pytest

from pin_vault.backend import BackendInvoker, classify
from pin_vault.models import FALLBACK_ERROR_MESSAGE, FailureKind, Operation

WAIT_MS = 15000


def test_classify_success_trims_stdout():
    res = classify(0, True, "OK: encrypted\r\n", "")
    assert res.ok is True
    assert res.message == "OK: encrypted"
    assert res.kind is None


def test_classify_nonzero_exit_uses_stderr_verbatim():
    res = classify(1, True, "ignored", "bad pin")
    assert res.ok is False
    assert res.kind is FailureKind.RUNTIME_FAILURE
    assert res.message == "bad pin"


def test_classify_empty_stderr_falls_back():
    res = classify(1, True, "", "")
    assert res.message == FALLBACK_ERROR_MESSAGE == "Error running backend"


def test_classify_crash_is_failure_even_with_zero_code():
    res = classify(0, False, "partial", "")
    assert res.ok is False
    assert res.message == FALLBACK_ERROR_MESSAGE


def test_classify_launch_failure():
    res = classify(None, False, "", "", launch_failed=True)
    assert res.kind is FailureKind.LAUNCH_FAILED
    assert res.message == FALLBACK_ERROR_MESSAGE


def test_exit_zero_stdout_is_trimmed(make_invoker, tmp_path):
    invoker = make_invoker("--mode", "print", "--message", "OK: encrypted")
    inv = invoker.invoke(Operation.ENCRYPT, str(tmp_path / "a"), str(tmp_path / "b"), "1234")
    res = inv.wait(WAIT_MS)
    assert res is not None
    assert res.ok is True
    assert res.message == "OK: encrypted"


def test_exit_one_with_empty_stderr_yields_fallback(make_invoker, tmp_path):
    invoker = make_invoker("--mode", "silent-fail")
    res = invoker.invoke("encrypt", str(tmp_path / "a"), str(tmp_path / "b"), "1234").wait(WAIT_MS)
    assert res.ok is False
    assert res.kind is FailureKind.RUNTIME_FAILURE
    assert res.message == "Error running backend"


def test_exit_one_with_stderr_yields_stderr(make_invoker, tmp_path):
    invoker = make_invoker("--mode", "fail", "--message", "bad pin")
    res = invoker.invoke("decrypt", str(tmp_path / "a"), str(tmp_path / "b"), "0000").wait(WAIT_MS)
    assert res.ok is False
    assert res.message == "bad pin"


def test_missing_executable_is_launch_failure(run_log, tmp_path):
    invoker = BackendInvoker(str(tmp_path / "no-such-backend"), run_log=run_log)
    res = invoker.invoke("encrypt", "in", "out", "1234").wait(WAIT_MS)
    assert res is not None
    assert res.ok is False
    assert res.kind is FailureKind.LAUNCH_FAILED
    assert res.message == "Error running backend"


def test_unknown_operation_is_rejected(make_invoker):
    with pytest.raises(ValueError):
        make_invoker().invoke("shred", "in", "out", "1234")


def test_encrypt_then_decrypt_restores_content(make_invoker, tmp_path):
    plain = tmp_path / "notes.txt"
    sealed = tmp_path / "notes.txt.vault"
    restored = tmp_path / "notes.restored.txt"
    plain.write_bytes(b"top secret \x00\xff payload")
    invoker = make_invoker()

    enc = invoker.invoke("encrypt", str(plain), str(sealed), "4821").wait(WAIT_MS)
    assert enc.ok, enc.message
    assert sealed.read_bytes() != plain.read_bytes()

    dec = invoker.invoke("decrypt", str(sealed), str(restored), "4821").wait(WAIT_MS)
    assert dec.ok, dec.message
    assert restored.read_bytes() == plain.read_bytes()


def test_decrypt_with_wrong_pin_reports_backend_error(make_invoker, tmp_path):
    plain = tmp_path / "a.bin"
    sealed = tmp_path / "a.bin.vault"
    plain.write_bytes(b"abc")
    invoker = make_invoker()
    assert invoker.invoke("encrypt", str(plain), str(sealed), "1111").wait(WAIT_MS).ok

    res = invoker.invoke("decrypt", str(sealed), str(tmp_path / "out.bin"), "2222").wait(WAIT_MS)
    assert res.ok is False
    assert res.message == "Wrong PIN"
    assert not (tmp_path / "out.bin").exists()


def test_concurrent_invocations_keep_their_own_results(make_invoker, tmp_path):
    invoker = make_invoker("--sleep", "0.3")
    a_in, b_in = tmp_path / "a.txt", tmp_path / "b.txt"
    a_in.write_bytes(b"a" * 10)
    b_in.write_bytes(b"b" * 20)
    a_out, b_out = tmp_path / "a.vault", tmp_path / "b.vault"

    inv_a = invoker.invoke("encrypt", str(a_in), str(a_out), "1234")
    inv_b = invoker.invoke("encrypt", str(b_in), str(b_out), "9876")
    assert invoker.in_flight() == 2

    res_a = inv_a.wait(WAIT_MS)
    res_b = inv_b.wait(WAIT_MS)

    assert res_a.message == f"Encrypted OK: {a_out}"
    assert res_b.message == f"Encrypted OK: {b_out}"
    assert invoker.in_flight() == 0


def test_finished_is_emitted_exactly_once(qtbot, make_invoker, tmp_path):
    invoker = make_invoker("--mode", "print", "--message", "done")
    inv = invoker.invoke("encrypt", str(tmp_path / "a"), str(tmp_path / "b"), "1234")
    seen = []
    inv.finished.connect(seen.append)
    qtbot.waitUntil(inv.is_done, timeout=WAIT_MS)
    inv.cancel()
    qtbot.wait(50)
    assert len(seen) == 1
    assert seen[0].message == "done"


def test_timeout_kills_slow_backend(make_invoker, tmp_path):
    invoker = make_invoker("--mode", "print", "--message", "late", "--sleep", "10", timeout_ms=200)
    res = invoker.invoke("encrypt", str(tmp_path / "a"), str(tmp_path / "b"), "1234").wait(WAIT_MS)
    assert res.ok is False
    assert res.kind is FailureKind.TIMED_OUT
    assert res.message == "Backend timed out"


def test_cancel_resolves_running_invocation(qtbot, make_invoker, tmp_path):
    invoker = make_invoker("--sleep", "10")
    inv = invoker.invoke("encrypt", str(tmp_path / "a"), str(tmp_path / "b"), "1234")
    with qtbot.waitSignal(inv.finished, timeout=WAIT_MS) as blocker:
        invoker.cancel_all()
    res = blocker.args[0]
    assert res.kind is FailureKind.CANCELLED
    assert res.message == "Backend cancelled"


def test_pin_never_reaches_run_log(make_invoker, run_log, tmp_path):
    invoker = make_invoker("--mode", "print", "--message", "ok")
    invoker.invoke("encrypt", str(tmp_path / "in.txt"), str(tmp_path / "out.vault"), "73915").wait(WAIT_MS)
    text = run_log.path.read_text(encoding="utf-8")
    assert "in.txt" in text
    assert "73915" not in text


def test_wait_that_times_out_leaves_no_extra_connection(make_invoker, tmp_path):
    from PySide6.QtCore import SIGNAL

    invoker = make_invoker("--sleep", "10")
    inv = invoker.invoke("encrypt", str(tmp_path / "a"), str(tmp_path / "b"), "1234")
    before = inv.receivers(SIGNAL("finished(PyObject)"))

    assert inv.wait(50) is None
    assert inv.wait(50) is None
    assert inv.receivers(SIGNAL("finished(PyObject)")) == before

    inv.cancel()
    res = inv.wait(WAIT_MS)
    assert res is not None
    assert res.kind is FailureKind.CANCELLED
