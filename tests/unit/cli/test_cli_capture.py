"""Tests for memdex capture."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from typer.testing import CliRunner

from memdex.capture import CaptureError
from memdex.cli.main import app

runner = CliRunner()


def _run(base: Path, *args: str):
    return runner.invoke(app, [*args, "-C", str(base)])


def _today_log(base: Path) -> Path:
    return base / "memory" / f"{datetime.now():%Y-%m-%d}.md"


# ---------------------------------------------------------------------------
# memdex capture
# ---------------------------------------------------------------------------


def test_capture_writes_session(tmp_path: Path) -> None:
    result = _run(
        tmp_path, "capture", "Billing fixes", "COMPLETE",
        "--tasks", "Retry webhooks, Add keys", "--commit", "abc1234",
    )
    assert result.exit_code == 0, result.output
    assert "Session captured" in result.output
    text = _today_log(tmp_path).read_text(encoding="utf-8")
    assert "## Session: Billing fixes" in text
    assert "**Status:** COMPLETE" in text
    assert "- [x] Retry webhooks\n- [x] Add keys" in text
    assert "| abc1234 | - |" in text


def test_capture_then_search_context_returns_summary(tmp_path: Path) -> None:
    _run(
        tmp_path, "capture", "Stripe webhook hardening", "COMPLETE",
        "--tasks", "Added idempotency keys to webhook retries",
        "--notes", "lunch break chatter",
    )
    assert _run(tmp_path, "index").exit_code == 0

    result = _run(tmp_path, "search", "idempotency webhook retries", "--context")
    assert result.exit_code == 0
    assert "SESSION: Stripe webhook hardening" in result.output
    assert "**Status:** COMPLETE" in result.output
    assert "- [x] Added idempotency keys" in result.output
    assert "lunch break chatter" not in result.output


def test_capture_append_note(tmp_path: Path) -> None:
    result = _run(tmp_path, "capture", "--append", "Remember the staging deploy.")
    assert result.exit_code == 0
    assert "Appended to daily log" in result.output
    assert _today_log(tmp_path).read_text(encoding="utf-8").endswith("Remember the staging deploy.\n")


def test_capture_git_failure_exits_1(tmp_path: Path, monkeypatch) -> None:
    def no_repo(repo_dir):
        raise CaptureError("git log failed: fatal: not a git repository")

    monkeypatch.setattr("memdex.cli.capture.entry_from_git", no_repo)
    result = _run(tmp_path, "capture", "--git")
    assert result.exit_code == 1
    assert "Could not capture session" in result.output
    assert not _today_log(tmp_path).exists()


def test_capture_invalid_config_exits_1(tmp_path: Path) -> None:
    (tmp_path / "memdex.yaml").write_text("sessions:\n  header_prefix: '  '\n", encoding="utf-8")
    result = _run(tmp_path, "capture", "Anything")
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
