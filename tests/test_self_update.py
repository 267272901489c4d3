from __future__ import annotations

import os
import stat
from pathlib import Path

import httpx
import pytest

from conftest import FakePrompter
from core.services.self_update import (
    UPDATED_MARKER,
    ManagedFile,
    SelfUpdater,
    UpdateOutcome,
    already_restarted,
    has_shebang,
    unified_diff,
)

BASE = "https://raw.test/main"
SCRIPT = "#!/usr/bin/env bash\necho new\n"


def _updater(routes: dict, reporter, *, confirms=(), restart=None, seen=None) -> SelfUpdater:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        status, body = routes.get(request.url.path, (404, ""))
        return httpx.Response(status, text=body)

    return SelfUpdater(
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        prompter=FakePrompter(confirms=confirms),
        reporter=reporter,
        base_url=BASE,
        restart=restart,
    )


@pytest.fixture(autouse=True)
def _not_restarted(monkeypatch):
    monkeypatch.setenv(UPDATED_MARKER, "0")


def test_helpers():
    assert has_shebang("\n\n#!/bin/sh\n")
    assert not has_shebang("<html>rate limited</html>")
    assert not has_shebang("\n" * 10 + "#!/bin/sh\n")
    diff = unified_diff("a\n", "b\n", "x.sh")
    assert "--- x.sh (local)" in diff and "+b" in diff
    assert already_restarted({UPDATED_MARKER: "1"})
    assert not already_restarted({})


@pytest.mark.parametrize(
    "status, body, message",
    [
        (429, "", "✖ Rate limited by GitHub (HTTP 429)"),
        (404, "", "✖ HTTP 404 error"),
        (200, "<html>nope</html>", "✖ Invalid content received (not a script)"),
    ],
)
def test_download_failures_leave_file_untouched(tmp_path: Path, reporter, status, body, message):
    local = tmp_path / "setup.sh"
    local.write_text("#!/bin/sh\nold\n")
    updater = _updater({"/main/setup.sh": (status, body)}, reporter)

    summary = updater.run([ManagedFile("setup.sh", local)])

    assert summary.failed == 1
    assert reporter.messages("error") == [message]
    assert local.read_text() == "#!/bin/sh\nold\n"


def test_requests_bypass_caches(tmp_path: Path, reporter):
    seen: list[httpx.Request] = []
    updater = _updater({"/main/setup.sh": (200, SCRIPT)}, reporter, seen=seen)

    updater.download(ManagedFile("setup.sh", tmp_path / "setup.sh"))

    assert seen[0].headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert seen[0].headers["pragma"] == "no-cache"


def test_identical_file_is_up_to_date(tmp_path: Path, reporter):
    local = tmp_path / "setup.sh"
    local.write_text(SCRIPT)
    updater = _updater({"/main/setup.sh": (200, SCRIPT)}, reporter)

    assert updater.update_file(ManagedFile("setup.sh", local)) is UpdateOutcome.UP_TO_DATE
    assert updater.prompter.questions == []


def test_declined_update_keeps_local_and_does_not_restart(tmp_path: Path, reporter):
    local = tmp_path / "setup.sh"
    local.write_text("#!/bin/sh\nold\n")
    restarts: list = []
    updater = _updater({"/main/setup.sh": (200, SCRIPT)}, reporter, confirms=[False], restart=restarts.append)

    summary = updater.run([ManagedFile("setup.sh", local)], argv=["setup"])

    assert summary.skipped == 1
    assert local.read_text() == "#!/bin/sh\nold\n"
    assert restarts == []
    assert "⚠ Skipped setup.sh" in reporter.messages("warning")


def test_confirmed_update_replaces_and_restarts_once(tmp_path: Path, reporter):
    script = tmp_path / "setup.sh"
    script.write_text("#!/bin/sh\nold\n")
    notes = tmp_path / "docs" / "notes.txt"
    restarts: list = []
    updater = _updater(
        {"/main/setup.sh": (200, SCRIPT), "/main/docs/notes.txt": (200, "plain text\n")},
        reporter,
        confirms=[True, True],
        restart=restarts.append,
    )

    summary = updater.run([ManagedFile("setup.sh", script), ManagedFile("docs/notes.txt", notes)], argv=["setup", "-v"])

    assert summary.updated == 2
    assert summary.updated_files == [script, notes]
    assert script.read_text() == SCRIPT
    assert stat.S_IMODE(script.stat().st_mode) == 0o755
    assert notes.read_text() == "plain text\n"
    assert restarts == [["setup", "-v"]]
    assert os.environ[UPDATED_MARKER] == "1"


def test_no_restart_loop_after_update(tmp_path: Path, reporter, monkeypatch):
    monkeypatch.setenv(UPDATED_MARKER, "1")
    restarts: list = []
    updater = _updater({"/main/setup.sh": (200, SCRIPT)}, reporter, confirms=[True], restart=restarts.append)

    summary = updater.run([ManagedFile("setup.sh", tmp_path / "setup.sh")], argv=["setup"])

    assert summary.updated == 1
    assert restarts == []
