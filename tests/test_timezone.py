from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import FakePrompter, FakeRunner
from core.domain.platform import OSKind
from core.errors import ToolError, UsageError
from core.services.timezone import TimezoneConfigurator


def _linux_runner(initial: str = "Etc/UTC", *, fail_set: bool = False) -> FakeRunner:
    state = {"zone": initial}

    def show(cmd):
        return 0, state["zone"] + "\n"

    def set_zone(cmd):
        if fail_set:
            return 1, ""
        state["zone"] = cmd[-1]
        return 0, ""

    return FakeRunner(
        responses={
            ("timedatectl", "show"): show,
            ("timedatectl", "set-timezone"): set_zone,
            ("timedatectl", "list-timezones"): (0, "Europe/Berlin\nEurope/London\n"),
        }
    )


def _configurator(runner, reporter, *, confirms=(), asks=(), os_kind=OSKind.LINUX, **kwargs) -> TimezoneConfigurator:
    return TimezoneConfigurator(
        runner=runner,
        prompter=FakePrompter(confirms=confirms, asks=asks),
        reporter=reporter,
        os_kind=os_kind,
        **kwargs,
    )


def test_non_utc_is_left_alone(reporter):
    configurator = _configurator(_linux_runner("Europe/Paris"), reporter)

    assert configurator.run() is None
    assert "Timezone is already configured: Europe/Paris" in reporter.messages("success")
    assert configurator.prompter.questions == []


def test_preset_choice_is_applied_and_verified(reporter):
    runner = _linux_runner()
    configurator = _configurator(runner, reporter, confirms=[True], asks=["2"])

    assert configurator.run() == "America/Chicago"
    assert runner.ran("timedatectl", "set-timezone", "America/Chicago")
    assert "2) Central  (America/Chicago)" in reporter.messages("step")
    assert "Timezone updated to: America/Chicago" in reporter.messages("success")


def test_other_lists_zones_then_asks(reporter):
    configurator = _configurator(_linux_runner(), reporter, confirms=[True], asks=["5", "Europe/London"])

    assert configurator.run() == "Europe/London"
    assert "Europe/Berlin" in reporter.messages("step")


def test_invalid_choice_and_empty_zone(reporter):
    with pytest.raises(UsageError, match="Invalid choice"):
        _configurator(_linux_runner(), reporter, confirms=[True], asks=["9"]).run()
    with pytest.raises(UsageError, match="No timezone entered"):
        _configurator(_linux_runner(), reporter, confirms=[True], asks=["5", "  "]).run()


def test_declined_keeps_utc(reporter):
    runner = _linux_runner()

    assert _configurator(runner, reporter, confirms=[False]).run() is None
    assert not runner.ran("timedatectl", "set-timezone")
    assert "Keeping timezone as UTC" in reporter.messages("info")


def test_set_failure_is_tool_error(reporter):
    with pytest.raises(ToolError, match="Failed to set timezone"):
        _configurator(_linux_runner(fail_set=True), reporter, confirms=[True], asks=["1"]).run()


def test_macos_reads_localtime_symlink(tmp_path: Path, reporter):
    localtime = tmp_path / "localtime"
    os.symlink("/var/db/timezone/zoneinfo/America/Denver", localtime)

    configurator = _configurator(FakeRunner(), reporter, os_kind=OSKind.MACOS, localtime=localtime)

    assert configurator.current() == "America/Denver"
