from __future__ import annotations

from conftest import FakePrompter, FakeRunner
from core.domain.platform import OSKind
from core.services.openssh import SSHSocketConfigurator


def _enabled(*units: str):
    def answer(cmd):
        return (0, "enabled") if cmd[2] in units else (1, "disabled")

    return answer


def _configurator(reporter, runner, confirms=()) -> SSHSocketConfigurator:
    return SSHSocketConfigurator(runner=runner, prompter=FakePrompter(confirms=confirms), reporter=reporter)


def test_non_linux_and_missing_systemctl_are_skipped(reporter):
    runner = FakeRunner()

    assert not _configurator(reporter, runner).run(OSKind.MACOS)
    assert not _configurator(reporter, runner).run(OSKind.LINUX)
    assert runner.calls == []
    assert "systemctl not found" in reporter.messages("warning")[0]


def test_socket_already_enabled_asks_nothing(reporter):
    runner = FakeRunner(tools=["systemctl"], responses={("systemctl", "is-enabled"): _enabled("ssh.socket")})
    configurator = _configurator(reporter, runner)

    assert configurator.run(OSKind.LINUX)
    assert configurator.prompter.questions == []
    assert not runner.ran("systemctl", "enable")


def test_conflicting_units_disable_the_service(reporter):
    runner = FakeRunner(
        tools=["systemctl"],
        responses={("systemctl", "is-enabled"): _enabled("ssh.socket", "ssh.service")},
    )

    assert _configurator(reporter, runner).run(OSKind.LINUX)
    assert ["systemctl", "disable", "--now", "ssh.service"] in runner.calls
    assert "socket-based activation only" in reporter.text()


def test_switch_from_service_to_socket(reporter):
    runner = FakeRunner(tools=["systemctl"], responses={("systemctl", "is-enabled"): _enabled("ssh.service")})

    assert _configurator(reporter, runner, confirms=[True, False]).run(OSKind.LINUX)
    assert ["systemctl", "disable", "--now", "ssh.service"] in runner.calls
    assert ["systemctl", "enable", "--now", "ssh.socket"] in runner.calls
    assert not runner.ran("systemctl", "edit")


def test_declining_keeps_current_configuration(reporter):
    runner = FakeRunner(tools=["systemctl"], responses={("systemctl", "is-enabled"): _enabled()})

    assert not _configurator(reporter, runner, confirms=[False]).run(OSKind.LINUX)
    assert not runner.ran("systemctl", "enable")
    assert "no changes made" in reporter.messages("info")[-1]


def test_failed_edit_stops_before_enabling(reporter):
    runner = FakeRunner(
        tools=["systemctl"],
        responses={("systemctl", "is-enabled"): _enabled(), ("systemctl", "edit"): (1, "")},
    )

    assert not _configurator(reporter, runner, confirms=[True, True]).run(OSKind.LINUX)
    assert not runner.ran("systemctl", "enable")
    assert "Failed to edit ssh.socket configuration" in reporter.messages("error")
