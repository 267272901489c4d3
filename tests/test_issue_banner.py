from __future__ import annotations

from pathlib import Path

import pytest

from core.domain.platform import OSKind
from core.services.config_updater import ConfigSession
from core.services.issue_banner import (
    IssueBannerConfigurator,
    current_interfaces,
    displayed_interfaces,
    render_box,
)


@pytest.fixture
def sys_net(tmp_path: Path) -> Path:
    root = tmp_path / "net"
    for name in ("lo", "veth9", "wlan0", "eth0", "docker0"):
        (root / name).mkdir(parents=True)
    (root / "wlan0" / "wireless").mkdir()
    return root


def _configurator(tmp_path, reporter, fixed_clock, sys_net) -> IssueBannerConfigurator:
    return IssueBannerConfigurator(
        reporter=reporter,
        session=ConfigSession(reporter=reporter, os_kind=OSKind.LINUX, clock=fixed_clock),
        issue_file=tmp_path / "issue",
        sys_net=sys_net,
    )


def test_interfaces_are_ordered_wired_first(sys_net: Path):
    assert current_interfaces(sys_net) == [("eth0", "wire"), ("wlan0", "wifi"), ("docker0", "docker")]


def test_box_lists_ip_escapes_per_interface():
    box = render_box([("eth0", "wire")])

    assert box[1] == "  ║ Network Interfaces"
    assert box[3] == "  ║ - wire: \\4{eth0} / \\6{eth0} (eth0)"
    assert displayed_interfaces(box) == ["eth0"]


def test_box_is_appended_then_left_alone(tmp_path: Path, reporter, fixed_clock, sys_net: Path):
    issue = tmp_path / "issue"
    issue.write_text("Debian GNU/Linux 13 \\n \\l\n")
    configurator = _configurator(tmp_path, reporter, fixed_clock, sys_net)

    assert configurator.run(os_kind=OSKind.LINUX, in_container=False)
    lines = issue.read_text().splitlines()
    assert lines[0] == "Debian GNU/Linux 13 \\n \\l"
    assert sorted(displayed_interfaces(lines)) == ["docker0", "eth0", "wlan0"]

    assert not configurator.run(os_kind=OSKind.LINUX, in_container=False)
    assert "already up-to-date" in reporter.messages("success")[-1]


def test_changed_interfaces_replace_only_the_box(tmp_path: Path, reporter, fixed_clock, sys_net: Path):
    issue = tmp_path / "issue"
    issue.write_text("\n".join(["Welcome", "", *render_box([("eth9", "wire")]), "Footer"]) + "\n")

    assert _configurator(tmp_path, reporter, fixed_clock, sys_net).run(os_kind=OSKind.LINUX, in_container=False)
    lines = issue.read_text().splitlines()
    assert lines[:2] == ["Welcome", ""]
    assert lines[-1] == "Footer"
    assert "eth9" not in issue.read_text()
    assert sum("Network Interfaces" in line for line in lines) == 1
    assert list(tmp_path.glob("issue.backup.*.bak"))


def test_containers_are_skipped(tmp_path: Path, reporter, fixed_clock, sys_net: Path):
    configurator = _configurator(tmp_path, reporter, fixed_clock, sys_net)

    assert not configurator.run(os_kind=OSKind.LINUX, in_container=True)
    assert not (tmp_path / "issue").exists()
