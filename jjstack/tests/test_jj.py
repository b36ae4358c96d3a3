"""Tests for the jj backend helpers."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from jjstack import jj
from jjstack.config import default_config
from jjstack.tests.fake_jj import FakeJJ, make_change, make_stack_changes
from jjstack.typing import ChangeID, JJCommandError


def test_parse_changes() -> None:
    changes = make_stack_changes(2)
    output = "".join(c.model_dump_json() + "\n" for c in changes) + "\n"
    assert jj.parse_changes(output) == changes


def test_parse_changes_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        jj.parse_changes("not json\n")


@pytest.mark.parametrize("output,expected", [
    ("main@origin\nmain@git\n", "main"),
    ("trunk@upstream\nmaster@origin\n", "master"),
    ("feature/x@origin\n", "feature/x"),
    ("", "main"),
    ("main@git\n", "main"),
])
def test_parse_trunk_name(output: str, expected: str) -> None:
    assert jj.parse_trunk_name(output, "origin", "main") == expected


def test_get_stack_info_uses_default_bookmark_template() -> None:
    fake = FakeJJ(make_stack_changes(2), trunk_name="develop")

    info = jj.get_stack_info(default_config(), fake, "@-")

    assert info.trunk_name == "develop"
    assert len(info.changes) == 2
    log_cmd = next(c for c in fake.calls if c[0] == "log")
    assert log_cmd[3] == jj.STACK_REVSET.format(revset="@-")
    assert log_cmd[5] == jj.LOG_TEMPLATE % jj.DEFAULT_PUSH_BOOKMARK


def test_get_changes_uses_configured_template() -> None:
    fake = FakeJJ([make_change(0)], push_bookmark_template='"jj/" ++ change_id.short()')
    jj.get_changes(fake, "@")
    assert fake.calls[-1][5] == jj.LOG_TEMPLATE % '"jj/" ++ change_id.short()'


def test_rebase_reports_conflicts() -> None:
    change = make_change(0)
    fake = FakeJJ([change])
    assert not jj.rebase(fake, ChangeID(change.id), "trunk()").has_conflict
    fake.conflicted.add(change.id)
    assert jj.rebase(fake, ChangeID(change.id), "trunk()").has_conflict


def test_get_remote_url() -> None:
    fake = FakeJJ(remote_url="https://github.com/owner/repo.git")
    assert jj.get_remote_url(fake, "origin") == "https://github.com/owner/repo.git"
    assert jj.get_remote_url(fake, "upstream") is None


class TestRealJJ:
    @patch("jjstack.jj.subprocess.run")
    def test_runs_jj_without_pager(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout="out\n", stderr="")
        real = jj.RealJJ(default_config(), cwd="/repo")

        assert real.must_jj(["git", "fetch"]) == "out\n"

        args, kwargs = mock_run.call_args
        assert args[0] == ["jj", "--no-pager", "--color=never", "git", "fetch"]
        assert kwargs["cwd"] == "/repo"

    @patch("jjstack.jj.subprocess.run")
    def test_nonzero_exit_raises(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 1, stdout="", stderr="Error: no such revision\n")
        real = jj.RealJJ(default_config(), cwd="/repo")

        with pytest.raises(JJCommandError) as exc_info:
            real.run_cmd(["rebase", "-s", "xyz", "-d", "trunk()"])

        err = exc_info.value
        assert err.returncode == 1
        assert err.stderr == "Error: no such revision"
        assert str(err) == ("jj rebase -s xyz -d trunk() failed with exit code 1: "
                            "Error: no such revision")

    @patch("jjstack.jj.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        with pytest.raises(JJCommandError) as exc_info:
            jj.RealJJ(default_config(), cwd="/repo").run_cmd(["root"])
        assert exc_info.value.returncode == 127
