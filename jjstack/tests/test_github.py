"""Tests for the GitHub client."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jjstack.github import GitHubClient, find_github_token
from jjstack.github.adapters import PyGithubPullRequestAdapter
from jjstack.tests.conftest import StackEnv, make_config
from jjstack.tests.fake_pygithub import FakeGithub


def test_pull_request_url(stack_env: StackEnv) -> None:
    assert stack_env.github.pull_request_url(7) == "https://github.com/owner/repo/pull/7"


def test_find_prs_by_branch(stack_env: StackEnv) -> None:
    branches = [c.git_push_bookmark for c in stack_env.changes]

    prs = stack_env.github.get_pull_requests_for_branches(branches + ["push-unknown"])

    assert sorted(pr.number for pr in prs.values()) == [10, 11, 12]
    assert "push-unknown" not in prs
    pr = prs[stack_env.change_for_pr(10).git_push_bookmark]
    assert pr.head_sha == stack_env.change_for_pr(10).commit_id
    assert pr.base_ref == "main"


def test_closed_prs_are_ignored(stack_env: StackEnv) -> None:
    stack_env.repo.get_pull(10).state = "closed"
    branch = stack_env.change_for_pr(10).git_push_bookmark
    assert stack_env.github.get_pull_requests_for_branches([branch]) == {}


def test_head_must_match_exactly() -> None:
    repo = MagicMock()
    other = MagicMock(number=3, title="t", state="open")
    other.head.ref = "push-abcdef-2"
    repo.get_pulls.return_value = [other]
    client = GitHubClient(make_config(), FakeGithub())
    client.repo = repo

    assert client.get_pull_requests_for_branches(["push-abcdef"]) == {}
    repo.get_pulls.assert_called_once_with(state="open", head="owner:push-abcdef")


def test_get_pull_request_status(stack_env: StackEnv) -> None:
    stack_env.repo.get_pull(11).readiness = [(None, "")]
    status = stack_env.github.get_pull_request(11)
    assert status.mergeable is None
    assert status.mergeable_state == "unknown"
    assert not status.merged


def test_update_base_only_when_different(stack_env: StackEnv) -> None:
    stack_env.github.update_pull_request_base(10, "main")
    stack_env.github.update_pull_request_base(11, "release")
    assert stack_env.repo.base_updates == [(11, "release")]


def test_merge_uses_configured_method(stack_env: StackEnv) -> None:
    stack_env.config.repo.merge_method = "rebase"
    stack_env.github.merge_pull_request(10)
    stack_env.github.merge_pull_request(11, merge_method="merge")
    assert stack_env.repo.merged == [(10, "rebase"), (11, "merge")]


def test_missing_repo_name() -> None:
    config = make_config()
    config.repo.github_repo_name = None
    client = GitHubClient(config, FakeGithub())
    with pytest.raises(ValueError):
        client.get_pull_request(1)


def test_pull_request_adapter_converts_empty_args() -> None:
    from github.GithubObject import NotSet

    pr = MagicMock()
    PyGithubPullRequestAdapter(pr).merge(commit_title="", merge_method="squash")
    pr.merge.assert_called_once_with(commit_title=NotSet, merge_method="squash")


def test_pull_request_adapter_edit_base() -> None:
    pr = MagicMock()
    PyGithubPullRequestAdapter(pr).edit(base="main")
    pr.edit.assert_called_once_with(base="main")


class TestFindToken:
    def test_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "tok")
        assert find_github_token() == "tok"

    def test_gh_hosts_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv("GH_CONFIG_DIR", str(tmp_path))
        (tmp_path / "hosts.yml").write_text("github.com:\n  oauth_token: from-gh\n  user: me\n")
        assert find_github_token() == "from-gh"

    def test_gh_hosts_file_other_host(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv("GH_CONFIG_DIR", str(tmp_path))
        (tmp_path / "hosts.yml").write_text(
            "github.com:\n  oauth_token: public\n"
            "ghe.example.com:\n  oauth_token: enterprise\n")
        assert find_github_token("ghe.example.com") == "enterprise"
        assert find_github_token("other.example.com") is None

    def test_nothing_found(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv("GH_CONFIG_DIR", str(tmp_path))
        assert find_github_token() is None
