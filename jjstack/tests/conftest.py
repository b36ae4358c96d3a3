"""Shared fixtures for jjstack tests."""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from jjstack.config import Config
from jjstack.github import GitHubClient
from jjstack.jj import Change
from jjstack.tests.fake_jj import FakeJJ, make_stack_changes
from jjstack.tests.fake_pygithub import FakeGithub, FakeRepository


def make_config(**tool: Any) -> Config:
    """Config for owner/repo with near-instant re-polls."""
    tool_config: Dict[str, Any] = {'poll_interval': 0.001, 'tick_interval': 0.01}
    tool_config.update(tool)
    return Config({
        'repo': {
            'github_repo_owner': 'owner',
            'github_repo_name': 'repo',
        },
        'user': {'log_jj_commands': False},
        'tool': {'jjstack': tool_config},
    })


class StackEnv:
    """A fake jj repo plus a fake GitHub repo with one open PR per change."""

    def __init__(self, config: Config, count: int, pr_numbers: Optional[Sequence[int]] = None):
        self.config = config
        self.changes: List[Change] = make_stack_changes(count)
        self.jj = FakeJJ(self.changes)
        self.fake_github = FakeGithub()
        self.github = GitHubClient(config, self.fake_github)

        # pr_numbers are given bottom-up; changes are newest first
        numbers = list(pr_numbers) if pr_numbers is not None else [10 + i for i in range(count)]
        for change, number in zip(reversed(self.changes), numbers):
            if number:
                self.repo.create_pull(number, change.git_push_bookmark,
                                      head_sha=change.commit_id,
                                      title=change.description.split("\n")[0])

    @property
    def repo(self) -> FakeRepository:
        return self.fake_github.get_repo("owner/repo")

    def change_for_pr(self, number: int) -> Change:
        head = self.repo.get_pull(number).head.ref
        return next(c for c in self.changes if c.git_push_bookmark == head)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def stack_env(config: Config) -> StackEnv:
    """Three stacked changes with PRs #10 (bottom), #11 and #12 (top)."""
    return StackEnv(config, 3)
