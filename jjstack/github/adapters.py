"""Wrap PyGithub objects in the protocols GitHubClient is written against."""

import logging
from typing import Any, List, Optional

from github import Auth, Github
from github.GithubObject import NotSet
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.Repository import Repository

from . import GitHubPullRequestProtocol, GitHubRefProtocol, GitHubRepoProtocol, PyGithubProtocol

logger = logging.getLogger(__name__)


def _or_not_set(value: Any) -> Any:
    """PyGithub treats NotSet as "leave out"; map our empty defaults onto it."""
    return value if value else NotSet


class PyGithubPullRequestAdapter(GitHubPullRequestProtocol):
    """Pull request backed by github.PullRequest."""

    def __init__(self, pr: PyGithubPullRequest) -> None:
        self._pr = pr

    @property
    def number(self) -> int:
        return self._pr.number

    @property
    def title(self) -> str:
        return self._pr.title

    @property
    def state(self) -> str:
        return self._pr.state

    @property
    def base(self) -> GitHubRefProtocol:
        return self._pr.base

    @property
    def head(self) -> GitHubRefProtocol:
        return self._pr.head

    @property
    def mergeable(self) -> Optional[bool]:
        return self._pr.mergeable

    @property
    def mergeable_state(self) -> str:
        return self._pr.mergeable_state

    @property
    def merged(self) -> bool:
        return self._pr.merged

    def edit(self, base: Optional[str] = None) -> None:
        self._pr.edit(base=_or_not_set(base))

    def merge(self, commit_title: str = "", merge_method: str = "squash") -> None:
        status = self._pr.merge(commit_title=_or_not_set(commit_title), merge_method=merge_method)
        logger.debug(f"PR #{self.number} merge: merged={status.merged} sha={status.sha}")


class PyGithubRepoAdapter(GitHubRepoProtocol):
    """Repository backed by github.Repository."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        return PyGithubPullRequestAdapter(self._repo.get_pull(number))

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        pulls = self._repo.get_pulls(state=state, head=_or_not_set(head))
        return [PyGithubPullRequestAdapter(pr) for pr in pulls]


class PyGithubAdapter(PyGithubProtocol):
    """Entry point backed by github.Github."""

    def __init__(self, github: Github) -> None:
        self._github = github

    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        return PyGithubRepoAdapter(self._github.get_repo(full_name_or_id))


def create_github(token: str, host: str = "github.com") -> PyGithubAdapter:
    """Create a PyGithub client for github.com or a GitHub Enterprise host."""
    auth = Auth.Token(token)
    if host == "github.com":
        return PyGithubAdapter(Github(auth=auth))
    logger.info(f"Using GitHub Enterprise API at {host}")
    return PyGithubAdapter(Github(base_url=f"https://{host}/api/v3", auth=auth))
