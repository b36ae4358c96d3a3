"""GitHub interfaces and implementation."""

import os
import logging
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..config.models import JJStackConfig, MergeMethod
from ..util import ensure
from .types import PullRequest, PullRequestStatus

# Get module logger
logger = logging.getLogger(__name__)

# The slice of the PyGithub object model jjstack touches. Real objects are
# wrapped by the adapters module; tests pass in-memory fakes.
@runtime_checkable
class GitHubRefProtocol(Protocol):
    """A PR's base or head: branch name plus the commit it points at."""
    @property
    def ref(self) -> str:
        ...

    @property
    def sha(self) -> str:
        ...

@runtime_checkable
class GitHubPullRequestProtocol(Protocol):
    """A pull request as far as landing it is concerned."""
    @property
    def number(self) -> int:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def state(self) -> str:
        """'open' or 'closed'."""
        ...

    @property
    def base(self) -> GitHubRefProtocol:
        ...

    @property
    def head(self) -> GitHubRefProtocol:
        ...

    @property
    def mergeable(self) -> Optional[bool]:
        """None while GitHub is still computing it."""
        ...

    @property
    def mergeable_state(self) -> str:
        """REST mergeable_state: clean, blocked, behind, dirty, unstable, ..."""
        ...

    @property
    def merged(self) -> bool:
        ...

    def edit(self, base: Optional[str] = None) -> None:
        """Retarget the pull request onto another base branch."""
        ...

    def merge(self, commit_title: str = "", merge_method: str = "squash") -> None:
        """Merge; raises on refusal (stale head, failing checks, ...)."""
        ...

@runtime_checkable
class GitHubRepoProtocol(Protocol):
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        ...

    def get_pulls(self, state: str = "open", head: str = "") -> List[GitHubPullRequestProtocol]:
        """List pull requests, optionally filtered by `owner:branch` head."""
        ...

@runtime_checkable
class PyGithubProtocol(Protocol):
    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        ...

def find_github_token(host: str = "github.com") -> Optional[str]:
    """Find a token for host: GITHUB_TOKEN, GH_TOKEN, then the gh CLI hosts.yml."""
    import yaml
    from pathlib import Path

    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if token:
        return token

    config_dir = os.environ.get("GH_CONFIG_DIR") or str(Path.home() / ".config" / "gh")
    hosts_path = Path(config_dir) / "hosts.yml"
    if not hosts_path.exists():
        return None
    try:
        with open(hosts_path, "r") as f:
            hosts = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error reading {hosts_path}: {e}")
        return None
    host_entry = hosts.get(host) if isinstance(hosts, dict) else None
    if isinstance(host_entry, dict) and isinstance(host_entry.get("oauth_token"), str):
        return host_entry["oauth_token"]
    logger.debug(f"No oauth_token for {host} in {hosts_path}")
    return None


class GitHubClient:
    """GitHub client implementation."""
    def __init__(self, config: JJStackConfig, github_client: PyGithubProtocol):
        """Initialize with config and GitHub client implementation.

        Args:
            config: The configuration
            github_client: GitHub client implementation (real or fake)
        """
        self.config = config
        self.client = github_client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def repo(self) -> GitHubRepoProtocol:
        """Get GitHub repository."""
        if self._repo is None:
            owner = self.config.repo.github_repo_owner
            name = self.config.repo.github_repo_name
            if not owner or not name:
                raise ValueError("GitHub repo owner/name unknown - set repo.github_repo_owner "
                                 "and repo.github_repo_name in .jjstack.yaml")
            self._repo = self.client.get_repo(f"{owner}/{name}")
        return ensure(self._repo)

    @repo.setter
    def repo(self, value: GitHubRepoProtocol) -> None:
        """Set the GitHub repository."""
        self._repo = value

    def pull_request_url(self, number: int) -> str:
        """Browser URL of a pull request."""
        host = self.config.repo.github_host
        owner = self.config.repo.github_repo_owner
        name = self.config.repo.github_repo_name
        return f"https://{host}/{owner}/{name}/pull/{number}"

    def get_pull_requests_for_branches(self, branches: Sequence[str]) -> Dict[str, PullRequest]:
        """Find the open pull request for each head branch.

        Branches without an open PR are left out of the result.
        """
        owner = self.config.repo.github_repo_owner
        result: Dict[str, PullRequest] = {}
        for branch in branches:
            logger.info(f"> github find PR for {branch}")
            for pr in self.repo.get_pulls(state='open', head=f"{owner}:{branch}"):
                # The head filter is a prefix match on some hosts, so check exactly
                if pr.head.ref != branch:
                    continue
                result[branch] = PullRequest(
                    number=pr.number,
                    title=pr.title,
                    base_ref=pr.base.ref,
                    head_ref=pr.head.ref,
                    head_sha=pr.head.sha,
                    state=pr.state,
                )
                logger.debug(f"  PR #{pr.number}: base={pr.base.ref} head={pr.head.ref}")
                break
        return result

    def get_pull_request(self, number: int) -> PullRequestStatus:
        """Fetch the mergeability fields of a pull request."""
        logger.info(f"> github get #{number}")
        gh_pr = self.repo.get_pull(number)
        status = PullRequestStatus(
            number=number,
            mergeable=gh_pr.mergeable,
            mergeable_state=gh_pr.mergeable_state or "unknown",
            merged=gh_pr.merged,
        )
        logger.debug(f"  PR #{number}: mergeable={status.mergeable} state={status.mergeable_state}")
        return status

    def update_pull_request_base(self, number: int, base: str) -> None:
        """Retarget a pull request onto another base branch."""
        gh_pr = self.repo.get_pull(number)
        current_base = gh_pr.base.ref
        if current_base == base:
            logger.debug(f"PR #{number} already targets {base}")
            return
        logger.info(f"> github update #{number} base {current_base} -> {base}")
        gh_pr.edit(base=base)

    def merge_pull_request(self, number: int, title: str = "",
                           merge_method: Optional[MergeMethod] = None) -> None:
        """Merge a pull request. An empty title keeps GitHub's default commit title."""
        method = merge_method or self.config.repo.merge_method
        logger.info(f"> github merge #{number} ({method})")
        gh_pr = self.repo.get_pull(number)
        gh_pr.merge(commit_title=title, merge_method=method)
