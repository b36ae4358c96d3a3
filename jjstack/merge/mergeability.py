"""Classify whether a pull request can be merged right now."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..github import GitHubClient

logger = logging.getLogger(__name__)

CLEAN_STATE = "clean"

# GitHub REST mergeable_state values
_STATE_REASONS = {
    "dirty": "has merge conflicts that must be resolved manually",
    "blocked": "is blocked by failing checks or branch protection",
    "behind": "is behind its base branch",
    "unstable": "has failing non-required checks",
    "unknown": "mergeability is still being computed",
    "draft": "is a draft",
    "has_hooks": "is waiting on pre-receive hooks",
}


@dataclass(frozen=True)
class MergeReadiness:
    """Result of one mergeability poll."""
    pr_number: int
    ready: bool
    mergeable: Optional[bool]
    state: str


def is_ready(mergeable: Optional[bool], state: str) -> bool:
    """Ready only when GitHub says mergeable and the state is clean."""
    return mergeable is True and state == CLEAN_STATE


def describe_state(state: str) -> str:
    """Human readable reason for a mergeable_state."""
    return _STATE_REASONS.get(state, f"is in state {state!r}")


def check_mergeable(github: GitHubClient, pr_number: int) -> MergeReadiness:
    """Poll GitHub once for a PR's merge readiness. API errors propagate."""
    status = github.get_pull_request(pr_number)
    ready = is_ready(status.mergeable, status.mergeable_state)
    if not ready:
        logger.info(f"PR #{pr_number} {describe_state(status.mergeable_state)}")
    return MergeReadiness(pr_number=pr_number, ready=ready,
                          mergeable=status.mergeable, state=status.mergeable_state)
