"""Type definitions for GitHub API responses."""

from typing import Optional
from pydantic import BaseModel

class PullRequest(BaseModel):
    """Summary of an open pull request, keyed by its head branch."""
    number: int
    title: str = ""
    base_ref: str = ""
    head_ref: str = ""
    head_sha: str = ""
    state: str = "open"

class PullRequestStatus(BaseModel):
    """Mergeability fields of a pull request.

    `mergeable` is None while GitHub is still computing it.
    """
    number: int
    mergeable: Optional[bool] = None
    mergeable_state: str = "unknown"
    merged: bool = False
