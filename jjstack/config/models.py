"""Pydantic models for the sections of .jjstack.yaml."""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

MergeMethod = Literal['merge', 'squash', 'rebase']

# Unknown keys are kept so newer config files still load
_OPEN = ConfigDict(extra="allow")


class RepoConfig(BaseModel):
    """Where the stack lands and how PRs are merged."""
    model_config = _OPEN

    github_remote: str = "origin"
    github_branch: str = "main"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None
    github_host: str = "github.com"
    merge_method: MergeMethod = "squash"
    # None retries a stale-base merge forever
    stale_retry_limit: Optional[int] = Field(default=None, ge=0)


class UserConfig(BaseModel):
    """Per-user switches."""
    model_config = _OPEN

    log_jj_commands: bool = True


class ToolConfig(BaseModel):
    """Timing of the merge loop, in seconds."""
    model_config = _OPEN

    poll_interval: float = Field(default=5.0, gt=0)
    tick_interval: float = Field(default=0.1, gt=0)


class JJStackConfig(BaseModel):
    model_config = _OPEN

    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)
