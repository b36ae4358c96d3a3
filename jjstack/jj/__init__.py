"""jj interfaces and implementation."""

import os
import subprocess
import logging
from typing import List, Optional, Sequence
from pydantic import BaseModel, ValidationError

from ..config.models import JJStackConfig
from ..typing import ChangeID, JJCommandError, JJInterface

# Get module logger
logger = logging.getLogger(__name__)

# One JSON object per line; %s is replaced by the push bookmark template
LOG_TEMPLATE = (
    r'"{\"id\": \"" ++ change_id ++ "\", '
    r'\"short_id\": \"" ++ change_id.shortest() ++ "\", '
    r'\"commit_id\": \"" ++ commit_id ++ "\", '
    r'\"immutable\": " ++ immutable ++ ", '
    r'\"description\": " ++ json(description) ++ ", '
    r'\"git_push_bookmark\": \"" ++ %s ++ "\"}\n"'
)

TRUNK_TEMPLATE = r'remote_bookmarks.map(|b| b.name() ++ "@" ++ b.remote()).join("\n") ++ "\n"'

# jj's built-in default for templates.git_push_bookmark
DEFAULT_PUSH_BOOKMARK = '"push-" ++ change_id.short()'

# Mutable changes from trunk up to the selected revision, minus a trailing
# empty working-copy change
STACK_REVSET = 'trunk()..({revset}) ~ (empty() & description(exact:""))'

class Change(BaseModel):
    """A single jj change as read from `jj log`."""
    id: str
    short_id: str = ""
    commit_id: str = ""
    immutable: bool = False
    description: str = ""
    git_push_bookmark: str = ""

class StackInfo(BaseModel):
    """Changes of a stack in display order (newest first) plus the trunk bookmark name."""
    changes: List[Change]
    trunk_name: str

class RebaseResult(BaseModel):
    """Outcome of a rebase."""
    has_conflict: bool = False

def parse_changes(output: str) -> List[Change]:
    """Parse `jj log` output produced with LOG_TEMPLATE."""
    changes: List[Change] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            changes.append(Change.model_validate_json(line))
        except ValidationError as e:
            raise ValueError(f"Unexpected jj log output line {line!r}: {e}") from e
    return changes

def parse_trunk_name(output: str, remote: str, default: str) -> str:
    """Pick the trunk bookmark tracked on `remote` from `name@remote` lines."""
    for line in output.splitlines():
        name, _, bookmark_remote = line.strip().rpartition("@")
        if name and bookmark_remote == remote:
            return name
    logger.debug(f"No bookmark on trunk() for remote {remote}, using {default}")
    return default

def get_template(jj_cmd: JJInterface, name: str) -> str:
    """Read a template alias from jj config."""
    try:
        return jj_cmd.must_jj(["config", "get", f"templates.{name}"]).strip()
    except JJCommandError as e:
        raise JJCommandError(e.args_list, e.returncode, f"get template {name!r}: {e.stderr}") from e

def get_changes(jj_cmd: JJInterface, revset: str) -> List[Change]:
    """Read the changes in a revset, newest first."""
    try:
        push_bookmark = get_template(jj_cmd, "git_push_bookmark")
    except JJCommandError:
        logger.debug("No git_push_bookmark template configured, using jj default")
        push_bookmark = DEFAULT_PUSH_BOOKMARK
    output = jj_cmd.must_jj(["log", "--no-graph", "-r", revset, "-T", LOG_TEMPLATE % push_bookmark])
    return parse_changes(output)

def get_stack_info(config: JJStackConfig, jj_cmd: JJInterface, revset: str) -> StackInfo:
    """Load the stack ending at `revset` and the name of the trunk it is based on."""
    changes = get_changes(jj_cmd, STACK_REVSET.format(revset=revset))
    trunk_output = jj_cmd.must_jj(["log", "--no-graph", "-r", "trunk()", "-T", TRUNK_TEMPLATE])
    trunk_name = parse_trunk_name(trunk_output, config.repo.github_remote, config.repo.github_branch)
    logger.info(f"Loaded {len(changes)} changes on top of {trunk_name}")
    return StackInfo(changes=changes, trunk_name=trunk_name)

def git_fetch(jj_cmd: JJInterface) -> None:
    """Fetch all remotes."""
    jj_cmd.must_jj(["git", "fetch"])

def rebase(jj_cmd: JJInterface, change_id: ChangeID, destination: str) -> RebaseResult:
    """Rebase a change and its descendants onto destination.

    jj always completes a rebase, recording conflicts in the rewritten
    commits, so conflicts are detected by asking for conflicted descendants.
    """
    jj_cmd.must_jj(["rebase", "-s", change_id, "-d", destination])
    conflicted = jj_cmd.must_jj(
        ["log", "--no-graph", "-r", f"({change_id}):: & conflicts()", "-T", r'change_id ++ "\n"'])
    if conflicted.strip():
        logger.warning(f"Rebase of {change_id[:8]} left conflicts in: {' '.join(conflicted.split())}")
        return RebaseResult(has_conflict=True)
    return RebaseResult()

def git_push(jj_cmd: JJInterface, change_id: ChangeID) -> None:
    """Push the bookmark of a single change."""
    jj_cmd.must_jj(["git", "push", "--change", change_id])

def get_remote_url(jj_cmd: JJInterface, name: str) -> Optional[str]:
    """Find the URL of a git remote known to jj."""
    output = jj_cmd.must_jj(["git", "remote", "list"])
    for line in output.splitlines():
        parts = line.split(None, 1)
        if len(parts) == 2 and parts[0] == name:
            return parts[1].strip()
    return None

class RealJJ:
    """Real jj implementation backed by the jj CLI."""
    def __init__(self, config: JJStackConfig, cwd: Optional[str] = None):
        """Initialize with config."""
        self.config = config
        self.cwd = cwd or os.getcwd()

    def run_cmd(self, args: Sequence[str]) -> str:
        """Run jj command and return stdout."""
        cmd_args = ["--no-pager", "--color=never", *args]
        if self.config.user.log_jj_commands:
            logger.info(f"> jj {' '.join(args)}")
        try:
            result = subprocess.run(["jj", *cmd_args], cwd=self.cwd,
                                    capture_output=True, text=True)
        except FileNotFoundError:
            raise JJCommandError(args, 127, "jj executable not found on PATH")
        if result.returncode != 0:
            raise JJCommandError(args, result.returncode, result.stderr)
        if result.stderr.strip():
            logger.debug(f"jj stderr: {result.stderr.strip()}")
        return result.stdout

    def must_jj(self, args: Sequence[str]) -> str:
        """Run jj command, failing on error."""
        return self.run_cmd(args)
