"""Common types and errors used across the codebase."""

from typing import List, NewType, Optional, Protocol, Sequence

# NewType for jj change identifiers
ChangeID = NewType('ChangeID', str)


class CancelToken(Protocol):
    """Protocol for the process-wide cancellation flag (a threading.Event)."""
    def is_set(self) -> bool:
        ...

    def wait(self, timeout: Optional[float] = None) -> bool:
        ...


class JJInterface(Protocol):
    """Protocol for running jj commands."""
    def run_cmd(self, args: Sequence[str]) -> str:
        ...

    def must_jj(self, args: Sequence[str]) -> str:
        ...


class JJStackError(Exception):
    """Base class for errors that end a merge run."""


class PreconditionError(JJStackError):
    """Raised when the stack cannot be merged as loaded."""


class Cancelled(JJStackError):
    """Raised when the run was interrupted between steps."""

    def __init__(self, step: str = ""):
        self.step = step
        super().__init__(f"cancelled before {step}" if step else "cancelled")


class JJCommandError(JJStackError):
    """Raised when a jj invocation exits non-zero."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list: List[str] = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"jj {' '.join(self.args_list)} failed with exit code {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class SyncStepError(JJStackError):
    """A sync step failed. Names the step and the revision or PR it was working on."""

    def __init__(self, step: str, target: Optional[str], cause: Exception):
        self.step = step
        self.target = target
        self.cause = cause
        where = f"{step} {target}" if target else step
        super().__init__(f"{where}: {cause}")


class SyncConflictError(JJStackError):
    """The rebase onto trunk produced conflicts."""

    def __init__(self) -> None:
        super().__init__("sync resulted in conflicts - resolve with 'jj resolve' before merging")


class NotMergeableError(JJStackError):
    """A PR was not ready to merge and waiting was disabled."""

    def __init__(self, pr_number: int, state: str):
        self.pr_number = pr_number
        self.state = state
        super().__init__(
            f"PR #{pr_number} is not mergeable (state: {state}) - use without --no-wait to wait")


class MergeFailedError(JJStackError):
    """GitHub refused to merge a PR for a reason other than a stale base."""

    def __init__(self, pr_number: int, cause: Exception):
        self.pr_number = pr_number
        self.cause = cause
        super().__init__(f"failed to merge PR #{pr_number}: {cause}")
