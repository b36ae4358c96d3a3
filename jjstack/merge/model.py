"""Merge orchestrator state machine.

`MergeModel.update` is the only function that mutates the run state. It takes
one message, changes the stack and phase, and returns at most one command for
the event loop to run next.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional, Type

from .. import jj
from ..config.models import JJStackConfig
from ..github import GitHubClient
from ..stack import Revision, Stack, SyncState, new_stack
from ..typing import (CancelToken, Cancelled, JJInterface, MergeFailedError, NotMergeableError,
                      PreconditionError, SyncConflictError, SyncStepError)
from .mergeability import check_mergeable
from .messages import (Command, CommandFailed, Confirm, Interrupted, LoadComplete, MergeComplete,
                       MergeableCheck, Message, Quit, SyncComplete, Tick)
from .sync import sync_remaining

logger = logging.getLogger(__name__)

# Substrings of GitHub merge errors caused by the base moving under us
STALE_MERGE_PHRASES = ("out of date", "head branch was modified")


class Phase(Enum):
    """Phase of the merge workflow."""
    LOADING = "loading"
    CONFIRMATION = "confirmation"
    SYNCING = "syncing"
    WAITING_FOR_MERGEABLE = "waiting_for_mergeable"
    MERGING = "merging"
    SYNCING_AFTER_MERGE = "syncing_after_merge"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_PHASES = (Phase.COMPLETE, Phase.ERROR)


def is_stale_merge_error(err: Exception) -> bool:
    """Whether a merge failed because the PR branch is behind its base."""
    text = str(err).lower()
    return any(phrase in text for phrase in STALE_MERGE_PHRASES)


class MergeModel:
    """Run state of one merge invocation."""

    def __init__(self, config: JJStackConfig, jj_cmd: JJInterface, github: GitHubClient,
                 revset: str = "@", no_wait: bool = False,
                 cancel: Optional[CancelToken] = None):
        self.config = config
        self.jj_cmd = jj_cmd
        self.github = github
        self.revset = revset
        self.no_wait = no_wait
        self.cancel: CancelToken = cancel if cancel is not None else threading.Event()

        self.phase = Phase.LOADING
        self.stack = Stack()
        self.trunk_name = ""
        self.err: Optional[Exception] = None
        self.quit = False

        # Position from the bottom of the stack, 0 = first to merge
        self.current_index = 0
        self.merged_count = 0
        self.stale_retries = 0
        self.spinner_frame = 0

        self._handlers: Dict[Type[Message], Callable[..., Optional[Command]]] = {
            LoadComplete: self._on_load_complete,
            Confirm: self._on_confirm,
            Quit: self._on_quit,
            SyncComplete: self._on_sync_complete,
            MergeableCheck: self._on_mergeable_check,
            MergeComplete: self._on_merge_complete,
            Tick: self._on_tick,
            Interrupted: self._on_interrupted,
            CommandFailed: self._on_command_failed,
        }

    @property
    def done(self) -> bool:
        return self.quit or self.phase in TERMINAL_PHASES

    def total(self) -> int:
        return len(self.stack.mutable_revisions())

    def current_revision(self) -> Optional[Revision]:
        """The revision being landed, or None once everything is merged."""
        if self.current_index >= self.total():
            return None
        return self.stack.revision_at(self.current_index)

    def init(self) -> Command:
        """First command of the run."""
        return self.load()

    def update(self, msg: Message) -> Optional[Command]:
        """Apply one message and return the next command, if any."""
        handler = self._handlers.get(type(msg))
        if handler is None:
            raise TypeError(f"Unexpected message {msg!r}")
        if self.done and not isinstance(msg, Tick):
            logger.debug(f"Ignoring {type(msg).__name__} after the run finished")
            return None
        return handler(msg)

    # Handlers

    def _on_tick(self, msg: Tick) -> None:
        self.spinner_frame += 1

    def _on_quit(self, msg: Quit) -> None:
        self.quit = True

    def _on_interrupted(self, msg: Interrupted) -> None:
        self._fail(Cancelled())

    def _on_command_failed(self, msg: CommandFailed) -> None:
        logger.error(f"Command '{msg.description}' raised: {msg.err}")
        self._fail(msg.err)

    def _on_load_complete(self, msg: LoadComplete) -> None:
        if msg.err is not None:
            self._fail(msg.err)
            return None

        self.trunk_name = msg.trunk_name
        self.stack = new_stack(msg.changes, msg.trunk_name)

        for rev in self.stack.mutable_revisions():
            pr = msg.existing_prs.get(rev.change.git_push_bookmark)
            if pr is None:
                rev.needs_sync = True
                continue
            rev.pr_number = pr.number
            rev.needs_sync = pr.head_sha != rev.change.commit_id

        mutable_revs = self.stack.mutable_revisions()
        for rev in mutable_revs:
            if rev.pr_number == 0:
                self._fail(PreconditionError(
                    f"revision {rev.short_id} has no PR - submit the stack before merging"),
                    revision=rev, status="No pull request")
                return None

        if not mutable_revs:
            self._fail(PreconditionError("no revisions to merge"))
            return None

        logger.info(f"{len(mutable_revs)} PR(s) to merge, "
                    f"{self.stack.revisions_needing_sync()} need sync")
        self.phase = Phase.CONFIRMATION
        return None

    def _on_confirm(self, msg: Confirm) -> Optional[Command]:
        if self.phase is not Phase.CONFIRMATION:
            logger.debug(f"Ignoring confirmation in phase {self.phase.value}")
            return None
        self.phase = Phase.SYNCING
        self.current_index = 0
        self._set_current(SyncState.IN_PROGRESS, f"Rebasing onto {self.trunk_name} and pushing...")
        return self._sync_cmd()

    def _on_sync_complete(self, msg: SyncComplete) -> Optional[Command]:
        if self.phase not in (Phase.SYNCING, Phase.SYNCING_AFTER_MERGE):
            logger.debug(f"Ignoring sync result in phase {self.phase.value}")
            return None
        if msg.err is not None:
            self._fail(msg.err)
            return None
        if msg.has_conflict:
            self._fail(SyncConflictError(), status="Conflicts after rebase")
            return None
        if self.current_revision() is None:
            self.phase = Phase.COMPLETE
            return None
        self._set_current(SyncState.IN_PROGRESS, "Checking if mergeable...")
        return self._check_mergeable_cmd()

    def _on_mergeable_check(self, msg: MergeableCheck) -> Optional[Command]:
        if self.phase not in (Phase.SYNCING, Phase.SYNCING_AFTER_MERGE, Phase.WAITING_FOR_MERGEABLE):
            logger.debug(f"Ignoring mergeable check in phase {self.phase.value}")
            return None
        rev = self.current_revision()
        if rev is None or rev.pr_number != msg.pr_number:
            logger.warning(f"Ignoring mergeable check for PR #{msg.pr_number}")
            return None
        if msg.err is not None:
            self._fail(msg.err)
            return None

        if msg.mergeable:
            self.phase = Phase.MERGING
            self._set_current(SyncState.IN_PROGRESS, "Merging...")
            return self._merge_cmd(msg.pr_number)

        if self.no_wait:
            self._fail(NotMergeableError(msg.pr_number, msg.merge_state),
                       status=f"Not mergeable ({msg.merge_state})")
            return None

        self.phase = Phase.WAITING_FOR_MERGEABLE
        self._set_current(SyncState.IN_PROGRESS,
                          f"Waiting for PR to be mergeable ({msg.merge_state})...")
        return self._check_mergeable_cmd(delay=self.config.tool.poll_interval)

    def _on_merge_complete(self, msg: MergeComplete) -> Optional[Command]:
        if self.phase is not Phase.MERGING:
            logger.debug(f"Ignoring merge result in phase {self.phase.value}")
            return None

        if msg.err is not None:
            if is_stale_merge_error(msg.err):
                return self._retry_stale_merge(msg)
            self._fail(MergeFailedError(msg.pr_number, msg.err))
            return None

        self._set_current(SyncState.SUCCESS, "")
        self.merged_count += 1
        self.current_index += 1
        self.stale_retries = 0
        logger.info(f"Merged PR #{msg.pr_number} ({self.merged_count}/{self.total()})")

        if self.current_index >= self.total():
            self.phase = Phase.COMPLETE
            return None

        # Rebase what is left onto the trunk that now contains the merge
        self.phase = Phase.SYNCING_AFTER_MERGE
        self._set_current(SyncState.IN_PROGRESS, f"Rebasing onto {self.trunk_name} and pushing...")
        return self._sync_cmd()

    def _retry_stale_merge(self, msg: MergeComplete) -> Optional[Command]:
        limit = self.config.repo.stale_retry_limit
        if limit is not None and self.stale_retries >= limit:
            self._fail(MergeFailedError(msg.pr_number, msg.err or Exception("stale base")),
                       status=f"Still out of date after {self.stale_retries} resync(s)")
            return None
        self.stale_retries += 1
        logger.info(f"PR #{msg.pr_number} is out of date, resyncing (attempt {self.stale_retries})")
        self.phase = Phase.SYNCING_AFTER_MERGE
        self._set_current(SyncState.IN_PROGRESS, "Branch out of date, syncing...")
        return self._sync_cmd()

    # State helpers

    def _set_current(self, state: SyncState, status: str) -> None:
        rev = self.current_revision()
        if rev is not None:
            self.stack.set_revision_state(rev.change_id, state, status)

    def _fail(self, err: Exception, revision: Optional[Revision] = None, status: str = "Failed") -> None:
        was_loading = self.phase in (Phase.LOADING, Phase.CONFIRMATION)
        self.err = err
        self.phase = Phase.ERROR
        if revision is not None:
            self.stack.set_revision_state(revision.change_id, SyncState.ERROR, status)
        elif not was_loading:
            self._set_current(SyncState.ERROR, status)
        logger.debug(f"Run failed after {self.merged_count} merge(s): {err}")

    # Commands

    def load(self, fetch: bool = True) -> Command:
        """Read the stack and its PRs, after a `jj git fetch` unless fetch is False."""
        config = self.config
        jj_cmd = self.jj_cmd
        github = self.github
        revset = self.revset

        def run() -> Message:
            if fetch:
                try:
                    jj.git_fetch(jj_cmd)
                except Exception as e:
                    return LoadComplete(err=SyncStepError("git fetch", None, e))
            try:
                info = jj.get_stack_info(config, jj_cmd, revset)
                branches = [c.git_push_bookmark for c in info.changes
                            if not c.immutable and c.description]
                existing = github.get_pull_requests_for_branches(branches) if branches else {}
            except Exception as e:
                return LoadComplete(err=e)
            return LoadComplete(changes=info.changes, trunk_name=info.trunk_name,
                                existing_prs=existing)

        return Command("load stack", run)

    def _sync_cmd(self) -> Command:
        remaining = self.stack.remaining(self.current_index)
        jj_cmd = self.jj_cmd
        github = self.github
        trunk_name = self.trunk_name
        cancel = self.cancel

        def run() -> Message:
            try:
                result = sync_remaining(jj_cmd, github, remaining, trunk_name, cancel)
            except Exception as e:
                return SyncComplete(err=e)
            return SyncComplete(has_conflict=result.has_conflict)

        return Command(f"sync {len(remaining)} revision(s)", run)

    def _check_mergeable_cmd(self, delay: float = 0.0) -> Command:
        rev = self.current_revision()
        if rev is None:
            raise RuntimeError("no revision left to check")
        pr_number = rev.pr_number
        github = self.github

        def run() -> Message:
            try:
                readiness = check_mergeable(github, pr_number)
            except Exception as e:
                return MergeableCheck(pr_number=pr_number, err=e)
            return MergeableCheck(pr_number=pr_number, mergeable=readiness.ready,
                                  merge_state=readiness.state)

        return Command(f"check PR #{pr_number}", run, delay=delay)

    def _merge_cmd(self, pr_number: int) -> Command:
        github = self.github

        def run() -> Message:
            try:
                # Empty title keeps GitHub's default commit title
                github.merge_pull_request(pr_number, "")
            except Exception as e:
                return MergeComplete(pr_number=pr_number, err=e)
            return MergeComplete(pr_number=pr_number)

        return Command(f"merge PR #{pr_number}", run)
