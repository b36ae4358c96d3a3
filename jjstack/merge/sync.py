"""Rebase, push and retarget the not-yet-merged part of a stack."""

import logging
from dataclasses import dataclass
from typing import Sequence

from .. import jj
from ..github import GitHubClient
from ..stack import RemainingRevision
from ..typing import CancelToken, Cancelled, ChangeID, JJInterface, SyncStepError
from ..util import short_id

logger = logging.getLogger(__name__)

TRUNK_REVSET = "trunk()"


@dataclass
class SyncResult:
    """Outcome of a sync. Failures are raised as SyncStepError instead."""
    has_conflict: bool = False


def _check_cancel(cancel: CancelToken, step: str) -> None:
    if cancel.is_set():
        raise Cancelled(step)


def sync_remaining(jj_cmd: JJInterface, github: GitHubClient,
                   remaining: Sequence[RemainingRevision], trunk_name: str,
                   cancel: CancelToken) -> SyncResult:
    """Bring the remaining revisions up to date with trunk.

    Fetches, rebases the root of the remaining stack (and so all of its
    descendants) onto trunk, pushes every remaining branch root first, then
    points the root's PR at trunk. The PRs above keep their stacked bases.

    Raises:
        SyncStepError: naming the failed step and revision
        Cancelled: if the cancel token is set between steps
    """
    _check_cancel(cancel, "fetch")
    try:
        jj.git_fetch(jj_cmd)
    except Exception as e:
        raise SyncStepError("git fetch", None, e) from e

    if not remaining:
        logger.debug("Nothing left to sync")
        return SyncResult()

    root = remaining[0]
    _check_cancel(cancel, "rebase")
    try:
        result = jj.rebase(jj_cmd, ChangeID(root.change_id), TRUNK_REVSET)
    except Exception as e:
        raise SyncStepError("rebase", short_id(root.change_id), e) from e
    if result.has_conflict:
        return SyncResult(has_conflict=True)

    for rev in remaining:
        _check_cancel(cancel, f"push {short_id(rev.change_id)}")
        try:
            jj.git_push(jj_cmd, ChangeID(rev.change_id))
        except Exception as e:
            raise SyncStepError("push", short_id(rev.change_id), e) from e

    if root.pr_number > 0:
        _check_cancel(cancel, f"update PR #{root.pr_number} base")
        try:
            github.update_pull_request_base(root.pr_number, trunk_name)
        except Exception as e:
            raise SyncStepError("update base of", f"PR #{root.pr_number}", e) from e

    logger.info(f"Synced {len(remaining)} revision(s) onto {trunk_name}")
    return SyncResult()
