"""Bottom-up merging of a PR-backed jj stack."""

from .loop import EventLoop
from .mergeability import MergeReadiness, check_mergeable, describe_state, is_ready
from .model import MergeModel, Phase, is_stale_merge_error
from .sync import SyncResult, sync_remaining

__all__ = [
    "EventLoop",
    "MergeModel",
    "MergeReadiness",
    "Phase",
    "SyncResult",
    "check_mergeable",
    "describe_state",
    "is_ready",
    "is_stale_merge_error",
    "sync_remaining",
]
