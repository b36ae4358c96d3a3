"""Revision stack model.

A Stack holds revisions in display order: the newest change at index 0 and
the synthetic trunk marker last. Merging happens bottom-up, so positions in
merge order are counted from the trunk-adjacent revision. `display_index` is
the only place that converts between the two.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from ..jj import Change

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Sync/merge state of a single revision."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Revision:
    """A single revision in the stack with its sync state."""
    change: Change
    state: SyncState = SyncState.PENDING
    status_msg: str = ""
    pr_number: int = 0
    is_immutable: bool = False
    needs_sync: bool = False

    @property
    def change_id(self) -> str:
        return self.change.id

    @property
    def short_id(self) -> str:
        """Shortest unique prefix, falling back to the first 8 characters."""
        return self.change.short_id or self.change.id[:8]

    @classmethod
    def from_change(cls, change: Change) -> 'Revision':
        return cls(change=change, is_immutable=change.immutable)

    @classmethod
    def trunk(cls, branch_name: str) -> 'Revision':
        """Create the trunk/base marker."""
        return cls(change=Change(id="", description=branch_name, immutable=True),
                   is_immutable=True)


@dataclass
class RemainingRevision:
    """A not-yet-merged revision as handed to the sync operation."""
    change_id: str
    pr_number: int


@dataclass
class Stack:
    """Ordered revisions, newest first, trunk marker last."""
    revisions: List[Revision] = field(default_factory=list)

    def mutable_revisions(self) -> List[Revision]:
        """Revisions excluding the trunk marker, in display order."""
        return [rev for rev in self.revisions if not rev.is_immutable]

    def trunk_revision(self) -> Optional[Revision]:
        for rev in self.revisions:
            if rev.is_immutable:
                return rev
        return None

    def revisions_needing_sync(self) -> int:
        """Count mutable revisions whose remote branch is out of date."""
        return sum(1 for rev in self.mutable_revisions() if rev.needs_sync)

    def find(self, change_id: str) -> Optional[Revision]:
        for rev in self.mutable_revisions():
            if rev.change_id == change_id:
                return rev
        return None

    def set_revision_state(self, change_id: str, state: SyncState, msg: str = "") -> bool:
        """Update a revision's state in place. Returns False if the id is unknown."""
        rev = self.find(change_id)
        if rev is None:
            logger.warning(f"Cannot set state of unknown revision {change_id[:8]}")
            return False
        rev.state = state
        rev.status_msg = msg
        return True

    def display_index(self, merge_index: int) -> int:
        """Map a bottom-up merge position to an index into mutable_revisions()."""
        count = len(self.mutable_revisions())
        if not 0 <= merge_index < count:
            raise IndexError(f"merge index {merge_index} out of range for {count} revisions")
        return count - 1 - merge_index

    def revision_at(self, merge_index: int) -> Revision:
        """The revision at a bottom-up merge position."""
        return self.mutable_revisions()[self.display_index(merge_index)]

    def remaining(self, merge_index: int) -> List[RemainingRevision]:
        """Revisions from merge_index upward, root of the remaining stack first."""
        count = len(self.mutable_revisions())
        return [
            RemainingRevision(rev.change_id, rev.pr_number)
            for rev in (self.revision_at(i) for i in range(merge_index, count))
        ]


def new_stack(changes: Sequence[Change], trunk_name: str) -> Stack:
    """Build a Stack from changes in display order, appending the trunk marker."""
    revisions = [Revision.from_change(c) for c in changes if not c.immutable]
    revisions.append(Revision.trunk(trunk_name))
    return Stack(revisions)
