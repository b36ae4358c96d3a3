"""Tests for the revision stack model."""

import pytest

from jjstack.stack import Revision, Stack, SyncState, new_stack
from jjstack.tests.fake_jj import make_change, make_stack_changes


def build(count: int) -> Stack:
    return new_stack(make_stack_changes(count), "main")


class TestNewStack:
    def test_trunk_marker_is_last(self) -> None:
        stack = build(3)
        assert len(stack.revisions) == 4
        trunk = stack.revisions[-1]
        assert trunk.is_immutable
        assert trunk.change.description == "main"
        assert stack.trunk_revision() is trunk

    def test_immutable_changes_are_skipped(self) -> None:
        changes = make_stack_changes(2)
        changes.append(make_change(9).model_copy(update={"immutable": True}))
        stack = new_stack(changes, "main")
        assert len(stack.mutable_revisions()) == 2

    def test_new_revisions_are_pending(self) -> None:
        for rev in build(2).mutable_revisions():
            assert rev.state is SyncState.PENDING
            assert rev.pr_number == 0


class TestIndexMapping:
    def test_merge_order_is_bottom_up(self) -> None:
        changes = make_stack_changes(3)
        stack = new_stack(changes, "main")
        # Display order is newest first, so merge position 0 is the last change
        assert stack.revision_at(0).change == changes[2]
        assert stack.revision_at(1).change == changes[1]
        assert stack.revision_at(2).change == changes[0]

    @pytest.mark.parametrize("count", [1, 2, 5])
    def test_display_index_formula(self, count: int) -> None:
        stack = build(count)
        mutable = stack.mutable_revisions()
        for i in range(count):
            display = stack.display_index(i)
            assert display == count - 1 - i
            assert stack.revision_at(i) is mutable[display]

    @pytest.mark.parametrize("index", [-1, 3])
    def test_out_of_range(self, index: int) -> None:
        with pytest.raises(IndexError):
            build(3).display_index(index)

    def test_remaining_is_root_first(self) -> None:
        stack = build(3)
        for i, rev in enumerate(reversed(stack.mutable_revisions())):
            rev.pr_number = 10 + i
        remaining = stack.remaining(1)
        assert [r.pr_number for r in remaining] == [11, 12]
        assert remaining[0].change_id == stack.revision_at(1).change_id

    def test_remaining_past_end_is_empty(self) -> None:
        assert build(2).remaining(2) == []


class TestRevisionState:
    def test_set_state(self) -> None:
        stack = build(2)
        rev = stack.revision_at(0)
        assert stack.set_revision_state(rev.change_id, SyncState.IN_PROGRESS, "Merging...")
        assert rev.state is SyncState.IN_PROGRESS
        assert rev.status_msg == "Merging..."

    def test_unknown_id_is_ignored(self) -> None:
        stack = build(2)
        assert not stack.set_revision_state("zzzz", SyncState.ERROR, "boom")
        assert all(r.state is SyncState.PENDING for r in stack.mutable_revisions())

    def test_trunk_marker_cannot_be_updated(self) -> None:
        stack = build(1)
        assert not stack.set_revision_state("", SyncState.ERROR)
        assert stack.revisions[-1].state is SyncState.PENDING

    def test_needing_sync_count(self) -> None:
        stack = build(3)
        stack.revision_at(0).needs_sync = True
        stack.revision_at(2).needs_sync = True
        assert stack.revisions_needing_sync() == 2

    def test_short_id_falls_back_to_prefix(self) -> None:
        change = make_change(0).model_copy(update={"short_id": ""})
        assert Revision.from_change(change).short_id == change.id[:8]
