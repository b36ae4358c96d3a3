"""Fake jj runner for tests.

Answers the handful of jj invocations jjstack makes from in-memory state and
records every call so tests can assert on the command sequence.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set

from jjstack.jj import Change
from jjstack.typing import JJCommandError

logger = logging.getLogger(__name__)


def make_change(i: int, description: Optional[str] = None) -> Change:
    """Deterministic change; ids use jj's k-z alphabet."""
    letter = "klmnopqrstuvwxyz"[i % 16]
    change_id = letter * 32
    return Change(
        id=change_id,
        short_id=letter * 2,
        commit_id=f"{i + 1:040x}",
        description=description if description is not None else f"Change {i}\n\nBody of change {i}",
        git_push_bookmark=f"push-{change_id[:12]}",
    )


def make_stack_changes(count: int) -> List[Change]:
    """`count` changes in display order: newest first, trunk-adjacent last."""
    return [make_change(i) for i in reversed(range(count))]


class FakeJJ:
    """In-memory stand-in for RealJJ."""

    def __init__(self, changes: Optional[Sequence[Change]] = None, trunk_name: str = "main",
                 remote: str = "origin", remote_url: str = "git@github.com:owner/repo.git",
                 root: str = "/repo", push_bookmark_template: Optional[str] = None):
        self.changes: List[Change] = list(changes or [])
        self.trunk_name = trunk_name
        self.remote = remote
        self.remote_url = remote_url
        self.root = root
        self.push_bookmark_template = push_bookmark_template
        # Change ids whose rebase leaves conflicts
        self.conflicted: Set[str] = set()
        # Command prefix -> error to raise, e.g. {"git push": JJCommandError(...)}
        self.fail_on: Dict[str, Exception] = {}
        self.calls: List[List[str]] = []

    @property
    def commands(self) -> List[str]:
        return [" ".join(args) for args in self.calls]

    def run_cmd(self, args: Sequence[str]) -> str:
        args = list(args)
        self.calls.append(args)
        logger.debug(f"fake jj {' '.join(args)}")
        line = " ".join(args)
        for prefix, err in self.fail_on.items():
            if line.startswith(prefix):
                raise err

        if args[0] == "root":
            return f"{self.root}\n"
        if args[:2] == ["config", "get"]:
            if self.push_bookmark_template is None:
                raise JJCommandError(args, 1, f"Config error: Value not found for {args[2]}")
            return f"{self.push_bookmark_template}\n"
        if args[:3] == ["git", "remote", "list"]:
            return f"{self.remote} {self.remote_url}\n"
        if args[:2] in (["git", "fetch"], ["git", "push"]) or args[0] == "rebase":
            return ""
        if args[0] == "log":
            return self._log(args[args.index("-r") + 1])
        raise AssertionError(f"unexpected jj invocation: {line}")

    def must_jj(self, args: Sequence[str]) -> str:
        return self.run_cmd(args)

    def _log(self, revset: str) -> str:
        if revset == "trunk()":
            return f"{self.trunk_name}@{self.remote}\n{self.trunk_name}@git\n"
        if "conflicts()" in revset:
            change_id = revset[1:revset.index(")")]
            return f"{change_id}\n" if change_id in self.conflicted else ""
        return "".join(c.model_dump_json() + "\n" for c in self.changes)
