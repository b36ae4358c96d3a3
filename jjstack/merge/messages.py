"""Messages delivered to the merge event loop.

Each asynchronous command resolves to exactly one of these. They carry only
the fields relevant to their outcome.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..github.types import PullRequest
from ..jj import Change


@dataclass(frozen=True)
class LoadComplete:
    changes: List[Change] = field(default_factory=list)
    trunk_name: str = ""
    existing_prs: Dict[str, PullRequest] = field(default_factory=dict)
    err: Optional[Exception] = None


@dataclass(frozen=True)
class Confirm:
    """The operator agreed to start merging."""


@dataclass(frozen=True)
class Quit:
    """The operator declined or asked to stop."""


@dataclass(frozen=True)
class SyncComplete:
    has_conflict: bool = False
    err: Optional[Exception] = None


@dataclass(frozen=True)
class MergeableCheck:
    pr_number: int
    mergeable: bool = False
    merge_state: str = ""
    err: Optional[Exception] = None


@dataclass(frozen=True)
class MergeComplete:
    pr_number: int
    err: Optional[Exception] = None


@dataclass(frozen=True)
class Tick:
    """Redraw tick, advances the spinner only."""


@dataclass(frozen=True)
class Interrupted:
    """The process received an interrupt signal."""


@dataclass(frozen=True)
class CommandFailed:
    """A command raised instead of returning its message."""
    description: str
    err: Exception


Message = Union[LoadComplete, Confirm, Quit, SyncComplete, MergeableCheck,
                MergeComplete, Tick, Interrupted, CommandFailed]


@dataclass(frozen=True)
class Command:
    """A unit of blocking work that resolves to one message.

    `delay` seconds are waited (interruptibly) before `run` is called.
    """
    description: str
    run: Callable[[], Message]
    delay: float = 0.0
