from typing import Optional, TypeVar

T = TypeVar('T')


def ensure(value: Optional[T]) -> T:
    """Narrow an Optional, raising RuntimeError when it is None."""
    if value is None:
        raise RuntimeError("Value is None")
    return value


def first_line(text: str) -> str:
    """Return the first line of a (possibly multi-line) description."""
    return text.split("\n", 1)[0]


def short_id(change_id: str, length: int = 8) -> str:
    """Shorten a change id for display and error messages."""
    return change_id[:length]
