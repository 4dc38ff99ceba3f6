"""Two-variant result type returned by every public query.

``Ok`` carries a value, ``Err`` carries the error that stopped the operation.
Both support structural pattern matching::

    match await queries.get_recent_chats():
        case Ok(chats):
            ...
        case Err(error):
            ...

Optional values use plain ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def kind(self) -> Literal["ok"]:
        return "ok"

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    @property
    def kind(self) -> Literal["err"]:
        return "err"

    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        """Re-raise the carried error."""
        raise self.error


Result = Union[Ok[T], Err[E]]

__all__ = ["Ok", "Err", "Result"]
