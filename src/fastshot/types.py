"""Result types returned by the request engine.

A request never raises for malformed input or network failure; it returns
either an :class:`Ok` holding the value or an :class:`Err` holding the
error. Both carry a metadata mapping describing the request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


def _empty_meta() -> Mapping[str, Any]:
    return {}


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T
    meta: Mapping[str, Any] = field(default_factory=_empty_meta)

    @property
    def ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome.

    ``value`` holds whatever partial result is still useful to the caller,
    e.g. the last response seen before retries were exhausted.
    """

    error: E
    meta: Mapping[str, Any] = field(default_factory=_empty_meta)
    value: Any = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
