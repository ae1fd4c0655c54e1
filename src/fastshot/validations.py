"""Deferred configuration errors."""

from __future__ import annotations

from typing import Iterable, Iterator


class Validations:
    """Append-only, ordered list of configuration errors.

    Builders record problems here instead of raising so that several
    independent mistakes can be reported together when the request is sent.
    """

    def __init__(self, errors: Iterable[Exception] | None = None) -> None:
        self._errors: list[Exception] = list(errors or ())

    def add(self, error: Exception) -> None:
        self._errors.append(error)

    def get(self, index: int) -> Exception | None:
        """Return the error at ``index`` or None when out of range."""
        if index < 0 or index >= len(self._errors):
            return None
        return self._errors[index]

    def is_empty(self) -> bool:
        return not self._errors

    def count(self) -> int:
        return len(self._errors)

    def unwrap(self) -> tuple[Exception, ...]:
        return tuple(self._errors)

    def __iter__(self) -> Iterator[Exception]:
        return iter(tuple(self._errors))

    def __len__(self) -> int:
        return len(self._errors)

    def __repr__(self) -> str:
        return f"Validations({self._errors!r})"


def validation_error(
    message: str, cause: Exception | None = None
) -> ValueError:
    """Build a validation entry, chaining ``cause`` when present."""
    if cause is None:
        return ValueError(message)
    error = ValueError(f"{message}: {cause}")
    error.__cause__ = cause
    return error
