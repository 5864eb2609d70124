"""
The zero-or-one container returned by single-element terminal operations.
"""

from collections.abc import Callable, Iterator
from typing import Any

from .errors import NoSuchElementError
from .functions import truthy


class Maybe[T]:
    """
    A value that is either present or absent.

    ``None`` is never a present value: ``Maybe.of(None)`` is the absent
    singleton returned by ``Maybe.none()``.
    """

    __slots__ = ("_value",)

    _NONE: "Maybe[Any]"

    def __init__(self, value: T | None):
        self._value = value

    @classmethod
    def of(cls, value: T | None) -> "Maybe[T]":
        if value is None:
            return cls.none()
        return cls(value)

    @classmethod
    def none(cls) -> "Maybe[T]":
        return Maybe._NONE

    def present(self) -> bool:
        return self._value is not None

    def absent(self) -> bool:
        return self._value is None

    def get(self) -> T | None:
        """Return the value, or ``None`` when absent."""
        return self._value

    def unwrap(self) -> T:
        """
        Return the value.

        Raises:
            NoSuchElementError: If the container is absent
        """
        if self._value is None:
            raise NoSuchElementError("no value present")
        return self._value

    def or_else(self, other: T) -> T:
        return other if self._value is None else self._value

    def or_else_get(self, supplier: Callable[[], T]) -> T:
        return supplier() if self._value is None else self._value

    def map[U](self, func: Callable[[T], U | None]) -> "Maybe[U]":
        if self._value is None:
            return Maybe.none()
        return Maybe.of(func(self._value))

    def filter(self, predicate: Callable[[T], Any]) -> "Maybe[T]":
        """Keep the value when ``predicate`` returns a truthy result."""
        if self._value is None or not truthy(predicate(self._value)):
            return Maybe.none()
        return self

    def cast[U](self, type_: type[U]) -> "Maybe[U]":
        if isinstance(self._value, type_):
            return self  # type: ignore[return-value]
        return Maybe.none()

    def if_present(self, action: Callable[[T], Any]) -> "Maybe[T]":
        if self._value is not None:
            action(self._value)
        return self

    def __bool__(self) -> bool:
        return self._value is not None

    def __iter__(self) -> Iterator[T]:
        if self._value is not None:
            yield self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Maybe):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        if self._value is None:
            return "Maybe.none()"
        return f"Maybe.of({self._value!r})"


Maybe._NONE = Maybe(None)
