"""
Helpers shared by operator relays: the boolean coercion rule applied to
predicate results, and the tag that lets a function receive null elements.
"""

from collections.abc import Callable
from numbers import Number
from typing import Any


class NullAccepting[T, R]:
    """
    Wrapper marking a function as willing to receive ``None`` elements.

    Relays skip null elements for ordinary functions; a wrapped function is
    called with ``None`` like any other element.
    """

    __slots__ = ("func",)

    def __init__(self, func: Callable[[T | None], R]):
        self.func = func

    def __call__(self, value: T | None) -> R:
        return self.func(value)

    def __repr__(self) -> str:
        return f"accepts_null({self.func!r})"


def accepts_null[T, R](func: Callable[[T | None], R]) -> NullAccepting[T, R]:
    """
    Tag ``func`` so that filters and maps pass it null elements.

    Example:
        >>> from pullseq import accepts_null, of
        >>> of(1, None).map(accepts_null(lambda x: x is None)).get()
        [False, True]
    """
    if isinstance(func, NullAccepting):
        return func
    return NullAccepting(func)


def is_null_accepting(func: Any) -> bool:
    return isinstance(func, NullAccepting)


def truthy(result: Any) -> bool:
    """
    Coerce a predicate result to a boolean.

    ``None`` and ``False`` are false, numbers are true when non-zero, a
    ``Maybe`` is true when present. Every other value is true, including
    empty strings and empty collections.
    """
    if result is None:
        return False
    if isinstance(result, bool):
        return result
    if isinstance(result, Number):
        return result != 0

    from .maybe import Maybe

    if isinstance(result, Maybe):
        return result.present()
    return True
