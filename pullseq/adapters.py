"""
Adapters for building sequences from standard Python objects.

This module provides the ergonomic entry points of the package: literal
elements, any iterable, or an unbounded supplier.
"""

from collections.abc import Callable, Collection, Iterable
from typing import Any, TypeVar

from .core import NONE, Sequence, SourceSequence
from .producers import Generator, GeneratorProducer, IterableProducer, count, replayable

T = TypeVar("T")


def none() -> Sequence[Any]:
    """The shared empty sequence."""
    return NONE


def of[T](*elements: T | None) -> Sequence[T]:
    """
    Create a sequence of the given elements, in order.

    ``None`` arguments are null elements: they occupy a position but are
    skipped by the default terminal operations.

    Example:
        >>> from pullseq import of
        >>> of(1, None, 2).size()
        2
        >>> of(1, None, 2).nullable_get()
        [1, None, 2]
    """
    if not elements:
        return NONE
    return SourceSequence(IterableProducer(elements))


def of_iterable[T](obj: Iterable[T] | Sequence[T] | None) -> Sequence[T]:
    """
    Create a sequence from an existing object.

    Args:
        obj: A Sequence (returned as is), a ``Generator`` (unbounded), a
            mapping (its items), or any other iterable. One-shot iterators
            are read into a tuple first so the sequence can be evaluated
            more than once. ``None`` gives the empty sequence.

    Returns:
        A sequence over the object's elements

    Raises:
        TypeError: If ``obj`` is not iterable
    """
    if obj is None:
        return NONE
    if isinstance(obj, Sequence):
        return obj
    if isinstance(obj, Generator):
        return SourceSequence(GeneratorProducer(obj))

    iterable = replayable(obj)
    if isinstance(iterable, Collection) and len(iterable) == 0:
        return NONE
    return SourceSequence(IterableProducer(iterable))


def generate[T](supplier: Callable[[], T | None]) -> Sequence[T]:
    """
    Create an unbounded sequence calling ``supplier`` for every element.

    The supplier's state is shared by every evaluation: elements consumed by
    one terminal operation are gone for the next.

    Example:
        >>> from itertools import count
        >>> from pullseq import generate
        >>> generate(count(1).__next__).limit(3).get()
        [1, 2, 3]
    """
    return SourceSequence(GeneratorProducer(Generator(supplier)))


def count_from(start: int = 0, step: int = 1) -> Sequence[int]:
    """Unbounded sequence ``start, start + step, ...``."""
    return SourceSequence(GeneratorProducer(count(start, step)))
