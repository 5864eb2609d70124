"""
Source adapters.

Producers turn plain Python values into the handle-driven protocol: a finite
iterable is replayed from a fresh iterator on every subscription, while a
Generator is an unbounded, shared supplier of elements.
"""

import itertools
import logging
from collections.abc import Callable, Collection, Iterable, Iterator, Mapping
from functools import partial
from typing import Any, TypeVar

from .config import get_max_drop
from .errors import SequenceError, UnboundedSequenceError
from .protocols import (
    Consumer,
    Demand,
    DrainAll,
    DropThenFetch,
    Producer,
    emit,
    is_drain,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Generator[T]:
    """
    An unbounded source of elements.

    Every pull calls ``supplier()``. The supplier's state is shared by every
    sequence built on the generator, so consuming a generator is one-shot:
    elements taken by one evaluation are not seen by the next.
    """

    __slots__ = ("supplier",)

    def __init__(self, supplier: Callable[[], T]):
        self.supplier = supplier

    def __iter__(self) -> "Generator[T]":
        return self

    def __next__(self) -> T:
        return self.supplier()

    def __repr__(self) -> str:
        return f"Generator({self.supplier!r})"

    @classmethod
    def from_iterator(cls, iterator: Iterable[T]) -> "Generator[T]":
        """
        Treat an iterator as unbounded.

        Use this for iterators that may never end, such as
        ``itertools.cycle``; it stops the iterator from being materialised.
        """
        return cls(partial(next, iter(iterator)))


def count(start: int = 0, step: int = 1) -> Generator[int]:
    """Generator of ``start, start + step, start + 2 * step, ...``."""
    return Generator(itertools.count(start, step).__next__)


class IterableHandle[T]:
    """
    Handle that pulls raw elements from an iterator.

    An exception raised by the iterator becomes a null placeholder followed
    by an ``on_error`` signal. Exhaustion signals ``on_complete``.
    """

    def __init__(self, consumer: Consumer[T], iterator: Iterator[T]):
        self.consumer = consumer
        self.iterator = iterator
        self.cancelled = False
        self.completed = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.completed)

    def request(self, demand: Demand) -> None:
        if is_drain(demand):
            while self.active:
                self._pull()
        elif self.active:
            self._pull()

    def cancel(self) -> None:
        if not self.active:
            return
        self.cancelled = True
        self.consumer.on_cancelled()

    def report(self, error: Exception) -> None:
        self.consumer.on_error(error, self)

    def _pull(self) -> None:
        try:
            value = next(self.iterator)
        except StopIteration:
            self.completed = True
            self.consumer.on_complete()
            return
        except SequenceError:
            raise
        except Exception as error:
            self.consumer.next_absent()
            self.report(error)
            return

        emit(self.consumer, value)


class GeneratorHandle[T](IterableHandle[T]):
    """Handle over a Generator: refuses demands it could never satisfy."""

    def request(self, demand: Demand) -> None:
        if not self.active:
            return

        match demand:
            case DrainAll():
                logger.debug("refusing to drain %r", self.iterator)
                raise UnboundedSequenceError(
                    f"cannot drain unbounded source {self.iterator!r}"
                )
            case DropThenFetch(dropped=dropped) if dropped >= get_max_drop():
                logger.debug(
                    "%r dropped %d elements in a row", self.iterator, dropped
                )
                raise UnboundedSequenceError(
                    f"unbounded source {self.iterator!r} dropped {dropped} "
                    "elements without delivering one"
                )

        self._pull()


class IterableProducer[T]:
    """
    Producer for finite iterables.

    The iterable is iterated afresh on every subscription, so it must be
    re-iterable (lists, tuples, ranges, dict views, ...).
    """

    def __init__(self, iterable: Iterable[T]):
        self.iterable = iterable

    def subscribe(self, consumer: Consumer[T]) -> None:
        consumer.on_subscribe(IterableHandle(consumer, iter(self.iterable)))

    def __repr__(self) -> str:
        if isinstance(self.iterable, Collection):
            return f"of({len(self.iterable)} items)"
        return f"of({type(self.iterable).__name__})"


class GeneratorProducer[T]:
    """Producer for an unbounded Generator."""

    def __init__(self, generator: Generator[T]):
        self.generator = generator

    def subscribe(self, consumer: Consumer[T]) -> None:
        consumer.on_subscribe(GeneratorHandle(consumer, self.generator))

    def __repr__(self) -> str:
        return f"generate({self.generator.supplier!r})"


def replayable(obj: Iterable[T]) -> Iterable[T]:
    """
    Return an iterable that can be iterated once per subscription.

    Mappings contribute their items; one-shot iterators are materialised.

    Raises:
        TypeError: If ``obj`` is not iterable
        UnboundedSequenceError: If ``obj`` is a Generator
    """
    if isinstance(obj, Generator):
        raise UnboundedSequenceError(f"cannot materialise {obj!r}")
    if isinstance(obj, Mapping):
        return obj.items()
    if isinstance(obj, Iterator):
        return tuple(obj)
    if isinstance(obj, Collection):
        return obj
    if isinstance(obj, Iterable):
        return obj
    raise TypeError(f"cannot build a sequence from {type(obj).__name__}")


def producer_for(obj: Any) -> Producer[Any]:
    """
    Adapt any supported value to a Producer.

    Producers (including sequences) are returned unchanged, ``None`` becomes
    an empty source, a Generator an unbounded source and any other iterable
    a finite source.
    """
    if hasattr(obj, "subscribe"):
        return obj
    if obj is None:
        return IterableProducer(())
    if isinstance(obj, Generator):
        return GeneratorProducer(obj)
    return IterableProducer(replayable(obj))
