"""
Terminal consumers.

A sink sits at the bottom of a subscription and accumulates the result of
one terminal operation. Drain sinks ask for everything at once; pump sinks
pull one element at a time and cancel as soon as they have their answer.
"""

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from typing import Any, TypeVar

from .errors import SequenceError, log_error
from .protocols import Handle

T = TypeVar("T")

_EMPTY: Any = object()


class Sink[T](ABC):
    """
    Base class for terminal consumers.

    Attributes:
        eager: Drive the subscription with ``DrainAll`` instead of pumping
        nullable: Receive null elements as ``None`` instead of skipping them
        received: Number of elements that counted as progress
        finished: The subscription completed or was cancelled
    """

    eager = True

    def __init__(self, nullable: bool = False):
        self.nullable = nullable
        self.handle: Handle | None = None
        self.finished = False
        self.received = 0

    @property
    def satisfied(self) -> bool:
        return self.finished

    def on_subscribe(self, handle: Handle) -> None:
        self.handle = handle

    def next(self, value: T) -> None:
        if self.finished:
            return
        self.received += 1
        self.accept(value)

    def next_absent(self) -> None:
        if self.nullable and not self.finished:
            self.received += 1
            self.accept(None)

    def on_complete(self) -> None:
        self.finished = True

    def on_cancelled(self) -> None:
        self.finished = True

    def on_error(self, error: Exception, handle: Handle) -> None:
        log_error(error)

    def stop(self) -> None:
        self.handle.cancel()

    @abstractmethod
    def accept(self, value: T | None) -> None:
        """Consume one element."""


class CollectSink[T](Sink[T]):
    """Collects elements into a list."""

    def __init__(self, nullable: bool = False):
        super().__init__(nullable)
        self.items: list[T | None] = []

    def accept(self, value: T | None) -> None:
        self.items.append(value)


class CountSink[T](Sink[T]):
    """Counts elements."""

    def __init__(self):
        super().__init__()
        self.count = 0

    def accept(self, value: T | None) -> None:
        self.count += 1


class LastSink[T](Sink[T]):
    """Keeps the last element."""

    def __init__(self):
        super().__init__()
        self.value: T | None = None

    def accept(self, value: T | None) -> None:
        self.value = value


class FirstSink[T](Sink[T]):
    """Captures the first element, then cancels."""

    eager = False

    def __init__(self):
        super().__init__()
        self.value: T | None = None

    def accept(self, value: T | None) -> None:
        self.value = value
        self.stop()


class IndexSink[T](Sink[T]):
    """Captures the non-null element at a zero-based position."""

    eager = False

    def __init__(self, index: int):
        super().__init__()
        self.index = index
        self.position = 0
        self.value: T | None = None

    def accept(self, value: T | None) -> None:
        if self.position == self.index:
            self.value = value
            self.stop()
        self.position += 1


class ContainsSink[T](Sink[T]):
    """
    Looks for an element equal to ``target``.

    Only a match counts as progress, so a search over an unbounded source
    gives up after the configured number of misses.
    """

    eager = False

    def __init__(self, target: T):
        super().__init__()
        self.target = target
        self.found = False

    def next(self, value: T) -> None:
        if not self.finished:
            self.accept(value)

    def accept(self, value: T | None) -> None:
        if value == self.target:
            self.received += 1
            self.found = True
            self.stop()


class ReduceSink[T](Sink[T]):
    """
    Folds non-null elements with an accumulator.

    A ``None`` returned by the accumulator makes the whole result absent and
    stops the evaluation.
    """

    def __init__(self, accumulator: Callable[[T, T], T | None], initial: T | None = None):
        super().__init__()
        self.accumulator = accumulator
        self.value: Any = _EMPTY if initial is None else initial
        self.broken = False

    def accept(self, value: T | None) -> None:
        if self.value is _EMPTY:
            self.value = value
            return

        self.value = self.accumulator(self.value, value)
        if self.value is None:
            self.broken = True
            self.stop()

    @property
    def result(self) -> T | None:
        if self.broken or self.value is _EMPTY:
            return None
        return self.value


class ToMapSink[T, K, V](Sink[T]):
    """
    Builds a dict from the elements.

    With one function, it maps each element to a ``(key, value)`` pair;
    with two, they compute the key and the value separately. ``None`` keys
    and ``None`` pairs are skipped, later keys win.
    """

    def __init__(
        self,
        key: Callable[[T], Any],
        value: Callable[[T], V] | None = None,
    ):
        super().__init__()
        self.key = key
        self.value = value
        self.mapping: dict[K, V] = {}

    def accept(self, element: T | None) -> None:
        if self.value is None:
            pair = self.key(element)
            if pair is None:
                return
            key, value = pair
        else:
            key = self.key(element)
            value = self.value(element)

        if key is not None:
            self.mapping[key] = value


class ForEachSink[T](Sink[T]):
    """Runs an action per element; failures go to the chain's error channel."""

    def __init__(self, action: Callable[[T | None], Any], nullable: bool = False):
        super().__init__(nullable)
        self.action = action

    def accept(self, value: T | None) -> None:
        try:
            self.action(value)
        except SequenceError:
            raise
        except Exception as error:
            self.handle.report(error)


class ThrowableForEachSink[T](ForEachSink[T]):
    """Runs an action per element; failures go to ``when_throw``."""

    def __init__(
        self,
        action: Callable[[T], Any],
        when_throw: Callable[[Exception], Any],
    ):
        super().__init__(action)
        self.when_throw = when_throw

    def accept(self, value: T | None) -> None:
        try:
            self.action(value)
        except SequenceError:
            raise
        except Exception as error:
            self.when_throw(error)


class CursorSink[T](Sink[T]):
    """Buffers pulled elements for a SequenceIterator."""

    eager = False

    def __init__(self, nullable: bool = False):
        super().__init__(nullable)
        self.buffer: deque[T | None] = deque()

    @property
    def satisfied(self) -> bool:
        return self.finished or bool(self.buffer)

    def accept(self, value: T | None) -> None:
        self.buffer.append(value)
