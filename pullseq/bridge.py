"""
Bridge functions that connect producers and sinks.

The bridge drives a subscription: it either drains it with a single
``DrainAll`` request or pumps it one request at a time, telling the source
how many requests in a row came back empty.
"""

from typing import Protocol, TypeVar

from .errors import NoSuchElementError, ProtocolError
from .protocols import DRAIN_ALL, FETCH_ONE, DropThenFetch, Handle, Producer
from .sinks import CursorSink, Sink

T = TypeVar("T")
S = TypeVar("S", bound=Sink)


class Pumped(Protocol):
    """Anything that can tell a pump whether to keep pulling."""

    @property
    def satisfied(self) -> bool: ...

    @property
    def received(self) -> int: ...


def pump(handle: Handle, target: Pumped) -> None:
    """
    Request one element at a time until ``target`` is satisfied.

    A request that leaves ``target.received`` unchanged was dropped somewhere
    downstream of the source; the next request carries the running count of
    such drops so an unbounded source can give up.

    Args:
        handle: The subscription to pull on
        target: The consumer whose progress decides when to stop
    """
    dropped = 0
    while not target.satisfied:
        before = target.received
        handle.request(FETCH_ONE if dropped == 0 else DropThenFetch(dropped))
        dropped = dropped + 1 if target.received == before else 0


def bridge(producer: Producer[T], sink: S) -> S:
    """
    Subscribe ``sink`` to ``producer`` and run the evaluation to the end.

    Args:
        producer: The source or operator chain to evaluate
        sink: The terminal consumer collecting the result

    Returns:
        The sink, holding its result
    """
    producer.subscribe(sink)
    if sink.handle is None:
        raise ProtocolError(f"{producer!r} did not call on_subscribe")

    if sink.eager:
        sink.handle.request(DRAIN_ALL)
    else:
        pump(sink.handle, sink)
    return sink


class SequenceIterator[T]:
    """
    Lazy cursor over a sequence.

    Nothing is pulled until ``has_next`` (or ``__next__``) is called, and
    each call pulls only as far as the next element. Works as a regular
    Python iterator.
    """

    def __init__(self, producer: Producer[T], nullable: bool = False):
        self._sink: CursorSink[T] = CursorSink(nullable)
        producer.subscribe(self._sink)
        if self._sink.handle is None:
            raise ProtocolError(f"{producer!r} did not call on_subscribe")

    def has_next(self) -> bool:
        if not self._sink.buffer and not self._sink.finished:
            pump(self._sink.handle, self._sink)
        return bool(self._sink.buffer)

    def next(self) -> T | None:
        """
        Return the next element.

        Raises:
            NoSuchElementError: If the sequence is exhausted
        """
        if not self.has_next():
            raise NoSuchElementError("sequence has no more elements")
        return self._sink.buffer.popleft()

    def cancel(self) -> None:
        """Stop the underlying evaluation early."""
        if not self._sink.finished:
            self._sink.handle.cancel()

    def __iter__(self) -> "SequenceIterator[T]":
        return self

    def __next__(self) -> T | None:
        if not self.has_next():
            raise StopIteration
        return self._sink.buffer.popleft()
