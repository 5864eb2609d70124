"""
The Sequence facade.

A Sequence is an immutable description of an operator chain. Transformation
methods return a new node that references its upstream; terminal methods
subscribe a sink to the chain and run it. Nothing is evaluated before a
terminal method is called, and every terminal call is a fresh evaluation.
"""

import logging
import operator
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterable, Mapping
from functools import partial
from typing import Any, TypeVar

from .bridge import SequenceIterator, bridge
from .consumers import (
    AssertRelay,
    CacheRelay,
    DropWhileRelay,
    ErrorHookRelay,
    FilterRelay,
    FlatMapRelay,
    LimitRelay,
    MapRelay,
    NullableRelay,
    PeekRelay,
    SkipRelay,
    SleepRelay,
    TakeWhileRelay,
    TryMapRelay,
    distinct_by,
    fallback_to,
    sort_by,
)
from .errors import escalate, log_error
from .functions import NullAccepting
from .maybe import Maybe
from .producers import IterableProducer
from .protocols import Consumer, Handle, Producer
from .sinks import (
    CollectSink,
    ContainsSink,
    CountSink,
    FirstSink,
    ForEachSink,
    IndexSink,
    LastSink,
    ReduceSink,
    ThrowableForEachSink,
    ToMapSink,
)

T = TypeVar("T")
U = TypeVar("U")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)


def describe(func: Any) -> str:
    """Short name of a user function for chain descriptions."""
    if isinstance(func, NullAccepting):
        return f"accepts_null({describe(func.func)})"
    if isinstance(func, partial):
        return describe(func.func)
    return getattr(func, "__qualname__", None) or repr(func)


def is_present(value: Any) -> bool:
    return value is not None


def instance_or_none(type_: type, value: Any) -> Any:
    return value if isinstance(value, type_) else None


def mapping_of(key_type: type, value_type: type, value: Any) -> dict | None:
    if not isinstance(value, Mapping):
        return None
    kept = {
        key: item
        for key, item in value.items()
        if isinstance(key, key_type) and isinstance(item, value_type)
    }
    return kept or None


def pair_with(mapper: Callable[[Any], Any], value: Any) -> tuple[Any, Any]:
    return value, mapper(value)


def log_element(value: Any) -> None:
    logger.debug("element: %r", value)


class Sequence[T](ABC):
    """
    Base class for sequences.

    Subclasses only have to know how to subscribe a consumer; every operator
    and terminal operation is defined here.
    """

    @abstractmethod
    def subscribe(self, consumer: Consumer[T]) -> None:
        """
        Start a fresh evaluation of the chain.

        Public so that custom consumers can drive a chain directly. The
        consumer receives its handle through ``on_subscribe`` and nothing is
        produced until it calls ``handle.request``.
        """
        ...

    def chain(self, label: str, relay: type, *args: Any) -> "Sequence[Any]":
        return RelaySequence(self, label, relay, *args)

    # Transformations

    def filter(self, predicate: Callable[[T], Any] | None) -> "Sequence[T]":
        """
        Keep elements for which ``predicate`` returns a truthy result.

        Null elements are dropped unless the predicate is wrapped with
        ``accepts_null``. ``filter(None)`` keeps everything, nulls included.

        Args:
            predicate: Function of one element

        Returns:
            A new sequence of the kept elements
        """
        if predicate is None:
            return self
        return self.chain(f"filter({describe(predicate)})", FilterRelay, predicate)

    def filter_null(self) -> "Sequence[T]":
        """Drop null elements."""
        return self.chain("filter_null()", FilterRelay, is_present)

    def remove(self, value: T | None) -> "Sequence[T]":
        """Drop elements equal to ``value``."""
        if value is None:
            return self.filter_null()
        return self.chain(
            f"remove({value!r})", FilterRelay, partial(operator.ne, value)
        )

    def map(self, func: Callable[[T], U | None] | None) -> "Sequence[U]":
        """
        Apply a function to each element.

        Null elements skip ``func`` and stay null, unless ``func`` is wrapped
        with ``accepts_null``. A ``None`` result becomes a null element.

        Args:
            func: Function to apply to each element

        Returns:
            A new sequence of transformed elements
        """
        if func is None:
            return self  # type: ignore[return-value]
        return self.chain(f"map({describe(func)})", MapRelay, func)

    def flat_map(self, func: Callable[[T], Any] | None = None) -> "Sequence[Any]":
        """
        Map each element to a nested source and forward its elements.

        The nested source may be any iterable, a mapping (its items), a
        ``Generator`` or another Sequence. Every nested element is forwarded
        before the next outer element is pulled. Without ``func`` the
        elements themselves are flattened.

        Args:
            func: Function returning the nested source for an element

        Returns:
            A new sequence of the nested elements

        Example:
            >>> from pullseq import of
            >>> of([1, 2], [3]).flat_map().get()
            [1, 2, 3]
        """
        label = "flat_map()" if func is None else f"flat_map({describe(func)})"
        return self.chain(label, FlatMapRelay, func)

    def cast(self, type_: type[U]) -> "Sequence[U]":
        """Replace elements that are not instances of ``type_`` with null."""
        return self.chain(
            f"cast({type_.__name__})", MapRelay, partial(instance_or_none, type_)
        )

    def cast_mapping(self, key_type: type[K], value_type: type[V]) -> "Sequence[dict[K, V]]":
        """
        Narrow mapping elements to the entries of the given types.

        Non-mappings, and mappings with no matching entry, become null.
        """
        return self.chain(
            f"cast_mapping({key_type.__name__}, {value_type.__name__})",
            MapRelay,
            partial(mapping_of, key_type, value_type),
        )

    def limit(self, n: int) -> "Sequence[T]":
        """
        Keep at most the first ``n`` positions.

        Null positions count towards ``n``. Safe over unbounded sources.
        """
        if n <= 0:
            return NONE
        return self.chain(f"limit({n})", LimitRelay, n)

    def skip(self, n: int) -> "Sequence[T]":
        """Drop the first ``n`` positions, nulls included."""
        if n <= 0:
            return self
        return self.chain(f"skip({n})", SkipRelay, n)

    def take_while(self, predicate: Callable[[T], Any] | None = None) -> "Sequence[T]":
        """
        Forward elements until ``predicate`` fires.

        The element that fires it is not forwarded, and evaluation stops
        there. Null positions are forwarded without calling the predicate;
        without a predicate the sequence stops at the first null.

        Example:
            >>> from pullseq import of
            >>> of(1, 2, 3, 4).take_while(lambda x: x > 2).get()
            [1, 2]
        """
        label = f"take_while({describe(predicate)})" if predicate else "take_while()"
        return self.chain(label, TakeWhileRelay, predicate)

    def drop_while(self, predicate: Callable[[T], Any] | None = None) -> "Sequence[T]":
        """
        Discard positions until ``predicate`` fires, then forward the element
        that fired it and everything after. Without a predicate, leading
        nulls are discarded.
        """
        label = f"drop_while({describe(predicate)})" if predicate else "drop_while()"
        return self.chain(label, DropWhileRelay, predicate)

    def distinct(self, comparator: Callable[[T, T], Any] | None = None) -> "Sequence[T]":
        """
        Keep the first occurrence of each element, in order.

        Equality is ``==`` unless a pairwise ``comparator`` is given, whose
        truthy result marks two elements as equal. Drains the upstream.
        """
        return self.chain("distinct()", CacheRelay, distinct_by(comparator))

    def sorted(
        self,
        comparator: Callable[[T, T], int] | None = None,
        *,
        key: Callable[[T], Any] | None = None,
        reverse: bool = False,
    ) -> "Sequence[T]":
        """
        Sort the elements, dropping nulls. Drains the upstream.

        Args:
            comparator: Three-way comparison function, as for ``cmp_to_key``
            key: Sort key; mutually exclusive with ``comparator``
            reverse: Sort in descending order

        Raises:
            ValueError: If both ``comparator`` and ``key`` are given
        """
        if comparator is not None and key is not None:
            raise ValueError("sorted() takes a comparator or a key, not both")
        return self.chain("sorted()", CacheRelay, sort_by(comparator, key, reverse))

    def try_map(
        self,
        func: Callable[[T], U | None],
        when_throw: Callable[[Exception], Any] | None = None,
    ) -> "Sequence[U]":
        """
        Map like ``map``, handing failures to ``when_throw`` first.

        The failing position still becomes a null element and the failure is
        still reported to the error hooks. ``when_throw`` defaults to logging
        the failure at DEBUG level.
        """
        return self.chain(f"try_map({describe(func)})", TryMapRelay, func, when_throw)

    def terminal(
        self, action: Callable[[list[T | None]], Iterable[U] | None] | None = None
    ) -> "Sequence[Any]":
        """
        Drain the upstream into a list and replay it.

        Args:
            action: Called with the buffered list, nulls included. If it
                returns an iterable, that is replayed instead of the list.

        Returns:
            A new sequence over the buffered (or replaced) elements
        """
        label = f"terminal({describe(action)})" if action else "terminal()"
        return self.chain(label, CacheRelay, action)

    def on_error(self, hook: Callable[[Exception, Handle], Any]) -> "Sequence[T]":
        """
        Observe element failures.

        ``hook(error, handle)`` runs for every failure that happens anywhere
        in the chain; ``handle.cancel()`` stops the evaluation, keeping the
        elements produced so far. Raising from the hook aborts the terminal
        operation.
        """
        return self.chain(f"on_error({describe(hook)})", ErrorHookRelay, hook)

    def assert_no_error(self) -> "Sequence[T]":
        """Turn the first element failure into an ``ElementError``."""
        return self.on_error(escalate)

    def assert_true(self, predicate: Callable[[T], Any], message: str = "") -> "Sequence[T]":
        """Raise ``ElementAssertionError`` on an element ``predicate`` rejects."""
        return self.chain(
            f"assert_true({describe(predicate)})", AssertRelay, predicate, message
        )

    def or_else(self, alternate: Any) -> "Sequence[Any]":
        """
        Fall back to ``alternate`` when this sequence has no non-null element.

        Args:
            alternate: An iterable, ``Generator`` or Sequence
        """
        if alternate is None:
            return self
        return self.chain("or_else()", CacheRelay, fallback_to(alternate))

    def nullable(self, supplier: Callable[[], T | None]) -> "Sequence[T]":
        """Replace null elements with ``supplier()``."""
        return self.chain(f"nullable({describe(supplier)})", NullableRelay, supplier)

    def debug(self, action: Callable[[T], Any] | None = None) -> "Sequence[T]":
        """Run ``action`` on each element as it passes; logs it by default."""
        if action is None:
            return self.chain("debug()", PeekRelay, log_element)
        return self.chain(f"debug({describe(action)})", PeekRelay, action)

    def sleep(self, milliseconds: float, every: int = 1) -> "Sequence[T]":
        """
        Block for ``milliseconds`` on every ``every``-th pulled position.

        Raises:
            ValueError: If ``milliseconds`` is negative or ``every`` < 1
        """
        if milliseconds < 0:
            raise ValueError("sleep duration must not be negative")
        if every < 1:
            raise ValueError("sleep interval must be at least 1")
        return self.chain(
            f"sleep({milliseconds}, every={every})",
            SleepRelay,
            milliseconds / 1000,
            every,
        )

    def pair(self, mapper: Callable[[T], U]) -> "Sequence[tuple[T, U]]":
        """Map each element to ``(element, mapper(element))``."""
        return self.chain(
            f"pair({describe(mapper)})", MapRelay, partial(pair_with, mapper)
        )

    # Terminal operations

    def get(self) -> list[T]:
        """
        Evaluate the sequence into a list of its non-null elements.

        Raises:
            UnboundedSequenceError: If the sequence never ends
        """
        return bridge(self, CollectSink()).items

    def nullable_get(self) -> list[T | None]:
        """Evaluate the sequence into a list, nulls included."""
        return bridge(self, CollectSink(nullable=True)).items

    def iterator(self) -> SequenceIterator[T]:
        """Lazy iterator over the non-null elements."""
        return SequenceIterator(self)

    def nullable_iterator(self) -> SequenceIterator[T | None]:
        """Lazy iterator over every position, nulls included."""
        return SequenceIterator(self, nullable=True)

    def __iter__(self) -> SequenceIterator[T]:
        return self.iterator()

    def for_each(self, action: Callable[[T], Any]) -> None:
        """
        Run ``action`` on each non-null element.

        A failing action is reported to the chain's error hooks and the
        evaluation continues.
        """
        bridge(self, ForEachSink(action))

    def for_nullable_each(self, action: Callable[[T | None], Any]) -> None:
        bridge(self, ForEachSink(action, nullable=True))

    def for_throwable_each(
        self,
        action: Callable[[T], Any],
        when_throw: Callable[[Exception], Any] = log_error,
    ) -> None:
        """Run ``action`` on each non-null element, passing failures to ``when_throw``."""
        bridge(self, ThrowableForEachSink(action, when_throw))

    def first(self, predicate: Callable[[T], Any] | None = None) -> Maybe[T]:
        """
        The first non-null element, optionally the first matching ``predicate``.

        Pulls only as far as needed, so it works on unbounded sequences.
        """
        if predicate is not None:
            return self.filter(predicate).first()
        return Maybe.of(bridge(self, FirstSink()).value)

    def last(self, predicate: Callable[[T], Any] | None = None) -> Maybe[T]:
        if predicate is not None:
            return self.filter(predicate).last()
        return Maybe.of(bridge(self, LastSink()).value)

    def element_at(self, index: int) -> Maybe[T]:
        """
        The non-null element at ``index``.

        A negative index counts from the end and drains the sequence.
        """
        if index < 0:
            items = self.get()
            return Maybe.of(items[index]) if -index <= len(items) else Maybe.none()
        return Maybe.of(bridge(self, IndexSink(index)).value)

    def size(self) -> int:
        """Number of non-null elements."""
        return bridge(self, CountSink()).count

    def contains(self, value: T | None) -> bool:
        """
        Whether some element equals ``value``. Never true for ``None``.

        Stops at the first match.
        """
        if value is None:
            return False
        return bridge(self, ContainsSink(value)).found

    def __contains__(self, value: object) -> bool:
        return self.contains(value)

    def present(self) -> bool:
        """Whether the sequence has at least one non-null element."""
        return self.first().present()

    def absent(self) -> bool:
        return not self.present()

    def reduce(
        self,
        accumulator: Callable[[T, T], T | None] | None,
        initial: T | None = None,
    ) -> Maybe[T]:
        """
        Fold the non-null elements with ``accumulator``.

        Args:
            accumulator: Function of the running value and the next element.
                Returning ``None`` makes the whole result absent.
            initial: Starting value; the first element when ``None``

        Returns:
            The folded value, or ``Maybe.none()`` for an empty sequence
        """
        if accumulator is None:
            return Maybe.none()
        return Maybe.of(bridge(self, ReduceSink(accumulator, initial)).result)

    def to_map(
        self,
        key: Callable[[T], Any],
        value: Callable[[T], V] | None = None,
    ) -> dict[Any, Any]:
        """
        Build a dict from the non-null elements.

        Args:
            key: Key function; when ``value`` is omitted it must return a
                ``(key, value)`` pair instead
            value: Value function

        Returns:
            The dict, skipping ``None`` keys; later elements win
        """
        return bridge(self, ToMapSink(key, value)).mapping

    def to_array(self, type_: type[U] | None = None) -> tuple[Any, ...]:
        """Tuple of the non-null elements, keeping only instances of ``type_``."""
        if type_ is not None:
            return tuple(self.cast(type_).get())
        return tuple(self.get())

    def nullable_to_array(self, type_: type[U] | None = None) -> tuple[Any, ...]:
        if type_ is not None:
            return tuple(self.cast(type_).nullable_get())
        return tuple(self.nullable_get())

    def __str__(self) -> str:
        return str(self.get())


class SourceSequence[T](Sequence[T]):
    """A sequence reading straight from a producer."""

    def __init__(self, producer: Producer[T], label: str | None = None):
        self.producer = producer
        self.label = label

    def subscribe(self, consumer: Consumer[T]) -> None:
        self.producer.subscribe(consumer)

    def __repr__(self) -> str:
        return self.label or repr(self.producer)


class RelaySequence[T, U](Sequence[U]):
    """
    A sequence node that puts one relay in front of each consumer.

    Every subscription builds a fresh relay, so nodes can be shared between
    chains and evaluated any number of times.
    """

    def __init__(self, upstream: Sequence[T], label: str, relay: type, *args: Any):
        self.upstream = upstream
        self.label = label
        self.relay = relay
        self.args = args

    def subscribe(self, consumer: Consumer[U]) -> None:
        self.upstream.subscribe(self.relay(consumer, *self.args))

    def __repr__(self) -> str:
        return f"{self.upstream!r}.{self.label}"


NONE: Sequence[Any] = SourceSequence(IterableProducer(()), "none()")
