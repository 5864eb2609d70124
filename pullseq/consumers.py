"""
Operator relays.

A relay is one link of a live subscription. It is the Consumer of the link
above it and the Handle of the link below it: elements travel down through
``next``/``next_absent``, demand travels up through ``request``/``cancel``.

A user function that raises inside a relay does not abort the chain. The
relay substitutes a null element for the failing position and reports the
error upstream; the source then sends ``on_error`` down the whole chain so
that every error hook sees it.
"""

import logging
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, TypeVar

from .bridge import pump
from .config import get_max_drop
from .errors import (
    ElementAssertionError,
    ProtocolError,
    SequenceError,
    UnboundedSequenceError,
    log_error,
)
from .functions import is_null_accepting, truthy
from .producers import Generator, producer_for
from .protocols import (
    DRAIN_ALL,
    FETCH_ONE,
    Consumer,
    Demand,
    DropThenFetch,
    Handle,
    emit,
    is_drain,
)

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)

# Returned by Relay.invoke when the user function raised.
FAILED: Any = object()


class Relay[T, R]:
    """
    Base relay: forwards every signal unchanged.

    Subclasses override the signals they transform.
    """

    def __init__(self, downstream: Consumer[R]):
        self.downstream = downstream
        self.upstream: Handle | None = None

    # Consumer side

    def on_subscribe(self, handle: Handle) -> None:
        self.upstream = handle
        self.downstream.on_subscribe(self)

    def next(self, value: T) -> None:
        self.downstream.next(value)  # type: ignore[arg-type]

    def next_absent(self) -> None:
        self.downstream.next_absent()

    def on_complete(self) -> None:
        self.downstream.on_complete()

    def on_cancelled(self) -> None:
        self.downstream.on_cancelled()

    def on_error(self, error: Exception, handle: Handle) -> None:
        self.downstream.on_error(error, handle)

    # Handle side

    def request(self, demand: Demand) -> None:
        self.upstream.request(demand)

    def cancel(self) -> None:
        self.upstream.cancel()

    def report(self, error: Exception) -> None:
        self.upstream.report(error)

    def fail(self, error: Exception, placeholder: bool = True) -> None:
        """Stand a null in for the failing position and report the error."""
        if placeholder:
            self.downstream.next_absent()
        self.report(error)

    def invoke(self, func: Callable[..., Any], *args: Any, placeholder: bool = True) -> Any:
        """
        Call a user function, turning an exception into an element failure.

        Returns:
            The function's result, or ``FAILED`` if it raised
        """
        try:
            return func(*args)
        except SequenceError:
            raise
        except Exception as error:
            self.fail(error, placeholder)
            return FAILED


class FilterRelay[T](Relay[T, T]):
    """Forwards elements whose predicate result is truthy."""

    def __init__(self, downstream: Consumer[T], predicate: Callable[[T], Any]):
        super().__init__(downstream)
        self.predicate = predicate

    def next(self, value: T) -> None:
        verdict = self.invoke(self.predicate, value)
        if verdict is not FAILED and truthy(verdict):
            self.downstream.next(value)

    def next_absent(self) -> None:
        if is_null_accepting(self.predicate):
            verdict = self.invoke(self.predicate, None)
            if verdict is not FAILED and truthy(verdict):
                self.downstream.next_absent()


class MapRelay[T, R](Relay[T, R]):
    """Applies a function to every non-null element."""

    def __init__(self, downstream: Consumer[R], func: Callable[[T], R | None]):
        super().__init__(downstream)
        self.func = func

    def next(self, value: T) -> None:
        result = self.invoke(self.func, value)
        if result is not FAILED:
            emit(self.downstream, result)

    def next_absent(self) -> None:
        if is_null_accepting(self.func):
            self.next(None)  # type: ignore[arg-type]
        else:
            self.downstream.next_absent()


class TryMapRelay[T, R](MapRelay[T, R]):
    """Map whose failures are also handed to a ``when_throw`` callback."""

    def __init__(
        self,
        downstream: Consumer[R],
        func: Callable[[T], R | None],
        when_throw: Callable[[Exception], Any] | None = None,
    ):
        super().__init__(downstream, func)
        self.when_throw = when_throw or log_error

    def invoke(self, func: Callable[..., Any], *args: Any, placeholder: bool = True) -> Any:
        try:
            return func(*args)
        except SequenceError:
            raise
        except Exception as error:
            self.when_throw(error)
            self.fail(error, placeholder)
            return FAILED


class AwaitingOuter:
    """Flat-map state: the next request goes upstream for an outer element."""

    def __repr__(self) -> str:
        return "AwaitingOuter"


AWAITING_OUTER = AwaitingOuter()


@dataclass(slots=True)
class DrainingInner:
    """Flat-map state: requests are served from an inner cursor."""

    cursor: Iterator[Any]


def cursor_of(obj: Any, relay: Relay[Any, Any], drain: bool) -> Iterator[Any]:
    """
    Open a cursor over the elements a flat-map mapper returned.

    Sequences are subscribed as part of ``relay``'s chain, see InnerCursor.
    Values that are not iterable contribute no elements.
    """
    if obj is None:
        return iter(())
    if isinstance(obj, Generator):
        if drain:
            raise UnboundedSequenceError(f"cannot drain inner source {obj!r}")
        return obj
    if hasattr(obj, "nullable_iterator"):
        return InnerCursor(obj, relay, drain)
    if isinstance(obj, Mapping):
        return iter(obj.items())
    if isinstance(obj, Iterable):
        return iter(obj)
    return iter(())


class InnerCursor[T]:
    """
    Cursor over a nested sequence opened by a flat-map.

    The nested chain is subscribed directly, so its element failures are
    reported into the enclosing chain and reach its error hooks. Under a
    drain the elements go straight to the relay's downstream in order;
    otherwise they are pulled one at a time into a buffer.
    """

    def __init__(self, sequence: Any, relay: Relay[Any, T], drain: bool):
        self.relay = relay
        self.drain = drain
        self.buffer: deque[T | None] = deque()
        self.handle: Handle | None = None
        self.finished = False
        self.received = 0
        sequence.subscribe(self)
        if self.handle is None:
            raise ProtocolError(f"{sequence!r} did not call on_subscribe")

    @property
    def satisfied(self) -> bool:
        return self.finished or bool(self.buffer)

    def on_subscribe(self, handle: Handle) -> None:
        self.handle = handle

    def next(self, value: T) -> None:
        self.received += 1
        if self.drain:
            self.relay.downstream.next(value)
        else:
            self.buffer.append(value)

    def next_absent(self) -> None:
        self.received += 1
        if self.drain:
            self.relay.downstream.next_absent()
        else:
            self.buffer.append(None)

    def on_complete(self) -> None:
        self.finished = True

    def on_cancelled(self) -> None:
        self.finished = True

    def on_error(self, error: Exception, handle: Handle) -> None:
        self.relay.report(error)

    def cancel(self) -> None:
        if not self.finished:
            self.handle.cancel()

    def __iter__(self) -> "InnerCursor[T]":
        return self

    def __next__(self) -> T | None:
        if self.drain:
            if not self.finished:
                self.handle.request(DRAIN_ALL)
            raise StopIteration
        if not self.buffer and not self.finished:
            pump(self.handle, self)
        if not self.buffer:
            raise StopIteration
        return self.buffer.popleft()


class FlatMapRelay[T, R](Relay[T, R]):
    """
    Forwards every element of the cursor each outer element maps to.

    Under ``DrainAll`` each cursor is exhausted as soon as it is opened.
    Otherwise the relay alternates between ``AwaitingOuter`` and
    ``DrainingInner``: a request is served from the open cursor and only
    goes upstream once the cursor is exhausted.
    """

    def __init__(self, downstream: Consumer[R], mapper: Callable[[T], Any] | None):
        super().__init__(downstream)
        self.mapper = mapper
        self.state: AwaitingOuter | DrainingInner = AWAITING_OUTER
        self.demand: Demand = FETCH_ONE
        self.cancelled = False

    def request(self, demand: Demand) -> None:
        self.demand = demand
        match self.state:
            case DrainingInner(cursor=cursor):
                if is_drain(demand):
                    raise ProtocolError(
                        "flat_map cannot drain while an inner cursor is open"
                    )
                if (
                    isinstance(demand, DropThenFetch)
                    and isinstance(cursor, Generator)
                    and demand.dropped >= get_max_drop()
                ):
                    raise UnboundedSequenceError(
                        f"inner source {cursor!r} dropped {demand.dropped} "
                        "elements without delivering one"
                    )
                if self.advance(cursor):
                    return
        self.upstream.request(demand)

    def cancel(self) -> None:
        self.close()
        self.upstream.cancel()

    def on_cancelled(self) -> None:
        # an error hook cancels the source directly, bypassing cancel()
        self.close()
        self.downstream.on_cancelled()

    def close(self) -> None:
        self.cancelled = True
        match self.state:
            case DrainingInner(cursor=InnerCursor() as cursor):
                cursor.cancel()
        self.state = AWAITING_OUTER

    def next(self, value: T | None) -> None:
        drain = is_drain(self.demand)
        mapped = value if self.mapper is None else self.invoke(self.mapper, value)
        if mapped is FAILED:
            return
        cursor = self.invoke(cursor_of, mapped, self, drain)
        if cursor is FAILED:
            return

        self.state = DrainingInner(cursor)
        if drain:
            while isinstance(self.state, DrainingInner) and not self.cancelled:
                self.advance(cursor)
            self.state = AWAITING_OUTER
        else:
            self.advance(cursor)

    def next_absent(self) -> None:
        # a null element opens no cursor
        if is_null_accepting(self.mapper):
            self.next(None)

    def advance(self, cursor: Iterator[R]) -> bool:
        """
        Forward one inner element.

        Returns:
            False if the cursor was already exhausted
        """
        try:
            value = next(cursor)
        except StopIteration:
            self.state = AWAITING_OUTER
            return False
        except SequenceError:
            raise
        except Exception as error:
            if isinstance(cursor, InnerCursor):
                # nested chains handle their own element failures
                raise
            self.state = AWAITING_OUTER
            self.fail(error)
            return True

        if not self.cancelled:
            emit(self.downstream, value)
        return True


class LimitRelay[T](Relay[T, T]):
    """
    Forwards at most ``limit`` positions, then cancels upstream and
    completes. Null positions count.

    A drain request is turned into one-at-a-time pulls so that the relay can
    stop an unbounded source.
    """

    def __init__(self, downstream: Consumer[T], limit: int):
        super().__init__(downstream)
        self.limit = limit
        self.received = 0
        self.reached = False
        self.finished = False

    @property
    def satisfied(self) -> bool:
        return self.finished

    def request(self, demand: Demand) -> None:
        if self.finished:
            return
        if is_drain(demand):
            pump(self.upstream, self)
        else:
            self.upstream.request(demand)

    def next(self, value: T) -> None:
        if self.reached:
            return
        self.downstream.next(value)
        self._count()

    def next_absent(self) -> None:
        if self.reached:
            return
        self.downstream.next_absent()
        self._count()

    def _count(self) -> None:
        self.received += 1
        if self.received >= self.limit and not self.reached:
            self.reached = True
            self.upstream.cancel()

    def on_complete(self) -> None:
        self.finished = True
        self.downstream.on_complete()

    def on_cancelled(self) -> None:
        self.finished = True
        if self.reached:
            self.downstream.on_complete()
        else:
            self.downstream.on_cancelled()


class SkipRelay[T](Relay[T, T]):
    """Drops the first ``count`` positions, nulls included."""

    def __init__(self, downstream: Consumer[T], count: int):
        super().__init__(downstream)
        self.remaining = count

    def next(self, value: T) -> None:
        if self.remaining > 0:
            self.remaining -= 1
            return
        self.downstream.next(value)

    def next_absent(self) -> None:
        if self.remaining > 0:
            self.remaining -= 1
            return
        self.downstream.next_absent()


class TakeWhileRelay[T](Relay[T, T]):
    """
    Forwards positions until the predicate fires, then cancels upstream and
    completes. Without a predicate it stops at the first null position.
    """

    def __init__(self, downstream: Consumer[T], predicate: Callable[[T], Any] | None):
        super().__init__(downstream)
        self.predicate = predicate
        self.stopped = False

    def next(self, value: T) -> None:
        if self.stopped:
            return
        if self.predicate is not None:
            verdict = self.invoke(self.predicate, value)
            if verdict is FAILED:
                return
            if truthy(verdict):
                self.stop()
                return
        self.downstream.next(value)

    def next_absent(self) -> None:
        if self.stopped:
            return
        if self.predicate is None:
            self.stop()
            return
        if is_null_accepting(self.predicate):
            verdict = self.invoke(self.predicate, None)
            if verdict is FAILED:
                return
            if truthy(verdict):
                self.stop()
                return
        self.downstream.next_absent()

    def stop(self) -> None:
        self.stopped = True
        self.upstream.cancel()

    def on_cancelled(self) -> None:
        if self.stopped:
            self.downstream.on_complete()
        else:
            self.downstream.on_cancelled()


class DropWhileRelay[T](Relay[T, T]):
    """
    Discards positions until the predicate fires, then forwards that element
    and everything after it. Without a predicate it discards leading nulls.
    """

    def __init__(self, downstream: Consumer[T], predicate: Callable[[T], Any] | None):
        super().__init__(downstream)
        self.predicate = predicate
        self.dropping = True

    def next(self, value: T) -> None:
        if self.dropping and self.predicate is not None:
            # the position is discarded either way, so no placeholder
            verdict = self.invoke(self.predicate, value, placeholder=False)
            if verdict is FAILED or not truthy(verdict):
                return
        self.dropping = False
        self.downstream.next(value)

    def next_absent(self) -> None:
        if self.dropping:
            if not is_null_accepting(self.predicate):
                return
            verdict = self.invoke(self.predicate, None, placeholder=False)
            if verdict is FAILED or not truthy(verdict):
                return
            self.dropping = False
        self.downstream.next_absent()


class Splice[T]:
    """
    Attaches a replacement source to a consumer that is already subscribed.

    The replacement's handle is captured instead of being announced again.
    """

    def __init__(self, downstream: Consumer[T]):
        self.downstream = downstream
        self.handle: Handle | None = None

    def on_subscribe(self, handle: Handle) -> None:
        self.handle = handle

    def next(self, value: T) -> None:
        self.downstream.next(value)

    def next_absent(self) -> None:
        self.downstream.next_absent()

    def on_complete(self) -> None:
        self.downstream.on_complete()

    def on_cancelled(self) -> None:
        self.downstream.on_cancelled()

    def on_error(self, error: Exception, handle: Handle) -> None:
        self.downstream.on_error(error, handle)


class CacheRelay[T](Relay[T, T]):
    """
    Buffers the whole upstream on the first request, optionally transforms
    the buffer, then replays it as a fresh source.

    A cancel arriving during the drain (from an error hook) seals the buffer
    with what was collected so far.
    """

    def __init__(
        self,
        downstream: Consumer[T],
        transform: Callable[[list[T | None]], Iterable[T] | None] | None = None,
    ):
        super().__init__(downstream)
        self.transform = transform
        self.buffer: list[T | None] = []
        self.replay: Handle | None = None
        self.closed = False

    def request(self, demand: Demand) -> None:
        if self.closed:
            return
        if self.replay is None:
            self.upstream.request(DRAIN_ALL)
            self.seal()
        self.replay.request(demand)

    def cancel(self) -> None:
        if self.replay is not None:
            self.replay.cancel()
        elif not self.closed:
            self.closed = True
            self.downstream.on_cancelled()

    def report(self, error: Exception) -> None:
        (self.replay or self.upstream).report(error)

    def next(self, value: T) -> None:
        if self.replay is None:
            self.buffer.append(value)

    def next_absent(self) -> None:
        if self.replay is None:
            self.buffer.append(None)

    def on_complete(self) -> None:
        self.seal()

    def on_cancelled(self) -> None:
        self.seal()

    def seal(self) -> None:
        if self.replay is not None:
            return

        items: Any = self.buffer
        if self.transform is not None:
            result = self.transform(self.buffer)
            if result is not None:
                items = result

        splice = Splice(self.downstream)
        producer_for(items).subscribe(splice)
        self.replay = splice.handle


def unique(items: list[T | None]) -> list[T | None]:
    """First occurrences by ``==``; hashed where possible, scanned otherwise."""
    hashed: set[Any] = set()
    scanned: list[Any] = []
    kept = []
    for item in items:
        try:
            if item in hashed:
                continue
            hashed.add(item)
        except TypeError:
            if item in scanned:
                continue
            scanned.append(item)
        kept.append(item)
    return kept


def distinct_by(
    comparator: Callable[[T, T], Any] | None,
) -> Callable[[list[T | None]], list[T | None]]:
    if comparator is None:
        return unique

    def transform(items: list[T | None]) -> list[T | None]:
        kept: list[T | None] = []
        seen_null = False
        for item in items:
            if item is None:
                if not seen_null:
                    seen_null = True
                    kept.append(item)
            elif not any(
                seen is not None and truthy(comparator(item, seen))
                for seen in kept
            ):
                kept.append(item)
        return kept

    return transform


def sort_by(
    comparator: Callable[[T, T], int] | None,
    key: Callable[[T], Any] | None,
    reverse: bool,
) -> Callable[[list[T | None]], list[T]]:
    if comparator is not None:
        key = cmp_to_key(comparator)

    def transform(items: list[T | None]) -> list[T]:
        # nulls have no place in an ordering
        present = [item for item in items if item is not None]
        return sorted(present, key=key, reverse=reverse)

    return transform


def fallback_to(alternate: Any) -> Callable[[list[Any]], Any]:
    def transform(items: list[Any]) -> Any:
        if any(item is not None for item in items):
            return items
        logger.debug("no elements, falling back to %r", alternate)
        return alternate

    return transform


class NullableRelay[T](Relay[T, T]):
    """Replaces null elements with the result of a supplier."""

    def __init__(self, downstream: Consumer[T], supplier: Callable[[], T | None]):
        super().__init__(downstream)
        self.supplier = supplier

    def next_absent(self) -> None:
        result = self.invoke(self.supplier)
        if result is not FAILED:
            emit(self.downstream, result)


class PeekRelay[T](Relay[T, T]):
    """Runs an action on each non-null element and forwards it unchanged."""

    def __init__(self, downstream: Consumer[T], action: Callable[[T], Any]):
        super().__init__(downstream)
        self.action = action

    def next(self, value: T) -> None:
        if self.invoke(self.action, value) is not FAILED:
            self.downstream.next(value)


class AssertRelay[T](Relay[T, T]):
    """Raises ElementAssertionError on an element the predicate rejects."""

    def __init__(
        self,
        downstream: Consumer[T],
        predicate: Callable[[T], Any],
        message: str = "",
    ):
        super().__init__(downstream)
        self.predicate = predicate
        self.message = message

    def next(self, value: T) -> None:
        verdict = self.invoke(self.predicate, value)
        if verdict is FAILED:
            return
        if not truthy(verdict):
            raise ElementAssertionError(
                f"assertion {self.predicate!r} failed on {value!r}: {self.message}"
            )
        self.downstream.next(value)

    def next_absent(self) -> None:
        raise ElementAssertionError(
            f"assertion {self.predicate!r} failed on null element: {self.message}"
        )


class SleepRelay[T](Relay[T, T]):
    """Blocks the calling thread on every ``every``-th pulled position."""

    def __init__(self, downstream: Consumer[T], seconds: float, every: int = 1):
        super().__init__(downstream)
        self.seconds = seconds
        self.every = every
        self.pulled = 0

    def _tick(self) -> None:
        self.pulled += 1
        if self.pulled % self.every == 0:
            time.sleep(self.seconds)

    def next(self, value: T) -> None:
        self._tick()
        self.downstream.next(value)

    def next_absent(self) -> None:
        self._tick()
        self.downstream.next_absent()


class ErrorHookRelay[T](Relay[T, T]):
    """
    Calls a hook for every element failure that travels down the chain.

    The hook receives the error and a handle whose ``cancel`` stops the
    whole chain. An exception raised by the hook aborts the evaluation.
    """

    def __init__(
        self,
        downstream: Consumer[T],
        hook: Callable[[Exception, Handle], Any],
    ):
        super().__init__(downstream)
        self.hook = hook

    def on_error(self, error: Exception, handle: Handle) -> None:
        self.hook(error, handle)
        self.downstream.on_error(error, handle)
