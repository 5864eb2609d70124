"""
Core protocol definitions for pull-driven sequences.

A Producer emits elements only when the Handle it gave to its Consumer is
asked for them. The Consumer may cancel the Handle at any time. Completion,
cancellation and per-element errors are distinct signals.
"""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Protocol, TypeVar

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)  # Covariant for Producer (output only)
T_contra = TypeVar(
    "T_contra", contravariant=True
)  # Contravariant for Consumer (input only)


@dataclass(frozen=True, slots=True)
class FetchOne:
    """Deliver at most one more element."""


@dataclass(frozen=True, slots=True)
class DropThenFetch:
    """
    Deliver at most one more element, after ``dropped`` consecutive requests
    were consumed downstream without delivering anything.

    Unbounded sources use the count to refuse to spin forever.
    """

    dropped: int


@dataclass(frozen=True, slots=True)
class DrainAll:
    """Run to completion."""


type Demand = FetchOne | DropThenFetch | DrainAll

FETCH_ONE = FetchOne()
DRAIN_ALL = DrainAll()


def is_drain(demand: Demand) -> bool:
    return isinstance(demand, DrainAll)


class Handle(Protocol):
    """
    The demand channel a Producer hands to its Consumer.

    A handle is owned by the consumer that received it in ``on_subscribe``.
    Calls after cancellation or completion are no-ops.
    """

    @abstractmethod
    def request(self, demand: Demand) -> None:
        """Ask upstream for work."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop production permanently."""
        ...

    @abstractmethod
    def report(self, error: Exception) -> None:
        """
        Route an element-level failure to the chain's error channel.

        The source answers by sending ``on_error`` down the whole chain.
        """
        ...


class Consumer(Protocol[T_contra]):
    """Receives the signals of one subscription."""

    @abstractmethod
    def on_subscribe(self, handle: Handle) -> None:
        """Receive the handle that controls this subscription."""
        ...

    @abstractmethod
    def next(self, value: T_contra) -> None:
        """Receive a non-null element."""
        ...

    @abstractmethod
    def next_absent(self) -> None:
        """Receive a null element."""
        ...

    @abstractmethod
    def on_complete(self) -> None:
        """The producer ran out of elements."""
        ...

    @abstractmethod
    def on_cancelled(self) -> None:
        """The subscription was cancelled."""
        ...

    @abstractmethod
    def on_error(self, error: Exception, handle: Handle) -> None:
        """
        An element failed.

        Args:
            error: The exception raised while producing the element
            handle: A handle whose ``cancel`` stops the whole chain
        """
        ...


class Producer(Protocol[T_co]):
    """A source of elements that starts a fresh evaluation per subscription."""

    @abstractmethod
    def subscribe(self, consumer: Consumer[T_co]) -> None:
        """Start an evaluation, calling ``consumer.on_subscribe`` first."""
        ...


def emit(consumer: Consumer[T], value: T | None) -> None:
    """Send ``value`` to ``consumer``, routing ``None`` to ``next_absent``."""
    if value is None:
        consumer.next_absent()
    else:
        consumer.next(value)
