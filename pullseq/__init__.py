"""
pullseq - Lazy, pull-driven sequences for Python

Sequences describe a chain of operators over finite iterables or unbounded
generators. Nothing runs until a terminal operation pulls on the chain, and
then only as much as the operation needs.
"""

import logging

from .adapters import count_from, generate, none, of, of_iterable
from .bridge import SequenceIterator
from .config import SequenceConfig, get_max_drop, set_max_drop
from .core import Sequence
from .errors import (
    ElementAssertionError,
    ElementError,
    NoSuchElementError,
    ProtocolError,
    SequenceError,
    UnboundedSequenceError,
    cancel_on_error,
    escalate,
)
from .functions import accepts_null, truthy
from .maybe import Maybe
from .producers import Generator
from .protocols import (
    DRAIN_ALL,
    FETCH_ONE,
    Consumer,
    Demand,
    DrainAll,
    DropThenFetch,
    FetchOne,
    Handle,
    Producer,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Sequence",
    "SequenceIterator",
    "Maybe",
    "Generator",
    "none",
    "of",
    "of_iterable",
    "generate",
    "count_from",
    "accepts_null",
    "truthy",
    "Producer",
    "Consumer",
    "Handle",
    "Demand",
    "FetchOne",
    "DropThenFetch",
    "DrainAll",
    "FETCH_ONE",
    "DRAIN_ALL",
    "SequenceConfig",
    "set_max_drop",
    "get_max_drop",
    "SequenceError",
    "UnboundedSequenceError",
    "NoSuchElementError",
    "ElementError",
    "ElementAssertionError",
    "ProtocolError",
    "escalate",
    "cancel_on_error",
]
