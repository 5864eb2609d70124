"""
Exception hierarchy and stock error hooks.

Element-level failures raised by user functions are caught where they happen
and routed through the chain's error channel. The exceptions defined here are
the hard failures: they are never swallowed by a relay and always reach the
caller of the terminal operation.
"""

import logging

from .protocols import Handle

logger = logging.getLogger(__name__)


class SequenceError(Exception):
    """Base class for every hard failure raised by pullseq."""


class UnboundedSequenceError(SequenceError):
    """An operator needed to exhaust a source that never ends."""


class NoSuchElementError(SequenceError, LookupError):
    """An element was requested past the end of a sequence."""


class ElementError(SequenceError):
    """A per-element failure escalated to a chain-aborting failure."""

    def __init__(self, error: BaseException):
        super().__init__(f"element failed: {error!r}")
        self.error = error


class ElementAssertionError(SequenceError):
    """An element did not satisfy an ``assert_true`` check."""


class ProtocolError(SequenceError):
    """A relay received a signal it cannot be in a state to handle."""


def escalate(error: Exception, handle: Handle) -> None:
    """Error hook that turns the first element failure into an ElementError."""
    raise ElementError(error) from error


def cancel_on_error(error: Exception, handle: Handle) -> None:
    """Error hook that stops the chain at the first element failure."""
    logger.debug("cancelling chain after element failure: %r", error)
    handle.cancel()


def log_error(error: Exception) -> None:
    logger.debug("element failure", exc_info=error)
