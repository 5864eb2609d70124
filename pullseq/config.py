"""
Global configuration for sequence evaluation.

The only tunable is the drop bound: how many consecutive requests an
unbounded source will serve without a single element reaching the consumer
before it concludes the chain can never make progress.
"""

import logging
import os
import threading

logger = logging.getLogger(__name__)

DEFAULT_MAX_DROP = 1000


class SequenceConfig:
    """
    Global configuration for sequence evaluation.

    The instance is created lazily and shared by every chain. Values are read
    from the environment the first time they are needed.
    """

    _instance: "SequenceConfig | None" = None
    _lock = threading.Lock()

    def __init__(self):
        self._max_drop: int | None = None

    @classmethod
    def global_config(cls) -> "SequenceConfig":
        """Get the global configuration instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SequenceConfig()
        return cls._instance

    @property
    def max_drop(self) -> int:
        """
        Maximum number of consecutive fruitless requests an unbounded source
        serves before raising ``UnboundedSequenceError``.

        Defaults to ``PULLSEQ_MAX_DROP`` from the environment, or 1000.
        """
        if self._max_drop is None:
            env_drop = os.environ.get("PULLSEQ_MAX_DROP")
            if env_drop:
                try:
                    self._max_drop = int(env_drop)
                except ValueError:
                    logger.warning(
                        "ignoring non-integer PULLSEQ_MAX_DROP=%r", env_drop
                    )

            if self._max_drop is None or self._max_drop < 1:
                self._max_drop = DEFAULT_MAX_DROP

        return self._max_drop

    @max_drop.setter
    def max_drop(self, value: int) -> None:
        """Set the drop bound."""
        if value < 1:
            raise ValueError("Maximum drop count must be at least 1")

        with self._lock:
            self._max_drop = value

    def reset(self) -> None:
        """Forget explicit settings so the environment is consulted again."""
        with self._lock:
            self._max_drop = None


# Global configuration instance
_global_config = SequenceConfig.global_config()


def set_max_drop(max_drop: int) -> None:
    """
    Set the global drop bound for unbounded sources.

    Args:
        max_drop: Number of consecutive fruitless requests to tolerate

    Example:
        >>> from pullseq import set_max_drop
        >>> set_max_drop(10_000)
    """
    _global_config.max_drop = max_drop


def get_max_drop() -> int:
    """
    Get the current drop bound for unbounded sources.

    Returns:
        Current drop bound
    """
    return _global_config.max_drop
