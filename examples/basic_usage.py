"""
Basic usage examples for pullseq.

This demonstrates the core functionality of lazy, pull-driven sequences.
"""

import logging
import operator

from pullseq import (
    Generator,
    accepts_null,
    cancel_on_error,
    count_from,
    generate,
    of,
    of_iterable,
    set_max_drop,
)


def example_map_reduce():
    """Example: Map and reduce operations."""
    print("=== Map and Reduce Example ===")

    # Sum of squares from 0 to 999
    result = of_iterable(range(1000)).map(lambda x: x * x).reduce(operator.add)
    print(f"Sum of squares 0-999: {result.get()}")

    # Reduce from an initial value
    product = of_iterable(range(1, 11)).reduce(operator.mul, 1)
    print(f"Product of 1-10: {product.get()}")


def example_nulls():
    """Example: Null elements."""
    print("\n=== Null Example ===")

    seq = of(1, None, 2)
    print(f"Size: {seq.size()}, positions: {seq.nullable_get()}")

    # Replace nulls, or let a function see them
    print(f"Replaced: {seq.nullable(lambda: 0).get()}")
    print(f"Flags: {seq.map(accepts_null(lambda x: x is None)).get()}")


def example_unbounded():
    """Example: Unbounded sources."""
    print("\n=== Unbounded Example ===")

    # Only as many elements as needed are pulled
    evens = count_from().filter(lambda x: x % 2 == 0)
    print(f"First five even numbers: {evens.limit(5).get()}")
    print(f"First even number above 100: {evens.first(lambda x: x > 100).get()}")

    # A generator is one-shot: its state is shared between evaluations
    counter = iter(range(100))
    numbers = generate(lambda: next(counter))
    print(f"First batch: {numbers.limit(3).get()}")
    print(f"Second batch: {numbers.limit(3).get()}")


def example_flat_map():
    """Example: Flattening nested sources."""
    print("\n=== Flat Map Example ===")

    words = of("the quick brown", "fox jumps").flat_map(str.split)
    print(f"Words: {words.get()}")

    # Nested sources may themselves be unbounded
    repeated = of("a", "b").flat_map(lambda s: Generator(lambda: s)).limit(4)
    print(f"Repeated: {repeated.get()}")


def example_sort_distinct():
    """Example: Sorting and de-duplication."""
    print("\n=== Sort/Distinct Example ===")

    data = [5, 3, 5, 1, 3, 9]
    print(f"Distinct: {of_iterable(data).distinct().get()}")
    print(f"Sorted: {of_iterable(data).sorted().get()}")
    print(f"Longest first: {of('a', 'abc', 'ab').sorted(key=len, reverse=True).get()}")


def example_errors():
    """Example: Element failures and error hooks."""
    print("\n=== Error Example ===")

    # A failing element becomes a null and the chain carries on
    print(f"Reciprocals: {of(1, 0, 2).map(lambda x: 1 / x).get()}")

    # An error hook can stop the chain at the first failure
    stopped = of(1, 0, 2).on_error(cancel_on_error).map(lambda x: 1 / x)
    print(f"Stopped at failure: {stopped.get()}")


def example_configuration():
    """Example: Configuring the drop bound."""
    print("\n=== Configuration Example ===")

    # An endless filter over a generator gives up after max_drop misses
    set_max_drop(10_000)
    print(f"First multiple of 5000: {count_from(1).first(lambda x: x % 5000 == 0).get()}")

    # You can also set via environment variable:
    # export PULLSEQ_MAX_DROP=10000


def main():
    """Run all examples."""
    logging.basicConfig(level=logging.INFO)
    print("pullseq - Lazy, pull-driven sequences\n")

    example_map_reduce()
    example_nulls()
    example_unbounded()
    example_flat_map()
    example_sort_distinct()
    example_errors()
    example_configuration()

    print("\n=== All Examples Complete ===")


if __name__ == "__main__":
    main()
