"""
Benchmarks comparing pullseq with equivalent plain Python iteration.

Every element travels through one relay per operator, so these numbers show
the per-element cost of the protocol against generator expressions:
    python benchmarks/benchmark.py
"""

import itertools
import operator
import time
from collections.abc import Callable
from typing import Any

from pullseq import count_from, of_iterable

# ---------------------------------------------------------------------------
# Module-level worker functions
# ---------------------------------------------------------------------------


def _square(x: int) -> int:
    return x * x


def _double(x: int) -> int:
    return x * 2


def _increment(x: int) -> int:
    return x + 1


def _is_even(x: int) -> bool:
    return x % 2 == 0


def _divisible_by_3(x: int) -> bool:
    return x % 3 == 0


def _divisible_by_7(x: int) -> bool:
    return x % 7 == 0


def _pair_up(x: int) -> list[int]:
    return [x, x]


# ---------------------------------------------------------------------------
# Benchmark harness
# ---------------------------------------------------------------------------


def benchmark(
    name: str,
    sequence_fn: Callable[[], Any],
    plain_fn: Callable[[], Any],
    iterations: int = 3,
):
    """
    Benchmark a pullseq function against its plain Python equivalent.

    Args:
        name: Name of the benchmark
        sequence_fn: Function using pullseq
        plain_fn: Function using built-in iteration
        iterations: Number of times to run each function

    Returns:
        How many times slower the pullseq version is
    """
    print(f"\n{'=' * 60}")
    print(f"Benchmark: {name}")
    print(f"{'=' * 60}")

    # Warm-up, and check both sides agree
    if sequence_fn() != plain_fn():
        raise AssertionError(f"{name}: results differ")

    sequence_times = []
    for _ in range(iterations):
        start = time.perf_counter()
        sequence_fn()
        sequence_times.append(time.perf_counter() - start)

    plain_times = []
    for _ in range(iterations):
        start = time.perf_counter()
        plain_fn()
        plain_times.append(time.perf_counter() - start)

    avg_sequence = sum(sequence_times) / len(sequence_times)
    avg_plain = sum(plain_times) / len(plain_times)
    overhead = avg_sequence / avg_plain

    print(f"pullseq (avg): {avg_sequence:.4f} seconds")
    print(f"Plain (avg):   {avg_plain:.4f} seconds")
    print(f"Overhead:      {overhead:.2f}x")

    return overhead


# ---------------------------------------------------------------------------
# Individual benchmarks
# ---------------------------------------------------------------------------


def bench_map_reduce():
    """Benchmark: Sum of squares."""
    N = 200_000

    def sequence():
        return of_iterable(range(N)).map(_square).reduce(operator.add).get()

    def plain():
        return sum(x * x for x in range(N))

    return benchmark("Sum of Squares", sequence, plain)


def bench_complex_pipeline():
    """Benchmark: Multi-stage pipeline."""
    N = 200_000

    def sequence():
        return (
            of_iterable(range(N))
            .map(_double)
            .filter(_divisible_by_3)
            .map(_increment)
            .size()
        )

    def plain():
        return sum(1 for x in range(N) if (x * 2) % 3 == 0)

    return benchmark("Complex Pipeline", sequence, plain)


def bench_unbounded_limit():
    """Benchmark: Pulling a prefix of an unbounded source."""
    N = 100_000

    def sequence():
        return count_from().filter(_is_even).limit(N).get()

    def plain():
        return list(itertools.islice(filter(_is_even, itertools.count()), N))

    return benchmark("Unbounded Filter + Limit", sequence, plain)


def bench_flat_map():
    """Benchmark: Flattening nested lists."""
    N = 100_000

    def sequence():
        return of_iterable(range(N)).flat_map(_pair_up).size()

    def plain():
        return sum(1 for x in range(N) for _ in _pair_up(x))

    return benchmark("Flat Map", sequence, plain)


def bench_first_match():
    """Benchmark: Short-circuiting search."""
    N = 500_000

    def sequence():
        return of_iterable(range(N)).first(lambda x: x > N - 10).get()

    def plain():
        return next(x for x in range(N) if x > N - 10)

    return benchmark("First Match", sequence, plain)


def bench_sorted_distinct():
    """Benchmark: Caching operators."""
    N = 200_000
    data = [x % 1000 for x in range(N)]

    def sequence():
        return of_iterable(data).distinct().sorted().get()

    def plain():
        return sorted(dict.fromkeys(data))

    return benchmark("Distinct + Sorted", sequence, plain)


def bench_count():
    """Benchmark: Counting elements."""
    N = 200_000

    def sequence():
        return of_iterable(range(N)).filter(_divisible_by_7).size()

    def plain():
        return sum(1 for x in range(N) if x % 7 == 0)

    return benchmark("Count Filtered Elements", sequence, plain)


def main():
    """Run all benchmarks."""
    print("pullseq Benchmarks")
    print("=" * 60)
    print("These benchmarks compare pullseq against plain iteration.")
    print("=" * 60)

    overheads = []
    overheads.append(bench_map_reduce())
    overheads.append(bench_complex_pipeline())
    overheads.append(bench_unbounded_limit())
    overheads.append(bench_flat_map())
    overheads.append(bench_first_match())
    overheads.append(bench_sorted_distinct())
    overheads.append(bench_count())

    # Summary
    print(f"\n{'=' * 60}")
    print("Summary")
    print(f"{'=' * 60}")
    avg_overhead = sum(overheads) / len(overheads)
    print(f"Average overhead: {avg_overhead:.2f}x")
    print(f"Best overhead:    {min(overheads):.2f}x")
    print(f"Worst overhead:   {max(overheads):.2f}x")


if __name__ == "__main__":
    main()
