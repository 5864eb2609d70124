"""
Tests for the producer/consumer protocol driven by hand.
"""

import dataclasses

import pytest

from pullseq import (
    DRAIN_ALL,
    FETCH_ONE,
    DropThenFetch,
    FetchOne,
    Generator,
    ProtocolError,
    UnboundedSequenceError,
    count_from,
    generate,
    get_max_drop,
    of,
)
from pullseq.sinks import CollectSink


class Recorder:
    """Consumer that records every signal it receives."""

    def __init__(self, demand=None):
        self.demand = demand
        self.handle = None
        self.values = []
        self.completed = 0
        self.cancelled = 0
        self.errors = []

    def on_subscribe(self, handle):
        self.handle = handle
        if self.demand is not None:
            handle.request(self.demand)

    def next(self, value):
        self.values.append(value)

    def next_absent(self):
        self.values.append(None)

    def on_complete(self):
        self.completed += 1

    def on_cancelled(self):
        self.cancelled += 1

    def on_error(self, error, handle):
        self.errors.append((error, handle))


class TestDemand:
    """Tests for demand signals."""

    def test_equality(self):
        """Test that demands compare by value."""
        assert FETCH_ONE == FetchOne()
        assert DropThenFetch(3) == DropThenFetch(3)
        assert DropThenFetch(3) != DropThenFetch(4)

    def test_frozen(self):
        """Test that demands are immutable."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            DropThenFetch(3).dropped = 4


class TestSubscription:
    """Tests for custom consumers."""

    def test_drain(self):
        """Test draining from on_subscribe."""
        recorder = Recorder(DRAIN_ALL)
        of(1, 2).subscribe(recorder)

        assert recorder.values == [1, 2]
        assert recorder.completed == 1
        assert recorder.cancelled == 0

    def test_fetch_one_at_a_time(self):
        """Test that each request delivers at most one element."""
        recorder = Recorder()
        of(1, None, 2).map(lambda x: x * 10).subscribe(recorder)
        assert recorder.values == []

        recorder.handle.request(FETCH_ONE)
        assert recorder.values == [10]
        recorder.handle.request(FETCH_ONE)
        assert recorder.values == [10, None]
        recorder.handle.request(FETCH_ONE)
        recorder.handle.request(FETCH_ONE)
        assert recorder.values == [10, None, 20]
        assert recorder.completed == 1

    def test_cancel_is_idempotent(self):
        """Test that cancelling twice signals once."""
        recorder = Recorder()
        of(1, 2).subscribe(recorder)

        recorder.handle.cancel()
        recorder.handle.cancel()
        recorder.handle.request(DRAIN_ALL)

        assert recorder.cancelled == 1
        assert recorder.values == []

    def test_requests_after_completion(self):
        """Test that requests after completion are ignored."""
        recorder = Recorder(DRAIN_ALL)
        of(1).subscribe(recorder)
        recorder.handle.request(FETCH_ONE)
        recorder.handle.cancel()

        assert recorder.values == [1]
        assert recorder.completed == 1
        assert recorder.cancelled == 0

    def test_report(self):
        """Test that a reported error comes back with the source handle."""
        recorder = Recorder()
        of(1).subscribe(recorder)
        error = ValueError("reported")
        recorder.handle.report(error)

        assert recorder.errors == [(error, recorder.handle)]

    def test_limit_completes(self):
        """Test that reaching a limit completes instead of cancelling."""
        recorder = Recorder(DRAIN_ALL)
        of(1, 2, 3).limit(1).subscribe(recorder)

        assert recorder.values == [1]
        assert recorder.completed == 1
        assert recorder.cancelled == 0

    def test_independent_evaluations(self):
        """Test that every subscription builds fresh relays."""
        seq = of(1, 2, 3).skip(1).limit(1)
        first, second = Recorder(DRAIN_ALL), Recorder(DRAIN_ALL)
        seq.subscribe(first)
        seq.subscribe(second)

        assert first.values == second.values == [2]

    def test_cache_cancel_before_request(self):
        """Test cancelling a cached chain before it is drained."""
        recorder = Recorder()
        of(2, 1).sorted().subscribe(recorder)
        recorder.handle.cancel()
        recorder.handle.request(FETCH_ONE)

        assert recorder.cancelled == 1
        assert recorder.values == []


class TestUnboundedSource:
    """Tests for the demands a generator refuses."""

    def test_refuses_drain(self):
        """Test that a generator cannot be drained."""
        recorder = Recorder()
        generate(lambda: 1).subscribe(recorder)

        with pytest.raises(UnboundedSequenceError):
            recorder.handle.request(DRAIN_ALL)

    def test_drop_bound(self):
        """Test that a generator refuses too many fruitless requests."""
        recorder = Recorder()
        count_from().subscribe(recorder)

        recorder.handle.request(DropThenFetch(1))
        assert recorder.values == [0]
        with pytest.raises(UnboundedSequenceError):
            recorder.handle.request(DropThenFetch(get_max_drop()))

    def test_cancel(self):
        """Test that a generator stops once cancelled."""
        pulled = []
        recorder = Recorder()
        generate(lambda: pulled.append(1) or 1).subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        recorder.handle.cancel()
        recorder.handle.request(FETCH_ONE)

        assert pulled == [1]
        assert recorder.cancelled == 1


class TestFlatMapStates:
    """Tests for the flat-map state machine."""

    def test_drain_while_inner_open(self):
        """Test that a drain request cannot interrupt an open cursor."""
        recorder = Recorder()
        of([1, 2]).flat_map().subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        assert recorder.values == [1]
        with pytest.raises(ProtocolError):
            recorder.handle.request(DRAIN_ALL)

    def test_exhausted_cursor_returns_upstream(self):
        """Test that one request moves past an exhausted cursor."""
        recorder = Recorder()
        of([1], [2]).flat_map().subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        recorder.handle.request(FETCH_ONE)
        assert recorder.values == [1, 2]

    def test_inner_generator_drop_bound(self):
        """Test that an inner generator honours the drop bound."""
        recorder = Recorder()
        of(1).flat_map(lambda x: Generator(lambda: x)).subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        with pytest.raises(UnboundedSequenceError):
            recorder.handle.request(DropThenFetch(get_max_drop()))

    def test_source_cancel_closes_cursor(self):
        """Test that cancelling the source handle closes an open cursor."""
        recorder = Recorder()
        of([1, 2, 3]).flat_map().subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        recorder.handle.report(ValueError("boom"))
        _, source = recorder.errors[0]
        source.cancel()
        recorder.handle.request(FETCH_ONE)

        assert recorder.values == [1]
        assert recorder.cancelled == 1

    def test_source_cancel_closes_nested_sequence(self):
        """Test that cancelling the source also cancels a nested subscription."""
        pulled = []
        inner = of(1, 2, 3).debug(pulled.append)
        recorder = Recorder()
        of(inner).flat_map().subscribe(recorder)

        recorder.handle.request(FETCH_ONE)
        recorder.handle.report(ValueError("boom"))
        _, source = recorder.errors[0]
        source.cancel()
        recorder.handle.request(FETCH_ONE)

        assert recorder.values == [1]
        assert pulled == [1]


class TestSinks:
    """Tests for terminal consumers."""

    def test_finished_sink_ignores_elements(self):
        """Test that a sink drops elements arriving after it finished."""
        sink = CollectSink(nullable=True)
        sink.next(1)
        sink.on_cancelled()
        sink.next(2)
        sink.next_absent()

        assert sink.items == [1]
        assert sink.received == 1
