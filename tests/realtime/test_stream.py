from __future__ import annotations

from presencia.realtime.stream import SnapshotStream, StreamRegistry


def test_poll_once_delivers_only_changes():
    values = iter([1, 1, 2, 2, 3])
    seen = []
    stream = SnapshotStream(lambda: next(values), poll_seconds=0, on_snapshot=seen.append)

    results = [stream.poll_once() for _ in range(5)]

    assert results == [1, None, 2, None, 3]
    assert seen == [1, 2, 3]


def test_cancelled_stream_stops_fetching():
    calls = []
    stream = SnapshotStream(lambda: calls.append(1) or len(calls), poll_seconds=0)
    stream.cancel()

    assert stream.cancelled
    assert stream.poll_once() is None
    assert list(stream) == []
    assert calls == []


def test_iteration_survives_fetch_errors():
    state = {"n": 0}

    def fetch():
        state["n"] += 1
        if state["n"] == 1:
            raise RuntimeError("db down")
        return state["n"]

    stream = SnapshotStream(fetch, poll_seconds=0)
    it = iter(stream)
    assert next(it) == 2
    assert next(it) == 3
    stream.cancel()


def test_registry_replaces_and_cancels_previous():
    registry = StreamRegistry()
    first = registry.replace("s1", SnapshotStream(lambda: 1))
    second = registry.replace("s1", SnapshotStream(lambda: 2))

    assert first.cancelled
    assert not second.cancelled
    assert registry.active("s1") is second

    registry.cancel("s1")
    assert second.cancelled
    assert registry.active("s1") is None
