"""Tests for timeline stores and per-run timelines."""
from unittest.mock import MagicMock

import pytest

from autograph.errors import TimelineOrderError
from autograph.workflow_runtime import (
    FinalState,
    InMemoryTimelineStore,
    RedisTimelineStore,
    RunTimeline,
    TimelineEntry,
)


def _entry(index, run_id="run-1", node_id=None, output=None):
    return TimelineEntry(
        run_id=run_id,
        node_id=node_id or f"n{index}",
        node_kind="print",
        sequence_index=index,
        final_state=FinalState.COMPLETED,
        captured_output=output,
        has_output=output is not None,
    )


class TestInMemoryTimelineStore:

    def test_append_in_order(self):
        store = InMemoryTimelineStore()
        store.append(_entry(0))
        store.append(_entry(1))

        assert [e.sequence_index for e in store.entries("run-1")] == [0, 1]
        assert store.get("run-1", 1).node_id == "n1"
        assert store.get("run-1", 5) is None

    def test_rejects_non_increasing_index(self):
        store = InMemoryTimelineStore()
        store.append(_entry(1))

        with pytest.raises(TimelineOrderError):
            store.append(_entry(1))
        with pytest.raises(TimelineOrderError):
            store.append(_entry(0))

    def test_runs_are_independent(self):
        store = InMemoryTimelineStore()
        store.append(_entry(3, run_id="b"))
        store.append(_entry(0, run_id="a"))

        assert store.run_ids() == ["a", "b"]

    def test_entries_are_copies(self):
        store = InMemoryTimelineStore()
        store.append(_entry(0, output={"x": 1}))

        store.entries("run-1")[0].captured_output["x"] = 2

        assert store.entries("run-1")[0].captured_output == {"x": 1}


class TestRedisTimelineStore:

    def test_append_pushes_json(self):
        client = MagicMock()
        client.lindex.return_value = None
        store = RedisTimelineStore(redis_client=client, key_prefix="autograph:timeline:")

        store.append(_entry(0))

        key, payload = client.rpush.call_args.args
        assert key == "autograph:timeline:run-1"
        assert TimelineEntry.model_validate_json(payload).node_id == "n0"
        client.sadd.assert_called_once_with("autograph:timeline:runs", "run-1")

    def test_append_rejects_out_of_order(self):
        client = MagicMock()
        client.lindex.return_value = _entry(5).model_dump_json()
        store = RedisTimelineStore(redis_client=client, key_prefix="t:")

        with pytest.raises(TimelineOrderError):
            store.append(_entry(3))
        client.rpush.assert_not_called()

    def test_entries_parsed(self):
        client = MagicMock()
        client.lrange.return_value = [_entry(0).model_dump_json(), _entry(1, output=[1.0]).model_dump_json()]
        store = RedisTimelineStore(redis_client=client, key_prefix="t:")

        entries = store.entries("run-1")

        client.lrange.assert_called_once_with("t:run-1", 0, -1)
        assert [e.sequence_index for e in entries] == [0, 1]
        assert entries[1].captured_output == [1.0]
        assert store.get("run-1", 1).has_output is True

    def test_run_ids_sorted(self):
        client = MagicMock()
        client.smembers.return_value = {"b", "a"}
        store = RedisTimelineStore(redis_client=client, key_prefix="t:")

        assert store.run_ids() == ["a", "b"]

    def test_default_prefix_from_settings(self):
        store = RedisTimelineStore(redis_client=MagicMock())
        assert store._run_key("r") == "autograph:timeline:r"


class TestRunTimeline:

    def test_buffers_until_contiguous(self):
        store = InMemoryTimelineStore()
        timeline = RunTimeline("run-1", 3, store)

        timeline.record(_entry(2))
        timeline.record(_entry(1))
        assert store.entries("run-1") == []

        timeline.record(_entry(0))
        assert [e.sequence_index for e in timeline.entries] == [0, 1, 2]
        assert timeline.complete

    def test_partial_flush(self):
        timeline = RunTimeline("run-1", 3, InMemoryTimelineStore())
        timeline.record(_entry(0))
        timeline.record(_entry(2))

        assert timeline.flushed == 1
        assert not timeline.complete
        assert [e.sequence_index for e in timeline.buffered] == [2]

    def test_duplicate_index_rejected(self):
        timeline = RunTimeline("run-1", 2, InMemoryTimelineStore())
        timeline.record(_entry(0))

        with pytest.raises(TimelineOrderError):
            timeline.record(_entry(0))

    def test_outputs(self):
        timeline = RunTimeline("run-1", 3, InMemoryTimelineStore())
        timeline.record(_entry(0, output=1))
        timeline.record(_entry(1))
        timeline.record(_entry(2, output=3))

        assert timeline.output_at(2) == 3
        with pytest.raises(KeyError):
            timeline.output_at(1)
        assert timeline.outputs_before(2) == {"n0": 1}
