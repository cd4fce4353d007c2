"""Execution timeline: per-run, append-only record of node outcomes."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import redis
from pydantic import BaseModel, Field

from autograph.config import get_settings
from autograph.errors import TimelineOrderError
from autograph.observability import get_logger, with_run_context

logger = get_logger(__name__)


class FinalState(str, Enum):
    """How a node ended within a run."""

    COMPLETED = "completed"
    ERRORED = "errored"
    SKIPPED_DUE_TO_UPSTREAM_ERROR = "skipped_due_to_upstream_error"
    CANCELLED = "cancelled"


class TimelineEntry(BaseModel):
    """One node's outcome within a run."""

    run_id: str = Field(..., description="Run that produced the entry")
    node_id: str = Field(..., description="Node id")
    node_kind: str = Field(..., description="Node kind name")
    sequence_index: int = Field(..., ge=0, description="Compile order index of the node")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC time the node started (or was resolved, if never started)",
    )
    duration_ms: float = Field(default=0.0, ge=0, description="Execution time")
    final_state: FinalState = Field(..., description="Terminal outcome")
    captured_output: Any = Field(default=None, description="JSON output value")
    has_output: bool = Field(default=False, description="True if captured_output is set")
    error: Optional[str] = Field(default=None, description="Error message if errored/skipped")
    replayed: bool = Field(default=False, description="Pre-satisfied from an earlier run")


class TimelineStore(Protocol):
    """Append-only storage of timeline entries, one sequence per run."""

    def append(self, entry: TimelineEntry) -> None:
        ...

    def entries(self, run_id: str) -> List[TimelineEntry]:
        ...

    def get(self, run_id: str, sequence_index: int) -> Optional[TimelineEntry]:
        ...

    def run_ids(self) -> List[str]:
        ...


def _check_order(last_index: Optional[int], entry: TimelineEntry) -> None:
    if last_index is not None and entry.sequence_index <= last_index:
        raise TimelineOrderError(
            f"Run {entry.run_id}: entry {entry.sequence_index} ({entry.node_id}) "
            f"does not follow {last_index}",
            node_ids=[entry.node_id],
            details={"run_id": entry.run_id, "sequence_index": entry.sequence_index},
        )


class InMemoryTimelineStore:
    """Process-local timeline store."""

    def __init__(self) -> None:
        self._runs: Dict[str, List[TimelineEntry]] = {}
        self._lock = threading.Lock()

    def append(self, entry: TimelineEntry) -> None:
        """
        Append an entry.

        Raises:
            TimelineOrderError: If sequence_index does not increase
        """
        with self._lock:
            run = self._runs.setdefault(entry.run_id, [])
            _check_order(run[-1].sequence_index if run else None, entry)
            run.append(entry.model_copy(deep=True))

    def entries(self, run_id: str) -> List[TimelineEntry]:
        with self._lock:
            return [e.model_copy(deep=True) for e in self._runs.get(run_id, [])]

    def get(self, run_id: str, sequence_index: int) -> Optional[TimelineEntry]:
        for entry in self.entries(run_id):
            if entry.sequence_index == sequence_index:
                return entry
        return None

    def run_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._runs)


class RedisTimelineStore:
    """Redis-backed timeline store: one list of JSON entries per run."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: Optional[str] = None,
    ):
        """
        Initialize timeline store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
            key_prefix: Key prefix (defaults to settings.timeline_key_prefix)
        """
        settings = get_settings()
        if redis_client is None:
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        else:
            self.redis_client = redis_client

        self._prefix = key_prefix if key_prefix is not None else settings.timeline_key_prefix

    def _run_key(self, run_id: str) -> str:
        """Get Redis key for a run's entry list."""
        return f"{self._prefix}{run_id}"

    def _runs_key(self) -> str:
        """Get Redis key for the set of run ids."""
        return f"{self._prefix}runs"

    def append(self, entry: TimelineEntry) -> None:
        """
        Append an entry.

        Raises:
            TimelineOrderError: If sequence_index does not increase
        """
        key = self._run_key(entry.run_id)
        last = self.redis_client.lindex(key, -1)
        last_index = TimelineEntry.model_validate_json(last).sequence_index if last else None
        _check_order(last_index, entry)

        self.redis_client.rpush(key, entry.model_dump_json())
        self.redis_client.sadd(self._runs_key(), entry.run_id)

        logger.debug(
            "Timeline entry stored",
            extra=with_run_context(
                run_id=entry.run_id,
                node_id=entry.node_id,
                sequence_index=entry.sequence_index,
                final_state=entry.final_state.value,
            ),
        )

    def entries(self, run_id: str) -> List[TimelineEntry]:
        raw = self.redis_client.lrange(self._run_key(run_id), 0, -1)
        return [TimelineEntry.model_validate_json(item) for item in raw]

    def get(self, run_id: str, sequence_index: int) -> Optional[TimelineEntry]:
        for entry in self.entries(run_id):
            if entry.sequence_index == sequence_index:
                return entry
        return None

    def run_ids(self) -> List[str]:
        return sorted(self.redis_client.smembers(self._runs_key()))


class RunTimeline:
    """
    Timeline of a single run.

    Entries may be recorded in any order (parallel nodes resolve in
    completion order); they reach the store strictly by sequence_index.
    """

    def __init__(self, run_id: str, size: int, store: TimelineStore):
        self.run_id = run_id
        self.size = size
        self.store = store
        self._buffer: Dict[int, TimelineEntry] = {}
        self._next_index = 0

    def record(self, entry: TimelineEntry) -> None:
        """Buffer an entry and flush every entry now contiguous."""
        if entry.sequence_index in self._buffer or entry.sequence_index < self._next_index:
            raise TimelineOrderError(
                f"Run {self.run_id}: sequence_index {entry.sequence_index} already recorded",
                node_ids=[entry.node_id],
            )
        self._buffer[entry.sequence_index] = entry
        while self._next_index in self._buffer:
            self.store.append(self._buffer.pop(self._next_index))
            self._next_index += 1

    @property
    def flushed(self) -> int:
        """Number of entries persisted so far."""
        return self._next_index

    @property
    def complete(self) -> bool:
        return self._next_index == self.size

    @property
    def buffered(self) -> List[TimelineEntry]:
        """Entries recorded but waiting on an earlier index, by sequence_index."""
        return [self._buffer[i] for i in sorted(self._buffer)]

    @property
    def entries(self) -> List[TimelineEntry]:
        """Persisted entries, by sequence_index."""
        return self.store.entries(self.run_id)

    def entry_at(self, sequence_index: int) -> Optional[TimelineEntry]:
        return self.store.get(self.run_id, sequence_index)

    def output_at(self, sequence_index: int) -> Any:
        """
        Captured output of the node at ``sequence_index``.

        Raises:
            KeyError: If that node has no persisted output
        """
        entry = self.entry_at(sequence_index)
        if entry is None or not entry.has_output:
            raise KeyError(sequence_index)
        return entry.captured_output

    def outputs_before(self, sequence_index: int) -> Dict[str, Any]:
        """node_id -> captured output for every entry before ``sequence_index``."""
        return {
            e.node_id: e.captured_output
            for e in self.entries
            if e.sequence_index < sequence_index and e.has_output
        }
