"""
Execution Engine - Runs compiled flow programs.

Drives a Run through its nodes against a backend:
- Ready nodes (all upstream completed) run on a worker pool
- Errors skip every dependent; independent branches keep going
- Breakpoints suspend the run before the node executes
- Runs can be cancelled, resumed and replayed from a sequence index

All run state is mutated by the scheduling thread only. Workers
execute one fragment each and hand back a NodeOutcome.
"""

from __future__ import annotations

import json
import threading
import time
import traceback
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from autograph.backends import (
    BackendKind,
    Executable,
    ExecutionBackend,
    create_backend,
    resolve_backend,
)
from autograph.config import Settings, get_settings
from autograph.errors import (
    BackendCompileFailed,
    NodeExecutionFailed,
    ReplayError,
    RunStateError,
)
from autograph.observability import get_logger, with_run_context

from .compiler import CompiledProgram
from .timeline import (
    FinalState,
    InMemoryTimelineStore,
    RunTimeline,
    TimelineEntry,
    TimelineStore,
)


logger = get_logger(__name__)

BackendSpec = Union[BackendKind, str, ExecutionBackend, None]


class ExecutionState(str, Enum):
    """State of a node within a run."""
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERRORED = "errored"


class PendingReason(str, Enum):
    """Why a node was left pending when its run finished."""
    SKIPPED_DUE_TO_UPSTREAM_ERROR = "skipped_due_to_upstream_error"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    """Lifecycle of a run."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUSPENDED = "suspended"
    DONE = "done"


class RunOutcome(str, Enum):
    """Overall result of a finished run."""
    SUCCESS = "success"
    PARTIAL = "partial"  # Some nodes completed, some errored
    ERROR = "error"
    CANCELLED = "cancelled"


def to_json_value(value: Any) -> Any:
    """
    Normalise a node output to a plain JSON value.

    Arrays become nested lists and tuples become lists, so outputs have
    one representation in fresh runs, replays and persisted timelines.

    Raises:
        TypeError: If the value has no JSON form
    """
    def default(obj: Any) -> Any:
        if hasattr(obj, "tolist"):
            return obj.tolist()
        raise TypeError(f"output is not JSON serializable: {type(obj).__name__}")

    return json.loads(json.dumps(value, default=default))


@dataclass
class NodeRecord:
    """
    Per-run state of one node.
    """
    node_id: str
    kind: str
    sequence_index: int
    state: ExecutionState = ExecutionState.PENDING
    reason: Optional[PendingReason] = None
    output: Any = None
    has_output: bool = False
    error: Optional[str] = None
    error_traceback: Optional[str] = None
    started_at: Optional[datetime] = None
    duration_ms: float = 0
    replayed: bool = False

    @property
    def final_state(self) -> Optional[FinalState]:
        if self.state == ExecutionState.COMPLETED:
            return FinalState.COMPLETED
        if self.state == ExecutionState.ERRORED:
            return FinalState.ERRORED
        if self.reason is not None:
            return FinalState(self.reason.value)
        return None

    @property
    def is_terminal(self) -> bool:
        return self.final_state is not None


@dataclass
class NodeOutcome:
    """What a worker hands back for one executed fragment."""
    node_id: str
    ok: bool
    output: Any = None
    error: Optional[str] = None
    error_traceback: Optional[str] = None
    duration_ms: float = 0


@dataclass
class RunResult:
    """
    Result of a finished (or suspended) run.
    """
    run_id: str
    flow_name: str
    digest: str
    backend: str
    status: RunStatus
    outcome: Optional[RunOutcome]
    nodes: Dict[str, NodeRecord] = field(default_factory=dict)
    timeline: List[TimelineEntry] = field(default_factory=list)
    output: Any = None
    error: Optional[str] = None
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.outcome == RunOutcome.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.outcome == RunOutcome.ERROR

    def state_of(self, node_id: str) -> ExecutionState:
        return self.nodes[node_id].state

    def output_of(self, node_id: str) -> Any:
        return self.nodes[node_id].output

    def outputs(self) -> Dict[str, Any]:
        """node_id -> output for every completed node."""
        return {k: r.output for k, r in self.nodes.items() if r.has_output}


class Run:
    """
    One execution of a compiled program against one backend.

    Owns its node records and timeline exclusively. Created and driven
    by ExecutionEngine; callers inspect it and pass it back to
    ``resume``, ``cancel`` or ``replay_from``.

    The timeline persists entries strictly by sequence_index. While a
    run is suspended, nodes after the breakpoint that already finished
    are held in ``timeline.buffered``; ``records`` always has the
    current state of every node.
    """

    def __init__(
        self,
        program: CompiledProgram,
        backend: ExecutionBackend,
        input: Any,
        honor_breakpoints: bool,
        timeline: RunTimeline,
        run_id: str,
    ):
        self.run_id = run_id
        self.program = program
        self.backend = backend
        self.input = input
        self.honor_breakpoints = honor_breakpoints
        self.timeline = timeline
        self.status = RunStatus.NOT_STARTED
        self.paused_at: List[str] = []
        self.released: Set[str] = set()
        self.records: Dict[str, NodeRecord] = {
            node_id: NodeRecord(
                node_id=node_id,
                kind=program.fragments[node_id].kind,
                sequence_index=i,
            )
            for i, node_id in enumerate(program.order)
        }
        self.executables: Dict[str, Executable] = {}
        self._cancel = threading.Event()
        self.elapsed_ms = 0.0

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def request_cancel(self) -> None:
        self._cancel.set()

    def state_of(self, node_id: str) -> ExecutionState:
        return self.records[node_id].state

    @property
    def outcome(self) -> Optional[RunOutcome]:
        if self.status != RunStatus.DONE:
            return None
        records = self.records.values()
        if any(r.reason == PendingReason.CANCELLED for r in records):
            return RunOutcome.CANCELLED
        errored = any(r.state == ExecutionState.ERRORED for r in records)
        completed = any(r.state == ExecutionState.COMPLETED for r in records)
        if errored:
            return RunOutcome.PARTIAL if completed else RunOutcome.ERROR
        return RunOutcome.SUCCESS

    def result(self) -> RunResult:
        """Snapshot of the run as a RunResult."""
        first_error = next(
            (
                f"{r.node_id}: {r.error}"
                for r in sorted(self.records.values(), key=lambda r: r.sequence_index)
                if r.state == ExecutionState.ERRORED
            ),
            None,
        )
        result_node = self.program.result_node
        return RunResult(
            run_id=self.run_id,
            flow_name=self.program.name,
            digest=self.program.digest,
            backend=self.backend.name,
            status=self.status,
            outcome=self.outcome,
            nodes={k: replace(v) for k, v in self.records.items()},
            timeline=self.timeline.entries,
            output=self.records[result_node].output if result_node else None,
            error=first_error,
            duration_ms=self.elapsed_ms,
        )

    def __repr__(self) -> str:
        return f"Run(run_id={self.run_id!r}, flow={self.program.name!r}, status={self.status.value})"


class ExecutionEngine:
    """
    Executes compiled programs.

    Usage:
        engine = ExecutionEngine()
        result = engine.execute(program, backend=BackendKind.CPU)

        run = engine.start(program)  # honours breakpoints
        while run.status == RunStatus.SUSPENDED:
            run = engine.resume(run)

        run = engine.create_run(program)
        threading.Thread(target=engine.drive, args=(run,)).start()
        engine.cancel(run)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        timeline_store: Optional[TimelineStore] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize engine.

        Args:
            settings: Settings (defaults to process settings)
            timeline_store: Where run timelines are persisted
            max_workers: Worker pool size (defaults to settings.max_workers)
        """
        self.settings = settings or get_settings()
        self.timeline_store = timeline_store or InMemoryTimelineStore()
        self.max_workers = max_workers or self.settings.max_workers
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(
        self,
        program: CompiledProgram,
        backend: BackendSpec = None,
        input: Any = None,
    ) -> RunResult:
        """
        Run a program to completion, ignoring breakpoints.

        Raises:
            BackendCompileFailed: If the backend rejects the program text
        """
        run = self.start(program, backend=backend, input=input, honor_breakpoints=False)
        return run.result()

    def start(
        self,
        program: CompiledProgram,
        backend: BackendSpec = None,
        input: Any = None,
        honor_breakpoints: bool = True,
    ) -> Run:
        """
        Start a run and drive it until it finishes or suspends.

        Raises:
            BackendCompileFailed: If the backend rejects the program text
        """
        run = self.create_run(program, backend, input, honor_breakpoints)
        return self.drive(run)

    def resume(self, run: Run) -> Run:
        """
        Release the breakpoints a suspended run is paused at and continue.

        Raises:
            RunStateError: If the run is not suspended
        """
        if run.status != RunStatus.SUSPENDED:
            raise RunStateError(
                f"Run {run.run_id} is {run.status.value}, not suspended",
                details={"run_id": run.run_id, "status": run.status.value},
            )
        run.released.update(run.paused_at)
        logger.info(
            f"Resuming run past {', '.join(run.paused_at)}",
            extra=with_run_context(run_id=run.run_id, flow_name=run.program.name),
        )
        run.paused_at = []
        return self.drive(run)

    def cancel(self, run: Run) -> Run:
        """
        Cancel a run. No further node is scheduled; nodes already
        executing finish. A run that is not being driven is finalised
        immediately.
        """
        run.request_cancel()
        if run.status in (RunStatus.NOT_STARTED, RunStatus.SUSPENDED):
            run.paused_at = []
            self._finish(run)
        return run

    def replay_from(self, run: Run, sequence_index: int, honor_breakpoints: bool = False) -> Run:
        """
        New run of the same program, backend and input with every node
        before ``sequence_index`` pre-satisfied from ``run``'s timeline.

        Raises:
            ReplayError: If a pre-satisfied node has no completed entry
        """
        return self.replay(
            run.program,
            run.timeline.entries,
            sequence_index,
            backend=run.backend,
            input=run.input,
            honor_breakpoints=honor_breakpoints,
        )

    def replay(
        self,
        program: CompiledProgram,
        entries: Iterable[TimelineEntry],
        sequence_index: int,
        backend: BackendSpec = None,
        input: Any = None,
        honor_breakpoints: bool = False,
    ) -> Run:
        """
        Replay a program from ``sequence_index`` using captured outputs.

        Raises:
            ReplayError: If the entries do not cover every node before
                ``sequence_index`` with a completed output of this program
        """
        if not 0 <= sequence_index <= len(program.order):
            raise ReplayError(
                f"sequence_index {sequence_index} out of range 0..{len(program.order)}"
            )

        by_index: Dict[int, TimelineEntry] = {}
        for entry in entries:
            if entry.sequence_index < sequence_index:
                by_index[entry.sequence_index] = entry

        for i in range(sequence_index):
            node_id = program.order[i]
            entry = by_index.get(i)
            if entry is None:
                raise ReplayError(f"No timeline entry for node '{node_id}' (index {i})", node_ids=[node_id])
            if entry.node_id != node_id or entry.node_kind != program.fragments[node_id].kind:
                raise ReplayError(
                    f"Timeline entry {i} is for '{entry.node_id}' ({entry.node_kind}), "
                    f"program has '{node_id}' ({program.fragments[node_id].kind})",
                    node_ids=[node_id],
                )
            if entry.final_state != FinalState.COMPLETED or not entry.has_output:
                raise ReplayError(
                    f"Node '{node_id}' did not complete ({entry.final_state.value}); cannot replay past it",
                    node_ids=[node_id],
                )

        run = self.create_run(program, backend, input, honor_breakpoints)
        for i in range(sequence_index):
            entry = by_index[i]
            record = run.records[entry.node_id]
            record.state = ExecutionState.COMPLETED
            record.output = to_json_value(entry.captured_output)
            record.has_output = True
            record.replayed = True
            record.started_at = datetime.now(timezone.utc)
            self._record_entry(run, record)

        logger.info(
            f"Replaying from index {sequence_index}",
            extra=with_run_context(run_id=run.run_id, flow_name=program.name),
        )
        return self.drive(run)

    # ------------------------------------------------------------------
    # Run setup
    # ------------------------------------------------------------------

    def _resolve_backend(self, program: CompiledProgram, backend: BackendSpec) -> ExecutionBackend:
        if backend is not None and not isinstance(backend, (BackendKind, str)):
            return backend
        kind = resolve_backend(
            backend if backend is not None else self.settings.default_backend,
            program.text,
            self.settings,
        )
        return create_backend(kind, self.settings)

    def create_run(
        self,
        program: CompiledProgram,
        backend: BackendSpec = None,
        input: Any = None,
        honor_breakpoints: bool = True,
    ) -> Run:
        """
        Create a run without driving it. Hand it to ``drive`` (possibly on
        another thread) to keep a reference for ``cancel``.

        Raises:
            BackendCompileFailed: If the backend rejects the program text
        """
        backend_impl = self._resolve_backend(program, backend)
        run_id = str(uuid.uuid4())
        run = Run(
            program=program,
            backend=backend_impl,
            input=to_json_value(input),
            honor_breakpoints=honor_breakpoints,
            timeline=RunTimeline(run_id, len(program.order), self.timeline_store),
            run_id=run_id,
        )
        self._compile(run)
        logger.info(
            f"Run created on {backend_impl.name} backend",
            extra=with_run_context(run_id=run_id, flow_name=program.name, digest=program.digest),
        )
        return run

    def _compile(self, run: Run) -> None:
        """
        Compile the whole program, then each fragment.

        Raises:
            BackendCompileFailed: Attributed to the node owning the failing line
        """
        program = run.program
        try:
            run.backend.compile(program.text)
        except BackendCompileFailed as e:
            node_id = program.node_for_line(e.lineno)
            logger.error(
                f"Backend rejected program: {e.cause}",
                extra=with_run_context(flow_name=program.name, node_id=node_id),
            )
            raise e.attributed_to(node_id) from e

        for node_id in program.order:
            fragment = program.fragments[node_id]
            try:
                run.executables[node_id] = run.backend.compile(fragment.source)
            except BackendCompileFailed as e:
                lineno = fragment.start_line + e.lineno - 1 if e.lineno else None
                raise BackendCompileFailed(e.cause, lineno=lineno, node_id=node_id) from e

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _ready(self, run: Run) -> List[str]:
        """Pending nodes whose upstream nodes all completed, in sequence order."""
        ready = []
        for node_id in run.program.order:
            record = run.records[node_id]
            if record.state != ExecutionState.PENDING or record.reason is not None:
                continue
            if all(
                run.records[up].state == ExecutionState.COMPLETED
                for up in run.program.upstream[node_id]
            ):
                ready.append(node_id)
        return ready

    def drive(self, run: Run) -> Run:
        """
        Scheduling loop: runs until nothing can progress, then leaves the
        run suspended (paused at breakpoints) or done.
        """
        if run.status == RunStatus.DONE:
            return run
        run.status = RunStatus.RUNNING
        started = time.perf_counter()
        program = run.program

        with ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="autograph-node",
        ) as pool:
            in_flight: Dict[Future, str] = {}

            while True:
                if not run.cancel_requested:
                    for node_id in self._ready(run):
                        if (
                            run.honor_breakpoints
                            and node_id in program.breakpoints
                            and node_id not in run.released
                        ):
                            if node_id not in run.paused_at:
                                run.paused_at.append(node_id)
                                logger.info(
                                    "Breakpoint hit",
                                    extra=with_run_context(
                                        run_id=run.run_id,
                                        flow_name=program.name,
                                        node_id=node_id,
                                        sequence_index=run.records[node_id].sequence_index,
                                    ),
                                )
                            continue

                        record = run.records[node_id]
                        record.state = ExecutionState.EXECUTING
                        record.started_at = datetime.now(timezone.utc)
                        future = pool.submit(
                            self._execute_node,
                            run.backend,
                            run.executables[node_id],
                            program.fragments[node_id].binding,
                            node_id,
                            self._node_inputs(run, node_id),
                        )
                        in_flight[future] = node_id

                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: run.records[in_flight[f]].sequence_index):
                    in_flight.pop(future)
                    self._apply(run, future.result())

        run.elapsed_ms += (time.perf_counter() - started) * 1000

        if run.paused_at and not run.cancel_requested:
            run.status = RunStatus.SUSPENDED
            logger.info(
                f"Run suspended at {', '.join(run.paused_at)}",
                extra=with_run_context(run_id=run.run_id, flow_name=program.name),
            )
            return run

        run.paused_at = []
        self._finish(run)
        return run

    def _node_inputs(self, run: Run, node_id: str) -> Dict[str, Any]:
        program = run.program
        inputs: Dict[str, Any] = {"input": run.input}
        for up in program.upstream[node_id]:
            inputs[program.fragments[up].binding] = run.records[up].output
        return inputs

    @staticmethod
    def _execute_node(
        backend: ExecutionBackend,
        executable: Executable,
        binding: str,
        node_id: str,
        inputs: Mapping[str, Any],
    ) -> NodeOutcome:
        """Execute one fragment (worker thread; touches no run state)."""
        start_time = time.perf_counter()
        try:
            bindings = backend.execute(executable, inputs)
            if binding not in bindings:
                raise NodeExecutionFailed(f"fragment did not define '{binding}'", node_id=node_id)
            output = to_json_value(bindings[binding])
            return NodeOutcome(
                node_id=node_id,
                ok=True,
                output=output,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )
        except Exception as e:
            return NodeOutcome(
                node_id=node_id,
                ok=False,
                error=e.message if isinstance(e, NodeExecutionFailed) else f"{type(e).__name__}: {e}",
                error_traceback=traceback.format_exc(),
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

    def _apply(self, run: Run, outcome: NodeOutcome) -> None:
        """Record a worker outcome (scheduling thread)."""
        record = run.records[outcome.node_id]
        record.duration_ms = outcome.duration_ms
        extra = with_run_context(
            run_id=run.run_id,
            flow_name=run.program.name,
            node_id=record.node_id,
            sequence_index=record.sequence_index,
        )

        if outcome.ok:
            record.state = ExecutionState.COMPLETED
            record.output = outcome.output
            record.has_output = True
            logger.debug(f"Node completed in {outcome.duration_ms:.1f}ms", extra=extra)
            self._record_entry(run, record)
            return

        record.state = ExecutionState.ERRORED
        record.error = outcome.error
        record.error_traceback = outcome.error_traceback
        logger.error(f"Node failed: {outcome.error}", extra=extra)
        self._record_entry(run, record)
        self._mark_downstream_skipped(run, record.node_id)

    def _mark_downstream_skipped(self, run: Run, failed_node: str) -> None:
        """Mark all dependents of a failed node as skipped."""
        for name in sorted(run.program.descendants(failed_node), key=lambda n: run.records[n].sequence_index):
            record = run.records[name]
            if record.state != ExecutionState.PENDING or record.reason is not None:
                continue
            record.reason = PendingReason.SKIPPED_DUE_TO_UPSTREAM_ERROR
            record.error = f"upstream node '{failed_node}' errored"
            self._record_entry(run, record)

    def _finish(self, run: Run) -> None:
        """Mark leftover pending nodes cancelled and close the run."""
        for node_id in run.program.order:
            record = run.records[node_id]
            if record.state == ExecutionState.PENDING and record.reason is None:
                record.reason = PendingReason.CANCELLED
                record.error = "run cancelled"
                self._record_entry(run, record)
        run.status = RunStatus.DONE
        logger.info(
            f"Run finished: {run.outcome.value}",
            extra=with_run_context(run_id=run.run_id, flow_name=run.program.name),
        )

    def _record_entry(self, run: Run, record: NodeRecord) -> None:
        run.timeline.record(
            TimelineEntry(
                run_id=run.run_id,
                node_id=record.node_id,
                node_kind=record.kind,
                sequence_index=record.sequence_index,
                timestamp=record.started_at or datetime.now(timezone.utc),
                duration_ms=record.duration_ms,
                final_state=record.final_state,
                captured_output=record.output,
                has_output=record.has_output,
                error=record.error,
                replayed=record.replayed,
            )
        )


__all__ = [
    "ExecutionState",
    "PendingReason",
    "RunStatus",
    "RunOutcome",
    "NodeRecord",
    "NodeOutcome",
    "RunResult",
    "Run",
    "ExecutionEngine",
    "to_json_value",
]
