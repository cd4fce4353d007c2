"""
Workflow Runtime - Flow model, compiler, execution engine and timeline.

This package provides:
- Flow / Node / Edge: the persisted flow document
- FlowCompiler: deterministic flow -> program text compilation
- ExecutionEngine: parallel, breakpoint-aware, replayable runs
- Timeline stores: in-memory and Redis
- FlowService: deploy/run boundary
"""

from .compiler import CompiledProgram, FlowCompiler, Fragment, compile_flow
from .executor import (
    ExecutionEngine,
    ExecutionState,
    NodeRecord,
    PendingReason,
    Run,
    RunOutcome,
    RunResult,
    RunStatus,
)
from .graph import FlowGraph
from .models import Edge, Flow, Node, Position
from .service import (
    DeployResult,
    FlowService,
    InMemoryFlowStore,
    JsonFileFlowStore,
)
from .templates import WorkflowTemplate, all_templates, get_template
from .timeline import (
    FinalState,
    InMemoryTimelineStore,
    RedisTimelineStore,
    RunTimeline,
    TimelineEntry,
    TimelineStore,
)

__all__ = [
    # Models
    "Flow",
    "Node",
    "Edge",
    "Position",
    # Compilation
    "FlowGraph",
    "FlowCompiler",
    "CompiledProgram",
    "Fragment",
    "compile_flow",
    # Execution
    "ExecutionEngine",
    "ExecutionState",
    "PendingReason",
    "NodeRecord",
    "Run",
    "RunOutcome",
    "RunResult",
    "RunStatus",
    # Timeline
    "FinalState",
    "TimelineEntry",
    "TimelineStore",
    "RunTimeline",
    "InMemoryTimelineStore",
    "RedisTimelineStore",
    # Service
    "DeployResult",
    "FlowService",
    "InMemoryFlowStore",
    "JsonFileFlowStore",
    # Templates
    "WorkflowTemplate",
    "all_templates",
    "get_template",
]
