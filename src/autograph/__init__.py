"""
Autograph

Visual-workflow compiler and execution engine: a graph of typed nodes is
compiled into deterministic flow program text, executed against a
sandboxed backend and recorded on a replayable timeline.

Architecture:
- node_registry/: Node kinds, code generation contract, pack discovery
- nodepacks/: Built-in node kinds
- workflow_runtime/: Flow model, compiler, engine, timeline, deploy/run
- backends/: Sandboxed CPU/GPU backends and runtime functions
- config/, observability/: Settings and structured logging
"""

__version__ = "0.1.0"
