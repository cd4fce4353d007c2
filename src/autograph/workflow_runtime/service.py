"""
Flow Service - Deploy/run boundary.

The two operations exposed upward:
- deploy(flow_name, flow): validate by compiling, then persist
- run(flow_name, input, backend): load a fresh snapshot, compile, execute
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from autograph.config import Settings, get_settings
from autograph.errors import (
    CodeGenContractViolation,
    ConfigError,
    FlowNotFound,
    FlowValidationError,
    GraphError,
)
from autograph.node_registry import NodeRegistry
from autograph.observability import get_logger, with_run_context

from .compiler import CompiledProgram, FlowCompiler
from .executor import BackendSpec, ExecutionEngine, RunResult
from .models import Flow


logger = get_logger(__name__)

_FLOW_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_flow_name(flow_name: str) -> str:
    """
    Raises:
        ValueError: If the name is empty or uses characters outside [A-Za-z0-9_.-]
    """
    if not isinstance(flow_name, str) or not _FLOW_NAME.match(flow_name) or flow_name in (".", ".."):
        raise ValueError(f"Invalid flow name: {flow_name!r}")
    return flow_name


@dataclass(frozen=True)
class DeployResult:
    """Outcome of a successful deploy."""
    flow_name: str
    digest: str
    source: str


class FlowStore(Protocol):
    """Persistence for deployed flows and their program text."""

    def save(self, flow_name: str, flow: Flow, source: str) -> None:
        ...

    def load(self, flow_name: str) -> Flow:
        ...

    def source(self, flow_name: str) -> str:
        ...

    def exists(self, flow_name: str) -> bool:
        ...

    def list_flows(self) -> List[str]:
        ...


class InMemoryFlowStore:
    """Process-local flow store; flows are stored as JSON documents."""

    def __init__(self) -> None:
        self._flows: Dict[str, str] = {}
        self._sources: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, flow_name: str, flow: Flow, source: str) -> None:
        with self._lock:
            self._flows[flow_name] = flow.to_json()
            self._sources[flow_name] = source

    def load(self, flow_name: str) -> Flow:
        with self._lock:
            document = self._flows.get(flow_name)
        if document is None:
            raise FlowNotFound(flow_name)
        return Flow.from_json(document)

    def source(self, flow_name: str) -> str:
        with self._lock:
            if flow_name not in self._sources:
                raise FlowNotFound(flow_name)
            return self._sources[flow_name]

    def exists(self, flow_name: str) -> bool:
        with self._lock:
            return flow_name in self._flows

    def list_flows(self) -> List[str]:
        with self._lock:
            return sorted(self._flows)


class JsonFileFlowStore:
    """
    Flow store on disk.

    Layout (under ``flows_dir``):
        <name>.json     flow document
        <name>.flow.py  compiled program text
    """

    FLOW_SUFFIX = ".json"
    SOURCE_SUFFIX = ".flow.py"

    def __init__(self, flows_dir: Optional[Path] = None):
        self.flows_dir = Path(flows_dir if flows_dir is not None else get_settings().flows_dir)

    def _flow_path(self, flow_name: str) -> Path:
        return self.flows_dir / f"{validate_flow_name(flow_name)}{self.FLOW_SUFFIX}"

    def _source_path(self, flow_name: str) -> Path:
        return self.flows_dir / f"{validate_flow_name(flow_name)}{self.SOURCE_SUFFIX}"

    def save(self, flow_name: str, flow: Flow, source: str) -> None:
        self.flows_dir.mkdir(parents=True, exist_ok=True)
        self._flow_path(flow_name).write_text(flow.to_json(), encoding="utf-8")
        self._source_path(flow_name).write_text(source, encoding="utf-8")

    def load(self, flow_name: str) -> Flow:
        path = self._flow_path(flow_name)
        if not path.exists():
            raise FlowNotFound(flow_name)
        return Flow.from_json(path.read_text(encoding="utf-8"))

    def source(self, flow_name: str) -> str:
        path = self._source_path(flow_name)
        if not path.exists():
            raise FlowNotFound(flow_name)
        return path.read_text(encoding="utf-8")

    def exists(self, flow_name: str) -> bool:
        return self._flow_path(flow_name).exists()

    def list_flows(self) -> List[str]:
        if not self.flows_dir.exists():
            return []
        return sorted(
            p.name[: -len(self.FLOW_SUFFIX)]
            for p in self.flows_dir.glob(f"*{self.FLOW_SUFFIX}")
        )


class FlowService:
    """
    Deploy and run named flows.

    Usage:
        service = FlowService()
        service.deploy("tensor_demo", flow)
        result = service.run("tensor_demo", input=None, backend="cpu")
    """

    def __init__(
        self,
        store: Optional[FlowStore] = None,
        registry: Optional[NodeRegistry] = None,
        engine: Optional[ExecutionEngine] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else JsonFileFlowStore(self.settings.flows_dir)
        self.compiler = FlowCompiler(registry)
        self.engine = engine or ExecutionEngine(settings=self.settings)

    def deploy(self, flow_name: str, flow: Flow) -> DeployResult:
        """
        Validate a flow by compiling it and persist it with its program text.

        Raises:
            ValueError: If the flow name is invalid
            FlowValidationError: Wrapping the graph, config or codegen error
        """
        validate_flow_name(flow_name)
        try:
            program = self.compiler.compile(flow, name=flow_name)
        except (GraphError, ConfigError, CodeGenContractViolation) as e:
            logger.warning(
                f"Deploy rejected: {e.message}",
                extra=with_run_context(flow_name=flow_name),
            )
            raise FlowValidationError(flow_name, e) from e

        self.store.save(flow_name, flow, program.text)
        logger.info(
            "Flow deployed",
            extra=with_run_context(flow_name=flow_name, digest=program.digest),
        )
        return DeployResult(flow_name=flow_name, digest=program.digest, source=program.text)

    def compile(self, flow_name: str) -> CompiledProgram:
        """
        Compile the currently deployed version of a flow.

        Raises:
            FlowNotFound: If no flow is deployed under the name
        """
        validate_flow_name(flow_name)
        flow = self.store.load(flow_name)
        return self.compiler.compile(flow, name=flow_name)

    def run(
        self,
        flow_name: str,
        input: Any = None,
        backend: BackendSpec = None,
    ) -> RunResult:
        """
        Run a deployed flow to completion.

        Raises:
            FlowNotFound: If no flow is deployed under the name
            GraphError, ConfigError: If the stored flow no longer compiles
            BackendError: If the backend rejects the program
        """
        program = self.compile(flow_name)
        result = self.engine.execute(program, backend=backend, input=input)
        logger.info(
            f"Flow run finished: {result.outcome.value}",
            extra=with_run_context(run_id=result.run_id, flow_name=flow_name),
        )
        return result

    def list_flows(self) -> List[str]:
        return self.store.list_flows()


__all__ = [
    "DeployResult",
    "FlowStore",
    "InMemoryFlowStore",
    "JsonFileFlowStore",
    "FlowService",
    "validate_flow_name",
]
