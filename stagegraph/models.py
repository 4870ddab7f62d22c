"""Data models for execution traces, built stage graphs, and reports."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeKind(str, Enum):
    STAGE = "stage"
    PARALLEL_BRANCH = "parallel_branch"
    OTHER = "other"


class NodeError(BaseModel):
    """Failure recorded against a single trace row. Opaque to the graph builder."""

    model_config = ConfigDict(frozen=True)

    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ExecutionNode(BaseModel):
    """A single node of a running process, as seen in the trace table.

    A stage carries the ``stage`` marker. A parallel branch carries both a
    parallel-group ``label`` and a ``thread_name``.
    """

    model_config = ConfigDict(frozen=True)

    node_id: str
    display_name: str = ""
    stage: bool = False
    label: str | None = None
    thread_name: str | None = None
    error: NodeError | None = None


class Row(BaseModel):
    """One position in the ordered trace table."""

    node: ExecutionNode


class TraceTable(BaseModel):
    """An ordered, fully materialized execution trace."""

    run_id: str
    rows: list[Row] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _unique_node_ids(self) -> TraceTable:
        """Each row is its own node; a reused node_id would alias two positions."""
        seen: set[str] = set()
        for i, row in enumerate(self.rows):
            node_id = row.node.node_id
            if node_id in seen:
                raise ValueError(f"duplicate node_id '{node_id}' at row {i}")
            seen.add(node_id)
        return self


class PipelineNode(BaseModel):
    """A graph node together with its successors and attached errors."""

    model_config = ConfigDict(frozen=True)

    node: ExecutionNode
    kind: NodeKind
    edges: list[str] = Field(default_factory=list)
    errors: list[NodeError] = Field(default_factory=list)


class StageGraph(BaseModel):
    """Result of a single graph build.

    ``adjacency`` and ``errors`` are keyed by ``node_id`` and iterate in the
    order nodes were first encountered in the trace. All three mappings are
    read-only.
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    nodes: Mapping[str, ExecutionNode] = Field(default_factory=dict)
    adjacency: Mapping[str, tuple[str, ...]] = Field(default_factory=dict)
    errors: Mapping[str, tuple[NodeError, ...]] = Field(default_factory=dict)

    @field_validator("nodes", "adjacency", "errors", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    def successors(self, node_id: str) -> tuple[str, ...]:
        return self.adjacency.get(node_id, ())

    def errors_for(self, node_id: str) -> tuple[NodeError, ...]:
        return self.errors.get(node_id, ())

    def is_empty(self) -> bool:
        return not self.adjacency


class GraphReport(BaseModel):
    """Complete report for one trace table."""

    run_id: str
    row_count: int = 0
    nodes: list[PipelineNode] = Field(default_factory=list)
    edge_count: int = 0
    failed_nodes: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class BatchResult(BaseModel):
    """Result of building graphs for multiple trace files."""

    results: list[GraphReport]
    skipped: list[dict] = Field(default_factory=list)  # {"file": str, "error": str}
