"""Build stage graphs from execution trace tables."""

from __future__ import annotations

import logging
from typing import Sequence

import networkx as nx

from stagegraph.models import (
    ExecutionNode,
    NodeError,
    NodeKind,
    PipelineNode,
    Row,
    StageGraph,
    TraceTable,
)

logger = logging.getLogger(__name__)


class GraphBuildError(RuntimeError):
    """Raised when build() is re-entered on a builder that is still scanning."""


def is_stage(node: ExecutionNode) -> bool:
    return node.stage


def is_parallel_branch(node: ExecutionNode) -> bool:
    return node.label is not None and node.thread_name is not None


def is_acceptable(node: ExecutionNode) -> bool:
    return is_stage(node) or is_parallel_branch(node)


def classify(node: ExecutionNode) -> NodeKind:
    """Map a node's markers to its kind. Stage markers win over branch markers."""
    if is_stage(node):
        return NodeKind.STAGE
    if is_parallel_branch(node):
        return NodeKind.PARALLEL_BRANCH
    return NodeKind.OTHER


class GraphBuilder:
    """Turns an ordered trace table into a DAG of stages and parallel branches.

    Stages are chained in trace order. A run of parallel branches fans out from
    the stage before it and fans back in to the first stage after it. Errors
    carried by rows are attributed to graph nodes while scanning:

    - an error on any row is recorded against the current gating stage;
    - the first stage of the trace keeps its own error;
    - inside a parallel group an error is recorded against the most recent
      branch and, again, against the gating stage.

    ``build()`` scans once and caches the frozen result.
    """

    def __init__(self, rows: TraceTable | Sequence[Row]) -> None:
        if isinstance(rows, TraceTable):
            rows = rows.rows
        self._rows: tuple[Row, ...] = tuple(rows)
        self._result: StageGraph | None = None
        self._building = False

        # Scan state
        self._nodes: dict[str, ExecutionNode] = {}
        self._adjacency: dict[str, list[str]] = {}
        self._errors: dict[str, list[NodeError]] = {}
        self._previous_stage: ExecutionNode | None = None

    @property
    def rows(self) -> tuple[Row, ...]:
        return self._rows

    @property
    def previous_stage(self) -> ExecutionNode | None:
        """Gating stage left over when the scan finished, if any."""
        return self._previous_stage

    def build(self) -> StageGraph:
        """Scan the rows once and return the stage graph.

        Later calls return the same StageGraph instance without rescanning.
        """
        if self._result is not None:
            return self._result
        if self._building:
            raise GraphBuildError("build() is already running on this builder")

        self._building = True
        try:
            self._scan()
            self._result = StageGraph(
                nodes=dict(self._nodes),
                adjacency={node_id: tuple(succ) for node_id, succ in self._adjacency.items()},
                errors={node_id: tuple(errs) for node_id, errs in self._errors.items()},
            )
        finally:
            self._building = False

        logger.debug(
            "Built stage graph from %d rows: %d nodes, %d edges, %d failing",
            len(self._rows),
            len(self._result.adjacency),
            sum(len(succ) for succ in self._result.adjacency.values()),
            len(self._result.errors),
        )
        return self._result

    def pipeline_nodes(self) -> list[PipelineNode]:
        """Return (node, successors, errors) for every graph node, in scan order."""
        return pipeline_nodes(self.build())

    def _scan(self) -> None:
        self._nodes = {}
        self._adjacency = {}
        self._errors = {}
        self._previous_stage = None

        rows = self._rows
        i = 0
        while i < len(rows):
            node = rows[i].node
            error = node.error
            if error is not None and self._previous_stage is not None:
                self._put_error(self._previous_stage, error)

            kind = classify(node)
            if kind is NodeKind.STAGE:
                self._get_or_create(node)
                if self._previous_stage is None:
                    self._previous_stage = node
                    if error is not None:
                        self._put_error(node, error)
                else:
                    self._get_or_create(self._previous_stage).append(node.node_id)
                    self._previous_stage = node
            elif kind is NodeKind.PARALLEL_BRANCH:
                self._get_or_create(node)
                i = self._scan_parallel_group(i)
            i += 1

    def _scan_parallel_group(self, start: int) -> int:
        """Consume the parallel group opened by the branch at ``start``.

        Wires the group between the gating stage and the next stage, moves the
        gating stage forward, and returns the index of the last consumed row.
        """
        rows = self._rows
        previous = self._previous_stage
        first = rows[start].node
        group = [first]
        last_branch = first
        next_stage: ExecutionNode | None = None
        end = len(rows) - 1

        for j in range(start + 1, len(rows)):
            node = rows[j].node
            kind = classify(node)
            if kind is NodeKind.PARALLEL_BRANCH:
                group.append(node)
                last_branch = node

            if node.error is not None:
                self._put_error(last_branch, node.error)
                if previous is not None:
                    self._put_error(previous, node.error)

            if kind is NodeKind.STAGE:
                next_stage = node
                end = j
                break

        for branch in group:
            successors = self._get_or_create(branch)
            if next_stage is not None:
                successors.append(next_stage.node_id)
            if previous is not None:
                self._get_or_create(previous).append(branch.node_id)

        if next_stage is not None:
            self._get_or_create(next_stage)

        self._previous_stage = next_stage
        return end

    def _get_or_create(self, node: ExecutionNode) -> list[str]:
        successors = self._adjacency.get(node.node_id)
        if successors is None:
            successors = []
            self._adjacency[node.node_id] = successors
            self._nodes[node.node_id] = node
        return successors

    def _put_error(self, node: ExecutionNode, error: NodeError) -> None:
        self._errors.setdefault(node.node_id, []).append(error)


def build_stage_graph(trace: TraceTable | Sequence[Row]) -> StageGraph:
    """Build the stage graph for a trace table in one call."""
    return GraphBuilder(trace).build()


def pipeline_nodes(graph: StageGraph) -> list[PipelineNode]:
    """List graph nodes with their successors and errors, in scan order."""
    nodes = []
    for node_id, successors in graph.adjacency.items():
        node = graph.nodes[node_id]
        nodes.append(PipelineNode(
            node=node,
            kind=classify(node),
            edges=list(successors),
            errors=list(graph.errors_for(node_id)),
        ))
    return nodes


def to_networkx(graph: StageGraph) -> nx.DiGraph:
    """Export a stage graph as a directed graph.

    Nodes are keyed by node_id with kind, display name and error count as
    attributes. Edges follow the successor lists.
    """
    dag = nx.DiGraph()

    for node_id, node in graph.nodes.items():
        dag.add_node(
            node_id,
            kind=classify(node).value,
            display_name=node.display_name,
            label=node.label,
            thread_name=node.thread_name,
            errors=len(graph.errors_for(node_id)),
        )

    for node_id, successors in graph.adjacency.items():
        for successor in successors:
            dag.add_edge(node_id, successor)

    return dag
