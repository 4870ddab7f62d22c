"""stagegraph — turn execution trace tables into stage/parallel-branch DAGs."""

__version__ = "0.1.0"

from stagegraph.graph.builder import GraphBuildError, GraphBuilder, build_stage_graph, classify
from stagegraph.models import ExecutionNode, NodeError, NodeKind, PipelineNode, Row, StageGraph, TraceTable

__all__ = [
    "ExecutionNode",
    "GraphBuildError",
    "GraphBuilder",
    "NodeError",
    "NodeKind",
    "PipelineNode",
    "Row",
    "StageGraph",
    "TraceTable",
    "build_stage_graph",
    "classify",
]
