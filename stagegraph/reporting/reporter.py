"""Generate stage graph reports in markdown and JSON formats."""

from __future__ import annotations

from pathlib import Path

from stagegraph.graph.builder import build_stage_graph, pipeline_nodes
from stagegraph.models import BatchResult, GraphReport, NodeKind, StageGraph, TraceTable


def build_report(trace: TraceTable, graph: StageGraph | None = None) -> GraphReport:
    """Collect a trace table's stage graph into a report.

    The graph is built from the trace unless an already built one is passed.
    """
    if graph is None:
        graph = build_stage_graph(trace)
    nodes = pipeline_nodes(graph)
    return GraphReport(
        run_id=trace.run_id,
        row_count=len(trace.rows),
        nodes=nodes,
        edge_count=sum(len(n.edges) for n in nodes),
        failed_nodes=[n.node.node_id for n in nodes if n.errors],
        metadata=trace.metadata,
    )


def _node_title(node_id: str, display_name: str) -> str:
    if display_name and display_name != node_id:
        return f"{display_name} (`{node_id}`)"
    return f"`{node_id}`"


def generate_markdown_report(report: GraphReport) -> str:
    """Generate a markdown stage graph report."""
    lines: list[str] = []

    stages = [n for n in report.nodes if n.kind is NodeKind.STAGE]
    branches = [n for n in report.nodes if n.kind is NodeKind.PARALLEL_BRANCH]

    lines.append(f"# Stage Graph: {report.run_id}")
    lines.append(f"\n**Rows Scanned:** {report.row_count}")
    lines.append(f"**Stages:** {len(stages)}")
    lines.append(f"**Parallel Branches:** {len(branches)}")
    lines.append(f"**Edges:** {report.edge_count}")
    lines.append(f"**Failed Nodes:** {len(report.failed_nodes)}")

    lines.append("\n## Nodes")
    if not report.nodes:
        lines.append("\nNo stages or parallel branches found.")
    for pn in report.nodes:
        node = pn.node
        lines.append(f"\n### {_node_title(node.node_id, node.display_name)}")
        lines.append(f"\n- **Kind:** {pn.kind.value}")
        if pn.kind is NodeKind.PARALLEL_BRANCH:
            lines.append(f"- **Parallel Group:** {node.label}")
            lines.append(f"- **Branch:** {node.thread_name}")
        if pn.edges:
            lines.append(f"- **Next:** {', '.join(pn.edges)}")
        else:
            lines.append("- **Next:** (terminal)")

    # Errors
    lines.append("\n## Errors")
    failing = [pn for pn in report.nodes if pn.errors]
    if failing:
        for pn in failing:
            lines.append(f"\n### {_node_title(pn.node.node_id, pn.node.display_name)}")
            lines.append("")
            for err in pn.errors:
                lines.append(f"- {err.message}")
    else:
        lines.append("\nNo errors recorded.")

    lines.append("")
    return "\n".join(lines)


def generate_json_report(report: GraphReport) -> str:
    """Generate a JSON stage graph report."""
    return report.model_dump_json(indent=2)


def generate_batch_summary(batch: BatchResult) -> str:
    """Generate a markdown summary table across all batch traces."""
    lines: list[str] = []

    lines.append("# Batch Stage Graph Summary")
    lines.append(f"\n**Traces Processed:** {len(batch.results)}")
    lines.append(f"**Traces Skipped:** {len(batch.skipped)}")

    lines.append("\n## Results")
    lines.append("")
    lines.append("| Run | Rows | Nodes | Edges | Failed Nodes |")
    lines.append("|-----|------|-------|-------|--------------|")
    for report in batch.results:
        lines.append(
            f"| {report.run_id} | {report.row_count} "
            f"| {len(report.nodes)} | {report.edge_count} "
            f"| {len(report.failed_nodes)} |"
        )

    if batch.skipped:
        lines.append("\n## Skipped Files")
        for entry in batch.skipped:
            lines.append(f"- **{entry['file']}**: {entry['error']}")

    lines.append("")
    return "\n".join(lines)


def generate_batch_json(batch: BatchResult) -> str:
    """Generate a JSON report for a batch build."""
    return batch.model_dump_json(indent=2)


def write_report(content: str, path: Path) -> None:
    """Write report content to a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
