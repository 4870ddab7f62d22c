"""CLI entry point for stagegraph."""

import logging
from datetime import date
from pathlib import Path

import click
from dotenv import load_dotenv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

load_dotenv()

from stagegraph.graph.builder import GraphBuilder, to_networkx
from stagegraph.ingestion.loader import load_trace
from stagegraph.models import BatchResult, GraphReport, NodeKind, TraceTable
from stagegraph.reporting.reporter import (
    build_report,
    generate_batch_json,
    generate_batch_summary,
    generate_json_report,
    generate_markdown_report,
    write_report,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_or_fail(trace_file: Path) -> TraceTable:
    try:
        return load_trace(trace_file)
    except ValueError as e:
        # ValidationError and UnicodeDecodeError are both ValueErrors.
        raise click.ClickException(f"Invalid trace table {trace_file}: {e}") from e


def _run_build(trace: TraceTable, echo: bool = True) -> GraphReport:
    """Build the stage graph for one trace and collect the report."""
    graph = GraphBuilder(trace).build()
    dag = to_networkx(graph)
    if echo:
        click.echo(f"Graph: {dag.number_of_nodes()} nodes, {dag.number_of_edges()} edges.")
    return build_report(trace, graph)


@click.group()
@click.option(
    "--log-level",
    envvar="STAGEGRAPH_LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    help="Logging level (or set STAGEGRAPH_LOG_LEVEL).",
)
def main(log_level: str):
    """Stagegraph — build stage DAGs from execution trace tables."""
    logging.getLogger().setLevel(log_level.upper())


@main.command()
@click.argument("trace_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output markdown report path.")
@click.option("--json-output", "-j", type=click.Path(path_type=Path), default=None, help="Output JSON report path.")
@click.option("--output-dir", envvar="STAGEGRAPH_OUTPUT_DIR", type=click.Path(file_okay=False, path_type=Path), default=Path("logs"), help="Report root directory (or set STAGEGRAPH_OUTPUT_DIR).")
def build(trace_file: Path, output: Path | None, json_output: Path | None, output_dir: Path):
    """Build the stage graph of a trace table and write reports."""
    click.echo(f"Loading trace from {trace_file}...")
    trace = _load_or_fail(trace_file)
    click.echo(f"Loaded trace '{trace.run_id}' with {len(trace.rows)} rows.")

    click.echo("Building stage graph...")
    report = _run_build(trace)
    click.echo(f"Found {len(report.failed_nodes)} failed node(s).")

    log_dir = output_dir / date.today().isoformat()
    if not output:
        output = log_dir / "report.md"
    if not json_output:
        json_output = log_dir / "graph.json"

    write_report(generate_markdown_report(report), output)
    click.echo(f"Markdown report written to {output}")

    write_report(generate_json_report(report), json_output)
    click.echo(f"JSON report written to {json_output}")


@main.command("build-batch")
@click.argument("trace_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--output-dir", envvar="STAGEGRAPH_OUTPUT_DIR", type=click.Path(file_okay=False, path_type=Path), default=Path("logs"), help="Report root directory (or set STAGEGRAPH_OUTPUT_DIR).")
def build_batch(trace_dir: Path, output_dir: Path):
    """Build stage graphs for all trace tables in a directory."""
    trace_files = sorted(trace_dir.glob("*.json"))
    if not trace_files:
        click.echo(f"No .json files found in {trace_dir}")
        return

    click.echo(f"Found {len(trace_files)} JSON file(s) in {trace_dir}")
    log_dir = output_dir / date.today().isoformat()

    results: list[GraphReport] = []
    skipped: list[dict] = []
    for trace_file in trace_files:
        try:
            trace = load_trace(trace_file)
        except Exception as e:
            logger.error("Failed to load %s: %s", trace_file.name, e)
            click.echo(f"  WARNING: Skipping {trace_file.name} — {e}")
            skipped.append({"file": trace_file.name, "error": str(e)})
            continue

        report = _run_build(trace, echo=False)
        click.echo(
            f"  {trace_file.name}: {len(report.nodes)} node(s), "
            f"{report.edge_count} edge(s), {len(report.failed_nodes)} failed"
        )

        trace_log_dir = log_dir / trace_file.stem
        write_report(generate_markdown_report(report), trace_log_dir / "report.md")
        write_report(generate_json_report(report), trace_log_dir / "graph.json")
        results.append(report)

    batch = BatchResult(results=results, skipped=skipped)
    write_report(generate_batch_summary(batch), log_dir / "summary.md")
    write_report(generate_batch_json(batch), log_dir / "batch.json")

    click.echo(f"\n{'='*60}")
    click.echo(f"Batch complete: {len(results)} processed, {len(skipped)} skipped.")
    click.echo(f"Summary written to {log_dir / 'summary.md'}")
    click.echo(f"Batch JSON written to {log_dir / 'batch.json'}")


@main.command()
@click.argument("trace_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def show(trace_file: Path):
    """Print the stage graph of a trace table.

    \b
    Example:
        stagegraph show examples/parallel_trace.json
    """
    trace = _load_or_fail(trace_file)
    nodes = GraphBuilder(trace).pipeline_nodes()
    if not nodes:
        click.echo("No stages or parallel branches found.")
        return

    click.echo(f"\n  {trace.run_id}\n")
    for pn in nodes:
        kind = "stage" if pn.kind is NodeKind.STAGE else "branch"
        name = pn.node.node_id
        if pn.node.display_name:
            name = f"{pn.node.display_name} ({pn.node.node_id})"
        color = "red" if pn.errors else "green"
        target = ", ".join(pn.edges) if pn.edges else "(end)"
        tag = click.style(f"[{kind}]".rjust(8), fg=color)
        click.echo(f"  {tag}  {name} -> {target}")
        for err in pn.errors:
            click.echo(f"              ! {err.message}")

    failed = sum(1 for pn in nodes if pn.errors)
    click.echo(f"\n  {len(nodes)} nodes, {failed} failed\n")


if __name__ == "__main__":
    main()
