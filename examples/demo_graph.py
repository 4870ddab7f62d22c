"""Demo: build a stage graph from an in-memory trace table.

Run with:  uv run python examples/demo_graph.py
"""

from stagegraph import ExecutionNode, GraphBuilder, NodeError, Row


def stage(node_id: str, name: str, error: str | None = None) -> Row:
    return Row(node=ExecutionNode(
        node_id=node_id,
        display_name=name,
        stage=True,
        error=NodeError(message=error) if error else None,
    ))


def branch(node_id: str, group: str, name: str, error: str | None = None) -> Row:
    return Row(node=ExecutionNode(
        node_id=node_id,
        display_name=f"Branch: {name}",
        label=group,
        thread_name=name,
        error=NodeError(message=error) if error else None,
    ))


def step(node_id: str, name: str, error: str | None = None) -> Row:
    return Row(node=ExecutionNode(
        node_id=node_id,
        display_name=name,
        error=NodeError(message=error) if error else None,
    ))


ROWS = [
    stage("build", "Build"),
    step("build-sh", "sh"),
    branch("linux", "Test", "linux"),
    step("linux-sh", "sh"),
    branch("windows", "Test", "windows"),
    step("windows-sh", "sh", error="tests failed on windows"),
    stage("deploy", "Deploy"),
    step("deploy-sh", "sh"),
]


def main() -> None:
    builder = GraphBuilder(ROWS)
    for pn in builder.pipeline_nodes():
        target = ", ".join(pn.edges) or "(end)"
        print(f"  [{pn.kind.value}] {pn.node.node_id} -> {target}")
        for err in pn.errors:
            print(f"    ! {err.message}")


if __name__ == "__main__":
    main()
