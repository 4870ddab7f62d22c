"""Tests for the stagegraph CLI."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from click.testing import CliRunner

from stagegraph.cli import main

EXAMPLE_TRACE = Path(__file__).parent.parent / "examples" / "parallel_trace.json"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def trace_dir(tmp_path: Path) -> Path:
    """A directory with two valid trace tables and one broken file."""
    d = tmp_path / "traces"
    d.mkdir()
    (d / "a.json").write_text(EXAMPLE_TRACE.read_text())
    (d / "b.json").write_text(json.dumps({
        "run_id": "linear",
        "rows": [
            {"node": {"node_id": "1", "stage": True}},
            {"node": {"node_id": "2", "stage": True}},
        ],
    }))
    (d / "broken.json").write_text(json.dumps({"rows": []}))
    return d


class TestBuild:
    def test_writes_reports(self, runner, tmp_path: Path):
        md = tmp_path / "out" / "report.md"
        js = tmp_path / "out" / "graph.json"
        result = runner.invoke(main, ["build", str(EXAMPLE_TRACE), "-o", str(md), "-j", str(js)])
        assert result.exit_code == 0, result.output
        assert "Loaded trace 'build-42' with 11 rows." in result.output
        assert "Graph: 5 nodes, 5 edges." in result.output
        assert "Found 2 failed node(s)." in result.output
        assert "# Stage Graph: build-42" in md.read_text()
        data = json.loads(js.read_text())
        assert data["failed_nodes"] == ["9", "15"]

    def test_default_output_dir_from_env(self, runner, tmp_path: Path):
        result = runner.invoke(
            main,
            ["build", str(EXAMPLE_TRACE)],
            env={"STAGEGRAPH_OUTPUT_DIR": str(tmp_path / "reports")},
        )
        assert result.exit_code == 0, result.output
        log_dir = tmp_path / "reports" / date.today().isoformat()
        assert (log_dir / "report.md").exists()
        assert (log_dir / "graph.json").exists()

    def test_invalid_trace(self, runner, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"rows": [{"node": {}}]}))
        result = runner.invoke(main, ["build", str(bad), "--output-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "Invalid trace table" in result.output

    def test_missing_file(self, runner, tmp_path: Path):
        result = runner.invoke(main, ["build", str(tmp_path / "missing.json")])
        assert result.exit_code == 2

    def test_binary_trace(self, runner, tmp_path: Path):
        bad = tmp_path / "binary.json"
        bad.write_bytes(b"\xff\xfe\x00garbage")
        result = runner.invoke(main, ["build", str(bad), "--output-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "Invalid trace table" in result.output

    def test_duplicate_node_ids(self, runner, tmp_path: Path):
        dup = tmp_path / "dup.json"
        dup.write_text(json.dumps({
            "run_id": "dup",
            "rows": [
                {"node": {"node_id": "1", "stage": True}},
                {"node": {"node_id": "1", "stage": True}},
            ],
        }))
        result = runner.invoke(main, ["build", str(dup), "--output-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "duplicate node_id" in result.output


class TestBuildBatch:
    def test_processes_and_skips(self, runner, trace_dir: Path, tmp_path: Path):
        out = tmp_path / "reports"
        result = runner.invoke(main, ["build-batch", str(trace_dir), "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "Batch complete: 2 processed, 1 skipped." in result.output
        assert "Skipping broken.json" in result.output

        log_dir = out / date.today().isoformat()
        assert (log_dir / "a" / "report.md").exists()
        assert (log_dir / "b" / "graph.json").exists()
        batch = json.loads((log_dir / "batch.json").read_text())
        assert [r["run_id"] for r in batch["results"]] == ["build-42", "linear"]
        assert batch["skipped"][0]["file"] == "broken.json"
        assert "| linear | 2 | 2 | 1 | 0 |" in (log_dir / "summary.md").read_text()

    def test_skips_binary_file(self, runner, trace_dir: Path, tmp_path: Path):
        (trace_dir / "z.json").write_bytes(b"\xff\xfe\x00garbage")
        out = tmp_path / "reports"
        result = runner.invoke(main, ["build-batch", str(trace_dir), "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "Batch complete: 2 processed, 2 skipped." in result.output
        assert "Skipping z.json" in result.output

        batch = json.loads((out / date.today().isoformat() / "batch.json").read_text())
        assert [s["file"] for s in batch["skipped"]] == ["broken.json", "z.json"]

    def test_empty_directory(self, runner, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(main, ["build-batch", str(empty), "--output-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "No .json files found" in result.output


class TestShow:
    def test_lists_nodes(self, runner):
        result = runner.invoke(main, ["show", str(EXAMPLE_TRACE)])
        assert result.exit_code == 0, result.output
        assert "Build (9) -> 13, 15" in result.output
        assert "Deploy (20) -> (end)" in result.output
        assert "! script returned exit code 1" in result.output
        assert "5 nodes, 2 failed" in result.output

    def test_kind_column_is_padded_before_styling(self, runner):
        result = runner.invoke(main, ["show", str(EXAMPLE_TRACE)], color=True)
        assert result.exit_code == 0, result.output
        assert "\x1b[31m[branch]\x1b[0m  Branch: integration (15)" in result.output
        assert "\x1b[32m [stage]\x1b[0m  Checkout (5)" in result.output

    def test_no_nodes(self, runner, tmp_path: Path):
        p = tmp_path / "steps.json"
        p.write_text(json.dumps({"run_id": "r", "rows": [{"node": {"node_id": "1"}}]}))
        result = runner.invoke(main, ["show", str(p)])
        assert result.exit_code == 0
        assert "No stages or parallel branches found." in result.output


class TestLogLevel:
    def test_accepts_level(self, runner):
        result = runner.invoke(main, ["--log-level", "debug", "show", str(EXAMPLE_TRACE)])
        assert result.exit_code == 0

    def test_rejects_unknown_level(self, runner):
        result = runner.invoke(main, ["--log-level", "loud", "show", str(EXAMPLE_TRACE)])
        assert result.exit_code == 2
