"""Load and validate execution trace tables from JSON files."""

from pathlib import Path

from stagegraph.models import TraceTable


def load_trace(path: Path) -> TraceTable:
    """Load a trace table from a JSON file, validating with Pydantic.

    Rows keep the order they have in the file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the JSON doesn't match the TraceTable schema,
            including rows without a node.
    """
    return TraceTable.model_validate_json(path.read_text())
