"""JSON output writer."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone

from ..engine import AnalysisResult
from ..graphs.models import DependencyGraph


def write_graph_json(graph: DependencyGraph, output_dir: str) -> str:
    """Write the canonical graph serialization; identical graphs give identical files."""
    path = os.path.join(output_dir, "graph.json")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(graph.to_json())
    return path


def write_report_json(result: AnalysisResult, output_dir: str) -> str:
    """Write the run report: worlds, warnings and the allowed unresolved packages."""
    path = os.path.join(output_dir, "report.json")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    data = {
        "generated_at": _now_iso(),
        "duration_seconds": round(result.duration_seconds, 3),
        "node_count": result.graph.node_count,
        "edge_count": result.graph.edge_count,
        **result.to_dict(),
    }

    _write_json(path, data)
    return path


def _write_json(path: str, data):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
