"""DOT graph output writer.

Generates a Graphviz DOT file for the revision graph.
"""

from __future__ import annotations

import os

from ..graphs.models import DependencyGraph


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def write_graph_dot(graph: DependencyGraph, output_dir: str) -> str:
    """Write the revision graph as a DOT file."""
    path = os.path.join(output_dir, "graph.dot")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        f.write("digraph dependencies {\n")
        f.write("  rankdir=LR;\n")
        f.write("  node [shape=box, style=filled, fillcolor=lightyellow];\n")
        f.write("  edge [color=gray40];\n")
        f.write("\n")

        for node in graph.nodes:
            label = node.name
            if node.revision:
                label += f"\\n{node.revision[:12]}"
            attrs = [f"label={_quote(label)}"]
            if node.is_root:
                attrs.append("fillcolor=lightblue")
            elif node.is_unresolved or not node.revision:
                # Unpinned dependencies
                attrs.append("fillcolor=lightgray")
                attrs.append("shape=ellipse")
            f.write(f"  {_quote(node.id)} [{', '.join(attrs)}];\n")
        f.write("\n")

        for edge in graph.edges:
            style = ""
            if edge.worlds and edge.worlds != ("host",):
                style = f" [label={_quote(','.join(edge.worlds))}]"
            f.write(f"  {_quote(edge.from_node)} -> {_quote(edge.to_node)}{style};\n")

        f.write("}\n")

    return path
