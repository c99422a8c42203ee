"""Dependency graph export helpers for DOT and JSON outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Set

from .dependency_graph import DependencyGraph


def render_dot(graph: DependencyGraph, focus: str = "", include_external: bool = False) -> str:
    selected = _focused_subgraph(graph, focus, include_external)
    in_cycle: Set[str] = {node for cycle in graph.find_circular_dependencies() for node in cycle}

    lines = ["digraph Dependencies {"]
    lines.append("  rankdir=LR;")

    for node in selected["nodes"]:
        attrs = [f'label="{_esc(node)}"']
        if node not in graph.adjacency:
            attrs.append("shape=box, style=dashed")
        elif node in in_cycle:
            attrs.append("color=red")
        lines.append(f'  "{_esc(node)}" [{", ".join(attrs)}];')

    for edge in selected["edges"]:
        lines.append(
            f'  "{_esc(edge["from"])}" -> "{_esc(edge["to"])}" [label="{_esc(edge["type"])}"];'
        )

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_dot(graph: DependencyGraph, output_file: Path, focus: str = "", include_external: bool = False) -> None:
    output_file.write_text(render_dot(graph, focus, include_external), encoding="utf-8")


def export_json(graph: DependencyGraph, output_file: Path) -> None:
    payload = {
        "nodes": list(graph.nodes),
        "edges": [e.to_dict() for e in graph.edges],
        "circularDependencies": graph.find_circular_dependencies(),
    }
    output_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _focused_subgraph(graph: DependencyGraph, focus: str, include_external: bool) -> Dict[str, List]:
    edges = [e.to_dict() for e in graph.edges if include_external or not e.external]
    nodes = list(graph.nodes)
    if include_external:
        nodes += sorted({e["to"] for e in edges if e["external"]})

    if not focus:
        return {"nodes": nodes, "edges": edges}

    focus_ids = {node for node in nodes if focus in node}
    if not focus_ids:
        return {"nodes": nodes, "edges": edges}

    edge_subset = [e for e in edges if e["from"] in focus_ids or e["to"] in focus_ids]
    node_subset = set(focus_ids)
    for e in edge_subset:
        node_subset.add(e["from"])
        node_subset.add(e["to"])
    return {"nodes": [n for n in nodes if n in node_subset], "edges": edge_subset}


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
