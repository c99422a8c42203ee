"""Tests for dependency graph DOT / JSON export."""

import json
from pathlib import Path

from codeanalysis.graph_export import export_dot, export_json, render_dot


class TestRenderDot:

    def test_cycle_nodes_are_highlighted(self, sample_result):
        dot = render_dot(sample_result.dependency_graph)

        assert dot.startswith("digraph Dependencies {")
        assert '"src/cycle/a.ts" [label="src/cycle/a.ts", color=red];' in dot
        assert '"src/utils.ts" [label="src/utils.ts"];' in dot
        assert '"src/index.ts" -> "src/utils.ts" [label="re-export"];' in dot
        assert "lodash/debounce" not in dot

    def test_external_nodes_on_request(self, sample_result):
        dot = render_dot(sample_result.dependency_graph, include_external=True)

        assert '"lodash/debounce" [label="lodash/debounce", shape=box, style=dashed];' in dot
        assert '"src/service.ts" -> "lodash/debounce" [label="import"];' in dot

    def test_focus_keeps_neighbours_only(self, sample_result):
        dot = render_dot(sample_result.dependency_graph, focus="cycle/b")

        assert '"src/cycle/a.ts" -> "src/cycle/b.ts"' in dot
        assert '"src/cycle/b.ts" -> "src/cycle/c.ts"' in dot
        assert "src/index.ts" not in dot


class TestExportFiles:

    def test_export_dot(self, sample_result, tmp_path: Path):
        out = tmp_path / "graph.dot"
        export_dot(sample_result.dependency_graph, out)

        assert out.read_text(encoding="utf-8") == render_dot(sample_result.dependency_graph)

    def test_export_json(self, sample_result, tmp_path: Path):
        out = tmp_path / "graph.json"
        export_json(sample_result.dependency_graph, out)

        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["nodes"][0] == "src/broken.ts"
        assert len(payload["edges"]) == 9
        assert payload["circularDependencies"] == [["src/cycle/a.ts", "src/cycle/b.ts", "src/cycle/c.ts"]]
