"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from codeanalysis import __version__
from codeanalysis.cli import EXIT_INTERNAL, EXIT_INVALID, EXIT_NOT_FOUND, app, collect_files
from codeanalysis.config import SKIP_DIRS
from codeanalysis.errors import InvariantViolation


runner = CliRunner()


class TestCollectFiles:
    """Tests for project file discovery."""

    def test_skips_vendor_directories(self, sample_project_path: Path):
        paths = [f["path"] for f in collect_files(sample_project_path, SKIP_DIRS)]

        assert "src/utils.ts" in paths
        assert not any(p.startswith("node_modules/") for p in paths)
        assert paths == sorted(paths)

    def test_ignores_unsupported_extensions(self, tmp_path: Path):
        (tmp_path / "a.ts").write_text("export const a = 1;")
        (tmp_path / "notes.md").write_text("# notes")
        (tmp_path / "style.css").write_text("body {}")

        assert [f["path"] for f in collect_files(tmp_path, SKIP_DIRS)] == ["a.ts"]


class TestAnalyzeCommand:
    """Tests for 'ca analyze' command."""

    def test_analyze_project(self, sample_project_path: Path):
        result = runner.invoke(app, ["analyze", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Analyzed" in result.stdout
        assert "Files: 8 | Entities: 19" in result.stdout
        assert "Cycles: 1" in result.stdout
        assert "parse-error" in result.stdout

    def test_analyze_json(self, sample_project_path: Path):
        result = runner.invoke(app, ["analyze", str(sample_project_path), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["summary"]["total_entities"] == 19
        assert payload["dependencyGraph"]["circularDependencies"] == [
            ["src/cycle/a.ts", "src/cycle/b.ts", "src/cycle/c.ts"],
        ]

    def test_analyze_writes_dot(self, sample_project_path: Path, tmp_path: Path):
        dot_file = tmp_path / "deps.dot"
        result = runner.invoke(app, ["analyze", str(sample_project_path), "--dot", str(dot_file)])

        assert result.exit_code == 0
        assert dot_file.exists()
        assert dot_file.read_text().startswith("digraph Dependencies {")

    def test_analyze_writes_focused_dot(self, sample_project_path: Path, tmp_path: Path):
        dot_file = tmp_path / "deps.dot"
        result = runner.invoke(
            app, ["analyze", str(sample_project_path), "--dot", str(dot_file), "--focus", "cycle/b"],
        )

        assert result.exit_code == 0
        text = dot_file.read_text()
        assert '"src/cycle/b.ts"' in text
        assert "src/index.ts" not in text
        assert "lodash" not in text

    def test_analyze_dot_with_external_modules(self, sample_project_path: Path, tmp_path: Path):
        dot_file = tmp_path / "deps.dot"
        result = runner.invoke(
            app, ["analyze", str(sample_project_path), "--dot", str(dot_file), "--include-external"],
        )

        assert result.exit_code == 0
        assert '"lodash/debounce" [label="lodash/debounce", shape=box, style=dashed];' in dot_file.read_text()

    def test_analyze_writes_graph_json(self, sample_project_path: Path, tmp_path: Path):
        json_file = tmp_path / "deps.json"
        result = runner.invoke(app, ["analyze", str(sample_project_path), "--graph-json", str(json_file)])

        assert result.exit_code == 0
        assert f"Dependency graph written to {json_file}" in result.stdout
        payload = json.loads(json_file.read_text())
        assert "src/service.ts" in payload["nodes"]
        assert payload["circularDependencies"] == [
            ["src/cycle/a.ts", "src/cycle/b.ts", "src/cycle/c.ts"],
        ]

    def test_analyze_nonexistent_path(self):
        result = runner.invoke(app, ["analyze", "/nonexistent/path"])

        assert result.exit_code != 0

    def test_config_thresholds_apply(self, sample_project_path: Path, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[analysis]\nmax_complexity = 2\n")

        result = runner.invoke(app, ["--config", str(config_file), "analyze", str(sample_project_path)])

        assert result.exit_code == 0
        assert "high-complexity" in result.stdout

    def test_invalid_config_exits_with_invalid_code(self, sample_project_path: Path, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[analysis]\nmax_complexity = 'lots'\n")

        result = runner.invoke(app, ["--config", str(config_file), "analyze", str(sample_project_path)])

        assert result.exit_code == EXIT_INVALID


class TestCallQueries:
    """Tests for 'ca callers' and 'ca callees'."""

    def test_callers(self, sample_project_path: Path):
        result = runner.invoke(app, ["callers", str(sample_project_path), "validateEmail"])

        assert result.exit_code == 0
        assert "register" in result.stdout

    def test_callers_none(self, sample_project_path: Path):
        result = runner.invoke(app, ["callers", str(sample_project_path), "nobodyCallsMe"])

        assert result.exit_code == 0
        assert "No callers found" in result.stdout

    def test_callers_file_filter(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["callers", str(sample_project_path), "capitalize", "--file", "src/service.ts"],
        )

        assert result.exit_code == 0
        assert "No callers found" in result.stdout

    def test_callers_member_match_is_opt_in(self, sample_project_path: Path):
        exact = runner.invoke(app, ["callers", str(sample_project_path), "save"])
        member = runner.invoke(app, ["callers", str(sample_project_path), "save", "--member"])

        assert exact.exit_code == 0
        assert "No callers found" in exact.stdout
        assert member.exit_code == 0
        assert "Callers of save" in member.stdout
        assert "No callers found" not in member.stdout

    def test_callers_blank_name(self, sample_project_path: Path):
        result = runner.invoke(app, ["callers", str(sample_project_path), " "])

        assert result.exit_code == EXIT_INVALID

    def test_callees(self, sample_project_path: Path):
        result = runner.invoke(app, ["callees", str(sample_project_path), "formatName"])

        assert result.exit_code == 0
        assert "capitalize" in result.stdout


class TestEntityQueries:
    """Tests for 'ca search' and 'ca entity'."""

    def test_search(self, sample_project_path: Path):
        result = runner.invoke(app, ["search", str(sample_project_path), "valid", "--kind", "function"])

        assert result.exit_code == 0
        assert "validateEmail" in result.stdout

    def test_search_no_match(self, sample_project_path: Path):
        result = runner.invoke(app, ["search", str(sample_project_path), "zzz"])

        assert result.exit_code == 0
        assert "No entities match" in result.stdout

    def test_search_bad_kind(self, sample_project_path: Path):
        result = runner.invoke(app, ["search", str(sample_project_path), "x", "--kind", "module"])

        assert result.exit_code == EXIT_INVALID

    def test_entity_json(self, sample_project_path: Path):
        result = runner.invoke(app, ["entity", str(sample_project_path), "clamp"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["qualified_name"] == "clamp"
        assert payload["kind"] == "function"
        assert payload["complexity"] == 3
        assert payload["signature"]["parameters"] == ["value", "low", "high"]

    def test_entity_missing(self, sample_project_path: Path):
        result = runner.invoke(app, ["entity", str(sample_project_path), "missing"])

        assert result.exit_code == EXIT_NOT_FOUND


class TestDependencyQueries:
    """Tests for 'ca dependents', 'ca dependencies' and 'ca cycles'."""

    def test_dependents(self, sample_project_path: Path):
        result = runner.invoke(app, ["dependents", str(sample_project_path), "src/models.ts"])

        assert result.exit_code == 0
        assert "src/index.ts" in result.stdout
        assert "src/service.ts" in result.stdout

    def test_dependencies_include_external(self, sample_project_path: Path):
        result = runner.invoke(app, ["dependencies", str(sample_project_path), "src/service.ts"])

        assert result.exit_code == 0
        assert "lodash/debounce" in result.stdout

    def test_no_dependencies(self, sample_project_path: Path):
        result = runner.invoke(app, ["dependencies", str(sample_project_path), "src/utils.ts"])

        assert result.exit_code == 0
        assert "has no dependencies" in result.stdout

    def test_unknown_file(self, sample_project_path: Path):
        result = runner.invoke(app, ["dependents", str(sample_project_path), "src/nope.ts"])

        assert result.exit_code == EXIT_NOT_FOUND

    def test_cycles(self, sample_project_path: Path):
        result = runner.invoke(app, ["cycles", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Found 1 circular dependencies" in result.stdout
        assert "src/cycle/a.ts -> src/cycle/b.ts -> src/cycle/c.ts -> src/cycle/a.ts" in result.stdout

    def test_no_cycles(self, tmp_path: Path):
        (tmp_path / "a.ts").write_text('import { b } from "./b";')
        (tmp_path / "b.ts").write_text("export const b = 1;")

        result = runner.invoke(app, ["cycles", str(tmp_path)])

        assert result.exit_code == 0
        assert "No circular dependencies found." in result.stdout


class TestMiscCommands:
    """Tests for 'ca summary' and global options."""

    def test_summary(self, sample_project_path: Path):
        result = runner.invoke(app, ["summary", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Parse failures" in result.stdout
        assert "19" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_broken_snapshot_exits_with_internal_code(self, sample_project_path: Path, monkeypatch):
        def _fail(self, files):
            raise InvariantViolation("Call edge references a caller outside the snapshot", "x.ts:ghost:1")

        monkeypatch.setattr("codeanalysis.cli.CodeAnalyzer.analyze", _fail)
        result = runner.invoke(app, ["summary", str(sample_project_path)])

        assert result.exit_code == EXIT_INTERNAL
