"""Tests for the per-entity quality rules."""

from codeanalysis.config import AnalysisConfig
from codeanalysis.errors import ParseError
from codeanalysis.issue_detector import IssueDetector, RuleContext, parse_error_issue
from codeanalysis.models import EntityRef, Signature, SourceRange

REF = EntityRef("src/a.ts", "work", 3)


def _detect(detector, kind="function", lines=5, params=0, complexity=1):
    signature = Signature(parameters=tuple(f"p{i}" for i in range(params)))
    return detector.detect(REF, kind, SourceRange(3, 0, 3 + lines - 1, 1), signature, complexity)


def test_clean_entity_has_no_issues():
    assert _detect(IssueDetector(AnalysisConfig())) == []


def test_high_complexity_uses_strict_threshold():
    detector = IssueDetector(AnalysisConfig(max_complexity=10))

    assert _detect(detector, complexity=10) == []
    issues = _detect(detector, complexity=11)
    assert [(i.rule, i.severity) for i in issues] == [("high-complexity", "warning")]
    assert issues[0].entity == REF
    assert issues[0].location.line == 3
    assert "11" in issues[0].message


def test_too_many_parameters():
    detector = IssueDetector(AnalysisConfig(max_parameters=2))

    assert _detect(detector, params=2) == []
    assert [i.rule for i in _detect(detector, params=3)] == ["too-many-parameters"]


def test_long_function_and_long_class():
    detector = IssueDetector(AnalysisConfig(max_function_lines=10, max_class_lines=20))

    assert [i.rule for i in _detect(detector, lines=11)] == ["long-function"]
    assert [i.rule for i in _detect(detector, kind="method", lines=11)] == ["long-function"]
    assert _detect(detector, kind="class", lines=20) == []
    assert [i.rule for i in _detect(detector, kind="class", lines=21)] == ["long-class"]
    assert _detect(detector, kind="interface", lines=500) == []


def test_custom_rule_is_appended():
    detector = IssueDetector(AnalysisConfig())

    def no_work(ctx: RuleContext):
        if ctx.ref.qualified_name == "work":
            return [ctx.issue("no-work", "info", "Rename 'work'")]
        return []

    detector.register(no_work)
    assert [i.rule for i in _detect(detector)] == ["no-work"]


def test_failing_rule_does_not_block_others():
    """Test one broken rule is skipped and the rest still report."""

    def broken(ctx: RuleContext):
        raise TypeError("boom")

    detector = IssueDetector(AnalysisConfig(max_parameters=0), rules=[broken])
    detector.register(lambda ctx: [ctx.issue("after", "info", "still runs")])

    assert [i.rule for i in _detect(detector, params=1)] == ["after"]


def test_parse_error_issue():
    issue = parse_error_issue(ParseError("src/bad.ts", "syntax error (unexpected input)", 4, 2))

    assert issue.rule == "parse-error"
    assert issue.severity == "error"
    assert issue.entity is None
    assert (issue.location.file_path, issue.location.line, issue.location.column) == ("src/bad.ts", 4, 2)
    assert issue.message == "Could not parse file: syntax error (unexpected input)"
