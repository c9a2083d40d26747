"""
Unit tests для PerformancePatternChecker и PerformanceAuditor.
"""

import pytest

from code_audit.auditors.performance import PERFORMANCE_CRITICAL_IMPACT, PerformanceAuditor
from code_audit.checkers.performance_patterns import PerformancePatternChecker, bump_severity
from code_audit.config import AuditorConfig
from code_audit.core.models import AuditContext, AuditType, Effort, Severity

from conftest import FakeClient, fake_model_manager, issues_json, make_request, raw_issue


NESTED_JS = """function pairs(items) {
  for (let i = 0; i < n; i++) {
    for (let j = 0; j < n; j++) {
      total += i * j;
    }
  }
}"""


@pytest.fixture
def checker():
    return PerformancePatternChecker()


def rules(issues):
    return [(issue.rule_id, issue.line) for issue in issues]


# ═══════════════════════════════════════════════════════
# CHECKER
# ═══════════════════════════════════════════════════════

class TestPerformancePatterns:
    """Построчные эвристики PERF001..PERF010"""

    def test_nested_loop(self, checker):
        issues = [i for i in checker.detect(NESTED_JS, "javascript") if i.rule_id == "PERF001"]

        assert [i.line for i in issues] == [2]
        assert issues[0].severity == Severity.HIGH
        assert issues[0].type == "nested_loops"
        assert issues[0].category == AuditType.PERFORMANCE

    def test_sequential_loops_are_not_nested(self, checker):
        code = (
            "for (const a of xs) {\n  use(a);\n}\n"
            "for (const b of ys) {\n  use(b);\n}\n"
        )
        assert "PERF001" not in [rule for rule, _ in rules(checker.detect(code, "javascript"))]

    def test_python_string_concatenation(self, checker):
        issues = checker.detect('result += "x"', "python")
        assert ("PERF002", 1) in rules(issues)

    def test_js_string_concatenation_needs_loop_on_line(self, checker):
        looped = 'for (const x of xs) html += "<li>" + x;'
        plain = 'html += "<li>";'

        assert ("PERF002", 1) in rules(checker.detect(looped, "javascript"))
        assert ("PERF002", 1) in rules(checker.detect(looped, "typescript"))
        assert "PERF002" not in [rule for rule, _ in rules(checker.detect(plain, "javascript"))]

    @pytest.mark.parametrize("language", ["java", "csharp"])
    def test_java_string_concatenation(self, checker, language):
        looped = "for (int i = 0; i < n; i++) { String row = prefix + i; }"
        plain = "String name = first + last;"

        assert ("PERF002", 1) in rules(checker.detect(looped, language))
        assert "PERF002" not in [rule for rule, _ in rules(checker.detect(plain, language))]

    def test_string_concatenation_ignored_for_other_languages(self, checker):
        assert "PERF002" not in [rule for rule, _ in rules(checker.detect('for x += "a"', "go"))]

    def test_query_in_loop(self, checker):
        code = "for user in users:\n    db.execute(sql, user.id)\n"
        issues = [i for i in checker.detect(code, "python") if i.rule_id == "PERF003"]

        assert [i.line for i in issues] == [2]
        assert issues[0].severity == Severity.CRITICAL

    def test_query_outside_loop(self, checker):
        code = "db.execute(sql)\n"
        assert "PERF003" not in [rule for rule, _ in rules(checker.detect(code, "python"))]

    def test_sync_file_operation_js_only(self, checker):
        code = "const text = fs.readFileSync(path);"
        assert ("PERF004", 1) in rules(checker.detect(code, "javascript"))
        assert "PERF004" not in [rule for rule, _ in rules(checker.detect(code, "python"))]

    def test_object_creation_in_loop(self, checker):
        code = "for (const x of xs) {\n  const p = new Point(x);\n}"
        issues = [i for i in checker.detect(code, "javascript") if i.rule_id == "PERF005"]

        assert [i.line for i in issues] == [2]
        assert issues[0].severity == Severity.MEDIUM
        assert issues[0].type == "object_creation_in_loop"

    def test_object_creation_outside_loop_window(self, checker):
        """Цикл дальше 10 строк назад не учитывается"""
        filler = [f"const a{i} = {i};" for i in range(10)]
        code = "\n".join(["for (const x of xs) {}"] + filler + ["const p = new Point(1);"])

        assert "PERF005" not in [rule for rule, _ in rules(checker.detect(code, "javascript"))]

    def test_object_creation_without_loop(self, checker):
        code = "const p = new Point(1);\nconst q = { x: 1 };"
        assert "PERF005" not in [rule for rule, _ in rules(checker.detect(code, "javascript"))]

    @pytest.mark.parametrize("line", [
        "if (items.indexOf(x) !== -1) {",
        "if (items.indexOf(x) != -1) {",
        "const head = queue.splice(0, 1);",
        "for (let i = 0; i < arr.length; i++) {",
    ])
    def test_inefficient_array_operation(self, checker, line):
        issues = [i for i in checker.detect(line, "javascript") if i.rule_id == "PERF007"]

        assert [i.line for i in issues] == [1]
        assert issues[0].severity == Severity.LOW

    @pytest.mark.parametrize("line", [
        "if (items.includes(x)) {",
        "const head = queue.shift();",
        "for (const item of arr) {",
        "const n = arr.length;",
    ])
    def test_efficient_array_operation(self, checker, line):
        assert "PERF007" not in [rule for rule, _ in rules(checker.detect(line, "javascript"))]

    def test_array_operation_is_js_only(self, checker):
        """splice(0, 1) в Python не проверяется"""
        code = "head = queue.splice(0, 1)"
        assert "PERF007" not in [rule for rule, _ in rules(checker.detect(code, "python"))]

    def test_expensive_call_is_low(self, checker):
        issues = [i for i in checker.detect("y = Math.sqrt(x)", "javascript") if i.rule_id == "PERF006"]
        assert issues[0].severity == Severity.LOW

    def test_memory_leak_without_cleanup(self, checker):
        assert ("PERF008", 1) in rules(checker.detect("setInterval(tick, 1000);", "javascript"))

    def test_blocking_call_in_async_function(self, checker):
        code = "async function load() {\n  const raw = fs.readFileSync(file);\n}"
        assert ("PERF009", 2) in rules(checker.detect(code, "javascript"))

    def test_dom_append_in_string(self, checker):
        assert ("PERF010", 1) in rules(checker.detect("el.innerHTML += row;", "javascript"))

    def test_effort_comes_from_rule(self, checker):
        issue = [i for i in checker.detect(NESTED_JS, "javascript") if i.rule_id == "PERF001"][0]
        assert isinstance(issue.effort, Effort)


@pytest.mark.parametrize("before, after", [
    (Severity.LOW, Severity.MEDIUM),
    (Severity.MEDIUM, Severity.HIGH),
    (Severity.HIGH, Severity.HIGH),
    (Severity.CRITICAL, Severity.CRITICAL),
    (Severity.INFO, Severity.INFO),
])
def test_bump_severity(before, after):
    assert bump_severity(before) == after


# ═══════════════════════════════════════════════════════
# AUDITOR
# ═══════════════════════════════════════════════════════

class TestPerformanceAuditor:
    """Слияние ответа модели и статических правил"""

    @pytest.mark.asyncio
    async def test_pattern_issues_are_merged(self):
        client = FakeClient(issues_json(raw_issue(4, type="hot_path", severity="medium")))
        auditor = PerformanceAuditor(AuditorConfig(severity=[]), client, fake_model_manager())

        result = await auditor.audit(make_request(code=NESTED_JS, language="javascript"))

        types = {issue.type for issue in result.issues}
        assert "hot_path" in types
        assert "nested_loops" in types

    @pytest.mark.asyncio
    async def test_model_issue_wins_dedup(self):
        """Модель сообщила тот же (строка, тип), что и детектор: остаётся одна проблема"""
        client = FakeClient(issues_json(raw_issue(2, type="nested_loops", title="From model")))
        auditor = PerformanceAuditor(AuditorConfig(severity=[]), client, fake_model_manager())

        result = await auditor.audit(make_request(code=NESTED_JS, language="javascript"))

        nested = [i for i in result.issues if i.dedup_key == (2, "nested_loops")]
        assert len(nested) == 1
        assert nested[0].title == "From model"

    @pytest.mark.asyncio
    async def test_performance_critical_bumps_severity(self):
        client = FakeClient(issues_json(
            raw_issue(1, type="a", severity="low"),
            raw_issue(1, type="b", severity="medium"),
            raw_issue(1, type="c", severity="critical"),
        ))
        auditor = PerformanceAuditor(AuditorConfig(severity=[]), client, fake_model_manager())
        request = make_request(
            code="x = 1\n",
            context=AuditContext(performance_critical=True),
        )

        result = await auditor.audit(request)

        severity = {issue.type: issue.severity for issue in result.issues}
        assert severity == {"a": Severity.MEDIUM, "b": Severity.HIGH, "c": Severity.CRITICAL}
        assert all(issue.impact == PERFORMANCE_CRITICAL_IMPACT for issue in result.issues)

    @pytest.mark.asyncio
    async def test_no_bump_without_context(self):
        client = FakeClient(issues_json(raw_issue(1, type="a", severity="low")))
        auditor = PerformanceAuditor(AuditorConfig(severity=[]), client, fake_model_manager())

        result = await auditor.audit(make_request(code="x = 1\n"))

        assert result.issues[0].severity == Severity.LOW
        assert result.issues[0].impact is None
