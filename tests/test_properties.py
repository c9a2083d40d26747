"""
Property-based tests for issue normalization and ordering.

Uses hypothesis to check invariants that must hold for any model output:
line numbers stay inside the submitted code, confidence stays in [0, 1],
severity is always a known level, and sorting/deduplication are stable.
"""

from hypothesis import given, settings, strategies as st

from code_audit.auditors.quality import QualityAuditor
from code_audit.config import AuditorConfig
from code_audit.core.base_auditor import BaseAuditor, MAX_TEXT_LENGTH, MAX_TITLE_LENGTH
from code_audit.core.models import AuditIssue, AuditType, IssueLocation, Severity
from code_audit.core.source import clamp_line

from conftest import FakeClient, fake_model_manager, make_request


AUDITOR = QualityAuditor(AuditorConfig(severity=[]), FakeClient(), fake_model_manager())


@st.composite
def source_code(draw):
    """Код из 1..80 непустых строк."""
    lines = draw(st.lists(
        st.text(alphabet="abcdefxyz =+()", min_size=1, max_size=30),
        min_size=1,
        max_size=80,
    ))
    return "\n".join(lines)


line_values = st.one_of(
    st.integers(min_value=-10_000, max_value=10_000),
    st.floats(allow_nan=False, allow_infinity=False, min_value=-1e6, max_value=1e6),
    st.integers(min_value=-100, max_value=100).map(str),
)

confidence_values = st.one_of(
    st.none(),
    st.floats(allow_nan=True, allow_infinity=True),
    st.integers(min_value=-5, max_value=5),
    st.text(max_size=5),
)

severity_values = st.one_of(
    st.none(),
    st.sampled_from(["critical", "HIGH", " medium ", "low", "info", "severe", ""]),
    st.integers(),
)


def make_issue(line: int, severity: Severity, issue_type: str = "t") -> AuditIssue:
    return AuditIssue(
        id=f"{line}-{issue_type}",
        location=IssueLocation(line=line),
        severity=severity,
        type=issue_type,
        category=AuditType.QUALITY,
        title="title",
        description="description",
        confidence=0.5,
    )


issues_strategy = st.lists(
    st.builds(
        make_issue,
        line=st.integers(min_value=1, max_value=50),
        severity=st.sampled_from(list(Severity)),
        issue_type=st.sampled_from(["a", "b", "c"]),
    ),
    max_size=40,
)


class TestNormalizationProperties:
    """Инварианты нормализации"""

    @settings(max_examples=200, deadline=None)
    @given(code=source_code(), line=line_values)
    def test_line_is_always_inside_code(self, code, line):
        request = make_request(code=code)
        issue = AUDITOR.normalize_issue(
            {"line": line, "title": "t", "description": "d"}, request
        )

        line_count = len(code.split("\n"))
        assert issue is not None
        assert 1 <= issue.line <= line_count

    @settings(max_examples=200, deadline=None)
    @given(confidence=confidence_values)
    def test_confidence_is_always_in_unit_interval(self, confidence):
        issue = AUDITOR.normalize_issue(
            {"line": 1, "title": "t", "description": "d", "confidence": confidence},
            make_request(),
        )
        assert 0.0 <= issue.confidence <= 1.0

    @settings(max_examples=100, deadline=None)
    @given(severity=severity_values)
    def test_severity_is_always_known(self, severity):
        issue = AUDITOR.normalize_issue(
            {"line": 1, "title": "t", "description": "d", "severity": severity},
            make_request(),
        )
        assert isinstance(issue.severity, Severity)

    @settings(max_examples=100, deadline=None)
    @given(title=st.text(min_size=1, max_size=600), description=st.text(min_size=1, max_size=3000))
    def test_text_never_exceeds_limits(self, title, description):
        issue = AUDITOR.normalize_issue(
            {"line": 1, "title": title, "description": description},
            make_request(),
        )
        if issue is not None:
            assert len(issue.title) <= MAX_TITLE_LENGTH
            assert len(issue.description) <= MAX_TEXT_LENGTH

    @given(line=st.integers(), line_count=st.integers(min_value=0, max_value=1000))
    def test_clamp_line_bounds(self, line, line_count):
        clamped = clamp_line(line, line_count)
        assert 1 <= clamped <= max(line_count, 1)


class TestOrderingProperties:
    """Сортировка и дедупликация"""

    @settings(max_examples=100, deadline=None)
    @given(issues=issues_strategy)
    def test_sort_orders_by_severity_then_line(self, issues):
        ordered = BaseAuditor.sort_issues(issues)

        keys = [(i.severity.rank, i.line) for i in ordered]
        assert keys == sorted(keys)
        assert sorted(i.id for i in ordered) == sorted(i.id for i in issues)

    @settings(max_examples=100, deadline=None)
    @given(issues=issues_strategy)
    def test_dedup_keeps_first_per_key(self, issues):
        unique = BaseAuditor.deduplicate_issues(issues)

        keys = [i.dedup_key for i in unique]
        assert len(keys) == len(set(keys))
        assert set(keys) == {i.dedup_key for i in issues}
        for issue in unique:
            first = next(i for i in issues if i.dedup_key == issue.dedup_key)
            assert issue is first

    @settings(max_examples=100, deadline=None)
    @given(issues=issues_strategy, max_issues=st.integers(min_value=1, max_value=50))
    def test_limit_never_exceeds_max(self, issues, max_issues):
        limited = BaseAuditor.limit_issues(issues, make_request(max_issues=max_issues))
        assert len(limited) == min(len(issues), max_issues)
