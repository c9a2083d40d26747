"""
Unit tests для SecurityAuditor: классификация, OWASP и эскалация severity.
"""

import pytest

from code_audit.auditors.security import (
    AUTHENTICATION_FLAW,
    HARDCODED_SECRET,
    SQL_INJECTION,
    XSS,
    SecurityAuditor,
    classify,
)
from code_audit.config import AuditorConfig
from code_audit.core.models import AuditContext, Environment, Severity

from conftest import FakeClient, fake_model_manager, issues_json, make_request, raw_issue


SQL_CODE = """def find(conn, name):
    query = "SELECT * FROM users WHERE name = '" + name + "'"
    return conn.execute(query)
"""

PRODUCTION = AuditContext(environment=Environment.PRODUCTION)


def security_auditor(response):
    return SecurityAuditor(AuditorConfig(severity=[]), FakeClient(response), fake_model_manager())


class TestClassify:
    """Классификация по описанию и строке кода"""

    def test_sql_injection(self):
        assert classify("SQL injection risk", 'query = "SELECT " + x') == SQL_INJECTION

    def test_sql_needs_matching_source_line(self):
        assert classify("SQL injection risk", "x = 1") is None

    def test_xss(self):
        assert classify("Reflected XSS", "el.innerHTML = input") == XSS

    def test_hardcoded_secret(self):
        assert classify("Hardcoded password", 'password = "hunter2"') == HARDCODED_SECRET

    def test_last_matching_rule_wins(self):
        """SQL правило срабатывает, но "login" в описании перекрывает его"""
        assert classify("SQL injection in login handler", "query = build()") == AUTHENTICATION_FLAW

    def test_no_match(self):
        assert classify("Variable shadows builtin", "list = []") is None


# ═══════════════════════════════════════════════════════
# AUDITOR
# ═══════════════════════════════════════════════════════

class TestSecurityAuditor:
    """Пост-обработка ответа модели"""

    @pytest.mark.asyncio
    async def test_sql_injection_in_production_is_critical(self):
        auditor = security_auditor(issues_json(raw_issue(
            2,
            type="injection",
            severity="high",
            description="SQL injection through string concatenation",
        )))

        result = await auditor.audit(make_request(code=SQL_CODE, context=PRODUCTION))

        issue = result.issues[0]
        assert issue.type == SQL_INJECTION
        assert issue.rule_id == "SEC001"
        assert issue.severity == Severity.CRITICAL
        assert issue.documentation == "OWASP Top 10: A03:2021 – Injection"
        assert issue.impact == "Critical security vulnerability in production environment"
        assert result.summary.critical == 1

    @pytest.mark.asyncio
    async def test_no_escalation_outside_production(self):
        auditor = security_auditor(issues_json(raw_issue(
            2, severity="high", description="SQL injection through string concatenation",
        )))

        result = await auditor.audit(make_request(code=SQL_CODE))

        assert result.issues[0].type == SQL_INJECTION
        assert result.issues[0].severity == Severity.HIGH
        assert result.issues[0].impact is None

    @pytest.mark.asyncio
    async def test_medium_xss_in_production_becomes_high(self):
        code = "function show(input) {\n  el.innerHTML = input;\n}\n"
        auditor = security_auditor(issues_json(raw_issue(
            2, severity="medium", description="Reflected XSS vulnerability",
        )))

        result = await auditor.audit(make_request(code=code, language="javascript", context=PRODUCTION))

        assert result.issues[0].type == XSS
        assert result.issues[0].severity == Severity.HIGH

    @pytest.mark.asyncio
    async def test_hardcoded_secret_is_always_critical(self):
        code = 'password = "hunter2"\n'
        auditor = security_auditor(issues_json(raw_issue(
            1, severity="low", description="Hardcoded password in source",
        )))

        result = await auditor.audit(make_request(
            code=code, context=AuditContext(environment=Environment.DEVELOPMENT),
        ))

        issue = result.issues[0]
        assert issue.type == HARDCODED_SECRET
        assert issue.rule_id == "SEC003"
        assert issue.severity == Severity.CRITICAL
        assert "A02:2021" in issue.documentation

    @pytest.mark.asyncio
    async def test_unclassified_issue_keeps_model_type(self):
        auditor = security_auditor(issues_json(raw_issue(
            1, type="weak_random", severity="medium", description="Predictable random generator",
        )))

        result = await auditor.audit(make_request(code="import random\n", context=PRODUCTION))

        issue = result.issues[0]
        assert issue.type == "weak_random"
        assert issue.rule_id is None
        assert issue.documentation is None
        assert issue.severity == Severity.MEDIUM

    @pytest.mark.asyncio
    async def test_reclassified_duplicates_collapse(self):
        """Две проблемы на одной строке становятся одним SQL_INJECTION"""
        auditor = security_auditor(issues_json(
            raw_issue(2, type="sqli", description="SQL injection via concatenation"),
            raw_issue(2, type="unsafe_query", description="Possible SQL injection here"),
        ))

        result = await auditor.audit(make_request(code=SQL_CODE))

        assert [i.type for i in result.issues] == [SQL_INJECTION]

    @pytest.mark.asyncio
    async def test_default_severity_filter_applies_after_escalation(self):
        """Low секрет эскалируется до critical и проходит фильтр critical/high/medium"""
        client = FakeClient(issues_json(raw_issue(
            1, severity="low", description="Hardcoded password in source",
        )))
        auditor = SecurityAuditor(AuditorConfig(), client, fake_model_manager())

        result = await auditor.audit(make_request(code='password = "hunter2"\n'))

        assert [i.severity for i in result.issues] == [Severity.CRITICAL]
