"""
Security Auditor - уязвимости безопасности.

Поверх ответа модели:
- переклассифицирует проблему по ключевым словам описания и строки кода (SEC001..SEC008)
- добавляет ссылку на категорию OWASP Top 10
- повышает severity для production и для захардкоженных секретов
"""

from typing import List, Optional

from ..core.base_auditor import BaseAuditor
from ..core.models import AuditIssue, AuditRequest, AuditType, Environment, Severity
from ..core.source import split_lines


SQL_INJECTION = "sql_injection"
XSS = "xss_vulnerability"
HARDCODED_SECRET = "hardcoded_secret"
AUTHENTICATION_FLAW = "authentication_flaw"
CSRF = "csrf_vulnerability"
PATH_TRAVERSAL = "path_traversal"
COMMAND_INJECTION = "command_injection"
INSECURE_DESERIALIZATION = "insecure_deserialization"

RULE_IDS = {
    SQL_INJECTION: "SEC001",
    XSS: "SEC002",
    HARDCODED_SECRET: "SEC003",
    AUTHENTICATION_FLAW: "SEC004",
    CSRF: "SEC005",
    PATH_TRAVERSAL: "SEC006",
    COMMAND_INJECTION: "SEC007",
    INSECURE_DESERIALIZATION: "SEC008",
}

OWASP_CATEGORIES = {
    SQL_INJECTION: "A03:2021 – Injection",
    XSS: "A03:2021 – Injection",
    AUTHENTICATION_FLAW: "A07:2021 – Identification and Authentication Failures",
    CSRF: "A01:2021 – Broken Access Control",
    HARDCODED_SECRET: "A02:2021 – Cryptographic Failures",
    PATH_TRAVERSAL: "A01:2021 – Broken Access Control",
    COMMAND_INJECTION: "A03:2021 – Injection",
    INSECURE_DESERIALIZATION: "A08:2021 – Software and Data Integrity Failures",
}

# В production всегда critical
PRODUCTION_CRITICAL = (SQL_INJECTION, COMMAND_INJECTION, AUTHENTICATION_FLAW)
# В production medium -> high
PRODUCTION_HIGH = (XSS, CSRF, PATH_TRAVERSAL)


def _contains(text: str, *words: str) -> bool:
    return any(word in text for word in words)


def classify(description: str, source_line: str) -> Optional[str]:
    """
    Определить тип уязвимости по описанию и строке кода.

    Правила проверяются по порядку, последнее сработавшее побеждает.
    Returns:
        Тип или None, если ни одно правило не сработало
    """
    text = description.lower()
    line = source_line.lower()
    found = None

    if _contains(text, "sql", "injection") and _contains(line, "query", "select", "insert"):
        found = SQL_INJECTION
    if _contains(text, "xss", "cross-site") and _contains(line, "innerhtml", "eval", "document.write"):
        found = XSS
    if _contains(text, "secret", "password", "key") and _contains(line, "password", "apikey", "secret"):
        found = HARDCODED_SECRET
    if _contains(text, "auth", "login"):
        found = AUTHENTICATION_FLAW
    if _contains(text, "csrf", "cross-site request"):
        found = CSRF
    if "path" in text and "traversal" in text:
        found = PATH_TRAVERSAL
    if "command" in text and "injection" in text:
        found = COMMAND_INJECTION
    if _contains(text, "deserial", "pickle", "unserialize"):
        found = INSECURE_DESERIALIZATION

    return found


class SecurityAuditor(BaseAuditor):
    """Аудитор безопасности (OWASP, секреты, инъекции)."""

    audit_type = AuditType.SECURITY

    # Ниже обычного: нужен максимально детерминированный ответ
    temperature = 0.05

    def refine_issues(self, issues: List[AuditIssue], request: AuditRequest) -> List[AuditIssue]:
        lines = split_lines(request.code)
        environment = request.context.environment if request.context else None

        for issue in issues:
            index = issue.location.line - 1
            source_line = lines[index] if 0 <= index < len(lines) else ""
            self.classify_issue(issue, source_line)
            self.add_owasp_mapping(issue)
            self.escalate_severity(issue, environment)

        return issues

    def classify_issue(self, issue: AuditIssue, source_line: str) -> AuditIssue:
        issue_type = classify(issue.description, source_line)
        if issue_type is not None:
            issue.type = issue_type
            issue.rule_id = RULE_IDS[issue_type]
        return issue

    def add_owasp_mapping(self, issue: AuditIssue) -> AuditIssue:
        category = OWASP_CATEGORIES.get(issue.type)
        if category:
            issue.documentation = f"OWASP Top 10: {category}"
        return issue

    def escalate_severity(self, issue: AuditIssue, environment: Optional[Environment]) -> AuditIssue:
        """Повысить severity с учётом окружения."""
        if environment == Environment.PRODUCTION:
            if issue.type in PRODUCTION_CRITICAL and issue.severity != Severity.CRITICAL:
                issue.severity = Severity.CRITICAL
                issue.impact = "Critical security vulnerability in production environment"
            elif issue.type in PRODUCTION_HIGH and issue.severity == Severity.MEDIUM:
                issue.severity = Severity.HIGH
                issue.impact = "High-risk security vulnerability in production environment"

        # Секреты в коде - critical в любом окружении
        if issue.type == HARDCODED_SECRET:
            if issue.severity != Severity.CRITICAL:
                self.logger.debug(f"Escalating hardcoded secret at line {issue.location.line}")
            issue.severity = Severity.CRITICAL
            issue.impact = "Credential exposure can lead to unauthorized access"

        return issue
