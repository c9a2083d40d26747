"""
Performance Auditor - узкие места и возможности оптимизации.
"""

from typing import List

from ..checkers.performance_patterns import PerformancePatternChecker, bump_severity
from ..core.base_auditor import BaseAuditor
from ..core.models import AuditIssue, AuditRequest, AuditType


PERFORMANCE_CRITICAL_IMPACT = "Performance-critical code requires optimization"


class PerformanceAuditor(BaseAuditor):
    """Сливает ответ модели со статическими PERF-правилами."""

    audit_type = AuditType.PERFORMANCE
    detectors = (PerformancePatternChecker(),)

    def refine_issues(self, issues: List[AuditIssue], request: AuditRequest) -> List[AuditIssue]:
        """Для performance-critical кода поднять severity на ступень."""
        if not (request.context and request.context.performance_critical):
            return issues

        for issue in issues:
            issue.severity = bump_severity(issue.severity)
            issue.impact = PERFORMANCE_CRITICAL_IMPACT
        return issues
