"""
Completeness Auditor - незавершённые реализации (TODO, заглушки, пустые функции).
"""

from ..checkers.completeness_patterns import CompletenessPatternChecker
from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType


class CompletenessAuditor(BaseAuditor):
    """Сливает ответ модели со статическими COMP-правилами."""

    audit_type = AuditType.COMPLETENESS
    detectors = (CompletenessPatternChecker(),)
