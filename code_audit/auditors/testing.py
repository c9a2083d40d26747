"""
Testing Auditor - тестируемость и покрытие.
"""

from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType


class TestingAuditor(BaseAuditor):
    audit_type = AuditType.TESTING
