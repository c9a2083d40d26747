"""
Architecture Auditor - паттерны проектирования и структура системы.
"""

from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType


class ArchitectureAuditor(BaseAuditor):
    audit_type = AuditType.ARCHITECTURE
