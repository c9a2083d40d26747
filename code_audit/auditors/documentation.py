"""
Documentation Auditor - документация API и кода.
"""

from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType


class DocumentationAuditor(BaseAuditor):
    audit_type = AuditType.DOCUMENTATION
