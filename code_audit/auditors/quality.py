"""
Quality Auditor - сопровождаемость и лучшие практики.
"""

from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType


class QualityAuditor(BaseAuditor):
    audit_type = AuditType.QUALITY
