"""
Factory for auditor instances.
"""

import logging
from typing import Dict, List, Mapping, Type, Union

from ..config import AuditorConfig
from ..core.base_auditor import BaseAuditor
from ..core.models import AuditType
from .architecture import ArchitectureAuditor
from .completeness import CompletenessAuditor
from .documentation import DocumentationAuditor
from .performance import PerformanceAuditor
from .quality import QualityAuditor
from .security import SecurityAuditor
from .testing import TestingAuditor


logger = logging.getLogger(__name__)


class AuditorFactory:
    """Сопоставляет тип аудита с классом аудитора."""

    auditor_classes: Dict[AuditType, Type[BaseAuditor]] = {
        AuditType.SECURITY: SecurityAuditor,
        AuditType.COMPLETENESS: CompletenessAuditor,
        AuditType.PERFORMANCE: PerformanceAuditor,
        AuditType.QUALITY: QualityAuditor,
        AuditType.ARCHITECTURE: ArchitectureAuditor,
        AuditType.TESTING: TestingAuditor,
        AuditType.DOCUMENTATION: DocumentationAuditor,
    }

    @classmethod
    def create_auditor(
        cls,
        audit_type: Union[AuditType, str],
        config: AuditorConfig,
        client,
        model_manager,
        prompt_builder=None,
    ) -> BaseAuditor:
        """
        Создать аудитор указанного типа.

        Raises:
            ValueError: для "all" и неизвестных типов
        """
        try:
            audit_type = AuditType(audit_type)
        except ValueError:
            raise ValueError(f"Unknown audit type: {audit_type}") from None

        if audit_type == AuditType.ALL:
            raise ValueError('Cannot create auditor for type "all". Use specific audit types.')

        auditor_class = cls.auditor_classes.get(audit_type)
        if auditor_class is None:
            raise ValueError(f"Unknown audit type: {audit_type.value}")

        return auditor_class(config, client, model_manager, prompt_builder)

    @classmethod
    def create_all_auditors(
        cls,
        configs: Mapping[AuditType, AuditorConfig],
        client,
        model_manager,
        prompt_builder=None,
    ) -> Dict[AuditType, BaseAuditor]:
        """Создать по одному аудитору на каждый включённый тип."""
        auditors = {}
        for audit_type in AuditType.variants():
            config = configs.get(audit_type)
            if config is None or not config.enabled:
                logger.debug(f"Auditor {audit_type.value} is disabled")
                continue
            auditors[audit_type] = cls.create_auditor(
                audit_type, config, client, model_manager, prompt_builder
            )

        logger.info(f"Created {len(auditors)} auditors: {[t.value for t in auditors]}")
        return auditors

    @classmethod
    def get_supported_audit_types(cls) -> List[AuditType]:
        return [t for t in cls.auditor_classes if t != AuditType.ALL]
