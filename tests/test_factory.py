"""
Unit tests для AuditorFactory и конфигурации аудиторов.
"""

import pytest

from code_audit.auditors.completeness import CompletenessAuditor
from code_audit.auditors.factory import AuditorFactory
from code_audit.auditors.security import SecurityAuditor
from code_audit.config import AuditorConfig, get_default_auditor_configs
from code_audit.core.models import AuditType, Severity

from conftest import FakeClient, fake_model_manager


class TestAuditorFactory:
    """Создание аудиторов по типу"""

    def test_create_by_enum(self):
        auditor = AuditorFactory.create_auditor(
            AuditType.SECURITY, AuditorConfig(), FakeClient(), fake_model_manager()
        )
        assert isinstance(auditor, SecurityAuditor)
        assert auditor.get_audit_type() == AuditType.SECURITY

    def test_create_by_string(self):
        auditor = AuditorFactory.create_auditor(
            "completeness", AuditorConfig(), FakeClient(), fake_model_manager()
        )
        assert isinstance(auditor, CompletenessAuditor)

    def test_all_is_rejected(self):
        with pytest.raises(ValueError, match="all"):
            AuditorFactory.create_auditor(AuditType.ALL, AuditorConfig(), FakeClient(), fake_model_manager())

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown audit type"):
            AuditorFactory.create_auditor("style", AuditorConfig(), FakeClient(), fake_model_manager())

    def test_every_variant_is_supported(self):
        supported = AuditorFactory.get_supported_audit_types()
        assert set(supported) == set(AuditType.variants())
        assert AuditType.ALL not in supported

    def test_each_variant_reports_its_type(self):
        for audit_type in AuditType.variants():
            auditor = AuditorFactory.create_auditor(
                audit_type, AuditorConfig(), FakeClient(), fake_model_manager()
            )
            assert auditor.get_audit_type() == audit_type

    def test_create_all_skips_disabled(self):
        configs = get_default_auditor_configs(disabled=["testing", "Documentation"])

        auditors = AuditorFactory.create_all_auditors(configs, FakeClient(), fake_model_manager())

        assert AuditType.TESTING not in auditors
        assert AuditType.DOCUMENTATION not in auditors
        assert len(auditors) == 5

    def test_auditors_share_collaborators(self):
        client = FakeClient()
        manager = fake_model_manager()

        auditors = AuditorFactory.create_all_auditors(get_default_auditor_configs(), client, manager)

        assert all(a.client is client and a.model_manager is manager for a in auditors.values())


class TestDefaultConfigs:
    """Конфигурации аудиторов по умолчанию"""

    def test_default_severities(self):
        configs = get_default_auditor_configs()

        assert configs[AuditType.SECURITY].severity == [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM]
        assert configs[AuditType.QUALITY].severity == [Severity.HIGH, Severity.MEDIUM, Severity.LOW]
        assert configs[AuditType.DOCUMENTATION].severity == [Severity.MEDIUM, Severity.LOW, Severity.INFO]
        assert all(c.enabled for c in configs.values())

    def test_configs_are_independent(self):
        configs = get_default_auditor_configs()
        configs[AuditType.SECURITY].severity.append(Severity.LOW)
        assert Severity.LOW not in configs[AuditType.COMPLETENESS].severity

    def test_rule_enablement(self):
        config = AuditorConfig(rules={"COMP001": False, "COMP002": True})

        assert config.is_rule_enabled("COMP001") is False
        assert config.is_rule_enabled("COMP002") is True
        assert config.is_rule_enabled("COMP003") is True
        assert config.is_rule_enabled(None) is True

    def test_to_dict(self):
        data = AuditorConfig(thresholds={"min_confidence": 0.5}).to_dict()
        assert data["severity"] == ["critical", "high", "medium"]
        assert data["thresholds"] == {"min_confidence": 0.5}
