"""
Per-auditor configuration.
"""

import copy
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

from .core.models import AuditType, Severity


logger = logging.getLogger(__name__)


@dataclass
class AuditorConfig:
    """Конфигурация одного аудитора."""

    enabled: bool = True

    # Какие severity оставлять в результате (пустой список = все)
    severity: List[Severity] = field(default_factory=lambda: [
        Severity.CRITICAL,
        Severity.HIGH,
        Severity.MEDIUM,
    ])

    # rule_id -> enabled. Явный False отключает правило, отсутствие = включено
    rules: Dict[str, bool] = field(default_factory=dict)

    # Числовые пороги (поддерживается min_confidence)
    thresholds: Dict[str, float] = field(default_factory=dict)

    # Дополнительные фрагменты промпта
    prompts: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Привести severity к Severity, отбросив неизвестные значения."""
        normalized = []
        for value in self.severity or []:
            if isinstance(value, Severity):
                normalized.append(value)
                continue
            try:
                normalized.append(Severity(str(value).lower()))
            except ValueError:
                logger.warning(f"Ignoring unknown severity in auditor config: {value!r}")
        self.severity = normalized
        self.rules = dict(self.rules or {})
        self.thresholds = dict(self.thresholds or {})
        self.prompts = dict(self.prompts or {})

    def is_rule_enabled(self, rule_id: Optional[str]) -> bool:
        if not rule_id:
            return True
        return self.rules.get(rule_id) is not False

    @property
    def min_confidence(self) -> Optional[float]:
        value = self.thresholds.get("min_confidence")
        return float(value) if value is not None else None

    def merged(self, partial: Dict[str, Any]) -> "AuditorConfig":
        """
        Поверхностное слияние: известные ключи заменяются целиком.

        Неизвестные ключи игнорируются (с предупреждением).
        """
        known = {f.name for f in fields(self)}
        updates = {}
        for key, value in (partial or {}).items():
            if key in known:
                updates[key] = value
            else:
                logger.warning(f"Ignoring unknown auditor config key: {key}")
        return replace(self, **updates)

    def copy(self) -> "AuditorConfig":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "severity": [s.value for s in self.severity],
            "rules": dict(self.rules),
            "thresholds": dict(self.thresholds),
            "prompts": dict(self.prompts),
        }


_ACTIONABLE = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM]
_MAINTAINABILITY = [Severity.HIGH, Severity.MEDIUM, Severity.LOW]
_DOCS = [Severity.MEDIUM, Severity.LOW, Severity.INFO]

DEFAULT_SEVERITIES: Dict[AuditType, List[Severity]] = {
    AuditType.SECURITY: _ACTIONABLE,
    AuditType.COMPLETENESS: _ACTIONABLE,
    AuditType.PERFORMANCE: _ACTIONABLE,
    AuditType.QUALITY: _MAINTAINABILITY,
    AuditType.ARCHITECTURE: _MAINTAINABILITY,
    AuditType.TESTING: _MAINTAINABILITY,
    AuditType.DOCUMENTATION: _DOCS,
}


def get_default_auditor_configs(
    disabled: Optional[List[str]] = None,
) -> Dict[AuditType, AuditorConfig]:
    """Получить конфигурацию аудиторов по умолчанию."""
    disabled = {d.lower() for d in (disabled or [])}
    return {
        audit_type: AuditorConfig(
            enabled=audit_type.value not in disabled,
            severity=list(severities),
        )
        for audit_type, severities in DEFAULT_SEVERITIES.items()
    }
