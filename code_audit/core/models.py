"""
Core data models for the code audit pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


RESULT_VERSION = "1.0.0"


class Severity(Enum):
    """Уровень серьёзности проблемы."""
    CRITICAL = "critical"  # Немедленный риск безопасности или отказа
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"          # Информационная рекомендация

    @property
    def rank(self) -> int:
        """Порядок сортировки: critical первым."""
        return _SEVERITY_RANK[self]

    @classmethod
    def coerce(cls, value: Any, default: "Severity" = None) -> "Severity":
        """
        Привести произвольное значение к Severity.

        Невалидные и отсутствующие значения превращаются в default (MEDIUM).
        """
        default = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return default
        return default


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}


class AuditType(Enum):
    """Тип аудита (домен, который производит проблемы)."""
    SECURITY = "security"
    COMPLETENESS = "completeness"
    PERFORMANCE = "performance"
    QUALITY = "quality"
    ARCHITECTURE = "architecture"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    ALL = "all"  # Только маршрутизация запроса, не отдельный аудитор

    @classmethod
    def variants(cls) -> List["AuditType"]:
        """Все типы, для которых существует аудитор."""
        return [t for t in cls if t is not cls.ALL]


class Priority(Enum):
    FAST = "fast"          # Только security + completeness
    THOROUGH = "thorough"


class Environment(Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TESTING = "testing"


class Effort(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _enum_or_none(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return None


# ═══════════════════════════════════════════════════════
# REQUEST
# ═══════════════════════════════════════════════════════

@dataclass
class AuditContext:
    """Дополнительный контекст от вызывающей стороны."""

    framework: Optional[str] = None
    environment: Optional[Environment] = None
    performance_critical: bool = False
    team_size: Optional[int] = None
    project_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["AuditContext"]:
        if not data:
            return None
        team_size = data.get("team_size", data.get("teamSize"))
        return cls(
            framework=data.get("framework"),
            environment=_enum_or_none(Environment, data.get("environment")),
            performance_critical=bool(
                data.get("performance_critical", data.get("performanceCritical", False))
            ),
            team_size=int(team_size) if team_size is not None else None,
            project_type=data.get("project_type", data.get("projectType")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "framework": self.framework,
            "environment": self.environment.value if self.environment else None,
            "performance_critical": self.performance_critical,
            "team_size": self.team_size,
            "project_type": self.project_type,
        }


@dataclass
class AuditRequest:
    """Запрос на один аудит."""

    code: str
    language: str
    audit_type: AuditType = AuditType.ALL
    file: Optional[str] = None
    context: Optional[AuditContext] = None
    priority: Optional[Priority] = None
    max_issues: Optional[int] = None
    include_fix_suggestions: bool = True

    @property
    def effective_priority(self) -> Priority:
        return self.priority or Priority.THOROUGH

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRequest":
        """
        Построить запрос из payload'а (MCP tool, CLI).

        Принимает как snake_case, так и camelCase ключи.

        Raises:
            ValueError: если audit_type или priority не распознаны
        """
        raw_type = data.get("audit_type", data.get("auditType")) or AuditType.ALL.value
        raw_priority = data.get("priority")
        max_issues = data.get("max_issues", data.get("maxIssues"))
        include_fixes = data.get(
            "include_fix_suggestions", data.get("includeFixSuggestions", True)
        )

        return cls(
            code=data.get("code") or "",
            language=data.get("language") or "",
            audit_type=raw_type if isinstance(raw_type, AuditType) else AuditType(str(raw_type).lower()),
            file=data.get("file"),
            context=AuditContext.from_dict(data.get("context")),
            priority=(
                raw_priority if isinstance(raw_priority, Priority) or raw_priority is None
                else Priority(str(raw_priority).lower())
            ),
            max_issues=int(max_issues) if max_issues is not None else None,
            include_fix_suggestions=bool(include_fixes),
        )


# ═══════════════════════════════════════════════════════
# ISSUES
# ═══════════════════════════════════════════════════════

@dataclass
class IssueLocation:
    line: int
    column: Optional[int] = None
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"line": self.line}
        if self.column is not None:
            data["column"] = self.column
        if self.end_line is not None:
            data["end_line"] = self.end_line
        if self.end_column is not None:
            data["end_column"] = self.end_column
        return data


@dataclass
class AuditIssue:
    """Проблема, найденная аудитором (AI или статическим детектором)."""

    id: str
    location: IssueLocation
    severity: Severity
    type: str
    category: AuditType
    title: str
    description: str
    confidence: float
    fixable: bool = False
    suggestion: Optional[str] = None
    code_snippet: Optional[str] = None
    rule_id: Optional[str] = None
    documentation: Optional[str] = None
    impact: Optional[str] = None
    effort: Optional[Effort] = None

    @property
    def line(self) -> int:
        return self.location.line

    @property
    def dedup_key(self):
        """Ключ дедупликации: (строка, тип)."""
        return (self.location.line, self.type)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "id": self.id,
            "location": self.location.to_dict(),
            "severity": self.severity.value,
            "type": self.type,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "suggestion": self.suggestion,
            "code_snippet": self.code_snippet,
            "confidence": self.confidence,
            "fixable": self.fixable,
            "rule_id": self.rule_id,
            "documentation": self.documentation,
            "impact": self.impact,
            "effort": self.effort.value if self.effort else None,
        }


@dataclass
class CodeMetrics:
    line_count: int
    function_count: int
    complexity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_count": self.line_count,
            "function_count": self.function_count,
            "complexity": self.complexity,
        }


@dataclass
class PromptContext:
    """Всё, что нужно построителю промпта."""

    code: str
    language: str
    audit_type: AuditType
    context: Optional[AuditContext] = None
    code_metrics: Optional[CodeMetrics] = None
    custom_prompts: List[str] = field(default_factory=list)


# ═══════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════

@dataclass
class AuditSummary:
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_issues(cls, issues: List[AuditIssue]) -> "AuditSummary":
        summary = cls(total=len(issues))
        for issue in issues:
            name = issue.severity.value
            setattr(summary, name, getattr(summary, name) + 1)
            category = issue.category.value
            summary.by_category[category] = summary.by_category.get(category, 0) + 1
            summary.by_type[issue.type] = summary.by_type.get(issue.type, 0) + 1
        return summary

    def count(self, severity: Severity) -> int:
        return getattr(self, severity.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "info": self.info,
            "by_category": dict(self.by_category),
            "by_type": dict(self.by_type),
        }


@dataclass
class AuditCoverage:
    lines_analyzed: int = 0
    functions_analyzed: int = 0
    classes_analyzed: int = 0
    complexity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines_analyzed": self.lines_analyzed,
            "functions_analyzed": self.functions_analyzed,
            "classes_analyzed": self.classes_analyzed,
            "complexity": self.complexity,
        }


@dataclass
class AuditSuggestions:
    """
    Представления над списком проблем.

    Списки ссылаются на те же объекты AuditIssue, что и AuditResult.issues.
    """

    auto_fixable: List[AuditIssue] = field(default_factory=list)
    priority_fixes: List[AuditIssue] = field(default_factory=list)
    quick_wins: List[AuditIssue] = field(default_factory=list)
    technical_debt: List[AuditIssue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, issues: List[AuditIssue]) -> "AuditSuggestions":
        return cls(
            auto_fixable=[i for i in issues if i.fixable],
            priority_fixes=[
                i for i in issues if i.severity in (Severity.CRITICAL, Severity.HIGH)
            ],
            quick_wins=[
                i for i in issues
                if i.effort == Effort.LOW and i.severity in (Severity.MEDIUM, Severity.HIGH)
            ],
            technical_debt=[
                i for i in issues
                if i.category in (AuditType.QUALITY, AuditType.ARCHITECTURE)
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_fixable": [i.id for i in self.auto_fixable],
            "priority_fixes": [i.id for i in self.priority_fixes],
            "quick_wins": [i.id for i in self.quick_wins],
            "technical_debt": [i.id for i in self.technical_debt],
        }


@dataclass
class AuditMetrics:
    """Тайминги в миллисекундах."""

    duration: float = 0.0
    model_response_time: float = 0.0
    parsing_time: float = 0.0
    post_processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration": round(self.duration, 2),
            "model_response_time": round(self.model_response_time, 2),
            "parsing_time": round(self.parsing_time, 2),
            "post_processing_time": round(self.post_processing_time, 2),
        }


@dataclass
class AuditResult:
    """Результат одного вызова audit()."""

    request_id: str
    issues: List[AuditIssue]
    summary: AuditSummary
    coverage: AuditCoverage
    suggestions: AuditSuggestions
    metrics: AuditMetrics
    model: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    version: str = RESULT_VERSION

    @property
    def is_empty(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "request_id": self.request_id,
            "issues": [issue.to_dict() for issue in self.issues],
            "summary": self.summary.to_dict(),
            "coverage": self.coverage.to_dict(),
            "suggestions": self.suggestions.to_dict(),
            "metrics": self.metrics.to_dict(),
            "model": self.model,
            "timestamp": self.timestamp,
            "version": self.version,
        }
