"""
Base classes for static pattern checkers.

Pattern checkers scan source text line by line without any model call and
produce fully formed AuditIssue objects.
"""

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence

from ..core.models import AuditIssue, AuditType, Effort, IssueLocation, Severity
from ..core.source import extract_code_snippet, split_lines


logger = logging.getLogger(__name__)


JS_LANGUAGES = ("javascript", "typescript")

LOOP_KEYWORD = re.compile(r"\b(for|while|forEach)\b")


@dataclass(frozen=True)
class PatternRule:
    """Описание правила: фиксированные rule_id, severity и confidence."""

    rule_id: str
    type: str
    severity: Severity
    confidence: float
    title: str
    description: str
    suggestion: str
    fixable: bool = False
    effort: Optional[Effort] = None


def matches_any(patterns: Iterable[Pattern], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def brace_delta(text: str) -> int:
    return text.count("{") - text.count("}")


def preceded_by(lines: Sequence[str], index: int, window: int, pattern: Pattern) -> bool:
    """Есть ли совпадение в одной из window строк перед index."""
    for i in range(max(0, index - window), index):
        if lines[i] and pattern.search(lines[i]):
            return True
    return False


class PatternChecker(ABC):
    """
    Базовый класс для статических детекторов.

    Подкласс реализует _check_line(); шаблонный метод detect() обходит строки
    и собирает проблемы.
    """

    category: AuditType

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"code_audit.checkers.{name}")

    def detect(self, code: str, language: str) -> List[AuditIssue]:
        """
        Просканировать код и вернуть найденные проблемы.

        Args:
            code: Исходный код
            language: Язык в нижнем регистре
        """
        lines = split_lines(code)
        issues: List[AuditIssue] = []

        for index, line in enumerate(lines):
            for rule in self._check_line(line, lines, index, language):
                issues.append(self.create_issue(rule, code, index + 1, line))

        self.logger.debug(f"{self.name}: {len(issues)} pattern issues in {len(lines)} lines")
        return issues

    @abstractmethod
    def _check_line(
        self,
        line: str,
        lines: Sequence[str],
        index: int,
        language: str,
    ) -> List[PatternRule]:
        """Вернуть правила, сработавшие на строке index."""

    def create_issue(self, rule: PatternRule, code: str, line_number: int, line: str) -> AuditIssue:
        """Собрать AuditIssue из правила. В description доступен {line}."""
        return AuditIssue(
            id=str(uuid.uuid4()),
            location=IssueLocation(line=line_number),
            severity=rule.severity,
            type=rule.type,
            category=self.category,
            title=rule.title,
            description=rule.description.format(line=line.strip()),
            confidence=rule.confidence,
            fixable=rule.fixable,
            suggestion=rule.suggestion,
            code_snippet=extract_code_snippet(code, line_number),
            rule_id=rule.rule_id,
            effort=rule.effort,
        )
