"""
Completeness Pattern Checker - находит незавершённые реализации.

Проверяет:
- TODO / FIXME / HACK комментарии
- Пустые тела функций
- Функции с типом возврата, но без return
- Заглушки (NotImplementedError, unimplemented!, ...)
- Рискованные вызовы без try
- Promise без обработки ошибок (JS/TS)
"""

import re
from typing import Dict, List, Sequence

from ..core.models import AuditType, Severity
from .base import JS_LANGUAGES, PatternChecker, PatternRule, brace_delta, matches_any


def _comment_marker(word: str) -> List[re.Pattern]:
    return [
        re.compile(rf"//.*{word}", re.IGNORECASE),
        re.compile(rf"/\*.*{word}.*\*/", re.IGNORECASE),
        re.compile(rf"#.*{word}", re.IGNORECASE),
        re.compile(rf"<!--.*{word}.*-->", re.IGNORECASE),
    ]


TODO_PATTERNS = _comment_marker("todo")
FIXME_PATTERNS = _comment_marker("fixme")
HACK_PATTERNS = _comment_marker("hack")

FUNCTION_SIGNATURES: Dict[str, re.Pattern] = {
    "javascript": re.compile(r"function\s+\w+\s*\([^)]*\)\s*{"),
    "typescript": re.compile(r"function\s+\w+\s*\([^)]*\)\s*:\s*\w+\s*{"),
    "python": re.compile(r"def\s+\w+\s*\([^)]*\)\s*:"),
    "java": re.compile(r"\w+\s+\w+\s*\([^)]*\)\s*{"),
    "csharp": re.compile(r"\w+\s+\w+\s*\([^)]*\)\s*{"),
    "go": re.compile(r"func\s+\w+\s*\([^)]*\)\s*\w*\s*{"),
    "rust": re.compile(r"fn\s+\w+\s*\([^)]*\)\s*->\s*\w+\s*{"),
}

# Языки, где возвращаемый тип объявляется явно
RETURN_TYPED_LANGUAGES = ("javascript", "typescript", "java", "csharp", "go", "rust")
RETURN_TYPED_SIGNATURE = re.compile(r"function\s+\w+\s*\([^)]*\)\s*:\s*\w+|def\s+\w+\s*\([^)]*\)\s*->")
RETURN_STATEMENT = re.compile(r"\breturn\b")

PYTHON_EMPTY_STATEMENTS = ("pass", "...")

PLACEHOLDER_PATTERNS = [
    re.compile(r'throw new Error\("not implemented"\)', re.IGNORECASE),
    re.compile(r"throw new NotImplementedError", re.IGNORECASE),
    re.compile(r"raise NotImplementedError", re.IGNORECASE),
    re.compile(r'panic\("not implemented"\)', re.IGNORECASE),
    re.compile(r"unimplemented!", re.IGNORECASE),
    re.compile(r"// implementation", re.IGNORECASE),
    re.compile(r"// placeholder", re.IGNORECASE),
]

RISKY_CALLS = [
    re.compile(r"JSON\.parse"),
    re.compile(r"JSON\.stringify"),
    re.compile(r"fetch\("),
    re.compile(r"XMLHttpRequest"),
    re.compile(r"fs\.readFileSync"),
    re.compile(r"fs\.writeFileSync"),
    re.compile(r"parseInt"),
    re.compile(r"parseFloat"),
]

# Сколько строк назад искать try
TRY_LOOKBACK = 10

PROMISE_CALLS = [
    re.compile(r"\w+\.\w+\([^)]*\)(?!\s*\.(then|catch|finally))"),
    re.compile(r"await\s+\w+\([^)]*\)"),
]

COMMENT_PREFIXES = ("//", "/*", "#")


# ═══════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════

TODO = PatternRule(
    rule_id="COMP001",
    type="todo_comment",
    severity=Severity.MEDIUM,
    confidence=1.0,
    title="TODO comment indicates incomplete implementation",
    description="Found TODO comment: {line}",
    suggestion="Implement the missing functionality or remove the TODO comment",
)

FIXME = PatternRule(
    rule_id="COMP002",
    type="fixme_comment",
    severity=Severity.HIGH,
    confidence=1.0,
    title="FIXME comment indicates broken functionality",
    description="Found FIXME comment: {line}",
    suggestion="Fix the issue mentioned in the FIXME comment",
)

HACK = PatternRule(
    rule_id="COMP003",
    type="hack_comment",
    severity=Severity.MEDIUM,
    confidence=1.0,
    title="HACK comment indicates suboptimal implementation",
    description="Found HACK comment: {line}",
    suggestion="Replace the hack with a proper implementation",
)

EMPTY_FUNCTION = PatternRule(
    rule_id="COMP004",
    type="empty_function",
    severity=Severity.MEDIUM,
    confidence=0.9,
    title="Empty function body",
    description="Function has no implementation",
    suggestion="Implement the function body or add appropriate error handling",
)

MISSING_RETURN = PatternRule(
    rule_id="COMP005",
    type="missing_return",
    severity=Severity.HIGH,
    confidence=0.8,
    title="Function missing return statement",
    description="Function declares a return type but has no return statement",
    suggestion="Add appropriate return statement or change return type to void",
)

PLACEHOLDER = PatternRule(
    rule_id="COMP006",
    type="placeholder_implementation",
    severity=Severity.HIGH,
    confidence=1.0,
    title="Placeholder implementation found",
    description="Placeholder implementation: {line}",
    suggestion="Replace placeholder with actual implementation",
)

MISSING_ERROR_HANDLING = PatternRule(
    rule_id="COMP007",
    type="missing_error_handling",
    severity=Severity.MEDIUM,
    confidence=0.7,
    title="Missing error handling for risky operation",
    description="Operation that can throw errors is not wrapped in try-catch",
    suggestion="Add appropriate error handling (try-catch block)",
    fixable=True,
)

UNHANDLED_PROMISE = PatternRule(
    rule_id="COMP008",
    type="unhandled_promise",
    severity=Severity.MEDIUM,
    confidence=0.8,
    title="Promise without error handling",
    description="Promise is not handled with .catch() or try-catch",
    suggestion="Add .catch() handler or wrap in try-catch if using await",
    fixable=True,
)

RULES = [
    TODO, FIXME, HACK, EMPTY_FUNCTION, MISSING_RETURN,
    PLACEHOLDER, MISSING_ERROR_HANDLING, UNHANDLED_PROMISE,
]


class CompletenessPatternChecker(PatternChecker):
    """Статический поиск незавершённых реализаций."""

    category = AuditType.COMPLETENESS

    def __init__(self):
        super().__init__("completeness_patterns")

    def _check_line(
        self,
        line: str,
        lines: Sequence[str],
        index: int,
        language: str,
    ) -> List[PatternRule]:
        found = []

        if matches_any(TODO_PATTERNS, line):
            found.append(TODO)
        if matches_any(FIXME_PATTERNS, line):
            found.append(FIXME)
        if matches_any(HACK_PATTERNS, line):
            found.append(HACK)
        if self.is_empty_function(line, lines, index, language):
            found.append(EMPTY_FUNCTION)
        if self.is_missing_return(line, lines, index, language):
            found.append(MISSING_RETURN)
        if matches_any(PLACEHOLDER_PATTERNS, line):
            found.append(PLACEHOLDER)
        if self.is_missing_error_handling(line, lines, index):
            found.append(MISSING_ERROR_HANDLING)
        if self.is_unhandled_promise(line, language):
            found.append(UNHANDLED_PROMISE)

        return found

    # ═══════════════════════════════════════════════════════
    # PREDICATES
    # ═══════════════════════════════════════════════════════

    def is_empty_function(self, line: str, lines: Sequence[str], index: int, language: str) -> bool:
        """
        Сигнатура функции, после которой до закрытия скобок нет кода.

        Комментарии и строки из одних скобок содержимым не считаются.
        Для Python тело определяется по отступу.
        """
        signature = FUNCTION_SIGNATURES.get(language)
        match = signature.search(line) if signature else None
        if match is None:
            return False

        if language == "python":
            return self._python_body_is_empty(line[match.end():], lines, index)

        # Сигнатура заканчивается на "{", сканируем начиная с неё
        balance = 0
        for i in range(index, len(lines)):
            current = line[match.end() - 1:] if i == index else lines[i]
            balance += brace_delta(current)

            content = current.replace("{", "").replace("}", "").strip()
            if content and not content.startswith(COMMENT_PREFIXES):
                return False

            if balance <= 0:
                break

        return True

    @staticmethod
    def _python_body_is_empty(tail: str, lines: Sequence[str], index: int) -> bool:
        inline = tail.strip()
        if inline and not inline.startswith("#"):
            return inline in PYTHON_EMPTY_STATEMENTS

        indent = len(lines[index]) - len(lines[index].lstrip())
        for current in lines[index + 1:]:
            stripped = current.strip()
            if not stripped:
                continue
            if len(current) - len(current.lstrip()) <= indent:
                break
            if stripped.startswith("#") or stripped in PYTHON_EMPTY_STATEMENTS:
                continue
            return False

        return True

    def is_missing_return(self, line: str, lines: Sequence[str], index: int, language: str) -> bool:
        """Объявлен тип возврата (не void), но в теле нет return."""
        if language not in RETURN_TYPED_LANGUAGES:
            return False
        if not RETURN_TYPED_SIGNATURE.search(line) or "void" in line:
            return False

        balance = 0
        opened = False
        for i in range(index, len(lines)):
            current = lines[i].strip()
            if RETURN_STATEMENT.search(current):
                return False

            balance += brace_delta(current)
            opened = opened or "{" in current
            if opened and balance <= 0:
                break

        return True

    def is_missing_error_handling(self, line: str, lines: Sequence[str], index: int) -> bool:
        if not matches_any(RISKY_CALLS, line):
            return False

        for i in range(max(0, index - TRY_LOOKBACK), index):
            if lines[i].strip().startswith("try"):
                return False
        return True

    def is_unhandled_promise(self, line: str, language: str) -> bool:
        if language not in JS_LANGUAGES:
            return False
        return (
            matches_any(PROMISE_CALLS, line)
            and ".then" not in line
            and ".catch" not in line
            and "await" not in line
        )
