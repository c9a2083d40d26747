"""
Performance Pattern Checker - находит типичные узкие места.

Эвристики построчные: это не анализ потока данных, а быстрый фильтр
очевидных проблем (O(n^2), N+1, блокирующий I/O, утечки таймеров).
"""

import re
from typing import List, Sequence

from ..core.models import AuditType, Effort, Severity
from .base import (
    JS_LANGUAGES,
    LOOP_KEYWORD,
    PatternChecker,
    PatternRule,
    brace_delta,
    matches_any,
    preceded_by,
)


LOOP_OPENERS = [
    re.compile(r"\bfor\s*\("),
    re.compile(r"\bwhile\s*\("),
    re.compile(r"\.forEach\s*\("),
    re.compile(r"\.map\s*\("),
    re.compile(r"\.filter\s*\("),
]

# Окна сканирования (строк)
NESTED_LOOP_WINDOW = 20
LOOP_LOOKBACK = 10
ASYNC_LOOKBACK = 20

QUERY_PATTERNS = [
    re.compile(r"\.query\s*\("),
    re.compile(r"\.execute\s*\("),
    re.compile(r"SELECT\s+", re.IGNORECASE),
    re.compile(r"INSERT\s+", re.IGNORECASE),
    re.compile(r"UPDATE\s+", re.IGNORECASE),
    re.compile(r"DELETE\s+", re.IGNORECASE),
    re.compile(r"\.find\s*\("),
    re.compile(r"\.save\s*\("),
]

STRING_APPEND = re.compile(r"\w+\s*\+=\s*[\"']")
JAVA_STRING_CONCAT = re.compile(r"String\s+\w+\s*=.*\+")

SYNC_FILE_CALLS = [
    re.compile(r"fs\.readFileSync"),
    re.compile(r"fs\.writeFileSync"),
    re.compile(r"fs\.existsSync"),
    re.compile(r"fs\.statSync"),
]

OBJECT_CREATION = [
    re.compile(r"new\s+\w+\s*\("),
    re.compile(r"\{\s*\w+:"),
    re.compile(r"\[\s*\w+"),
    re.compile(r"Object\.create"),
]

EXPENSIVE_CALLS = [
    re.compile(r"Math\.(sin|cos|sqrt|pow)"),
    re.compile(r"JSON\.parse"),
    re.compile(r"JSON\.stringify"),
    re.compile(r"\w+\.match\("),
    re.compile(r"\w+\.replace\("),
    re.compile(r"fetch\("),
    re.compile(r"axios\."),
]

INEFFICIENT_ARRAY_OPS = [
    re.compile(r"\.indexOf\s*\([^)]+\)\s*!==?\s*-1"),    # includes()
    re.compile(r"\.splice\s*\(\s*0\s*,\s*1\s*\)"),     # shift()
    re.compile(r"\.slice\s*\(\s*0\s*,\s*-1\s*\)"),
    re.compile(r"for\s*\([^;]*;[^;]*\.length"),       # length в условии
]

# Регистрация без парного снятия в той же строке
LEAK_PATTERNS = [
    re.compile(r"addEventListener\s*\((?!.*removeEventListener)"),
    re.compile(r"setInterval\s*\((?!.*clearInterval)"),
    re.compile(r"setTimeout\s*\((?!.*clearTimeout)"),
    re.compile(r"new\s+EventSource\s*\((?!.*close)"),
]

BLOCKING_CALLS = [
    re.compile(r"fs\.readFileSync"),
    re.compile(r"fs\.writeFileSync"),
    re.compile(r"JSON\.parse\(.*large", re.IGNORECASE),
    re.compile(r"while\s*\(true\)"),
]
ASYNC_MARKER = re.compile(r"async\s+function|async\s*\(")

DOM_PATTERNS = [
    re.compile(r"document\.getElementById.*for"),
    re.compile(r"querySelector.*for"),
    re.compile(r"innerHTML\s*\+="),
    re.compile(r"document\.createElement.*for"),
]


# ═══════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════

NESTED_LOOPS = PatternRule(
    rule_id="PERF001",
    type="nested_loops",
    severity=Severity.HIGH,
    confidence=0.9,
    title="Nested loops detected (O(n²) complexity)",
    description="Nested loops can cause performance issues with large datasets",
    suggestion="Consider using maps, sets, or other data structures to reduce complexity",
    fixable=True,
    effort=Effort.MEDIUM,
)

STRING_CONCATENATION = PatternRule(
    rule_id="PERF002",
    type="inefficient_string_concatenation",
    severity=Severity.MEDIUM,
    confidence=0.8,
    title="Inefficient string concatenation",
    description="String concatenation in loops can be slow",
    suggestion="Use StringBuilder, string templates, or array.join() for better performance",
    fixable=True,
    effort=Effort.LOW,
)

QUERY_IN_LOOP = PatternRule(
    rule_id="PERF003",
    type="database_query_in_loop",
    severity=Severity.CRITICAL,
    confidence=0.9,
    title="Database query inside loop (N+1 problem)",
    description="Running database queries in loops can severely impact performance",
    suggestion="Batch queries or use joins to fetch all data at once",
    fixable=True,
    effort=Effort.MEDIUM,
)

SYNC_FILE_OPERATION = PatternRule(
    rule_id="PERF004",
    type="synchronous_file_operation",
    severity=Severity.MEDIUM,
    confidence=0.9,
    title="Synchronous file operation blocks event loop",
    description="Synchronous file operations can block the main thread",
    suggestion="Use asynchronous file operations instead",
    fixable=True,
    effort=Effort.LOW,
)

OBJECT_CREATION_IN_LOOP = PatternRule(
    rule_id="PERF005",
    type="object_creation_in_loop",
    severity=Severity.MEDIUM,
    confidence=0.7,
    title="Object creation inside loop",
    description="Creating objects in loops can cause garbage collection pressure",
    suggestion="Move object creation outside the loop or use object pooling",
    fixable=True,
    effort=Effort.MEDIUM,
)

MISSING_CACHING = PatternRule(
    rule_id="PERF006",
    type="missing_caching",
    severity=Severity.LOW,
    confidence=0.6,
    title="Expensive operation could benefit from caching",
    description="Repetitive expensive operations should be cached",
    suggestion="Implement caching for this operation if called frequently",
    fixable=True,
    effort=Effort.MEDIUM,
)

INEFFICIENT_ARRAY_OPERATION = PatternRule(
    rule_id="PERF007",
    type="inefficient_array_operation",
    severity=Severity.LOW,
    confidence=0.8,
    title="Inefficient array operation",
    description="Array operation could be optimized",
    suggestion="Use more efficient array methods or cache array length",
    fixable=True,
    effort=Effort.LOW,
)

MEMORY_LEAK = PatternRule(
    rule_id="PERF008",
    type="potential_memory_leak",
    severity=Severity.HIGH,
    confidence=0.7,
    title="Potential memory leak",
    description="Event listener or timer without cleanup can cause memory leaks",
    suggestion="Add proper cleanup (removeEventListener, clearInterval, etc.)",
    fixable=True,
    effort=Effort.LOW,
)

BLOCKING_IN_ASYNC = PatternRule(
    rule_id="PERF009",
    type="blocking_operation_in_async",
    severity=Severity.HIGH,
    confidence=0.9,
    title="Blocking operation in async function",
    description="Blocking operations defeat the purpose of async functions",
    suggestion="Use async alternatives for file operations and CPU-intensive tasks",
    fixable=True,
    effort=Effort.MEDIUM,
)

DOM_OPERATION = PatternRule(
    rule_id="PERF010",
    type="inefficient_dom_operation",
    severity=Severity.MEDIUM,
    confidence=0.8,
    title="Inefficient DOM operation",
    description="DOM operations in loops or repetitive queries can be slow",
    suggestion="Cache DOM elements, use document fragments, or batch DOM updates",
    fixable=True,
    effort=Effort.MEDIUM,
)

RULES = [
    NESTED_LOOPS, STRING_CONCATENATION, QUERY_IN_LOOP, SYNC_FILE_OPERATION,
    OBJECT_CREATION_IN_LOOP, MISSING_CACHING, INEFFICIENT_ARRAY_OPERATION,
    MEMORY_LEAK, BLOCKING_IN_ASYNC, DOM_OPERATION,
]


class PerformancePatternChecker(PatternChecker):
    """Статический поиск проблем производительности."""

    category = AuditType.PERFORMANCE

    def __init__(self):
        super().__init__("performance_patterns")

    def _check_line(
        self,
        line: str,
        lines: Sequence[str],
        index: int,
        language: str,
    ) -> List[PatternRule]:
        found = []
        is_js = language in JS_LANGUAGES

        if self.is_nested_loop(line, lines, index):
            found.append(NESTED_LOOPS)
        if self.is_inefficient_string_concatenation(line, language):
            found.append(STRING_CONCATENATION)
        if matches_any(QUERY_PATTERNS, line) and preceded_by(lines, index, LOOP_LOOKBACK, LOOP_KEYWORD):
            found.append(QUERY_IN_LOOP)
        if is_js and matches_any(SYNC_FILE_CALLS, line):
            found.append(SYNC_FILE_OPERATION)
        if matches_any(OBJECT_CREATION, line) and preceded_by(lines, index, LOOP_LOOKBACK, LOOP_KEYWORD):
            found.append(OBJECT_CREATION_IN_LOOP)
        if matches_any(EXPENSIVE_CALLS, line):
            found.append(MISSING_CACHING)
        if is_js and matches_any(INEFFICIENT_ARRAY_OPS, line):
            found.append(INEFFICIENT_ARRAY_OPERATION)
        if is_js and matches_any(LEAK_PATTERNS, line):
            found.append(MEMORY_LEAK)
        if is_js and matches_any(BLOCKING_CALLS, line) and preceded_by(lines, index, ASYNC_LOOKBACK, ASYNC_MARKER):
            found.append(BLOCKING_IN_ASYNC)
        if is_js and matches_any(DOM_PATTERNS, line):
            found.append(DOM_OPERATION)

        return found

    def is_nested_loop(self, line: str, lines: Sequence[str], index: int) -> bool:
        """
        Цикл, за которым в пределах окна открывается ещё один цикл.

        Сканирование прекращается, когда блок внешнего цикла закрылся.
        """
        if not matches_any(LOOP_OPENERS, line):
            return False

        balance = 0
        for current in lines[index + 1:index + NESTED_LOOP_WINDOW]:
            balance += brace_delta(current)
            if balance < 0:
                return False
            if matches_any(LOOP_OPENERS, current):
                return True

        return False

    def is_inefficient_string_concatenation(self, line: str, language: str) -> bool:
        if language in JS_LANGUAGES:
            return bool(STRING_APPEND.search(line)) and "for" in line
        if language == "python":
            return bool(STRING_APPEND.search(line))
        if language in ("java", "csharp"):
            return bool(JAVA_STRING_CONCAT.search(line)) and "for" in line
        return False


def bump_severity(severity: Severity) -> Severity:
    """low -> medium -> high; остальные без изменений."""
    if severity == Severity.LOW:
        return Severity.MEDIUM
    if severity == Severity.MEDIUM:
        return Severity.HIGH
    return severity
