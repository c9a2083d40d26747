"""
Helpers for working with submitted source text.
"""

from typing import List


# Строк контекста вокруг строки с проблемой
SNIPPET_CONTEXT = 2


def split_lines(code: str) -> List[str]:
    return code.split("\n")


def clamp_line(line: int, line_count: int) -> int:
    """Зажать номер строки в [1, line_count]."""
    return max(1, min(max(line_count, 1), line))


def extract_code_snippet(code: str, line: int, context: int = SNIPPET_CONTEXT) -> str:
    """
    Вырезать фрагмент кода вокруг строки (1-based).

    Для line=10 и context=2 возвращает строки 8..12.
    """
    lines = split_lines(code)
    start = max(0, line - context - 1)
    end = min(len(lines), line + context)
    return "\n".join(lines[start:end])
