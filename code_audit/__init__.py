"""
Code Audit MCP Server

AI-аудит исходного кода через локальные модели Ollama:
- Безопасность (OWASP, секреты, инъекции)
- Полнота реализации (TODO, заглушки, пустые функции)
- Производительность (O(n²), N+1, блокирующий I/O)
- Качество, архитектура, тестируемость, документация

Usage:
    code-audit start
    code-audit audit path/to/file.py --type security
"""

__version__ = "1.0.0"
