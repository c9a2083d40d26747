"""
Pytest configuration and fixtures.

Использование:
    pytest tests/ -v
"""

import json
import os
import sys
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest


# Корень проекта (там, где находится пакет code_audit)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from code_audit.config import AuditorConfig  # noqa: E402
from code_audit.core.models import AuditRequest  # noqa: E402
from code_audit.ollama.client import GenerateResponse  # noqa: E402
from code_audit.server.config import Settings  # noqa: E402


DEFAULT_MODEL = "codellama:7b"


# ═══════════════════════════════════════════════════════
# FAKES
# ═══════════════════════════════════════════════════════

class FakeClient:
    """Inference client без сети: generate() возвращает заранее заданный текст."""

    def __init__(self, response: str = '{"issues": []}', models: Optional[List[str]] = None):
        self.models = list(models if models is not None else [DEFAULT_MODEL])
        self.generate = AsyncMock(
            return_value=GenerateResponse(response=response, model=DEFAULT_MODEL)
        )
        self.initialize = AsyncMock()
        self.close = AsyncMock()
        self.refresh_available_models = AsyncMock(return_value=list(self.models))

    def reply_with(self, response: str) -> None:
        self.generate.return_value = GenerateResponse(response=response, model=DEFAULT_MODEL)

    def list_available_models(self) -> List[str]:
        return list(self.models)

    def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {}


def fake_model_manager(model: Optional[str] = DEFAULT_MODEL) -> Mock:
    """Выбор модели, всегда возвращающий model."""
    manager = Mock()
    manager.select_model = Mock(return_value=model)
    manager.get_recommended_models = Mock(return_value=[DEFAULT_MODEL])
    manager.strategy = Mock()
    manager.strategy.name = "default"
    return manager


def issues_json(*issues: Dict[str, Any], fenced: bool = True) -> str:
    """Ответ модели с массивом issues."""
    body = json.dumps({"issues": list(issues)})
    if fenced:
        return f"Here is the audit:\n```json\n{body}\n```"
    return body


def raw_issue(line: int = 1, **overrides) -> Dict[str, Any]:
    issue = {
        "line": line,
        "severity": "high",
        "type": "generic_issue",
        "title": "Something is wrong",
        "description": "A detailed explanation of the problem",
        "suggestion": "Fix it",
        "confidence": 0.9,
        "fixable": False,
    }
    issue.update(overrides)
    return issue


def make_request(code: str = "x = 1\n", language: str = "python", **kwargs) -> AuditRequest:
    return AuditRequest(code=code, language=language, **kwargs)


# ═══════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════

@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def model_manager():
    return fake_model_manager()


@pytest.fixture
def open_config():
    """Конфигурация без фильтра по severity."""
    return AuditorConfig(severity=[])


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        retry_attempts=2,
        retry_delay=0.0,
        health_check_interval=0.0,
    )


@pytest.fixture
def ten_line_code():
    return "\n".join(f"line_{i} = {i}" for i in range(1, 11))


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: requires a running Ollama daemon"
    )
