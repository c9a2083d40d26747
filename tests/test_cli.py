"""
Tests для CLI (typer CliRunner, без сети).
"""

import json

import pytest
from typer.testing import CliRunner

from code_audit.cli import main as cli_main
from code_audit.cli.main import EXIT_AUDIT_ERROR, EXIT_CRITICAL_FOUND, app
from code_audit.ollama.models import ModelManager
from code_audit.server.config import Settings
from code_audit.server.service import CodeAuditServer

from conftest import FakeClient, issues_json, raw_issue


runner = CliRunner()


@pytest.fixture
def cli_settings(monkeypatch):
    settings = Settings(_env_file=None, log_level="ERROR", retry_delay=0.0)
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def fake_client(monkeypatch, cli_settings):
    client = FakeClient()

    def create_server(settings):
        return CodeAuditServer(settings, client=client, model_manager=ModelManager())

    monkeypatch.setattr(cli_main, "create_server", create_server)
    return client


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "app.py"
    path.write_text("def run(x):\n    return x\n", encoding="utf-8")
    return path


class TestAuditCommand:

    def test_clean_file_exits_zero(self, fake_client, source_file):
        result = runner.invoke(app, ["audit", str(source_file), "--type", "quality"])

        assert result.exit_code == 0
        assert fake_client.generate.await_count == 1

    def test_critical_issue_exits_one(self, fake_client, source_file):
        fake_client.reply_with(issues_json(raw_issue(1, severity="critical")))

        result = runner.invoke(app, ["audit", str(source_file), "-t", "security"])

        assert result.exit_code == EXIT_CRITICAL_FOUND

    def test_json_output(self, fake_client, source_file):
        fake_client.reply_with(issues_json(raw_issue(2, severity="medium")))

        result = runner.invoke(app, ["audit", str(source_file), "-t", "quality", "-f", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["summary"]["total"] == 1
        assert data["issues"][0]["location"]["line"] == 2
        assert "recommendations" in data

    def test_markdown_output(self, fake_client, source_file):
        result = runner.invoke(app, ["audit", str(source_file), "-t", "quality", "-f", "markdown"])

        assert result.exit_code == 0
        assert "# Code Audit: app.py" in result.stdout

    def test_report_file(self, fake_client, source_file, tmp_path):
        target = tmp_path / "out" / "report.json"

        result = runner.invoke(app, [
            "audit", str(source_file), "-t", "quality", "-f", "json", "-o", str(target),
        ])

        assert result.exit_code == 0
        assert json.loads(target.read_text(encoding="utf-8"))["model"] == "codellama:7b"

    def test_language_is_required_for_unknown_extension(self, fake_client, tmp_path):
        path = tmp_path / "notes.xyz"
        path.write_text("some text\n", encoding="utf-8")

        result = runner.invoke(app, ["audit", str(path)])

        assert result.exit_code == EXIT_AUDIT_ERROR
        assert fake_client.generate.await_count == 0

    def test_explicit_language(self, fake_client, tmp_path):
        path = tmp_path / "notes.xyz"
        path.write_text("some text\n", encoding="utf-8")

        result = runner.invoke(app, ["audit", str(path), "-l", "python", "-t", "quality"])

        assert result.exit_code == 0

    def test_unknown_format(self, fake_client, source_file):
        result = runner.invoke(app, ["audit", str(source_file), "-f", "html"])
        assert result.exit_code == EXIT_AUDIT_ERROR

    def test_invalid_audit_type(self, fake_client, source_file):
        result = runner.invoke(app, ["audit", str(source_file), "-t", "style"])

        assert result.exit_code == EXIT_AUDIT_ERROR
        assert fake_client.generate.await_count == 0


class TestInfoCommands:

    def test_health_json(self, fake_client):
        result = runner.invoke(app, ["health", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["status"] == "healthy"

    def test_models_json(self, fake_client):
        result = runner.invoke(app, ["models", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["available"] == ["codellama:7b"]

    def test_config_json(self, cli_settings):
        result = runner.invoke(app, ["config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["settings"]["log_level"] == "ERROR"
        assert set(data["auditors"]) == {
            "security", "completeness", "performance", "quality",
            "architecture", "testing", "documentation",
        }


def test_detect_language(tmp_path):
    assert cli_main.detect_language(tmp_path / "a.PY") == "python"
    assert cli_main.detect_language(tmp_path / "a.tsx") == "typescript"
    assert cli_main.detect_language(tmp_path / "Makefile") is None
