"""
CLI интерфейс для Code Audit.

Использует Rich для вывода. Логи пишутся в stderr: stdout занят
MCP stdio транспортом и машиночитаемым выводом (--json, --format json).
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import get_default_auditor_configs
from ..core.errors import AuditError
from ..core.models import AuditRequest, Severity
from ..reports.generator import ReportGenerator
from ..server.config import Settings, get_settings
from ..server.service import CodeAuditServer

app = typer.Typer(
    name="code-audit",
    help="Code Audit MCP: аудит кода локальными моделями Ollama",
)
console = Console()
err_console = Console(stderr=True)

EXIT_CRITICAL_FOUND = 1
EXIT_AUDIT_ERROR = 2

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".cs": "csharp",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".c": "c",
    ".h": "c",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".kt": "kotlin",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
}


def setup_logging(level: str) -> None:
    """Настроить logging один раз: RichHandler в stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def create_server(settings: Settings) -> CodeAuditServer:
    return CodeAuditServer(settings)


def detect_language(path: Path) -> Optional[str]:
    return EXTENSION_LANGUAGES.get(path.suffix.lower())


async def _with_server(settings: Settings, action):
    server = create_server(settings)
    await server.initialize()
    try:
        return await action(server)
    finally:
        await server.cleanup()


def _print_json(data: Dict[str, Any]) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Подробные логи (DEBUG)"),
):
    """Code Audit MCP."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def start():
    """🚀 Запустить MCP сервер (stdio)."""
    from ..server.mcp_server import main as run_mcp_server

    run_mcp_server()


@app.command()
def audit(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    audit_type: str = typer.Option("all", "--type", "-t", help="Тип аудита или all"),
    priority: str = typer.Option("thorough", "--priority", "-p", help="fast | thorough"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Язык (по расширению файла)"),
    max_issues: Optional[int] = typer.Option(None, "--max-issues", min=0),
    environment: Optional[str] = typer.Option(None, "--environment", "-e"),
    framework: Optional[str] = typer.Option(None, "--framework"),
    performance_critical: bool = typer.Option(False, "--performance-critical"),
    output_format: str = typer.Option("text", "--format", "-f", help="text | markdown | json"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Файл для отчёта"),
):
    """🔍 Проверить файл."""
    if output_format not in ("text", "markdown", "json"):
        err_console.print(f"[red]❌ Unknown format: {output_format}[/]")
        raise typer.Exit(EXIT_AUDIT_ERROR)

    language = language or detect_language(path)
    if not language:
        err_console.print(f"[red]❌ Cannot infer language for {path.name}, use --language[/]")
        raise typer.Exit(EXIT_AUDIT_ERROR)

    context: Dict[str, Any] = {"performance_critical": performance_critical}
    if environment:
        context["environment"] = environment
    if framework:
        context["framework"] = framework

    payload = {
        "code": path.read_text(encoding="utf-8"),
        "language": language,
        "audit_type": audit_type,
        "file": str(path),
        "context": context,
        "priority": priority,
        "max_issues": max_issues,
    }

    settings = get_settings()
    try:
        request = CodeAuditServer.parse_request(payload)
        result = asyncio.run(_with_server(settings, lambda server: server.audit(request)))
    except AuditError as e:
        err_console.print(f"[red]❌ {e}[/]")
        if output_format == "json":
            _print_json({"error": e.to_dict()})
        raise typer.Exit(EXIT_AUDIT_ERROR)

    generator = ReportGenerator(output.parent if output else None)
    if output is not None:
        report_format = "json" if output_format == "json" else "markdown"
        filepath = generator.write_report(result, report_format, filename=output.name)
        err_console.print(f"📄 Report saved to {filepath}")
    elif output_format == "json":
        typer.echo(generator.render_json(result))
    elif output_format == "markdown":
        typer.echo(generator.render_markdown(result, title=f"Code Audit: {path.name}"))
    else:
        generator.print_summary(result, console)

    if result.summary.count(Severity.CRITICAL) > 0:
        raise typer.Exit(EXIT_CRITICAL_FOUND)


@app.command()
def health(as_json: bool = typer.Option(False, "--json", help="Вывод в JSON")):
    """🏥 Проверить статус Ollama и аудиторов."""
    settings = get_settings()
    data = asyncio.run(_with_server(settings, lambda server: server.health_check()))

    if as_json:
        _print_json(data)
    else:
        status = "🟢" if data["status"] == "healthy" else "🔴"
        console.print(f"{status} Server: {data['status']}")
        for name, component in data.get("components", {}).items():
            marker = "🟢" if component.get("status") == "healthy" else "🔴"
            console.print(f"   {marker} {name}: {component.get('status')}")
        missing = data.get("components", {}).get("models", {}).get("missing", [])
        if missing:
            console.print(f"[yellow]   Missing recommended models: {', '.join(missing)}[/]")

    if data["status"] != "healthy":
        raise typer.Exit(1)


@app.command()
def models(as_json: bool = typer.Option(False, "--json", help="Вывод в JSON")):
    """📦 Показать модели: установленные, сконфигурированные, рекомендованные."""
    settings = get_settings()

    async def collect(server: CodeAuditServer) -> Dict[str, Any]:
        return server.list_models()

    data = asyncio.run(_with_server(settings, collect))

    if as_json:
        _print_json(data)
        return

    table = Table(title="📦 Модели")
    table.add_column("Model", style="cyan")
    table.add_column("Specialization")
    table.add_column("Installed")
    table.add_column("Recommended")
    recommended = set(data["recommended"])
    for model in data["models"]:
        table.add_row(
            model["name"],
            ", ".join(model.get("specialization", [])),
            "✅" if model["available"] else "❌",
            "⭐" if model["name"] in recommended else "",
        )
    console.print(table)
    console.print(f"[dim]Installed: {', '.join(data['available']) or 'none'}[/]")


@app.command()
def config(as_json: bool = typer.Option(False, "--json", help="Вывод в JSON")):
    """⚙️ Показать текущие настройки."""
    settings = get_settings()
    auditors = {
        t.value: c.to_dict()
        for t, c in get_default_auditor_configs(settings.disabled_auditors).items()
    }
    data = {"settings": settings.model_dump(), "auditors": auditors}

    if as_json:
        _print_json(data)
        return

    console.print(Panel(
        "\n".join(f"[cyan]{key}[/]: {value}" for key, value in data["settings"].items()),
        title="Settings",
    ))
    table = Table(title="Auditors")
    table.add_column("Type", style="cyan")
    table.add_column("Enabled")
    table.add_column("Severity")
    for name, auditor in auditors.items():
        table.add_row(
            name,
            "✅" if auditor["enabled"] else "❌",
            ", ".join(auditor["severity"]),
        )
    console.print(table)


if __name__ == "__main__":
    app()
