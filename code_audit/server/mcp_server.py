"""
MCP tool surface for the audit service.

Usage:
    server = CodeAuditServer(get_settings())
    mcp = create_mcp_server(server)
    mcp.run()  # stdio transport
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ..core.errors import AuditError
from .service import CodeAuditServer


logger = logging.getLogger(__name__)


INSTRUCTIONS = (
    "Code audit server backed by local Ollama models. "
    "Use audit_code to find security, completeness, performance, quality, "
    "architecture, testing and documentation issues in a code snippet."
)


def _tool_error(error: AuditError) -> ToolError:
    return ToolError(json.dumps(error.to_dict()))


def create_mcp_server(server: CodeAuditServer) -> FastMCP:
    """Создать FastMCP сервер, замкнув в нём сервис аудита."""

    @asynccontextmanager
    async def lifespan(app: FastMCP) -> AsyncIterator[CodeAuditServer]:
        await server.initialize()
        try:
            yield server
        finally:
            await server.cleanup()

    mcp = FastMCP(
        name=server.settings.name,
        instructions=INSTRUCTIONS,
        lifespan=lifespan,
    )

    @mcp.tool()
    async def audit_code(
        code: str,
        language: str,
        audit_type: str = "all",
        file: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        priority: str = "thorough",
        max_issues: Optional[int] = 50,
        include_fix_suggestions: bool = True,
    ) -> Dict[str, Any]:
        """
        Perform a code audit using local AI models.

        audit_type: security | completeness | performance | quality |
        architecture | testing | documentation | all.
        priority: "fast" runs security + completeness only.
        context: optional framework, environment (production | development |
        testing), performance_critical, team_size, project_type.
        """
        payload = {
            "code": code,
            "language": language,
            "audit_type": audit_type,
            "file": file,
            "context": context,
            "priority": priority,
            "max_issues": max_issues,
            "include_fix_suggestions": include_fix_suggestions,
        }
        try:
            result = await server.audit(payload)
        except AuditError as e:
            logger.error(f"Tool audit_code failed: {e}")
            raise _tool_error(e) from e
        return result.to_dict()

    @mcp.tool()
    async def health_check() -> Dict[str, Any]:
        """Check the health status of the audit server and Ollama."""
        return await server.health_check()

    @mcp.tool()
    async def list_models() -> Dict[str, Any]:
        """List configured models with availability and usage metrics."""
        return server.list_models()

    @mcp.tool()
    async def update_config(
        auditors: Optional[Dict[str, Dict[str, Any]]] = None,
        ollama: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Update auditor configuration.

        auditors maps an audit type to a partial config (enabled, severity,
        rules, thresholds, prompts).
        """
        payload: Dict[str, Any] = {"auditors": auditors or {}}
        if ollama is not None:
            payload["ollama"] = ollama
        try:
            return server.update_config(payload)
        except AuditError as e:
            raise _tool_error(e) from e

    return mcp


def main() -> None:
    """Запуск MCP сервера по stdio."""
    from .config import get_settings

    settings = get_settings()
    create_mcp_server(CodeAuditServer(settings)).run()
