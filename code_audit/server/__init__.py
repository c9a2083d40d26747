"""
Audit service and MCP tool surface.
"""
