"""
Infrastructure helpers: retry and health checks.
"""
