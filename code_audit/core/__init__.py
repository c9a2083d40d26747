"""
Core components of the audit pipeline.

Contains:
- BaseAuditor - общий workflow аудита
- Data models (AuditRequest, AuditIssue, AuditResult, ...)
- AuditError
"""
