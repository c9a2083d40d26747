"""
Auditor variants.

Contains:
- SecurityAuditor - уязвимости, OWASP
- CompletenessAuditor - незавершённые реализации
- PerformanceAuditor - узкие места
- QualityAuditor, ArchitectureAuditor, TestingAuditor, DocumentationAuditor
- AuditorFactory - создание аудиторов по типу
"""
