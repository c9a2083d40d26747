"""
Structured errors raised by the audit pipeline.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


INVALID_REQUEST = "INVALID_REQUEST"
CODE_TOO_LARGE = "CODE_TOO_LARGE"
NO_AVAILABLE_MODEL = "NO_AVAILABLE_MODEL"
AUDIT_FAILED = "AUDIT_FAILED"
INVALID_AUDIT_TYPE = "INVALID_AUDIT_TYPE"
AUDITOR_UNAVAILABLE = "AUDITOR_UNAVAILABLE"

# Ошибки ввода: повтор того же запроса не поможет
NON_RECOVERABLE_CODES = frozenset({INVALID_REQUEST, CODE_TOO_LARGE, INVALID_AUDIT_TYPE})


class AuditError(Exception):
    """Ошибка аудита с кодом, деталями и признаком recoverable."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Any] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.recoverable = (
            recoverable if recoverable is not None else code not in NON_RECOVERABLE_CODES
        )
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp,
        }
        if self.details is not None:
            data["details"] = self.details
        return data
