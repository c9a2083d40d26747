"""
Base class for auditors.

BaseAuditor.audit() is the whole audit workflow: validate the request,
short-circuit disabled auditors, compute code metrics, pick a model, build a
prompt, call the model, parse its answer (falling back to a line scanner on
malformed JSON), normalize issues, merge static pattern findings, filter,
sort and assemble an AuditResult. Variants customize it through hooks.
"""

import json
import logging
import math
import re
import time
import uuid
from abc import ABC
from typing import Any, Dict, List, Optional, Sequence

from ..config import AuditorConfig
from .errors import (
    AUDIT_FAILED,
    CODE_TOO_LARGE,
    INVALID_REQUEST,
    NO_AVAILABLE_MODEL,
    AuditError,
)
from .models import (
    AuditCoverage,
    AuditIssue,
    AuditMetrics,
    AuditRequest,
    AuditResult,
    AuditSuggestions,
    AuditSummary,
    AuditType,
    CodeMetrics,
    Effort,
    IssueLocation,
    Priority,
    PromptContext,
    Severity,
)
from .source import clamp_line, extract_code_snippet, split_lines


logger = logging.getLogger(__name__)


MAX_CODE_LENGTH = 50_000
MAX_TITLE_LENGTH = 200
MAX_TEXT_LENGTH = 1000

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 2048
DEFAULT_CONFIDENCE = 0.5

FALLBACK_CONFIDENCE = 0.3
FALLBACK_TYPE = "parse_fallback"
FALLBACK_TITLE = "Issue detected (parsing fallback)"

# Фиксированная оценка накладных расходов на парсинг, мс
PARSING_OVERHEAD_MS = 100

FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
BARE_JSON = re.compile(r"(\{[\s\S]*\})")
FALLBACK_LINE = re.compile(r"line\s*(\d+)", re.IGNORECASE)

FUNCTION_PATTERNS = [
    re.compile(r"function\s+\w+"),       # JavaScript / TypeScript
    re.compile(r"def\s+\w+"),            # Python
    re.compile(r"\w+\s*\([^)]*\)\s*{"),  # C-style
    re.compile(r"fn\s+\w+"),             # Rust
    re.compile(r"func\s+\w+"),           # Go
]

BRANCH_PATTERNS = [
    re.compile(rf"\b{keyword}\b")
    for keyword in ("if", "else", "while", "for", "switch", "try", "catch")
]


class BaseAuditor(ABC):
    """
    Базовый класс для всех аудиторов.

    Предоставляет:
    - Шаблон метода audit()
    - Валидацию и short-circuit отключённых аудиторов
    - Парсинг ответа модели с fallback
    - Нормализацию, фильтрацию и сортировку проблем
    - Логирование

    Подклассы задают audit_type и при необходимости переопределяют хуки
    detect_patterns(), refine_issues() и атрибут temperature.
    """

    audit_type: AuditType
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    # Статические детекторы, чьи находки сливаются с ответом модели
    detectors: Sequence[Any] = ()

    def __init__(
        self,
        config: AuditorConfig,
        client,
        model_manager,
        prompt_builder=None,
    ):
        """
        Args:
            config: Конфигурация аудитора
            client: Inference client (generate, list_available_models)
            model_manager: Выбор модели (select_model)
            prompt_builder: Построитель промптов (build_thorough, build_fast)
        """
        if prompt_builder is None:
            from ..ollama.prompts import PromptBuilder
            prompt_builder = PromptBuilder()

        self.config = config
        self.client = client
        self.model_manager = model_manager
        self.prompt_builder = prompt_builder
        self.logger = logging.getLogger(f"code_audit.auditor.{self.audit_type.value}")

    # ═══════════════════════════════════════════════════════
    # WORKFLOW
    # ═══════════════════════════════════════════════════════

    async def audit(self, request: AuditRequest) -> AuditResult:
        """
        Выполнить аудит.

        Returns:
            AuditResult (возможно пустой)

        Raises:
            AuditError: INVALID_REQUEST, CODE_TOO_LARGE, NO_AVAILABLE_MODEL, AUDIT_FAILED
        """
        start_time = time.perf_counter()
        request_id = str(uuid.uuid4())

        try:
            self.validate_request(request)

            if not self.should_audit(request):
                self.logger.debug(f"Skipping {self.audit_type.value} audit for request {request_id}")
                return self.create_empty_result(request_id)

            language = self.detect_language(request.code, request.language)
            code_metrics = self.analyze_code_metrics(request.code, language)

            model = self.select_model(request, language)
            if not model:
                raise AuditError(
                    NO_AVAILABLE_MODEL,
                    "No suitable model available for audit",
                    details={"audit_type": self.audit_type.value, "language": language},
                )

            prompt_context = PromptContext(
                code=request.code,
                language=language,
                audit_type=self.audit_type,
                context=request.context,
                code_metrics=code_metrics,
                custom_prompts=list(self.config.prompts.values()),
            )
            if request.effective_priority == Priority.FAST:
                prompt = self.prompt_builder.build_fast(prompt_context)
            else:
                prompt = self.prompt_builder.build_thorough(prompt_context)

            self.logger.info(f"Starting {self.audit_type.value} audit with {model} ({code_metrics.line_count} lines)")

            model_start = time.perf_counter()
            reply = await self.client.generate(
                model=model,
                prompt=prompt,
                temperature=self.get_temperature(),
                max_tokens=self.get_max_tokens(),
            )
            model_response_time = (time.perf_counter() - model_start) * 1000

            raw_issues = self.parse_ai_response(reply.response)
            issues = self.post_process_issues(raw_issues, request, language)
            issues = self.filter_issues(issues, request)
            issues = self.sort_issues(issues)
            issues = self.limit_issues(issues, request)

            result = self.create_result(
                request_id, issues, model, start_time, model_response_time, code_metrics
            )
            self.logger.info(
                f"Completed {self.audit_type.value} audit: "
                f"found {result.summary.total} issues, "
                f"duration={result.metrics.duration:.2f}ms"
            )
            return result

        except AuditError as e:
            self.logger.error(f"Audit failed for {self.audit_type.value}: {e}")
            raise
        except Exception as e:
            self.logger.error(f"Audit failed for {self.audit_type.value}: {e}", exc_info=True)
            details = {"error_type": type(e).__name__, "error": str(e)}
            if getattr(e, "code", None):
                details["code"] = e.code
            raise AuditError(AUDIT_FAILED, f"Audit failed: {e}", details=details) from e

    def validate_request(self, request: AuditRequest) -> None:
        if not (request.code or "").strip():
            raise AuditError(INVALID_REQUEST, "Code is required and cannot be empty")
        if not (request.language or "").strip():
            raise AuditError(INVALID_REQUEST, "Language is required")
        if len(request.code) > MAX_CODE_LENGTH:
            raise AuditError(
                CODE_TOO_LARGE,
                f"Code exceeds maximum size limit ({MAX_CODE_LENGTH} characters)",
                details={"size": len(request.code), "limit": MAX_CODE_LENGTH},
            )

    def should_audit(self, request: AuditRequest) -> bool:
        """Должен ли этот аудитор обрабатывать запрос."""
        if not self.config.enabled:
            return False
        if request.audit_type not in (AuditType.ALL, self.audit_type):
            return False
        if request.effective_priority == Priority.FAST:
            return self.audit_type in (AuditType.SECURITY, AuditType.COMPLETENESS)
        return True

    def detect_language(self, code: str, declared_language: str) -> str:
        # Язык не угадываем по содержимому, доверяем вызывающему
        return declared_language.strip().lower()

    def analyze_code_metrics(self, code: str, language: str) -> CodeMetrics:
        """
        Грубые метрики кода.

        complexity = (1 + число ветвлений) / max(число функций, 1), округлённое.
        """
        function_count = sum(len(p.findall(code)) for p in FUNCTION_PATTERNS)
        branches = sum(len(p.findall(code)) for p in BRANCH_PATTERNS)
        average = (1 + branches) / max(function_count, 1)

        return CodeMetrics(
            line_count=len(split_lines(code)),
            function_count=function_count,
            # Округление половин вверх, не банковское
            complexity=int(math.floor(average + 0.5)),
        )

    def select_model(self, request: AuditRequest, language: str) -> Optional[str]:
        available = self.client.list_available_models()
        return self.model_manager.select_model(
            self.audit_type, language, request.effective_priority, available
        )

    def get_temperature(self) -> float:
        return self.temperature

    def get_max_tokens(self) -> int:
        return self.max_tokens

    # ═══════════════════════════════════════════════════════
    # PARSING
    # ═══════════════════════════════════════════════════════

    def parse_ai_response(self, response: str) -> List[Any]:
        """
        Извлечь список issues из ответа модели.

        Сначала ищем ```json``` блок, затем первый {...}. Любая ошибка
        приводит к fallback_parse_response(), а не к исключению.
        """
        try:
            match = FENCED_JSON.search(response) or BARE_JSON.search(response)
            if not match:
                raise ValueError("No JSON found in AI response")

            parsed = json.loads(match.group(1))
            if not isinstance(parsed, dict) or not isinstance(parsed.get("issues"), list):
                raise ValueError("Invalid response format: missing issues array")

            return parsed["issues"]

        except (ValueError, RecursionError) as e:
            self.logger.warning(f"Failed to parse AI response, using fallback parser: {e}")
            self.logger.debug(f"Raw response: {response}")
            return self.fallback_parse_response(response)

    def fallback_parse_response(self, response: str) -> List[Dict[str, Any]]:
        """Найти в свободном тексте упоминания "line N" и сделать из них проблемы."""
        issues = []
        for text in response.split("\n"):
            match = FALLBACK_LINE.search(text)
            if not match:
                continue
            issues.append({
                "location": {"line": int(match.group(1))},
                "severity": Severity.MEDIUM.value,
                "type": FALLBACK_TYPE,
                "title": FALLBACK_TITLE,
                "description": text.strip(),
                "confidence": FALLBACK_CONFIDENCE,
                "fixable": False,
            })
        return issues

    # ═══════════════════════════════════════════════════════
    # POST-PROCESSING
    # ═══════════════════════════════════════════════════════

    def post_process_issues(
        self,
        raw_issues: List[Any],
        request: AuditRequest,
        language: str,
    ) -> List[AuditIssue]:
        """Нормализовать, слить со статикой, уточнить и дедуплицировать."""
        issues = []
        for raw in raw_issues:
            try:
                issue = self.normalize_issue(raw, request)
            except (TypeError, ValueError, AttributeError) as e:
                self.logger.debug(f"Skipping malformed issue {raw!r}: {e}")
                continue
            if issue is not None:
                issues.append(issue)

        issues.extend(self.detect_patterns(request.code, language))
        issues = self.refine_issues(issues, request)
        issues = self.deduplicate_issues(issues)

        if not request.include_fix_suggestions:
            for issue in issues:
                issue.suggestion = None

        return issues

    def normalize_issue(self, raw: Any, request: AuditRequest) -> Optional[AuditIssue]:
        """
        Привести одну "сырую" проблему к AuditIssue.

        Returns:
            None, если нет строки, заголовка или описания
        """
        if not isinstance(raw, dict):
            return None

        location = raw.get("location") if isinstance(raw.get("location"), dict) else {}
        raw_line = _to_int(location.get("line", raw.get("line")))
        title = raw.get("title")
        description = raw.get("description")

        if raw_line is None or not _is_text(title) or not _is_text(description):
            return None

        line_count = len(split_lines(request.code))
        line = clamp_line(raw_line, line_count)

        suggestion = raw.get("suggestion")

        return AuditIssue(
            id=str(uuid.uuid4()),
            location=IssueLocation(
                line=line,
                column=_to_int(location.get("column")),
                end_line=_to_int(location.get("end_line", location.get("endLine"))),
                end_column=_to_int(location.get("end_column", location.get("endColumn"))),
            ),
            severity=Severity.coerce(raw.get("severity")),
            type=str(raw.get("type") or "unknown"),
            category=self.audit_type,
            title=title[:MAX_TITLE_LENGTH],
            description=description[:MAX_TEXT_LENGTH],
            confidence=_clamp_confidence(raw.get("confidence")),
            fixable=bool(raw.get("fixable")),
            suggestion=suggestion[:MAX_TEXT_LENGTH] if _is_text(suggestion) else None,
            code_snippet=extract_code_snippet(request.code, line),
            rule_id=_text_or_none(raw.get("rule_id")) or _text_or_none(raw.get("ruleId")),
            documentation=_text_or_none(raw.get("documentation")),
            impact=_text_or_none(raw.get("impact")),
            effort=_to_effort(raw.get("effort")),
        )

    def detect_patterns(self, code: str, language: str) -> List[AuditIssue]:
        """Хук: статические находки, добавляемые к ответу модели."""
        issues = []
        for detector in self.detectors:
            issues.extend(detector.detect(code, language))
        return issues

    def refine_issues(self, issues: List[AuditIssue], request: AuditRequest) -> List[AuditIssue]:
        """Хук: доменная переклассификация (по умолчанию ничего не делает)."""
        return issues

    @staticmethod
    def deduplicate_issues(issues: List[AuditIssue]) -> List[AuditIssue]:
        """Оставить первую проблему для каждой пары (строка, тип)."""
        seen = set()
        unique = []
        for issue in issues:
            if issue.dedup_key in seen:
                continue
            seen.add(issue.dedup_key)
            unique.append(issue)
        return unique

    def filter_issues(self, issues: List[AuditIssue], request: AuditRequest) -> List[AuditIssue]:
        """Фильтр по severity, отключённым правилам и min_confidence."""
        filtered = issues

        if self.config.severity:
            allowed = set(self.config.severity)
            filtered = [i for i in filtered if i.severity in allowed]

        filtered = [i for i in filtered if self.config.is_rule_enabled(i.rule_id or i.type)]

        min_confidence = self.config.min_confidence
        if min_confidence is not None:
            filtered = [i for i in filtered if i.confidence >= min_confidence]

        return filtered

    @staticmethod
    def sort_issues(issues: List[AuditIssue]) -> List[AuditIssue]:
        """Стабильная сортировка: severity, затем номер строки."""
        return sorted(issues, key=lambda i: (i.severity.rank, i.location.line))

    @staticmethod
    def limit_issues(issues: List[AuditIssue], request: AuditRequest) -> List[AuditIssue]:
        if request.max_issues and request.max_issues > 0:
            return issues[:request.max_issues]
        return issues

    # ═══════════════════════════════════════════════════════
    # RESULT
    # ═══════════════════════════════════════════════════════

    def create_result(
        self,
        request_id: str,
        issues: List[AuditIssue],
        model: str,
        start_time: float,
        model_response_time: float,
        code_metrics: CodeMetrics,
    ) -> AuditResult:
        duration = (time.perf_counter() - start_time) * 1000

        return AuditResult(
            request_id=request_id,
            issues=issues,
            summary=AuditSummary.from_issues(issues),
            coverage=AuditCoverage(
                lines_analyzed=code_metrics.line_count,
                functions_analyzed=code_metrics.function_count,
                classes_analyzed=0,
                complexity=code_metrics.complexity,
            ),
            suggestions=AuditSuggestions.from_issues(issues),
            metrics=AuditMetrics(
                duration=duration,
                model_response_time=model_response_time,
                parsing_time=duration - model_response_time,
                post_processing_time=max(0.0, duration - model_response_time - PARSING_OVERHEAD_MS),
            ),
            model=model,
        )

    def create_empty_result(self, request_id: str) -> AuditResult:
        return AuditResult(
            request_id=request_id,
            issues=[],
            summary=AuditSummary(),
            coverage=AuditCoverage(),
            suggestions=AuditSuggestions(),
            metrics=AuditMetrics(),
            model="none",
        )

    # ═══════════════════════════════════════════════════════
    # CONFIG
    # ═══════════════════════════════════════════════════════

    def get_audit_type(self) -> AuditType:
        return self.audit_type

    def update_config(self, partial: Dict[str, Any]) -> None:
        """Поверхностно слить partial в текущую конфигурацию."""
        self.config = self.config.merged(partial)
        self.logger.info(f"Updated {self.audit_type.value} auditor config: {sorted(partial)}")

    def get_config(self) -> AuditorConfig:
        return self.config.copy()


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _text_or_none(value: Any) -> Optional[str]:
    return value if _is_text(value) else None


def _to_int(value: Any) -> Optional[int]:
    """Число или числовая строка -> int; всё остальное -> None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def _clamp_confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def _to_effort(value: Any) -> Effort:
    if isinstance(value, Effort):
        return value
    try:
        return Effort(str(value).strip().lower())
    except ValueError:
        return Effort.MEDIUM
