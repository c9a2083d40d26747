"""
Audit service: routes requests to auditors and merges their results.

Features:
- Server-level request validation
- De-duplication of identical in-flight requests
- "all" requests fan out to every auditor in concurrent batches
- Fast mode runs security, then completeness
"""

import asyncio
import dataclasses
import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional, Union

from ..auditors.factory import AuditorFactory
from ..config import AuditorConfig, get_default_auditor_configs
from ..core.base_auditor import BaseAuditor
from ..core.errors import (
    AUDITOR_UNAVAILABLE,
    CODE_TOO_LARGE,
    INVALID_AUDIT_TYPE,
    INVALID_REQUEST,
    AuditError,
)
from ..core.models import (
    AuditCoverage,
    AuditMetrics,
    AuditRequest,
    AuditResult,
    AuditSuggestions,
    AuditSummary,
    AuditType,
    Priority,
)
from ..infrastructure.health import full_health_check
from ..ollama.client import OllamaClient, OllamaError
from ..ollama.models import ModelManager, get_strategy
from ..ollama.prompts import PromptBuilder
from .config import Settings


logger = logging.getLogger(__name__)


FAST_MODE_TYPES = (AuditType.SECURITY, AuditType.COMPLETENESS)


class CodeAuditServer:
    """Сервис аудита: аудиторы, клиент Ollama и выбор моделей."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[OllamaClient] = None,
        model_manager: Optional[ModelManager] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        """
        Args:
            settings: Настройки сервера
            client: Клиент Ollama (по умолчанию создаётся из settings)
            model_manager: Выбор модели (по умолчанию стратегия из settings)
            prompt_builder: Построитель промптов
        """
        self.settings = settings
        self.client = client or OllamaClient(settings)
        self.model_manager = model_manager or ModelManager(get_strategy(settings.model_strategy))
        self.prompt_builder = prompt_builder or PromptBuilder()

        self.auditor_configs: Dict[AuditType, AuditorConfig] = get_default_auditor_configs(
            settings.disabled_auditors
        )
        self.auditors: Dict[AuditType, BaseAuditor] = {}
        self._active_audits: Dict[str, asyncio.Task] = {}
        self._initialized = False

    @property
    def active_audit_count(self) -> int:
        return len(self._active_audits)

    async def initialize(self) -> None:
        """Подключиться к Ollama, создать аудиторы, выполнить health check."""
        if self._initialized:
            return

        logger.info(f"Initializing {self.settings.name} v{self.settings.version}...")

        try:
            await self.client.initialize()
        except OllamaError as e:
            # Сервер стартует в деградированном режиме, клиент переподключится при generate()
            logger.error(f"Ollama is not reachable at {self.settings.ollama_host}: {e}")

        self.auditors = AuditorFactory.create_all_auditors(
            self.auditor_configs, self.client, self.model_manager, self.prompt_builder
        )
        self._initialized = True
        logger.info(f"Server initialized with {len(self.auditors)} auditors")

        health = await self.health_check()
        if health["status"] != "healthy":
            logger.warning("Server initialized but health check failed")

    # ═══════════════════════════════════════════════════════
    # AUDIT
    # ═══════════════════════════════════════════════════════

    async def audit(self, request: Union[AuditRequest, Dict[str, Any]]) -> AuditResult:
        """
        Выполнить аудит (один тип, fast или all).

        Raises:
            AuditError: ошибки валидации, недоступный аудитор, сбой аудита
        """
        if isinstance(request, dict):
            request = self.parse_request(request)
        self.validate_request(request)

        key = self.request_key(request)
        existing = self._active_audits.get(key)
        if existing is not None:
            logger.info("Audit already in progress, waiting for completion...")
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._perform_audit(request))
        self._active_audits[key] = task
        try:
            return await task
        finally:
            self._active_audits.pop(key, None)

    @staticmethod
    def parse_request(payload: Dict[str, Any]) -> AuditRequest:
        """Построить AuditRequest из payload'а инструмента."""
        raw_type = payload.get("audit_type", payload.get("auditType"))
        if raw_type is not None:
            try:
                AuditType(str(raw_type).lower())
            except ValueError:
                raise AuditError(INVALID_AUDIT_TYPE, f"Invalid audit type: {raw_type}") from None

        try:
            return AuditRequest.from_dict(payload)
        except (TypeError, ValueError) as e:
            raise AuditError(INVALID_REQUEST, f"Invalid audit request: {e}") from e

    def validate_request(self, request: AuditRequest) -> None:
        if not (request.code or "").strip():
            raise AuditError(INVALID_REQUEST, "Code is required and cannot be empty")
        if not (request.language or "").strip():
            raise AuditError(INVALID_REQUEST, "Language is required")
        if len(request.code) > self.settings.max_request_size:
            raise AuditError(
                CODE_TOO_LARGE,
                f"Code size exceeds limit ({self.settings.max_request_size} characters)",
            )
        if not isinstance(request.audit_type, AuditType):
            raise AuditError(INVALID_AUDIT_TYPE, f"Invalid audit type: {request.audit_type}")

    @staticmethod
    def request_key(request: AuditRequest) -> str:
        """Ключ для совместного выполнения одинаковых запросов."""
        options = json.dumps({
            "max_issues": request.max_issues,
            "include_fix_suggestions": request.include_fix_suggestions,
            "context": request.context.to_dict() if request.context else None,
        }, sort_keys=True)
        digest = hashlib.sha256(
            (request.code + "\0" + options).encode("utf-8")
        ).hexdigest()[:16]
        return (
            f"{request.language}_{request.audit_type.value}_"
            f"{request.effective_priority.value}_{digest}"
        )

    async def _perform_audit(self, request: AuditRequest) -> AuditResult:
        start_time = time.perf_counter()

        if request.effective_priority == Priority.FAST:
            result = await self._perform_fast_audit(request)
        elif request.audit_type == AuditType.ALL:
            result = await self._perform_multiple_audits(request)
        else:
            auditor = self.auditors.get(request.audit_type)
            if auditor is None:
                raise AuditError(
                    AUDITOR_UNAVAILABLE,
                    f"Auditor not available for type: {request.audit_type.value}",
                )
            result = await auditor.audit(request)

        if self.settings.enable_metrics:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"Audit {request.audit_type.value} ({request.language}): "
                f"{result.summary.total} issues, model={result.model}, "
                f"duration={duration_ms:.2f}ms"
            )
        return result

    async def _perform_multiple_audits(self, request: AuditRequest) -> AuditResult:
        """Все аудиторы батчами по max_concurrent_audits."""
        auditors = [self.auditors[t] for t in AuditType.variants() if t in self.auditors]
        if not auditors:
            raise AuditError(AUDITOR_UNAVAILABLE, "No auditors are enabled")

        batch_size = self.settings.max_concurrent_audits
        results: List[AuditResult] = []

        for i in range(0, len(auditors), batch_size):
            batch = auditors[i:i + batch_size]
            tasks = [
                auditor.audit(dataclasses.replace(request, audit_type=auditor.audit_type))
                for auditor in batch
            ]
            # Без return_exceptions: сбой одного аудитора проваливает запрос
            results.extend(await asyncio.gather(*tasks))

        return self.merge_results(results, request)

    async def _perform_fast_audit(self, request: AuditRequest) -> AuditResult:
        """Security, затем completeness."""
        results = []
        for audit_type in FAST_MODE_TYPES:
            auditor = self.auditors.get(audit_type)
            if auditor is None:
                continue
            fast_request = dataclasses.replace(request, audit_type=audit_type, priority=Priority.FAST)
            results.append(await auditor.audit(fast_request))

        if not results:
            raise AuditError(AUDITOR_UNAVAILABLE, "No auditors available for fast mode")
        return self.merge_results(results, request)

    @staticmethod
    def merge_results(results: List[AuditResult], request: AuditRequest) -> AuditResult:
        """
        Слить результаты нескольких аудиторов.

        Проблемы объединяются и пересортировываются, summary и suggestions
        пересчитываются по итоговому списку, метрики суммируются, coverage
        берётся как максимум по полям.
        """
        if not results:
            raise ValueError("No audit results to merge")
        if len(results) == 1:
            return results[0]

        issues = [issue for result in results for issue in result.issues]
        issues = BaseAuditor.sort_issues(issues)
        issues = BaseAuditor.limit_issues(issues, request)

        models = [r.model for r in results if r.model != "none"]

        return AuditResult(
            request_id=results[0].request_id,
            issues=issues,
            summary=AuditSummary.from_issues(issues),
            coverage=AuditCoverage(
                lines_analyzed=max(r.coverage.lines_analyzed for r in results),
                functions_analyzed=max(r.coverage.functions_analyzed for r in results),
                classes_analyzed=max(r.coverage.classes_analyzed for r in results),
                complexity=max(r.coverage.complexity for r in results),
            ),
            suggestions=AuditSuggestions.from_issues(issues),
            metrics=AuditMetrics(
                duration=sum(r.metrics.duration for r in results),
                model_response_time=sum(r.metrics.model_response_time for r in results),
                parsing_time=sum(r.metrics.parsing_time for r in results),
                post_processing_time=sum(r.metrics.post_processing_time for r in results),
            ),
            model=", ".join(models) if models else "none",
            version=results[0].version,
        )

    # ═══════════════════════════════════════════════════════
    # TOOLS
    # ═══════════════════════════════════════════════════════

    async def health_check(self) -> Dict[str, Any]:
        health = await full_health_check({
            "client": self.client,
            "model_manager": self.model_manager,
            "auditors": self.auditors,
        })
        health["server"] = {
            "name": self.settings.name,
            "version": self.settings.version,
            "active_audits": self.active_audit_count,
            "model_strategy": self.model_manager.strategy.name,
        }
        return health

    def list_models(self) -> Dict[str, Any]:
        """Сконфигурированные модели с признаком доступности и метриками."""
        available = self.client.list_available_models()
        metrics = self.client.get_all_metrics()

        models = []
        for config in self.model_manager.get_all_models():
            info = config.to_dict()
            info["available"] = config.name in available
            info["metrics"] = metrics.get(config.name)
            models.append(info)

        return {
            "models": models,
            "available": available,
            "recommended": self.model_manager.get_recommended_models(),
        }

    def update_config(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Обновить конфигурацию аудиторов: {"auditors": {type: partial}}.

        Включение ранее отключённого аудитора создаёт его.
        """
        updated = []
        for raw_type, partial in (payload.get("auditors") or {}).items():
            try:
                audit_type = AuditType(str(raw_type).lower())
            except ValueError:
                raise AuditError(INVALID_AUDIT_TYPE, f"Invalid audit type: {raw_type}") from None
            if audit_type == AuditType.ALL:
                raise AuditError(INVALID_AUDIT_TYPE, 'Cannot configure audit type "all"')

            auditor = self.auditors.get(audit_type)
            if auditor is not None:
                auditor.update_config(partial)
                self.auditor_configs[audit_type] = auditor.get_config()
            else:
                config = self.auditor_configs[audit_type].merged(partial)
                self.auditor_configs[audit_type] = config
                if config.enabled:
                    self.auditors[audit_type] = AuditorFactory.create_auditor(
                        audit_type, config, self.client, self.model_manager, self.prompt_builder
                    )
            updated.append(audit_type.value)

        if "ollama" in payload:
            logger.warning("Ollama config update requested (requires restart)")

        return {"message": "Configuration updated successfully", "updated": updated}

    def get_auditor_configs(self) -> Dict[str, Dict[str, Any]]:
        return {t.value: c.to_dict() for t, c in self.auditor_configs.items()}

    async def cleanup(self) -> None:
        """Отменить незавершённые аудиты и закрыть клиента."""
        for task in list(self._active_audits.values()):
            task.cancel()
        self._active_audits.clear()
        await self.client.close()
        self._initialized = False
        logger.info("Server cleanup completed")
