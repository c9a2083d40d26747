"""
Ollama HTTP client with retry logic, model metrics and health checking.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..infrastructure.retry import retry_async
from ..server.config import Settings


logger = logging.getLogger(__name__)


OLLAMA_UNAVAILABLE = "OLLAMA_UNAVAILABLE"
MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
GENERATION_FAILED = "GENERATION_FAILED"

# Таймаут на получение списка моделей при старте
LIST_TIMEOUT_SECONDS = 5.0


class OllamaError(Exception):
    """Ошибка обращения к демону Ollama."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass
class GenerateResponse:
    """Ответ /api/generate (stream=false)."""

    response: str
    model: str
    created_at: Optional[str] = None
    done: bool = True
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None


@dataclass
class ModelMetrics:
    requests: int = 0
    failures: int = 0
    total_duration: float = 0.0   # ms
    avg_response_time: float = 0.0  # ms, EMA
    last_used: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        if self.requests == 0:
            return 0.0
        return (self.requests - self.failures) / self.requests

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests": self.requests,
            "failures": self.failures,
            "total_duration": round(self.total_duration, 2),
            "avg_response_time": round(self.avg_response_time, 2),
            "average_duration": round(self.total_duration / self.requests, 2) if self.requests else 0.0,
            "success_rate": self.success_rate,
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }


class OllamaClient:
    """
    Асинхронный клиент Ollama поверх httpx.

    Использование:
        client = OllamaClient(settings)
        await client.initialize()
        reply = await client.generate("codellama:7b", prompt, temperature=0.1, max_tokens=2048)
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Настройки сервера (host, таймауты, ретраи)
            transport: Транспорт httpx (для тестов - httpx.MockTransport)
        """
        self.settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.ollama_host,
            timeout=settings.ollama_timeout,
            transport=transport,
        )
        self._available_models: List[str] = []
        self._metrics: Dict[str, ModelMetrics] = {}
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._healthy = False
        self._last_health_check = 0.0
        self._last_health: Optional[Dict[str, Any]] = None
        self._started_at = time.monotonic()

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    async def initialize(self) -> None:
        """Инициализировать клиент (идемпотентно, безопасно при конкурентных вызовах)."""
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await self.refresh_available_models()
            except OllamaError:
                self._healthy = False
                raise
            self._healthy = True
            self._initialized = True
            logger.info(f"Ollama client initialized with {len(self._available_models)} models")

    async def refresh_available_models(self) -> List[str]:
        """Перечитать список моделей из /api/tags."""
        try:
            response = await self._http.get("/api/tags", timeout=LIST_TIMEOUT_SECONDS)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OllamaError(OLLAMA_UNAVAILABLE, f"Failed to refresh model list: {e}") from e

        self._available_models = [
            model["name"] for model in payload.get("models", []) if model.get("name")
        ]
        logger.debug(f"Found {len(self._available_models)} available models: {self._available_models}")
        return list(self._available_models)

    def list_available_models(self) -> List[str]:
        """Закэшированный список установленных моделей."""
        return list(self._available_models)

    def is_model_available(self, model_name: str) -> bool:
        return model_name in self._available_models

    async def list_installed_models(self) -> List[Dict[str, Any]]:
        """Полные записи /api/tags (имя, размер, дата изменения)."""
        try:
            response = await self._http.get("/api/tags", timeout=LIST_TIMEOUT_SECONDS)
            response.raise_for_status()
            return response.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            raise OllamaError(OLLAMA_UNAVAILABLE, f"Failed to list models: {e}") from e

    async def get_version(self) -> Optional[str]:
        try:
            response = await self._http.get("/api/version", timeout=LIST_TIMEOUT_SECONDS)
            response.raise_for_status()
            return response.json().get("version")
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Could not read Ollama version: {e}")
            return None

    # ═══════════════════════════════════════════════════════
    # GENERATION
    # ═══════════════════════════════════════════════════════

    async def generate(
        self,
        model: str,
        prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 2048,
        system: Optional[str] = None,
        top_p: Optional[float] = None,
    ) -> GenerateResponse:
        """
        Сгенерировать ответ модели с ретраями.

        Raises:
            OllamaError: OLLAMA_UNAVAILABLE, MODEL_NOT_FOUND или GENERATION_FAILED
        """
        if not self._initialized:
            await self.initialize()

        if not self._healthy:
            await self.health_check(force=True)
            if not self._healthy:
                raise OllamaError(OLLAMA_UNAVAILABLE, "Ollama service is not available")

        if not self.is_model_available(model):
            raise OllamaError(MODEL_NOT_FOUND, f"Model '{model}' is not available")

        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if system:
            payload["system"] = system
        if top_p is not None:
            payload["options"]["top_p"] = top_p

        start_time = time.perf_counter()

        def record_failure(attempt: int, exc: BaseException, wait: float) -> None:
            self._update_metrics(model, (time.perf_counter() - start_time) * 1000, failed=True)
            logger.warning(
                f"Ollama request failed (attempt {attempt}/{self.settings.retry_attempts}), "
                f"retrying in {wait:.2f}s: {exc}"
            )

        execute = retry_async(
            max_attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_delay,
            exceptions=(httpx.HTTPError,),
            on_retry=record_failure,
        )(self._execute_generate)

        try:
            result = await execute(payload)
        except httpx.HTTPError as e:
            self._update_metrics(model, (time.perf_counter() - start_time) * 1000, failed=True)
            raise OllamaError(
                GENERATION_FAILED,
                f"Failed to generate response after {self.settings.retry_attempts} attempts: {e}",
            ) from e

        self._update_metrics(model, (time.perf_counter() - start_time) * 1000, failed=False)
        return result

    async def _execute_generate(self, payload: Dict[str, Any]) -> GenerateResponse:
        response = await self._http.post("/api/generate", json=payload)
        response.raise_for_status()
        data = response.json()
        return GenerateResponse(
            response=data.get("response", ""),
            model=payload["model"],
            created_at=data.get("created_at"),
            done=bool(data.get("done", True)),
            total_duration=data.get("total_duration"),
            load_duration=data.get("load_duration"),
            prompt_eval_count=data.get("prompt_eval_count"),
            prompt_eval_duration=data.get("prompt_eval_duration"),
            eval_count=data.get("eval_count"),
            eval_duration=data.get("eval_duration"),
        )

    # ═══════════════════════════════════════════════════════
    # METRICS
    # ═══════════════════════════════════════════════════════

    def _update_metrics(self, model: str, response_time_ms: float, failed: bool) -> None:
        metrics = self._metrics.setdefault(model, ModelMetrics())
        metrics.requests += 1
        if failed:
            metrics.failures += 1
        # Экспоненциальное скользящее среднее
        if metrics.avg_response_time == 0:
            metrics.avg_response_time = response_time_ms
        else:
            metrics.avg_response_time = metrics.avg_response_time * 0.8 + response_time_ms * 0.2
        metrics.total_duration += response_time_ms
        metrics.last_used = datetime.now(timezone.utc)

    def get_model_metrics(self, model: str) -> ModelMetrics:
        return self._metrics.get(model, ModelMetrics())

    def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {model: metrics.to_dict() for model, metrics in self._metrics.items()}

    def select_best_model(
        self,
        candidates: List[str],
        consider_performance: bool = True,
    ) -> Optional[str]:
        """Выбрать лучшую доступную модель по истории успешности и скорости."""
        available = [m for m in candidates if self.is_model_available(m)]
        if not available:
            return None
        if not consider_performance or len(available) == 1:
            return available[0]

        best_model = available[0]
        best_score = -1.0
        for model in available:
            metrics = self.get_model_metrics(model)
            if metrics.requests == 0:
                # Непроверенная модель лучше провалившейся
                if best_score < 0.5:
                    best_model, best_score = model, 0.5
                continue

            response_score = max(0.0, 1 - metrics.avg_response_time / 30000)
            score = metrics.success_rate * 0.7 + response_score * 0.3
            if score > best_score:
                best_model, best_score = model, score

        return best_model

    # ═══════════════════════════════════════════════════════
    # HEALTH
    # ═══════════════════════════════════════════════════════

    async def health_check(self, force: bool = False) -> Dict[str, Any]:
        """
        Проверить доступность Ollama и обновить список моделей.

        Результат кэшируется на settings.health_check_interval секунд.
        """
        now = time.monotonic()
        interval = self.settings.health_check_interval
        if (
            not force
            and self._last_health is not None
            and now - self._last_health_check < interval
        ):
            return dict(self._last_health)

        self._last_health_check = now
        version = None
        try:
            await self.refresh_available_models()
            version = await self.get_version()
            self._healthy = True
        except OllamaError as e:
            self._healthy = False
            logger.error(f"Ollama health check failed: {e}")

        self._last_health = {
            "status": "healthy" if self._healthy else "unhealthy",
            "host": self.settings.ollama_host,
            "version": version,
            "models": list(self._available_models),
            "last_check": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(now - self._started_at, 2),
        }
        return dict(self._last_health)

    async def close(self) -> None:
        """Закрыть HTTP клиент и очистить кэши."""
        await self._http.aclose()
        self._metrics.clear()
        self._available_models.clear()
        self._healthy = False
        self._initialized = False
