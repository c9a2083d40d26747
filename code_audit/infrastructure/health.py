"""
Health checks для компонентов сервера аудита.
"""

import logging
import time
from typing import Dict, Iterable, List

from ..ollama.client import OllamaError
from .retry import retry_async


logger = logging.getLogger(__name__)


@retry_async(max_attempts=3, base_delay=0.2, exceptions=(OllamaError,))
async def _probe_ollama(client) -> List[str]:
    return await client.refresh_available_models()


async def check_ollama(client) -> Dict:
    """Проверка Ollama: доступность /api/tags и задержка."""
    start_time = time.perf_counter()
    try:
        models = await _probe_ollama(client)
        latency_ms = (time.perf_counter() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "models": models,
        }
    except OllamaError as e:
        logger.error(f"Ollama health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }


def check_models(available: Iterable[str], recommended: Iterable[str]) -> Dict:
    """Какие из рекомендованных моделей установлены."""
    available = set(available)
    installed = [m for m in recommended if m in available]
    missing = [m for m in recommended if m not in available]
    return {
        "status": "healthy" if available else "unhealthy",
        "installed": installed,
        "missing": missing,
    }


async def full_health_check(components: Dict) -> Dict:
    """
    Полная проверка всех компонентов.

    Args:
        components: {"client": OllamaClient, "model_manager": ModelManager, "auditors": {...}}
    """
    results = {}

    if "client" in components:
        results["ollama"] = await check_ollama(components["client"])

        if "model_manager" in components:
            results["models"] = check_models(
                results["ollama"].get("models", []),
                components["model_manager"].get_recommended_models(),
            )

    if "auditors" in components:
        auditors = components["auditors"]
        results["auditors"] = {
            "status": "healthy" if auditors else "unhealthy",
            "enabled": sorted(t.value for t in auditors),
        }

    all_healthy = all(
        r.get("status") == "healthy"
        for r in results.values()
    )

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "components": results,
        "timestamp": time.time(),
    }
