"""
Unit tests для OllamaClient поверх httpx.MockTransport.
"""

import json

import httpx
import pytest

from code_audit.ollama.client import (
    GENERATION_FAILED,
    MODEL_NOT_FOUND,
    OLLAMA_UNAVAILABLE,
    OllamaClient,
    OllamaError,
)


TAGS = {"models": [{"name": "codellama:7b", "size": 1}, {"name": "granite-code:8b", "size": 2}]}


class FakeOllama:
    """Обработчик для MockTransport: /api/tags, /api/version, /api/generate."""

    def __init__(self, generate_failures: int = 0, tags_status: int = 200):
        self.generate_failures = generate_failures
        self.tags_status = tags_status
        self.generate_calls = 0
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/tags":
            return httpx.Response(self.tags_status, json=TAGS)
        if path == "/api/version":
            return httpx.Response(200, json={"version": "0.3.12"})
        if path == "/api/generate":
            self.generate_calls += 1
            self.payloads.append(json.loads(request.content))
            if self.generate_calls <= self.generate_failures:
                return httpx.Response(503, json={"error": "overloaded"})
            return httpx.Response(200, json={
                "response": '{"issues": []}',
                "created_at": "2024-01-01T00:00:00Z",
                "done": True,
                "eval_count": 12,
            })
        return httpx.Response(404)


def make_client(settings, ollama: FakeOllama) -> OllamaClient:
    return OllamaClient(settings, transport=httpx.MockTransport(ollama))


# ═══════════════════════════════════════════════════════
# INITIALIZATION
# ═══════════════════════════════════════════════════════

class TestInitialization:

    @pytest.mark.asyncio
    async def test_initialize_caches_models(self, settings):
        client = make_client(settings, FakeOllama())

        await client.initialize()

        assert client.list_available_models() == ["codellama:7b", "granite-code:8b"]
        assert client.is_model_available("granite-code:8b")
        assert client.is_healthy
        await client.close()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, settings):
        ollama = FakeOllama()
        client = make_client(settings, ollama)

        await client.initialize()
        ollama.tags_status = 500
        await client.initialize()

        assert client.is_healthy
        await client.close()

    @pytest.mark.asyncio
    async def test_initialize_failure(self, settings):
        client = make_client(settings, FakeOllama(tags_status=500))

        with pytest.raises(OllamaError) as exc_info:
            await client.initialize()

        assert exc_info.value.code == OLLAMA_UNAVAILABLE
        assert not client.is_healthy
        await client.close()

    @pytest.mark.asyncio
    async def test_list_installed_models(self, settings):
        client = make_client(settings, FakeOllama())
        models = await client.list_installed_models()
        assert [m["name"] for m in models] == ["codellama:7b", "granite-code:8b"]
        await client.close()


# ═══════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════

class TestGenerate:

    @pytest.mark.asyncio
    async def test_generate_payload(self, settings):
        ollama = FakeOllama()
        client = make_client(settings, ollama)

        reply = await client.generate(
            "codellama:7b", "audit this", temperature=0.05, max_tokens=512,
            system="be strict", top_p=0.9,
        )

        assert reply.response == '{"issues": []}'
        assert reply.model == "codellama:7b"
        assert reply.eval_count == 12
        payload = ollama.payloads[0]
        assert payload["stream"] is False
        assert payload["system"] == "be strict"
        assert payload["options"] == {"temperature": 0.05, "num_predict": 512, "top_p": 0.9}
        await client.close()

    @pytest.mark.asyncio
    async def test_unknown_model(self, settings):
        ollama = FakeOllama()
        client = make_client(settings, ollama)

        with pytest.raises(OllamaError) as exc_info:
            await client.generate("llama2:70b", "prompt")

        assert exc_info.value.code == MODEL_NOT_FOUND
        assert ollama.generate_calls == 0
        await client.close()

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, settings):
        ollama = FakeOllama(generate_failures=1)
        client = make_client(settings, ollama)

        reply = await client.generate("codellama:7b", "prompt")

        assert reply.done is True
        assert ollama.generate_calls == 2
        metrics = client.get_model_metrics("codellama:7b")
        assert metrics.requests == 2
        assert metrics.failures == 1
        assert metrics.success_rate == 0.5
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, settings):
        ollama = FakeOllama(generate_failures=10)
        client = make_client(settings, ollama)

        with pytest.raises(OllamaError) as exc_info:
            await client.generate("codellama:7b", "prompt")

        assert exc_info.value.code == GENERATION_FAILED
        assert ollama.generate_calls == settings.retry_attempts
        assert isinstance(exc_info.value.__cause__, httpx.HTTPError)
        await client.close()

    @pytest.mark.asyncio
    async def test_metrics_export(self, settings):
        client = make_client(settings, FakeOllama())

        await client.generate("codellama:7b", "prompt")

        exported = client.get_all_metrics()["codellama:7b"]
        assert exported["requests"] == 1
        assert exported["success_rate"] == 1.0
        assert exported["last_used"] is not None
        await client.close()


class TestModelScoring:
    """select_best_model"""

    @pytest.mark.asyncio
    async def test_untested_model_beats_failing_one(self, settings):
        client = make_client(settings, FakeOllama())
        await client.initialize()
        client._update_metrics("codellama:7b", 1000, failed=True)

        best = client.select_best_model(["codellama:7b", "granite-code:8b"])

        assert best == "granite-code:8b"
        await client.close()

    @pytest.mark.asyncio
    async def test_unavailable_candidates(self, settings):
        client = make_client(settings, FakeOllama())
        await client.initialize()

        assert client.select_best_model(["llama2:70b"]) is None
        assert client.select_best_model(["llama2:70b", "codellama:7b"]) == "codellama:7b"
        await client.close()

    @pytest.mark.asyncio
    async def test_moving_average(self, settings):
        client = make_client(settings, FakeOllama())

        client._update_metrics("m", 1000, failed=False)
        client._update_metrics("m", 2000, failed=False)

        metrics = client.get_model_metrics("m")
        assert metrics.avg_response_time == pytest.approx(1200)
        assert metrics.total_duration == pytest.approx(3000)
        await client.close()


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, settings):
        client = make_client(settings, FakeOllama())

        health = await client.health_check()

        assert health["status"] == "healthy"
        assert health["version"] == "0.3.12"
        assert health["models"] == ["codellama:7b", "granite-code:8b"]
        await client.close()

    @pytest.mark.asyncio
    async def test_unhealthy(self, settings):
        client = make_client(settings, FakeOllama(tags_status=503))

        health = await client.health_check()

        assert health["status"] == "unhealthy"
        assert not client.is_healthy
        await client.close()

    @pytest.mark.asyncio
    async def test_result_is_cached(self, settings):
        ollama = FakeOllama()
        client = make_client(settings.model_copy(update={"health_check_interval": 60.0}), ollama)

        await client.health_check()
        ollama.tags_status = 503
        cached = await client.health_check()
        forced = await client.health_check(force=True)

        assert cached["status"] == "healthy"
        assert forced["status"] == "unhealthy"
        await client.close()
