"""
Model catalogue and model selection strategies.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Sequence

from ..core.models import AuditType, Priority


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPerformance:
    speed: str = "medium"          # fast | medium | slow
    accuracy: str = "medium"       # medium | high
    resource_usage: str = "medium"  # medium | high

    def to_dict(self) -> Dict[str, str]:
        return {"speed": self.speed, "accuracy": self.accuracy, "resource_usage": self.resource_usage}


@dataclass
class ModelConfig:
    """Описание модели и её специализации."""

    name: str
    display_name: str
    specialization: List[AuditType] = field(default_factory=list)
    max_tokens: int = 4096
    temperature: float = 0.1
    top_p: Optional[float] = None
    fallback_models: List[str] = field(default_factory=list)
    performance: ModelPerformance = field(default_factory=ModelPerformance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "specialization": [t.value for t in self.specialization],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "fallback_models": list(self.fallback_models),
            "performance": self.performance.to_dict(),
        }


def _model(name, display_name, specialization, top_p, fallback, speed, accuracy, resources):
    return ModelConfig(
        name=name,
        display_name=display_name,
        specialization=[AuditType(s) for s in specialization],
        top_p=top_p,
        fallback_models=fallback,
        performance=ModelPerformance(speed, accuracy, resources),
    )


DEFAULT_MODELS: Dict[str, ModelConfig] = {
    m.name: m for m in [
        _model("codellama:7b", "CodeLlama 7B",
               ["security", "completeness", "quality"], 0.9,
               ["codellama:13b", "deepseek-coder:6.7b"], "fast", "medium", "medium"),
        _model("codellama:13b", "CodeLlama 13B",
               ["security", "completeness", "quality", "architecture"], 0.9,
               ["codellama:7b", "deepseek-coder:6.7b"], "medium", "high", "medium"),
        _model("deepseek-coder:6.7b", "DeepSeek Coder 6.7B",
               ["performance", "quality", "architecture"], 0.95,
               ["codellama:7b", "starcoder2:7b"], "medium", "high", "medium"),
        _model("deepseek-coder:33b", "DeepSeek Coder 33B",
               ["performance", "architecture", "quality", "documentation"], 0.95,
               ["deepseek-coder:6.7b", "codellama:13b"], "slow", "high", "high"),
        _model("starcoder2:7b", "StarCoder2 7B",
               ["testing", "quality", "completeness"], 0.9,
               ["codellama:7b", "deepseek-coder:6.7b"], "fast", "medium", "medium"),
        _model("starcoder2:15b", "StarCoder2 15B",
               ["testing", "architecture", "documentation"], 0.9,
               ["starcoder2:7b", "codellama:13b"], "medium", "high", "high"),
        _model("qwen2.5-coder:7b", "Qwen2.5 Coder 7B",
               ["completeness", "quality", "documentation"], 0.9,
               ["codellama:7b", "starcoder2:7b"], "fast", "medium", "medium"),
        _model("llama3.1:8b", "Llama 3.1 8B",
               ["documentation", "architecture"], 0.9,
               ["codellama:7b"], "fast", "medium", "medium"),
        _model("granite-code:8b", "Granite Code 8B",
               ["security", "quality", "completeness"], 0.9,
               ["codellama:7b", "deepseek-coder:6.7b"], "fast", "medium", "medium"),
    ]
}

# Порядок предпочтения по типу аудита (лучшая первой)
MODEL_PRIORITY: Dict[AuditType, List[str]] = {
    AuditType.SECURITY: [
        "granite-code:8b", "codellama:13b", "codellama:7b", "deepseek-coder:6.7b", "qwen2.5-coder:7b",
    ],
    AuditType.COMPLETENESS: [
        "codellama:13b", "qwen2.5-coder:7b", "starcoder2:7b", "codellama:7b", "granite-code:8b",
    ],
    AuditType.PERFORMANCE: [
        "deepseek-coder:33b", "deepseek-coder:6.7b", "codellama:13b", "granite-code:8b", "codellama:7b",
    ],
    AuditType.QUALITY: [
        "deepseek-coder:33b", "deepseek-coder:6.7b", "codellama:13b",
        "qwen2.5-coder:7b", "starcoder2:15b", "granite-code:8b",
    ],
    AuditType.ARCHITECTURE: [
        "deepseek-coder:33b", "starcoder2:15b", "codellama:13b", "deepseek-coder:6.7b", "llama3.1:8b",
    ],
    AuditType.TESTING: [
        "starcoder2:15b", "starcoder2:7b", "deepseek-coder:6.7b", "codellama:13b", "qwen2.5-coder:7b",
    ],
    AuditType.DOCUMENTATION: [
        "deepseek-coder:33b", "llama3.1:8b", "qwen2.5-coder:7b", "starcoder2:15b", "codellama:13b",
    ],
    AuditType.ALL: [
        "deepseek-coder:33b", "codellama:13b", "deepseek-coder:6.7b",
        "starcoder2:15b", "granite-code:8b", "codellama:7b",
    ],
}

FAST_MODE_MODELS = [
    "codellama:7b", "granite-code:8b", "starcoder2:7b", "qwen2.5-coder:7b", "deepseek-coder:6.7b",
]

THOROUGH_MODE_MODELS = [
    "deepseek-coder:33b", "codellama:13b", "starcoder2:15b", "deepseek-coder:6.7b",
]

_GENERAL = ["deepseek-coder:6.7b", "codellama:13b", "granite-code:8b"]
_MARKUP = ["qwen2.5-coder:7b", "codellama:7b", "deepseek-coder:6.7b"]

LANGUAGE_MODEL_PREFERENCES: Dict[str, List[str]] = {
    "javascript": ["deepseek-coder:6.7b", "codellama:13b", "qwen2.5-coder:7b"],
    "typescript": ["deepseek-coder:6.7b", "codellama:13b", "qwen2.5-coder:7b"],
    "python": ["deepseek-coder:33b", "codellama:13b", "granite-code:8b"],
    "java": ["deepseek-coder:6.7b", "granite-code:8b", "codellama:13b"],
    "csharp": _GENERAL,
    "cpp": _GENERAL,
    "c": ["codellama:13b", "granite-code:8b", "deepseek-coder:6.7b"],
    "go": _GENERAL,
    "rust": _GENERAL,
    "php": ["codellama:13b", "deepseek-coder:6.7b", "qwen2.5-coder:7b"],
    "ruby": ["codellama:13b", "deepseek-coder:6.7b", "granite-code:8b"],
    "swift": ["codellama:13b", "deepseek-coder:6.7b", "granite-code:8b"],
    "kotlin": _GENERAL,
    "scala": _GENERAL,
    "html": _MARKUP,
    "css": _MARKUP,
    "sql": ["granite-code:8b", "codellama:13b", "deepseek-coder:6.7b"],
    "shell": ["codellama:13b", "granite-code:8b", "deepseek-coder:6.7b"],
    "yaml": ["qwen2.5-coder:7b", "codellama:7b", "granite-code:8b"],
    "json": _MARKUP,
    "dockerfile": ["granite-code:8b", "codellama:13b", "deepseek-coder:6.7b"],
}

RECOMMENDED_MODELS = [
    "codellama:7b",         # быстрая, общего назначения
    "deepseek-coder:6.7b",  # производительность
    "granite-code:8b",      # безопасность
    "starcoder2:7b",        # тестирование
]


# ═══════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════

class ModelSelectionStrategy(ABC):
    """Стратегия выбора модели."""

    name: str

    @abstractmethod
    def select_model(
        self,
        audit_type: AuditType,
        language: str,
        priority: Priority,
        available_models: Sequence[str],
    ) -> Optional[str]:
        """Вернуть имя модели или None, если выбрать не из чего."""


class DefaultModelSelectionStrategy(ModelSelectionStrategy):
    """
    Взвешенный выбор.

    Вес позиции в списке: тип аудита x3, язык x2, режим (fast/thorough) x1.
    При равенстве побеждает модель, получившая очки первой.
    """

    name = "default"

    def select_model(self, audit_type, language, priority, available_models):
        available = set(available_models)
        preference_lists = [
            (MODEL_PRIORITY.get(audit_type) or MODEL_PRIORITY[AuditType.ALL], 3),
            (LANGUAGE_MODEL_PREFERENCES.get(language.lower(), []), 2),
            (FAST_MODE_MODELS if priority == Priority.FAST else THOROUGH_MODE_MODELS, 1),
        ]

        scores: Dict[str, int] = {}
        for models, weight in preference_lists:
            for index, model in enumerate(models):
                if model in available:
                    scores[model] = scores.get(model, 0) + (len(models) - index) * weight

        best_model = None
        best_score = -1
        for model, score in scores.items():
            if score > best_score:
                best_model, best_score = model, score

        if best_model is None and available_models:
            best_model = available_models[0]

        return best_model


class _PreferredTierStrategy(ModelSelectionStrategy):
    """Сначала модели из tier (в порядке типа аудита), иначе default."""

    tier: List[str] = []

    def select_model(self, audit_type, language, priority, available_models):
        candidates = [m for m in self.tier if m in available_models]
        if candidates:
            for model in MODEL_PRIORITY.get(audit_type, []):
                if model in candidates:
                    return model
            return candidates[0]

        return DefaultModelSelectionStrategy().select_model(
            audit_type, language, priority, available_models
        )


class PerformanceModelSelectionStrategy(_PreferredTierStrategy):
    name = "performance"
    tier = FAST_MODE_MODELS


class QualityModelSelectionStrategy(_PreferredTierStrategy):
    name = "quality"
    tier = THOROUGH_MODE_MODELS


STRATEGIES = {
    DefaultModelSelectionStrategy.name: DefaultModelSelectionStrategy,
    PerformanceModelSelectionStrategy.name: PerformanceModelSelectionStrategy,
    QualityModelSelectionStrategy.name: QualityModelSelectionStrategy,
}


def get_strategy(name: str) -> ModelSelectionStrategy:
    """Стратегия по имени из настроек (default | performance | quality)."""
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown model strategy: {name}") from None


# ═══════════════════════════════════════════════════════
# MANAGER
# ═══════════════════════════════════════════════════════

class ModelManager:
    """Выбор модели и каталог конфигураций моделей."""

    def __init__(self, strategy: Optional[ModelSelectionStrategy] = None):
        self.strategy = strategy or DefaultModelSelectionStrategy()
        self._configs: Dict[str, ModelConfig] = {
            name: replace(config) for name, config in DEFAULT_MODELS.items()
        }

    def select_model(
        self,
        audit_type: AuditType,
        language: str,
        priority: Priority,
        available_models: Sequence[str],
    ) -> Optional[str]:
        model = self.strategy.select_model(audit_type, language, priority, list(available_models))
        logger.debug(
            f"Selected model {model} for {audit_type.value}/{language}/{priority.value} "
            f"({self.strategy.name} strategy)"
        )
        return model or None

    def get_model_config(self, model_name: str) -> Optional[ModelConfig]:
        return self._configs.get(model_name)

    def update_model_config(self, model_name: str, partial: Dict[str, Any]) -> ModelConfig:
        """Слить partial в существующую конфигурацию или создать новую с умолчаниями."""
        known = {f.name for f in fields(ModelConfig)}
        updates = {k: v for k, v in partial.items() if k in known and k != "name"}

        existing = self._configs.get(model_name)
        if existing is not None:
            config = replace(existing, **updates)
        else:
            updates.setdefault("display_name", model_name)
            config = ModelConfig(name=model_name, **updates)

        self._configs[model_name] = config
        return config

    def get_all_models(self) -> List[ModelConfig]:
        return list(self._configs.values())

    def get_models_for_audit_type(self, audit_type: AuditType) -> List[ModelConfig]:
        return [c for c in self._configs.values() if audit_type in c.specialization]

    def get_recommended_models(self) -> List[str]:
        return list(RECOMMENDED_MODELS)

    def set_strategy(self, strategy: ModelSelectionStrategy) -> None:
        self.strategy = strategy

    def get_fallback_models(self, model_name: str) -> List[str]:
        config = self.get_model_config(model_name)
        return list(config.fallback_models) if config else []
