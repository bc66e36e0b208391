"""
Core Components Package.

This package contains foundational components used throughout the
orchestration system: data models, the backend catalog, exceptions and
configuration loading.
"""

from .data_models import (
    TaskType,
    OrchestrationStrategy,
    ConsensusMethod,
    FinishReason,
    Speed,
    Complexity,
    LLMRequest,
    LLMResponse,
    TaskClassification,
    TaskCharacteristics,
    TaskAnalysis,
    RoutingDecision,
    Disagreement,
    ConsensusResult,
)
from .model_catalog import BackendInfo, BACKEND_CATALOG, get_backend_info, estimate_tokens
from .exceptions import (
    OrchestrationError,
    AllBackendsFailedError,
    ConsensusError,
    BudgetExceededError,
    ConfigurationError,
)

__all__ = [
    "TaskType",
    "OrchestrationStrategy",
    "ConsensusMethod",
    "FinishReason",
    "Speed",
    "Complexity",
    "LLMRequest",
    "LLMResponse",
    "TaskClassification",
    "TaskCharacteristics",
    "TaskAnalysis",
    "RoutingDecision",
    "Disagreement",
    "ConsensusResult",
    "BackendInfo",
    "BACKEND_CATALOG",
    "get_backend_info",
    "estimate_tokens",
    "OrchestrationError",
    "AllBackendsFailedError",
    "ConsensusError",
    "BudgetExceededError",
    "ConfigurationError",
]
