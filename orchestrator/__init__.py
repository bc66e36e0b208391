"""
Orchestrator Package.

Top-level entry point of the core: routes a task, fans it out to one or more
backends, reconciles the answers and records their cost.
"""

from .schemas import OrchestrationRequest, OrchestrationResult
from .multi_model_orchestrator import Orchestrator, OrchestratorSettings, settings_from

__all__ = [
    "OrchestrationRequest",
    "OrchestrationResult",
    "Orchestrator",
    "OrchestratorSettings",
    "settings_from"
]
