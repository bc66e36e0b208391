"""
Orchestration-level exceptions.

Backend call failures are represented by ``llm_providers.LLMProviderError``;
the classes here cover what happens above a single backend call.
"""

from typing import List, Tuple


class OrchestrationError(Exception):
    """Base exception for orchestration failures"""
    pass


class AllBackendsFailedError(OrchestrationError):
    """Raised when every backend attempted for one request failed"""

    def __init__(self, failures: List[Tuple[str, Exception]], request_id: str = None):
        self.failures = list(failures)
        self.request_id = request_id
        reasons = "; ".join(f"{backend}: {error}" for backend, error in self.failures)
        super().__init__(f"All {len(self.failures)} backend(s) failed: {reasons}")

    @property
    def backends(self) -> List[str]:
        return [backend for backend, _ in self.failures]


class ConsensusError(OrchestrationError):
    """Raised when consensus is requested from zero responses or with an unknown method"""
    pass


class BudgetExceededError(OrchestrationError):
    """Raised in hard-stop mode when a budget window is exhausted"""

    def __init__(self, message: str, window: str, current: float, limit: float):
        super().__init__(message)
        self.window = window
        self.current = current
        self.limit = limit


class ConfigurationError(ValueError):
    """Raised when configuration, routing rules or backend sets are invalid"""
    pass
