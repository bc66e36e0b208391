"""
Shared fixtures: scripted backend adapters, deterministic embedders and
response builders. Nothing here touches the network.
"""

import time
from datetime import datetime, timezone
from typing import Dict, List

import numpy as np
import pytest

from core.data_models import FinishReason, LLMRequest, LLMResponse
from core.model_catalog import BACKEND_CATALOG, CLAUDE, GEMINI, GPT4
from consensus import AbstractEmbedder, ConsensusEngine, TokenOverlapEmbedder
from cost_tracking import CostBudget, CostTracker
from llm_providers import BaseLLMProvider, LLMProviderType, ModelClient
from orchestrator import Orchestrator
from routers import TaskRouter

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class ScriptedProvider(BaseLLMProvider):
    """
    Adapter that replays a script of outcomes.

    Each call consumes the next outcome; the last one repeats. An outcome is
    either response text or an exception to raise.
    """

    def __init__(self, backend_name: str, outcomes=None, input_tokens: int = 100,
                 output_tokens: int = 50, delay: float = 0.0):
        super().__init__(BACKEND_CATALOG[backend_name])
        self.outcomes = list(outcomes or [f"Answer from {backend_name}"])
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.delay = delay
        self.calls: List[LLMRequest] = []

    def get_provider_type(self) -> LLMProviderType:
        return LLMProviderType.MOCK

    def generate_response(self, request: LLMRequest) -> LLMResponse:
        start_time = time.time()
        self.calls.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if self.delay:
            time.sleep(self.delay)
        if isinstance(outcome, Exception):
            self._record_failure()
            raise outcome
        return self._build_response(
            request, outcome, self.input_tokens, self.output_tokens, FinishReason.STOP, start_time
        )


class FixedEmbedder(AbstractEmbedder):
    """Returns preset vectors looked up by text"""

    def __init__(self, vectors: Dict[str, List[float]]):
        super().__init__("fixed")
        self.vectors = vectors

    def embed(self, texts: List[str]) -> np.ndarray:
        return np.array([self.vectors[text] for text in texts], dtype=float)

    def get_implementation_info(self):
        return {"name": "Fixed", "type": "fixed"}


@pytest.fixture
def scripted_provider():
    return ScriptedProvider


@pytest.fixture
def fixed_embedder():
    return FixedEmbedder


@pytest.fixture
def make_response():
    """Builder for LLMResponse objects with explicit cost and timestamp"""
    def _make(content="ok", model_name=GPT4, cost=0.01, input_tokens=100, output_tokens=50,
              timestamp=FIXED_NOW, generation_time=0.25):
        return LLMResponse(
            content=content,
            model_name=model_name,
            provider=BACKEND_CATALOG[model_name].provider if model_name in BACKEND_CATALOG else "mock",
            generation_time=generation_time,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_cost=cost,
            timestamp=timestamp
        )
    return _make


@pytest.fixture
def request_factory():
    def _make(prompt="Debug this code", **kwargs):
        return LLMRequest(prompt=prompt, **kwargs)
    return _make


@pytest.fixture
def sleeps():
    """Records requested backoff delays instead of sleeping"""
    return []


@pytest.fixture
def build_client(sleeps):
    def _build(providers):
        return ModelClient(providers, sleep=sleeps.append)
    return _build


@pytest.fixture
def build_orchestrator(build_client):
    """
    Orchestrator over scripted adapters.

    ``outcomes`` maps backend name to its script; ``backends`` limits which
    backends get an adapter at all.
    """
    def _build(outcomes=None, backends=(GPT4, CLAUDE, GEMINI), budget=None, router=None,
               audit_sink=None, settings=None, embedder=None):
        outcomes = outcomes or {}
        providers = {name: ScriptedProvider(name, outcomes.get(name)) for name in backends}
        return Orchestrator(
            client=build_client(providers),
            router=router or TaskRouter(),
            consensus=ConsensusEngine(embedder or TokenOverlapEmbedder()),
            cost_tracker=CostTracker(budget=budget or CostBudget()),
            settings=settings,
            audit_sink=audit_sink
        )
    return _build


@pytest.fixture
def test_env(monkeypatch):
    monkeypatch.setenv("ORCHESTRATION_ENV", "test")


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without provider credentials"""
    for name in ("OPENAI_API_KEY", "GOOGLE_AI_API_KEY", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_REGION"):
        monkeypatch.delenv(name, raising=False)
