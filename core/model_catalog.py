"""
Backend catalog.

Published capabilities and list prices of every backend the orchestrator can
dispatch to. The tables are read-only after import and safe to share between
threads.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .data_models import Speed, TaskType


DEFAULT_CHARS_PER_TOKEN = 4.0


@dataclass(frozen=True)
class BackendInfo:
    """Capabilities and pricing of one backend"""
    name: str
    provider: str
    display_name: str
    vendor_model_id: str
    description: str
    context_window: int
    max_output_tokens: int
    input_cost_per_1k: float
    output_cost_per_1k: float
    speed: Speed
    strengths: Tuple[str, ...] = field(default_factory=tuple)
    weaknesses: Tuple[str, ...] = field(default_factory=tuple)
    recommended_for: Tuple[TaskType, ...] = field(default_factory=tuple)
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN

    def cost(self, input_tokens: float, output_tokens: float) -> float:
        """Price of a call with the given token counts (USD)"""
        return (input_tokens / 1000) * self.input_cost_per_1k + (output_tokens / 1000) * self.output_cost_per_1k

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    @property
    def blended_price_per_1k(self) -> float:
        return self.input_cost_per_1k + self.output_cost_per_1k


GPT4 = "gpt-4"
CLAUDE = "claude-3.5-sonnet"
GEMINI = "gemini-1.5-pro"


_CATALOG: Dict[str, BackendInfo] = {
    GPT4: BackendInfo(
        name=GPT4,
        provider="openai",
        display_name="GPT-4 Turbo",
        vendor_model_id="gpt-4-turbo-preview",
        description="Most capable model for complex reasoning and technical tasks",
        context_window=128000,
        max_output_tokens=4096,
        input_cost_per_1k=0.01,
        output_cost_per_1k=0.03,
        speed=Speed.MEDIUM,
        strengths=(
            "Complex reasoning",
            "Technical analysis",
            "Code generation",
            "Math and logic",
            "Instruction following",
        ),
        weaknesses=("Cost (expensive)", "Slower than alternatives", "Verbose output"),
        recommended_for=(TaskType.TECHNICAL, TaskType.ANALYTICAL, TaskType.EXTRACTION),
    ),
    CLAUDE: BackendInfo(
        name=CLAUDE,
        provider="anthropic",
        display_name="Claude 3.5 Sonnet",
        vendor_model_id="anthropic.claude-3-5-sonnet-20241022-v2:0",
        description="Best for strategic thinking, writing, and nuanced understanding",
        context_window=200000,
        max_output_tokens=4096,
        input_cost_per_1k=0.003,
        output_cost_per_1k=0.015,
        speed=Speed.MEDIUM,
        strengths=(
            "Strategic thinking",
            "Creative writing",
            "Nuanced understanding",
            "Long context",
            "Cost-effective",
        ),
        weaknesses=("Less technical than GPT-4", "Slower for simple tasks"),
        recommended_for=(TaskType.STRATEGIC, TaskType.CREATIVE, TaskType.SUMMARIZATION),
        chars_per_token=3.5,
    ),
    GEMINI: BackendInfo(
        name=GEMINI,
        provider="google",
        display_name="Gemini 1.5 Pro",
        vendor_model_id="gemini-1.5-pro",
        description="Fast, cheap, huge context - best for analysis and classification",
        context_window=1000000,
        max_output_tokens=8192,
        input_cost_per_1k=0.00125,
        output_cost_per_1k=0.005,
        speed=Speed.FAST,
        strengths=(
            "Massive context (1M tokens)",
            "Very fast",
            "Very cheap",
            "Good at analysis",
            "Math and data",
        ),
        weaknesses=("Less nuanced than Claude", "Newer, less proven"),
        recommended_for=(
            TaskType.ANALYTICAL,
            TaskType.CLASSIFICATION,
            TaskType.SUMMARIZATION,
            TaskType.EXTRACTION,
        ),
    ),
}

BACKEND_CATALOG: Mapping[str, BackendInfo] = MappingProxyType(_CATALOG)


def get_backend_info(name: str, catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> BackendInfo:
    """
    Look up a backend by name.

    Raises:
        KeyError: If the backend is not in the catalog
    """
    try:
        return catalog[name]
    except KeyError:
        raise KeyError(f"Unknown backend: {name}. Available: {list(catalog.keys())}") from None


def cheapest_backend(names: List[str], catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> str:
    """Backend with the lowest blended list price; ties keep the earlier name"""
    return min(names, key=lambda name: catalog[name].blended_price_per_1k)


def estimate_tokens(text: str, backend: str = None, catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> int:
    """Character-length token heuristic, using the backend's ratio when one is given"""
    if backend is not None:
        return get_backend_info(backend, catalog).estimate_tokens(text)
    if not text:
        return 0
    return math.ceil(len(text) / DEFAULT_CHARS_PER_TOKEN)
