"""
Data models for the multi-model orchestration system.

This module contains the core data structures shared by the model client
layer, the task router, the consensus engine and the orchestrator.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, List


class TaskType(str, Enum):
    """Task categories understood by the router"""
    TECHNICAL = "technical"
    STRATEGIC = "strategic"
    ANALYTICAL = "analytical"
    CREATIVE = "creative"
    CLASSIFICATION = "classification"
    SUMMARIZATION = "summarization"
    EXTRACTION = "extraction"
    MIXED = "mixed"


class OrchestrationStrategy(str, Enum):
    """How many backends an orchestration call fans out to"""
    SINGLE = "single"
    DUAL = "dual"
    TRIPLE = "triple"
    CUSTOM = "custom"


class ConsensusMethod(str, Enum):
    """Reconciliation methods supported by the consensus engine"""
    MAJORITY_VOTE = "majority-vote"
    WEIGHTED_AVERAGE = "weighted-average"
    SEMANTIC_SIMILARITY = "semantic-similarity"
    TIEBREAKER = "tiebreaker"
    LONGEST_COMMON = "longest-common"
    CONFIDENCE_WEIGHTED = "confidence-weighted"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"


class Speed(str, Enum):
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


def utc_now() -> datetime:
    """Timezone-aware current time used for every timestamp in the system"""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LLMRequest:
    """Standardized request format for all backends"""
    prompt: str
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: float = 0.7
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def full_prompt(self) -> str:
        """Prompt with the system prompt prepended, for backends without a system slot"""
        if self.system_prompt:
            return f"{self.system_prompt}\n\n{self.prompt}"
        return self.prompt


@dataclass(frozen=True)
class LLMResponse:
    """Standardized response format returned by every backend adapter"""
    content: str
    model_name: str
    provider: str
    generation_time: float
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    finish_reason: str = FinishReason.STOP.value
    request_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def token_count(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def latency_ms(self) -> int:
        return int(round(self.generation_time * 1000))

    def with_content(self, content: str) -> "LLMResponse":
        """Copy of this response carrying different text"""
        return replace(self, content=content)

    def to_dict(self) -> Dict[str, Any]:
        """Convert response to dictionary format"""
        return {
            "content": self.content,
            "model_name": self.model_name,
            "provider": self.provider,
            "generation_time": self.generation_time,
            "latency_ms": self.latency_ms,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "token_count": self.token_count,
            "total_cost": self.total_cost,
            "finish_reason": self.finish_reason,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata)
        }


@dataclass(frozen=True)
class TaskClassification:
    """Router's guess at the task category"""
    task_type: TaskType
    confidence: float
    reasoning: str
    indicators: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TaskCharacteristics:
    length: int
    complexity: Complexity
    domain: List[str]
    requires_reasoning: bool
    requires_creativity: bool
    requires_data: bool


@dataclass(frozen=True)
class TaskAnalysis:
    """Classification plus the characteristics used for routing and cost estimates"""
    prompt: str
    classification: TaskClassification
    characteristics: TaskCharacteristics
    estimated_input_tokens: int
    estimated_output_tokens: int


@dataclass(frozen=True)
class RoutingDecision:
    """Router's chosen backend plan"""
    primary: str
    fallback: List[str]
    reasoning: str
    estimated_cost: float
    estimated_latency: int
    confidence: float
    task_type: TaskType

    @property
    def backends(self) -> List[str]:
        return [self.primary] + list(self.fallback)


@dataclass(frozen=True)
class Disagreement:
    """One backend whose answer was not part of the consensus"""
    model_name: str
    response: str
    reason: str


@dataclass(frozen=True)
class ConsensusResult:
    """Output of reconciling N responses"""
    method: ConsensusMethod
    result: str
    confidence: float
    agreement: float
    disagreements: List[Disagreement] = field(default_factory=list)
    requires_review: bool = False
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "result": self.result,
            "confidence": self.confidence,
            "agreement": self.agreement,
            "disagreements": [
                {"model_name": d.model_name, "response": d.response, "reason": d.reason}
                for d in self.disagreements
            ],
            "requires_review": self.requires_review,
            "warnings": list(self.warnings),
            "details": dict(self.details)
        }
