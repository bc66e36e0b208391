"""
Inbound and outbound shapes of an orchestration call.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from core.data_models import (
    ConsensusMethod, ConsensusResult, LLMResponse, OrchestrationStrategy, TaskType, utc_now
)


class OrchestrationRequest(BaseModel):
    """Request model for an orchestration call"""
    prompt: str = Field(..., description="The task prompt", min_length=1, max_length=200000)
    system_prompt: Optional[str] = Field(None, description="System prompt sent to every backend")
    task_type: Optional[TaskType] = Field(None, description="Override automatic task classification")
    strategy: Optional[OrchestrationStrategy] = Field(None, description="single, dual, triple or custom")
    models: Optional[List[str]] = Field(None, description="Explicit backends; bypasses routing", min_length=1)
    temperature: Optional[float] = Field(None, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, description="Maximum output tokens", ge=1, le=200000)
    top_p: Optional[float] = Field(None, description="Nucleus sampling", ge=0.0, le=1.0)
    top_k: Optional[int] = Field(None, description="Top-k sampling, for backends that support it", ge=1)
    stop_sequences: Optional[List[str]] = Field(None, description="Stop generation at any of these markers")
    require_consensus: Optional[bool] = Field(None, description="Set False to skip consensus on multi-model calls")
    consensus_method: Optional[ConsensusMethod] = Field(None, description="Consensus method; auto-selected when omitted")
    prefer_cheap: Optional[bool] = Field(None, description="Override the router's cheap preference")
    prefer_fast: Optional[bool] = Field(None, description="Override the router's fast preference")
    user_id: Optional[str] = Field(None, description="Caller's user id, used for cost tags and audit")
    session_id: Optional[str] = Field(None, description="Caller's session id, used for cost tags and audit")
    role: str = Field("OPS", description="Role passed to the output filter and audit log", min_length=1)

    @field_validator("models")
    @classmethod
    def _unique_models(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        if any(not name or not name.strip() for name in value):
            raise ValueError("backend names cannot be empty")
        if len(set(value)) != len(value):
            raise ValueError(f"backend list repeats a backend: {value}")
        return value

    @model_validator(mode="after")
    def _custom_needs_models(self) -> "OrchestrationRequest":
        if self.strategy == OrchestrationStrategy.CUSTOM and not self.models:
            raise ValueError("strategy 'custom' requires an explicit models list")
        return self


@dataclass(frozen=True)
class OrchestrationResult:
    """Outcome of one orchestration call"""
    strategy: OrchestrationStrategy
    responses: List[LLMResponse]
    primary: LLMResponse
    total_cost: float
    total_latency_ms: int
    consensus: Optional[ConsensusResult] = None
    timestamp: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_review(self) -> bool:
        return bool(self.consensus and self.consensus.requires_review)

    def to_filter_payload(self, role: Optional[str] = None) -> Dict[str, Any]:
        """
        Hand-off for the output filter that runs after orchestration.

        Args:
            role: Role whose policy the filter applies; the request's role when omitted

        Returns:
            Dict with the final text and its context
        """
        return {
            "content": self.primary.content,
            "role": role or self.metadata.get("role", "OPS"),
            "context": {
                "request_id": self.primary.request_id,
                "models_used": list(self.metadata.get("models_used", [])),
                "task_type": self.metadata.get("task_type"),
                "strategy": self.strategy.value,
                "requires_review": self.requires_review,
                "user_id": self.metadata.get("user_id"),
                "session_id": self.metadata.get("session_id")
            }
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "responses": [response.to_dict() for response in self.responses],
            "consensus": self.consensus.to_dict() if self.consensus else None,
            "primary": self.primary.to_dict(),
            "total_cost": self.total_cost,
            "total_latency_ms": self.total_latency_ms,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata)
        }
