"""
Data models for cost tracking.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.data_models import LLMResponse, utc_now


class AlertType(str, Enum):
    REQUEST_EXCEEDED = "request-exceeded"
    DAILY_EXCEEDED = "daily-exceeded"
    WEEKLY_EXCEEDED = "weekly-exceeded"
    MONTHLY_EXCEEDED = "monthly-exceeded"


@dataclass(frozen=True)
class CostRecord:
    """Ledger entry for one backend call"""
    model_name: str
    provider: str
    input_tokens: int
    output_tokens: int
    cost: float
    latency_ms: int
    timestamp: datetime = field(default_factory=utc_now)
    task_type: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    request_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if self.cost < 0:
            raise ValueError(f"Cost must be non-negative, got {self.cost}")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def from_response(cls, response: LLMResponse, task_type: Optional[str] = None,
                      user_id: Optional[str] = None, session_id: Optional[str] = None) -> "CostRecord":
        return cls(
            model_name=response.model_name,
            provider=response.provider,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost=response.total_cost,
            latency_ms=response.latency_ms,
            timestamp=response.timestamp,
            task_type=task_type,
            user_id=user_id,
            session_id=session_id,
            request_id=response.request_id
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "model_name": self.model_name,
            "provider": self.provider,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "latency_ms": self.latency_ms,
            "task_type": self.task_type,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "request_id": self.request_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostRecord":
        values = dict(data)
        values["timestamp"] = datetime.fromisoformat(values["timestamp"])
        return cls(**values)


@dataclass(frozen=True)
class CostBudget:
    """Spending limits in USD; a limit of None or 0 disables that check"""
    daily: Optional[float] = 10.0
    weekly: Optional[float] = 50.0
    monthly: Optional[float] = 200.0
    per_request: Optional[float] = 0.50
    alert_threshold: float = 0.8
    hard_stop: bool = False

    def __post_init__(self):
        if not 0.0 < self.alert_threshold <= 1.0:
            raise ValueError(f"alert_threshold must be in (0, 1], got {self.alert_threshold}")
        for name in ("daily", "weekly", "monthly", "per_request"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} limit must be non-negative, got {value}")


@dataclass(frozen=True)
class CostAlert:
    """Budget threshold crossing"""
    kind: AlertType
    current: float
    limit: float
    percentage: float
    message: str
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "current": self.current,
            "limit": self.limit,
            "percentage": self.percentage,
            "message": self.message
        }


@dataclass(frozen=True)
class CostStats:
    """Aggregate statistics over a set of cost records"""
    total_cost: float
    total_requests: int
    total_tokens: int
    avg_cost_per_request: float
    avg_tokens_per_request: float
    avg_latency_ms: float
    by_model: Dict[str, Dict[str, float]] = field(default_factory=dict)
    by_task_type: Dict[str, Dict[str, float]] = field(default_factory=dict)
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class CostRecommendation:
    type: str
    description: str
    estimated_savings: float
    effort: str


@dataclass(frozen=True)
class CostOptimization:
    """Advisory savings estimates, not measured results"""
    current_cost: float
    projected_savings: float
    recommendations: List[CostRecommendation] = field(default_factory=list)
