"""
Cost Tracking Package.

Per-call cost ledger, budget alerts, usage statistics and savings
recommendations.
"""

from .models import (
    AlertType,
    CostRecord,
    CostBudget,
    CostAlert,
    CostStats,
    CostRecommendation,
    CostOptimization
)
from .ledger import CostLedger, InMemoryCostLedger, JsonlCostLedger
from .tracker import CostTracker

__all__ = [
    "AlertType",
    "CostRecord",
    "CostBudget",
    "CostAlert",
    "CostStats",
    "CostRecommendation",
    "CostOptimization",
    "CostLedger",
    "InMemoryCostLedger",
    "JsonlCostLedger",
    "CostTracker"
]
