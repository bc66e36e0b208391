"""
Cost Tracker.

Records the cost of every backend call, evaluates budget thresholds and
derives usage statistics and savings recommendations from the ledger.
Budget alerts are observational: they are logged, stored and handed to an
optional sink, and never stop a call unless hard-stop mode is enabled.
"""

import logging
import os
import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from core.config import OrchestratorConfig
from core.data_models import LLMResponse, utc_now
from core.exceptions import BudgetExceededError, ConfigurationError
from core.model_catalog import BACKEND_CATALOG, BackendInfo
from .ledger import CostLedger, InMemoryCostLedger, JsonlCostLedger
from .models import (
    AlertType, CostAlert, CostBudget, CostOptimization, CostRecommendation, CostRecord, CostStats
)

logger = logging.getLogger(__name__)

MODEL_SWITCH_RATIO = 5.0
MODEL_SWITCH_SAVINGS = 0.3
CACHE_MIN_RECORDS = 100
CACHE_UNIQUE_RATIO = 0.3
CACHE_SAVINGS = 0.2
CONTEXT_TOKEN_LIMIT = 5000
CONTEXT_SAVINGS = 0.15

WINDOW_ALERTS = {
    "daily": AlertType.DAILY_EXCEEDED,
    "weekly": AlertType.WEEKLY_EXCEEDED,
    "monthly": AlertType.MONTHLY_EXCEEDED,
}


class CostTracker:
    """
    Thread-safe cost ledger front end.

    ``track`` appends a record and checks budgets under one lock, so
    concurrent tracking never loses a record or evaluates a budget against a
    half-applied update.
    """

    def __init__(self, budget: Optional[CostBudget] = None, ledger: Optional[CostLedger] = None,
                 on_alert: Optional[Callable[[CostAlert], None]] = None,
                 clock: Callable[[], datetime] = utc_now,
                 catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG):
        """
        Initialize the tracker.

        Args:
            budget: Spending limits; defaults when omitted
            ledger: Record store; in-memory when omitted
            on_alert: Called with every new alert
            clock: Returns the current UTC time
            catalog: Backend catalog used to rank backends by price
        """
        self.ledger = ledger if ledger is not None else InMemoryCostLedger()
        self.on_alert = on_alert
        self.clock = clock
        self.catalog = catalog
        self._budget = budget or CostBudget()
        self._alerts: List[CostAlert] = []
        self._last_alerted: Dict[str, float] = {}
        self._lock = threading.RLock()
        logger.info(
            f"Cost tracker initialized: daily=${self._budget.daily}, monthly=${self._budget.monthly}"
        )

    @classmethod
    def from_config(cls, config: OrchestratorConfig, **kwargs) -> "CostTracker":
        """Build a tracker from the [COST_BUDGET] section"""
        settings = dict(config.budget)
        ledger_path = settings.pop("ledger_path", None)
        ledger = JsonlCostLedger(ledger_path) if ledger_path else None
        try:
            budget = CostBudget(**settings)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid [COST_BUDGET] settings: {e}") from e
        return cls(budget=budget, ledger=ledger, **kwargs)

    # Budget

    def get_budget(self) -> CostBudget:
        return self._budget

    def update_budget(self, **changes: Any) -> CostBudget:
        """
        Replace budget limits atomically.

        Raises:
            ConfigurationError: If a field is unknown or a value is invalid
        """
        with self._lock:
            try:
                self._budget = replace(self._budget, **changes)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid budget update: {e}") from e
            budget = self._budget
        logger.info(f"Budget updated: {sorted(changes)}")
        return budget

    # Tracking

    def track(self, response: LLMResponse, task_type: Optional[str] = None,
              user_id: Optional[str] = None, session_id: Optional[str] = None) -> CostRecord:
        """
        Record one response's cost and evaluate budget thresholds.

        Args:
            response: Backend response
            task_type: Task type tag
            user_id: Caller's user id
            session_id: Caller's session id

        Returns:
            CostRecord: The appended record
        """
        record, _ = self._track(response, task_type, user_id, session_id)
        return record

    def track_many(self, responses: List[LLMResponse], task_type: Optional[str] = None,
                   user_id: Optional[str] = None, session_id: Optional[str] = None) -> List[CostRecord]:
        return [self.track(response, task_type, user_id, session_id) for response in responses]

    def track_many_with_alerts(self, responses: List[LLMResponse], task_type: Optional[str] = None,
                               user_id: Optional[str] = None,
                               session_id: Optional[str] = None) -> Tuple[List[CostRecord], List[CostAlert]]:
        """Like ``track_many``, also returning the alerts these records raised"""
        records = []
        alerts = []
        for response in responses:
            record, raised = self._track(response, task_type, user_id, session_id)
            records.append(record)
            alerts.extend(raised)
        return records, alerts

    def _track(self, response: LLMResponse, task_type, user_id, session_id) -> Tuple[CostRecord, List[CostAlert]]:
        record = CostRecord.from_response(
            response,
            task_type=getattr(task_type, "value", task_type),
            user_id=user_id,
            session_id=session_id
        )

        with self._lock:
            self.ledger.append(record)
            alerts = self._check_budget_limits(record)
            self._alerts.extend(alerts)

        for alert in alerts:
            logger.warning(f"Cost alert: {alert.message}")
            if self.on_alert is not None:
                try:
                    self.on_alert(alert)
                except Exception:
                    logger.exception(f"Cost alert sink failed for alert {alert.id}")

        return record, alerts

    def _check_budget_limits(self, record: CostRecord) -> List[CostAlert]:
        budget = self._budget
        now = self.clock()
        alerts = []

        if budget.per_request and record.cost > budget.per_request:
            alerts.append(CostAlert(
                kind=AlertType.REQUEST_EXCEEDED,
                current=record.cost,
                limit=budget.per_request,
                percentage=record.cost / budget.per_request * 100,
                message=f"Request cost ${record.cost:.4f} exceeds limit ${budget.per_request}",
                timestamp=now
            ))

        for window, total in self._window_totals(now).items():
            limit = getattr(budget, window)
            if not limit:
                continue
            threshold = limit * budget.alert_threshold
            if total < threshold:
                self._last_alerted.pop(window, None)
                continue
            last_total = self._last_alerted.get(window)
            if last_total is not None and total <= last_total:
                continue
            self._last_alerted[window] = total
            percentage = total / limit * 100
            alerts.append(CostAlert(
                kind=WINDOW_ALERTS[window],
                current=total,
                limit=limit,
                percentage=percentage,
                message=f"{window.title()} cost ${total:.2f} reached {percentage:.0f}% of ${limit} limit",
                timestamp=now
            ))

        return alerts

    def ensure_within_budget(self) -> None:
        """
        Refuse further spending in hard-stop mode.

        Raises:
            BudgetExceededError: If hard stop is on and any window total has reached its limit
        """
        budget = self._budget
        if not budget.hard_stop:
            return
        for window, total in self._window_totals(self.clock()).items():
            limit = getattr(budget, window)
            if limit and total >= limit:
                raise BudgetExceededError(
                    f"{window.title()} budget exhausted: ${total:.2f} of ${limit}",
                    window=window,
                    current=total,
                    limit=limit
                )

    # Windows

    def _window_starts(self, now: datetime) -> Dict[str, datetime]:
        local_now = now.astimezone()
        midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            "daily": midnight,
            "weekly": now - timedelta(days=7),
            "monthly": now - timedelta(days=30),
        }

    def _cost_since(self, since: datetime) -> float:
        return sum(record.cost for record in self.ledger.query(lambda record: record.timestamp >= since))

    def _window_totals(self, now: datetime) -> Dict[str, float]:
        return {window: self._cost_since(start) for window, start in self._window_starts(now).items()}

    def get_today_cost(self) -> float:
        """Cost since local midnight"""
        return self._cost_since(self._window_starts(self.clock())["daily"])

    def get_weekly_cost(self) -> float:
        """Cost over the last 7 days"""
        return self._cost_since(self._window_starts(self.clock())["weekly"])

    def get_monthly_cost(self) -> float:
        """Cost over the last 30 days"""
        return self._cost_since(self._window_starts(self.clock())["monthly"])

    # Analytics

    def get_stats(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> CostStats:
        """
        Aggregate statistics over a time range.

        Args:
            start: Inclusive lower bound; unbounded when omitted
            end: Inclusive upper bound; unbounded when omitted

        Returns:
            CostStats: Totals, averages and per-model and per-task-type breakdowns
        """
        def in_range(record: CostRecord) -> bool:
            if start is not None and record.timestamp < start:
                return False
            if end is not None and record.timestamp > end:
                return False
            return True

        records = self.ledger.query(in_range)
        total_requests = len(records)
        total_cost = sum(record.cost for record in records)
        total_tokens = sum(record.total_tokens for record in records)

        by_model = defaultdict(lambda: {"cost": 0.0, "requests": 0, "tokens": 0, "latency": 0.0})
        by_task_type = defaultdict(lambda: {"cost": 0.0, "requests": 0})
        for record in records:
            model_stats = by_model[record.model_name]
            model_stats["cost"] += record.cost
            model_stats["requests"] += 1
            model_stats["tokens"] += record.total_tokens
            model_stats["latency"] += record.latency_ms
            if record.task_type:
                by_task_type[record.task_type]["cost"] += record.cost
                by_task_type[record.task_type]["requests"] += 1

        for model_stats in by_model.values():
            model_stats["avg_latency"] = model_stats.pop("latency") / model_stats["requests"]

        timestamps = [record.timestamp for record in records]
        return CostStats(
            total_cost=total_cost,
            total_requests=total_requests,
            total_tokens=total_tokens,
            avg_cost_per_request=total_cost / total_requests if total_requests else 0.0,
            avg_tokens_per_request=total_tokens / total_requests if total_requests else 0.0,
            avg_latency_ms=sum(record.latency_ms for record in records) / total_requests if total_requests else 0.0,
            by_model=dict(by_model),
            by_task_type=dict(by_task_type),
            start=min(timestamps) if timestamps else None,
            end=max(timestamps) if timestamps else None
        )

    def _price(self, model_name: str) -> float:
        info = self.catalog.get(model_name)
        return info.blended_price_per_1k if info else float("inf")

    def get_optimization_recommendations(self) -> CostOptimization:
        """
        Heuristic savings suggestions derived from the ledger.

        Returns:
            CostOptimization: Current cost, projected savings and recommendations
        """
        stats = self.get_stats()
        records = self.ledger.query()
        recommendations = []

        by_price = sorted(stats.by_model, key=self._price)
        for position, expensive in enumerate(by_price):
            cheaper_candidates = [
                name for name in by_price[:position]
                if self._price(name) < self._price(expensive)
            ]
            expensive_cost = stats.by_model[expensive]["cost"]
            for cheaper in cheaper_candidates:
                if expensive_cost > stats.by_model[cheaper]["cost"] * MODEL_SWITCH_RATIO:
                    recommendations.append(CostRecommendation(
                        type="model-switch",
                        description=f"Switch simple classification/analysis tasks from {expensive} to {cheaper}",
                        estimated_savings=expensive_cost * MODEL_SWITCH_SAVINGS,
                        effort="low"
                    ))
                    break

        unique_requests = len({(record.user_id, record.task_type) for record in records})
        if len(records) >= CACHE_MIN_RECORDS and unique_requests < len(records) * CACHE_UNIQUE_RATIO:
            recommendations.append(CostRecommendation(
                type="cache-responses",
                description="Implement response caching for frequently repeated queries",
                estimated_savings=stats.total_cost * CACHE_SAVINGS,
                effort="medium"
            ))

        if stats.avg_tokens_per_request > CONTEXT_TOKEN_LIMIT:
            recommendations.append(CostRecommendation(
                type="reduce-context",
                description="Reduce context size by improving prompt engineering",
                estimated_savings=stats.total_cost * CONTEXT_SAVINGS,
                effort="medium"
            ))

        return CostOptimization(
            current_cost=stats.total_cost,
            projected_savings=sum(item.estimated_savings for item in recommendations),
            recommendations=recommendations
        )

    def get_recent_alerts(self, limit: int = 10) -> List[CostAlert]:
        """Most recent alerts, newest first"""
        with self._lock:
            recent = self._alerts[-limit:] if limit > 0 else []
        return list(reversed(recent))

    def reset(self) -> None:
        """
        Clear every record and alert.

        Raises:
            RuntimeError: Unless ORCHESTRATION_ENV is "test"
        """
        if os.environ.get("ORCHESTRATION_ENV") != "test":
            raise RuntimeError("reset() can only be used in test environment")
        with self._lock:
            self.ledger.clear()
            self._alerts.clear()
            self._last_alerted.clear()
        logger.info("All cost records cleared")
