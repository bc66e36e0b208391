"""
Multi-Model Orchestrator

Main entry point of the core. Takes a task, lets the router pick backends
(or uses the caller's explicit list), fans the call out through the model
client, reconciles divergent answers with the consensus engine and records
every call with the cost tracker.
"""

import logging
import threading
import time
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from core.config import OrchestratorConfig
from core.data_models import LLMRequest, OrchestrationStrategy, TaskType
from core.exceptions import AllBackendsFailedError, ConfigurationError
from consensus import AbstractEmbedder, ConsensusEngine, TokenOverlapEmbedder, consensus_configs_from
from cost_tracking import CostAlert, CostTracker
from llm_providers import BaseLLMProvider, ModelClient, ModelNotFoundError, create_providers
from routers import TaskRouter, router_config_from
from .schemas import OrchestrationRequest, OrchestrationResult

logger = logging.getLogger(__name__)

STRATEGY_SIZES = {
    OrchestrationStrategy.SINGLE: 1,
    OrchestrationStrategy.DUAL: 2,
    OrchestrationStrategy.TRIPLE: 3,
}

STRATEGY_FOR_SIZE = {size: strategy for strategy, size in STRATEGY_SIZES.items()}

DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class OrchestratorSettings:
    """Hot-reloadable orchestrator settings"""
    default_strategy: OrchestrationStrategy = OrchestrationStrategy.SINGLE
    fanout_timeout: Optional[float] = None


@dataclass(frozen=True)
class _BackendPlan:
    strategy: OrchestrationStrategy
    backends: List[str]
    task_type: TaskType
    reasoning: str
    metadata: Dict[str, Any]


class Orchestrator:
    """
    Coordinates router, model client, consensus engine and cost tracker.

    The orchestrator holds no per-request state, so one instance can serve
    concurrent ``orchestrate`` calls. Its collaborators guard their own
    configuration and the cost ledger.
    """

    def __init__(self, client: ModelClient, router: TaskRouter, consensus: ConsensusEngine,
                 cost_tracker: CostTracker, settings: Optional[OrchestratorSettings] = None,
                 audit_sink: Optional[Callable[[Dict[str, Any]], None]] = None):
        """
        Initialize the orchestrator.

        Args:
            client: Model client used for every backend call
            router: Task router
            consensus: Consensus engine
            cost_tracker: Cost tracker receiving every response
            settings: Default strategy and fan-out timeout
            audit_sink: Receives an audit entry for calls carrying a user or session id
        """
        self.client = client
        self.router = router
        self.consensus = consensus
        self.cost_tracker = cost_tracker
        self.audit_sink = audit_sink
        self._settings = settings or OrchestratorSettings()
        self._settings_lock = threading.Lock()
        logger.info(
            f"Orchestrator initialized with backends {client.available_backends()}, "
            f"default strategy {self._settings.default_strategy.value}"
        )

    @classmethod
    def from_config(cls, config: OrchestratorConfig, mock: bool = False,
                    providers: Optional[Mapping[str, BaseLLMProvider]] = None,
                    embedder: Optional[AbstractEmbedder] = None,
                    audit_sink: Optional[Callable[[Dict[str, Any]], None]] = None,
                    on_alert: Optional[Callable[[CostAlert], None]] = None) -> "Orchestrator":
        """
        Build a fully wired orchestrator from parsed configuration.

        Args:
            config: Parsed configuration
            mock: Use offline mock adapters and the token-overlap embedder
            providers: Explicit adapters; built from the configuration when omitted
            embedder: Explicit embedder for semantic consensus
            audit_sink: Audit entry receiver
            on_alert: Cost alert receiver

        Returns:
            Orchestrator: Ready to serve requests

        Raises:
            ConfigurationError: If no backend can be built or a section is invalid
        """
        if providers is None:
            providers = create_providers(config, mock=mock)
        if embedder is None and mock:
            embedder = TokenOverlapEmbedder()

        return cls(
            client=ModelClient(providers, retry_policies=config.retry_policies),
            router=TaskRouter.from_config(config),
            consensus=ConsensusEngine.from_config(config, embedder=embedder),
            cost_tracker=CostTracker.from_config(config, on_alert=on_alert),
            settings=settings_from(config),
            audit_sink=audit_sink
        )

    def get_settings(self) -> OrchestratorSettings:
        return self._settings

    def reload_config(self, config: OrchestratorConfig) -> None:
        """
        Apply new routing, consensus, budget and orchestrator settings.

        Adapters and the cost ledger are kept. Each collaborator swaps its
        configuration atomically, so in-flight calls finish under the
        configuration they started with.

        Raises:
            ConfigurationError: If any of the new settings is invalid
        """
        router_config = router_config_from(config)
        consensus_configs = consensus_configs_from(config)
        budget = {name: value for name, value in config.budget.items() if name != "ledger_path"}
        settings = settings_from(config)

        self.router.update_config(**{f.name: getattr(router_config, f.name) for f in fields(router_config)})
        for method, method_config in consensus_configs.items():
            self.consensus.update_config(
                method,
                min_agreement=method_config.min_agreement,
                confidence_threshold=method_config.confidence_threshold,
                require_human_review=method_config.require_human_review
            )
        if budget:
            self.cost_tracker.update_budget(**budget)
        with self._settings_lock:
            self._settings = settings
        logger.info("Orchestrator configuration reloaded")

    def _plan(self, request: OrchestrationRequest, settings: OrchestratorSettings) -> _BackendPlan:
        if request.models:
            task_type = request.task_type or self.router.classify(request.prompt).task_type
            return _BackendPlan(
                strategy=OrchestrationStrategy.CUSTOM,
                backends=list(request.models),
                task_type=task_type,
                reasoning=f"Explicit backend list: {', '.join(request.models)}",
                metadata={}
            )

        requested = request.strategy or settings.default_strategy
        if requested == OrchestrationStrategy.CUSTOM:
            raise ConfigurationError("strategy 'custom' requires an explicit models list")

        decision = self.router.route(
            request.prompt,
            system_prompt=request.system_prompt,
            prefer_cheap=request.prefer_cheap,
            prefer_fast=request.prefer_fast,
            task_type=request.task_type
        )
        metadata = {}

        available = set(self.client.available_backends())
        candidates = [name for name in decision.backends if name in available]
        unavailable = [name for name in decision.backends if name not in available]
        if unavailable:
            logger.warning(f"Routed backends without a configured adapter skipped: {unavailable}")
            metadata["unavailable_backends"] = unavailable
        if not candidates:
            failures = []
            for name in unavailable:
                error = ModelNotFoundError(f"No adapter configured for backend {name}", provider="unknown")
                error.backend = name
                failures.append((name, error))
            raise AllBackendsFailedError(failures)

        needed = STRATEGY_SIZES[requested]
        backends = candidates[:needed]
        strategy = requested
        if len(backends) < needed:
            strategy = STRATEGY_FOR_SIZE[len(backends)]
            adjustment = (
                f"{requested.value} strategy needs {needed} backends but only {len(backends)} "
                f"available for {decision.task_type.value}; using {strategy.value}"
            )
            logger.warning(adjustment)
            metadata["strategy_adjustment"] = adjustment

        return _BackendPlan(
            strategy=strategy,
            backends=backends,
            task_type=decision.task_type,
            reasoning=decision.reasoning,
            metadata={"requested_strategy": requested.value, **metadata}
        )

    def orchestrate(self, request: Union[OrchestrationRequest, Dict[str, Any]]) -> OrchestrationResult:
        """
        Run one task end to end.

        Args:
            request: Orchestration request, or a dict with the same fields

        Returns:
            OrchestrationResult: Responses, consensus, primary answer, cost and metadata

        Raises:
            pydantic.ValidationError: If a dict request is malformed
            BudgetExceededError: In hard-stop mode once a budget window is exhausted
            AllBackendsFailedError: If no backend returned a response
            ConfigurationError: If no routing rule covers the task type
            ConsensusError: If reconciling the responses fails; the responses are already tracked
        """
        if not isinstance(request, OrchestrationRequest):
            request = OrchestrationRequest.model_validate(request)

        start_time = time.time()
        settings = self.get_settings()
        self.cost_tracker.ensure_within_budget()

        plan = self._plan(request, settings)
        logger.info(
            f"Orchestrating {plan.task_type.value} task with {plan.strategy.value} strategy "
            f"on {plan.backends}"
        )

        llm_request = LLMRequest(
            prompt=request.prompt,
            system_prompt=request.system_prompt,
            max_tokens=request.max_tokens,
            temperature=DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
            top_p=request.top_p,
            top_k=request.top_k,
            stop_sequences=request.stop_sequences,
            metadata={"task_type": plan.task_type.value, "strategy": plan.strategy.value}
        )

        outcome = self.client.call_many_with_failures(
            plan.backends, llm_request, timeout=settings.fanout_timeout
        )
        if not outcome.responses:
            raise AllBackendsFailedError(outcome.failures, request_id=llm_request.request_id)

        responses = outcome.responses
        _, alerts = self.cost_tracker.track_many_with_alerts(
            responses,
            task_type=plan.task_type.value,
            user_id=request.user_id,
            session_id=request.session_id
        )

        consensus = None
        if len(responses) > 1 and request.require_consensus is not False:
            consensus = self.consensus.build(responses, request.consensus_method)

        primary = responses[0].with_content(consensus.result) if consensus else responses[0]

        models_used = [response.model_name for response in responses]
        if len(plan.backends) > 1:
            routing = f"Multi-model ({', '.join(plan.backends)})"
        else:
            routing = f"Single model ({plan.backends[0]})"

        metadata = {
            "models_used": plan.backends,
            "responding_models": models_used,
            "task_type": plan.task_type.value,
            "routing": routing,
            "routing_reasoning": plan.reasoning,
            "failures": [{"backend": backend, "error": str(error)} for backend, error in outcome.failures],
            "consensus_method": consensus.method.value if consensus else None,
            "alerts": [alert.message for alert in alerts],
            "request_id": llm_request.request_id,
            "role": request.role,
            "user_id": request.user_id,
            "session_id": request.session_id,
            **plan.metadata
        }

        result = OrchestrationResult(
            strategy=plan.strategy,
            responses=responses,
            consensus=consensus,
            primary=primary,
            total_cost=sum(response.total_cost for response in responses),
            total_latency_ms=int((time.time() - start_time) * 1000),
            metadata=metadata
        )

        if request.user_id or request.session_id:
            self._audit(request, result)

        logger.info(
            f"Request {llm_request.request_id} completed: {len(responses)}/{len(plan.backends)} responses, "
            f"${result.total_cost:.4f}, {result.total_latency_ms}ms"
        )
        return result

    def _audit(self, request: OrchestrationRequest, result: OrchestrationResult) -> None:
        entry = {
            "timestamp": result.timestamp.isoformat(),
            "role": request.role,
            "user_id": request.user_id,
            "session_id": request.session_id,
            "prompt": request.prompt,
            "response": result.primary.content,
            "models": list(result.metadata["models_used"]),
            "strategy": result.strategy.value,
            "latency_ms": result.total_latency_ms,
            "tokens_used": sum(response.token_count for response in result.responses),
            "cost": result.total_cost,
            "requires_review": result.requires_review
        }
        if self.audit_sink is None:
            logger.info(
                f"Audit: user={request.user_id} session={request.session_id} models={entry['models']} "
                f"cost=${entry['cost']:.4f}"
            )
            return
        try:
            self.audit_sink(entry)
        except Exception:
            logger.exception(f"Audit sink failed for request {result.metadata.get('request_id')}")

    def orchestrate_with(self, models: List[str], prompt: str, **kwargs) -> OrchestrationResult:
        """Run a task on an explicit backend list"""
        return self.orchestrate(OrchestrationRequest(
            prompt=prompt, models=models, strategy=OrchestrationStrategy.CUSTOM, **kwargs
        ))

    def ask(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None,
            temperature: Optional[float] = None, user_id: Optional[str] = None,
            session_id: Optional[str] = None) -> str:
        """
        Single-backend call returning only the answer text.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            model: Backend to use; routed when omitted
            temperature: Sampling temperature
            user_id: Caller's user id
            session_id: Caller's session id

        Returns:
            str: The answer
        """
        result = self.orchestrate(OrchestrationRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            strategy=OrchestrationStrategy.CUSTOM if model else OrchestrationStrategy.SINGLE,
            models=[model] if model else None,
            temperature=temperature,
            user_id=user_id,
            session_id=session_id
        ))
        return result.primary.content

    def ask_with_consensus(self, prompt: str, system_prompt: Optional[str] = None,
                           strategy: Union[OrchestrationStrategy, str] = OrchestrationStrategy.DUAL,
                           task_type: Optional[Union[TaskType, str]] = None,
                           consensus_method: Optional[str] = None,
                           user_id: Optional[str] = None,
                           session_id: Optional[str] = None) -> OrchestrationResult:
        """Multi-backend call with consensus always on"""
        strategy = OrchestrationStrategy(strategy)
        if strategy not in (OrchestrationStrategy.DUAL, OrchestrationStrategy.TRIPLE):
            raise ConfigurationError(f"ask_with_consensus needs dual or triple strategy, got {strategy.value}")
        return self.orchestrate(OrchestrationRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            strategy=strategy,
            task_type=task_type,
            require_consensus=True,
            consensus_method=consensus_method,
            user_id=user_id,
            session_id=session_id
        ))

    def compare_models(self, prompt: str, system_prompt: Optional[str] = None) -> OrchestrationResult:
        """Run one prompt on every catalog backend and reconcile the answers"""
        return self.orchestrate(OrchestrationRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            models=list(self.client.catalog),
            strategy=OrchestrationStrategy.CUSTOM,
            require_consensus=True
        ))

    def health_check(self) -> Dict[str, Dict[str, Any]]:
        return self.client.health_check_all()

    def get_provider_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.client.get_stats_all()


def settings_from(config: OrchestratorConfig) -> OrchestratorSettings:
    """OrchestratorSettings from the [ORCHESTRATOR] section"""
    return OrchestratorSettings(
        default_strategy=config.default_strategy,
        fanout_timeout=config.orchestrator.get("fanout_timeout")
    )
