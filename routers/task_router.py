"""
Task Router.

Classifies a prompt into a task type, estimates its size and picks the
backend(s) that should answer it given cost and speed preferences.
"""

import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Union

from core.config import OrchestratorConfig
from core.data_models import (
    TaskType, Speed, Complexity, TaskClassification, TaskCharacteristics, TaskAnalysis, RoutingDecision
)
from core.exceptions import ConfigurationError
from core.model_catalog import BACKEND_CATALOG, BackendInfo, GPT4, cheapest_backend, estimate_tokens
from .routing_rules import TASK_TYPE_KEYWORDS, RouterConfig, validate_rules, rules_with_overrides

logger = logging.getLogger(__name__)

SIMPLE_PROMPT_LENGTH = 100
COMPLEX_PROMPT_LENGTH = 500
SHORT_QUESTION_LENGTH = 100

BASE_LATENCY_MS = {
    Speed.FAST: 1000,
    Speed.MEDIUM: 2000,
    Speed.SLOW: 3000,
}


def score_keywords(prompt: str, keywords: Mapping[TaskType, tuple] = TASK_TYPE_KEYWORDS) -> Dict[TaskType, List[str]]:
    """Matched indicator terms per task type"""
    lower_prompt = prompt.lower()
    return {
        task_type: [keyword for keyword in terms if keyword.lower() in lower_prompt]
        for task_type, terms in keywords.items()
    }


def structural_task_type(prompt: str):
    """Fallback classification from the prompt's shape"""
    lower_prompt = prompt.lower().strip()
    if "?" in lower_prompt and len(prompt) < SHORT_QUESTION_LENGTH:
        return TaskType.CLASSIFICATION, "short question"
    if lower_prompt.startswith("write") or lower_prompt.startswith("create"):
        return TaskType.CREATIVE, "imperative verb"
    return TaskType.MIXED, "no clear indicators"


class TaskRouter:
    """
    Routes prompts to backends.

    Classification is a pure keyword scan over ``TASK_TYPE_KEYWORDS``. The
    router configuration is immutable and swapped atomically on update, so
    concurrent ``route`` calls always see one consistent rule table.
    """

    def __init__(self, config: Optional[RouterConfig] = None,
                 catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG,
                 keywords: Mapping[TaskType, tuple] = TASK_TYPE_KEYWORDS):
        self.catalog = catalog
        self.keywords = keywords
        config = config or RouterConfig()
        validate_rules(config.rules, catalog)
        self._config = config
        self._config_lock = threading.Lock()
        logger.info(
            f"Task router initialized: {len(config.rules)} rules, "
            f"prefer_cheap={config.prefer_cheap}, prefer_fast={config.prefer_fast}"
        )

    @classmethod
    def from_config(cls, config: OrchestratorConfig,
                    catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> "TaskRouter":
        """Build a router from the [ROUTING_CONFIG] and [ROUTING_RULES] sections"""
        return cls(router_config_from(config), catalog=catalog)

    def get_config(self) -> RouterConfig:
        return self._config

    def update_config(self, **changes: Any) -> RouterConfig:
        """
        Replace router settings.

        Args:
            **changes: RouterConfig fields to change

        Returns:
            RouterConfig: The installed configuration

        Raises:
            ConfigurationError: If the new rule table is invalid
        """
        with self._config_lock:
            try:
                new_config = replace(self._config, **changes)
            except TypeError as e:
                raise ConfigurationError(f"Invalid router setting: {e}") from e
            validate_rules(new_config.rules, self.catalog)
            self._config = new_config
        logger.info(f"Router configuration updated: {sorted(changes)}")
        return new_config

    def classify(self, prompt: str) -> TaskClassification:
        """
        Classify a prompt by keyword score.

        A unique top score wins. Ties and prompts with no matches fall back to
        structural heuristics.

        Args:
            prompt: User prompt

        Returns:
            TaskClassification: Task type, confidence and matched indicators
        """
        matches = score_keywords(prompt, self.keywords)
        max_score = max((len(terms) for terms in matches.values()), default=0)
        leaders = [task_type for task_type, terms in matches.items() if terms and len(terms) == max_score]

        if len(leaders) == 1:
            task_type = leaders[0]
            indicators = list(matches[task_type])
        else:
            task_type, structural = structural_task_type(prompt)
            if leaders:
                indicators = []
                for leader in leaders:
                    indicators.extend(term for term in matches[leader] if term not in indicators)
                logger.debug(f"Tie between {[t.value for t in leaders]}; structural fallback chose {task_type.value}")
            else:
                indicators = [structural]

        confidence = min(max_score / 5, 1.0) if max_score > 0 else 0.3

        return TaskClassification(
            task_type=task_type,
            confidence=confidence,
            reasoning=f"Classified as {task_type.value} based on {len(indicators)} indicators",
            indicators=indicators
        )

    def analyze(self, prompt: str, system_prompt: Optional[str] = None) -> TaskAnalysis:
        """
        Classify a prompt and estimate its complexity and token counts.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt, counted towards input tokens

        Returns:
            TaskAnalysis: Classification, characteristics and token estimates
        """
        classification = self.classify(prompt)
        task_type = classification.task_type

        if len(prompt) < SIMPLE_PROMPT_LENGTH:
            complexity = Complexity.SIMPLE
        elif len(prompt) > COMPLEX_PROMPT_LENGTH:
            complexity = Complexity.COMPLEX
        else:
            complexity = Complexity.MEDIUM

        characteristics = TaskCharacteristics(
            length=len(prompt),
            complexity=complexity,
            domain=list(classification.indicators),
            requires_reasoning=task_type in (TaskType.TECHNICAL, TaskType.ANALYTICAL),
            requires_creativity=task_type in (TaskType.CREATIVE, TaskType.STRATEGIC),
            requires_data=task_type in (TaskType.ANALYTICAL, TaskType.EXTRACTION)
        )

        full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        input_tokens = estimate_tokens(full_prompt)

        if task_type == TaskType.SUMMARIZATION:
            output_tokens = min(input_tokens / 4, 1000)
        elif task_type == TaskType.CLASSIFICATION:
            output_tokens = 100
        elif complexity == Complexity.COMPLEX:
            output_tokens = 1500
        else:
            output_tokens = 500

        return TaskAnalysis(
            prompt=prompt,
            classification=classification,
            characteristics=characteristics,
            estimated_input_tokens=input_tokens,
            estimated_output_tokens=output_tokens
        )

    def _estimate_cost(self, backend: str, analysis: TaskAnalysis) -> float:
        return self.catalog[backend].cost(analysis.estimated_input_tokens, analysis.estimated_output_tokens)

    def _estimate_latency(self, backend: str, analysis: TaskAnalysis) -> int:
        base = BASE_LATENCY_MS.get(self.catalog[backend].speed, BASE_LATENCY_MS[Speed.MEDIUM])
        return int(round(base + analysis.estimated_output_tokens))

    def route(self, prompt: str, system_prompt: Optional[str] = None, prefer_cheap: Optional[bool] = None,
              prefer_fast: Optional[bool] = None,
              task_type: Optional[Union[TaskType, str]] = None) -> RoutingDecision:
        """
        Pick a primary backend and ordered fallbacks for a prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            prefer_cheap: Override the configured cheap preference
            prefer_fast: Override the configured fast preference
            task_type: Override automatic classification

        Returns:
            RoutingDecision: Chosen backends with cost and latency estimates

        Raises:
            ConfigurationError: If no rule exists for the task type
        """
        config = self.get_config()
        analysis = self.analyze(prompt, system_prompt)
        task_type = TaskType(task_type) if task_type else analysis.classification.task_type
        complexity = analysis.characteristics.complexity

        rule = config.rules.get(task_type)
        if rule is None:
            raise ConfigurationError(f"No routing rule found for task type: {task_type.value}")

        primary = rule.primary
        fallback = list(rule.fallback)
        notes = []

        prefer_cheap = config.prefer_cheap if prefer_cheap is None else prefer_cheap
        prefer_fast = config.prefer_fast if prefer_fast is None else prefer_fast

        if prefer_cheap and complexity == Complexity.SIMPLE:
            cheapest = cheapest_backend(list(self.catalog), self.catalog)
            if cheapest != primary:
                fallback = [primary] + [name for name in fallback if name not in (primary, cheapest)]
                primary = cheapest
                notes.append(f"simple task rerouted to cheapest backend {cheapest}")

        if prefer_fast and self.catalog[primary].speed != Speed.FAST:
            fast_backend = next((name for name in fallback if self.catalog[name].speed == Speed.FAST), None)
            if fast_backend:
                fallback = [primary] + [name for name in fallback if name != fast_backend]
                primary = fast_backend
                notes.append(f"promoted fast backend {fast_backend}")

        estimated_cost = self._estimate_cost(primary, analysis)

        if estimated_cost > config.max_cost_per_request:
            logger.warning(
                f"Estimated cost ${estimated_cost:.4f} exceeds max ${config.max_cost_per_request}"
            )
            candidates = [primary] + fallback
            fitting = [
                name for name in candidates
                if self._estimate_cost(name, analysis) <= config.max_cost_per_request
            ]
            if fitting:
                cheaper = min(fitting, key=lambda name: self._estimate_cost(name, analysis))
                if cheaper != primary:
                    logger.info(f"Switching to cheaper model: {cheaper}")
                    fallback = [primary] + [name for name in fallback if name != cheaper]
                    primary = cheaper
                    estimated_cost = self._estimate_cost(primary, analysis)
                    notes.append(f"switched to {cheaper} to stay under ${config.max_cost_per_request}")
            else:
                notes.append(f"no backend fits the ${config.max_cost_per_request} ceiling; keeping {primary}")

        if not config.allow_fallback:
            fallback = []

        reasoning = f"{rule.reasoning}. Task type: {task_type.value}, complexity: {complexity.value}"
        if notes:
            reasoning += "; " + "; ".join(notes)

        decision = RoutingDecision(
            primary=primary,
            fallback=fallback,
            reasoning=reasoning,
            estimated_cost=estimated_cost,
            estimated_latency=self._estimate_latency(primary, analysis),
            confidence=analysis.classification.confidence,
            task_type=task_type
        )
        logger.debug(f"Routed {task_type.value} task to {primary} (fallback: {fallback})")
        return decision

    def get_best_model(self, task_type: Union[TaskType, str]) -> str:
        rule = self.get_config().rules.get(TaskType(task_type))
        return rule.primary if rule else GPT4

    def get_suitable_models(self, task_type: Union[TaskType, str]) -> List[str]:
        """All backends for a task type, in order of preference"""
        rule = self.get_config().rules.get(TaskType(task_type))
        return rule.backends if rule else list(self.catalog)

    def compare_models(self, prompt: str, backends: List[str],
                       system_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Estimate cost, latency and suitability of several backends for one prompt.

        Args:
            prompt: User prompt
            backends: Backends to compare
            system_prompt: Optional system prompt

        Returns:
            List of dicts sorted by descending suitability
        """
        analysis = self.analyze(prompt, system_prompt)
        task_type = analysis.classification.task_type
        indicators = analysis.classification.indicators

        comparison = []
        for name in backends:
            info = self.catalog[name]
            if task_type in info.recommended_for:
                suitability = 0.9
            elif any(strength.lower() in indicators for strength in info.strengths):
                suitability = 0.7
            else:
                suitability = 0.5
            comparison.append({
                "model": name,
                "estimated_cost": self._estimate_cost(name, analysis),
                "estimated_latency": self._estimate_latency(name, analysis),
                "suitability": suitability
            })

        return sorted(comparison, key=lambda item: item["suitability"], reverse=True)


def router_config_from(config: OrchestratorConfig) -> RouterConfig:
    """RouterConfig from parsed configuration, with rule overrides applied"""
    routing = config.routing
    defaults = RouterConfig()
    return RouterConfig(
        rules=rules_with_overrides(config.routing_rules),
        prefer_cheap=routing.get("prefer_cheap", defaults.prefer_cheap),
        prefer_fast=routing.get("prefer_fast", defaults.prefer_fast),
        allow_fallback=routing.get("allow_fallback", defaults.allow_fallback),
        max_cost_per_request=routing.get("max_cost_per_request", defaults.max_cost_per_request)
    )
