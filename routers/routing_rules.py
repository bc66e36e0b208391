"""
Routing tables for the task router.

The keyword table drives classification and the rule table maps each task
type to a primary backend and ordered fallbacks. Both are plain data so they
can be extended or overridden from configuration without touching the
router's control flow.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from core.data_models import TaskType
from core.exceptions import ConfigurationError
from core.model_catalog import BACKEND_CATALOG, BackendInfo, GPT4, CLAUDE, GEMINI


# Indicator terms per task type, matched as substrings of the lower-cased prompt
TASK_TYPE_KEYWORDS: Mapping[TaskType, Tuple[str, ...]] = MappingProxyType({
    TaskType.TECHNICAL: (
        "code", "programming", "debug", "algorithm", "function", "api", "technical",
        "implementation", "architecture", "system design", "database", "performance",
    ),
    TaskType.STRATEGIC: (
        "strategy", "business", "decision", "plan", "approach", "recommendation",
        "positioning", "competitive", "market", "growth", "vision",
    ),
    TaskType.ANALYTICAL: (
        "analyze", "analysis", "data", "calculate", "metrics", "statistics",
        "compare", "evaluate", "measure", "trend", "pattern",
    ),
    TaskType.CREATIVE: (
        "write", "create", "brainstorm", "ideas", "creative", "story",
        "content", "marketing", "copy", "narrative",
    ),
    TaskType.CLASSIFICATION: (
        "classify", "categorize", "label", "tag", "identify", "determine",
        "is this", "which category", "type of",
    ),
    TaskType.SUMMARIZATION: (
        "summarize", "summary", "overview", "brief", "key points", "main ideas",
        "condense", "tldr",
    ),
    TaskType.EXTRACTION: (
        "extract", "parse", "find", "list", "identify", "get", "retrieve",
        "pull out", "structured data",
    ),
    TaskType.MIXED: (),
})


@dataclass(frozen=True)
class RoutingRule:
    """Primary backend and ordered fallbacks for one task type"""
    task_type: TaskType
    primary: str
    fallback: Tuple[str, ...]
    reasoning: str
    requires_speed: bool = False
    requires_accuracy: bool = False

    @property
    def backends(self) -> List[str]:
        return [self.primary] + list(self.fallback)


DEFAULT_ROUTING_RULES: Mapping[TaskType, RoutingRule] = MappingProxyType({
    TaskType.TECHNICAL: RoutingRule(
        TaskType.TECHNICAL, GPT4, (CLAUDE, GEMINI),
        "GPT-4 excels at technical analysis, code, and complex reasoning",
    ),
    TaskType.STRATEGIC: RoutingRule(
        TaskType.STRATEGIC, CLAUDE, (GPT4, GEMINI),
        "Claude best for strategic thinking, nuanced understanding",
    ),
    TaskType.ANALYTICAL: RoutingRule(
        TaskType.ANALYTICAL, GEMINI, (GPT4, CLAUDE),
        "Gemini best for data analysis, math, large context",
    ),
    TaskType.CREATIVE: RoutingRule(
        TaskType.CREATIVE, CLAUDE, (GPT4, GEMINI),
        "Claude produces best creative writing and brainstorming",
    ),
    TaskType.CLASSIFICATION: RoutingRule(
        TaskType.CLASSIFICATION, GEMINI, (GPT4, CLAUDE),
        "Gemini is fastest and cheapest for classification tasks",
        requires_speed=True,
    ),
    TaskType.SUMMARIZATION: RoutingRule(
        TaskType.SUMMARIZATION, GEMINI, (CLAUDE, GPT4),
        "Gemini handles massive context (1M tokens) for long documents",
    ),
    TaskType.EXTRACTION: RoutingRule(
        TaskType.EXTRACTION, GPT4, (GEMINI, CLAUDE),
        "GPT-4 best at structured data extraction with high accuracy",
        requires_accuracy=True,
    ),
    TaskType.MIXED: RoutingRule(
        TaskType.MIXED, GPT4, (CLAUDE, GEMINI),
        "GPT-4 most balanced for multi-faceted tasks",
    ),
})


@dataclass(frozen=True)
class RouterConfig:
    """Routing table plus cost and speed preferences"""
    rules: Mapping[TaskType, RoutingRule] = field(default_factory=lambda: dict(DEFAULT_ROUTING_RULES))
    prefer_cheap: bool = False
    prefer_fast: bool = False
    allow_fallback: bool = True
    max_cost_per_request: float = 0.50


def validate_rules(rules: Mapping[TaskType, RoutingRule],
                   catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> None:
    """
    Check a rule table before it is installed.

    Raises:
        ConfigurationError: If a rule names an unknown backend, repeats a backend,
            or is filed under a different task type than it declares
    """
    errors = []
    for task_type, rule in rules.items():
        if rule.task_type != task_type:
            errors.append(f"Rule for {task_type.value} declares task type {rule.task_type.value}")
        backends = rule.backends
        unknown = [name for name in backends if name not in catalog]
        if unknown:
            errors.append(f"Rule for {task_type.value} names unknown backend(s): {unknown}")
        if len(set(backends)) != len(backends):
            errors.append(f"Rule for {task_type.value} repeats a backend: {backends}")
    if errors:
        raise ConfigurationError("Invalid routing rules:\n" + "\n".join(f"  - {error}" for error in errors))


def rules_with_overrides(overrides: Optional[Mapping[TaskType, List[str]]],
                         base: Mapping[TaskType, RoutingRule] = DEFAULT_ROUTING_RULES) -> Dict[TaskType, RoutingRule]:
    """
    Apply ``task = primary, fallback, ...`` overrides from configuration.

    Overridden rules keep the default's reasoning text and conditions.
    """
    rules = dict(base)
    for task_type, backends in (overrides or {}).items():
        current = rules.get(task_type)
        if current is None:
            rules[task_type] = RoutingRule(
                task_type, backends[0], tuple(backends[1:]), f"Configured route for {task_type.value} tasks"
            )
        else:
            rules[task_type] = replace(current, primary=backends[0], fallback=tuple(backends[1:]))
    return rules
