"""
Routers Package.

This package contains the task router: keyword classification, the
task-type routing table and backend selection under cost and speed
preferences.
"""

from .routing_rules import (
    TASK_TYPE_KEYWORDS,
    DEFAULT_ROUTING_RULES,
    RoutingRule,
    RouterConfig,
    validate_rules,
    rules_with_overrides
)
from .task_router import TaskRouter, router_config_from

__all__ = [
    "TASK_TYPE_KEYWORDS",
    "DEFAULT_ROUTING_RULES",
    "RoutingRule",
    "RouterConfig",
    "validate_rules",
    "rules_with_overrides",
    "TaskRouter",
    "router_config_from"
]
