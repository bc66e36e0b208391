"""
Configuration loading for the orchestration system.

Configuration lives in an INI file (``config.ini``) read with configparser.
Every section is parsed against a schema that declares type, default,
validation and, for secrets, the environment variable used when the file
leaves the value empty. Secrets are never given defaults.
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .data_models import ConsensusMethod, OrchestrationStrategy, TaskType
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Per-backend timeout and retry settings"""
    timeout: float = 30.0
    max_retries: int = 3
    base_delay: float = 1.0


# Keys used in [RETRY_POLICY] for each backend
BACKEND_CONFIG_KEYS = {
    "gpt-4": "gpt4",
    "claude-3.5-sonnet": "claude",
    "gemini-1.5-pro": "gemini",
}

DEFAULT_RETRY_POLICIES: Dict[str, RetryPolicy] = {
    "gpt-4": RetryPolicy(timeout=30.0, max_retries=3, base_delay=1.0),
    "claude-3.5-sonnet": RetryPolicy(timeout=30.0, max_retries=3, base_delay=1.0),
    "gemini-1.5-pro": RetryPolicy(timeout=20.0, max_retries=3, base_delay=0.5),
}


def _non_empty(value) -> bool:
    return bool(value and str(value).strip())


def _probability(value) -> bool:
    return 0.0 <= float(value) <= 1.0


def _non_negative(value) -> bool:
    return float(value) >= 0.0


# Configuration schema for automatic parsing and validation
CONFIG_SCHEMA: Dict[str, Dict[str, Dict[str, Any]]] = {
    "PROVIDER_CONFIGS": {
        "openai_api_key": {
            "type": str,
            "env": "OPENAI_API_KEY",
            "description": "OpenAI or Azure OpenAI API key",
        },
        "openai_model": {
            "type": str,
            "default": "gpt-4-turbo-preview",
            "description": "OpenAI model name (or Azure deployment name)",
        },
        "azure_openai_endpoint": {
            "type": str,
            "description": "Azure OpenAI endpoint; leave empty for api.openai.com",
            "validation": lambda x: x.startswith("https://"),
        },
        "azure_openai_api_version": {
            "type": str,
            "default": "2024-02-01",
            "description": "Azure OpenAI API version",
        },
        "google_api_key": {
            "type": str,
            "env": "GOOGLE_AI_API_KEY",
            "description": "Google AI Studio API key",
        },
        "gemini_model": {
            "type": str,
            "default": "gemini-1.5-pro",
            "description": "Gemini model name",
        },
        "gemini_base_url": {
            "type": str,
            "default": "https://generativelanguage.googleapis.com/v1beta",
            "description": "Gemini REST base URL",
            "validation": lambda x: x.startswith("https://"),
        },
        "claude_model_id": {
            "type": str,
            "default": "anthropic.claude-3-5-sonnet-20241022-v2:0",
            "description": "Bedrock model id for Claude",
        },
    },
    "AWS_BEDROCK": {
        "aws_access_key_id": {
            "type": str,
            "env": "AWS_ACCESS_KEY_ID",
            "description": "AWS access key id",
        },
        "aws_secret_access_key": {
            "type": str,
            "env": "AWS_SECRET_ACCESS_KEY",
            "description": "AWS secret access key",
        },
        "aws_region": {
            "type": str,
            "env": "AWS_REGION",
            "default": "us-east-1",
            "description": "AWS region hosting Bedrock",
        },
    },
    "RETRY_POLICY": {
        "{backend_key}_timeout": {
            "type": float,
            "default": "policy.timeout",
            "description": "Per-attempt timeout in seconds",
            "validation": lambda x: 1 <= x <= 300,
        },
        "{backend_key}_max_retries": {
            "type": int,
            "default": "policy.max_retries",
            "description": "Retries after the first attempt",
            "validation": lambda x: 0 <= x <= 10,
        },
        "{backend_key}_base_delay": {
            "type": float,
            "default": "policy.base_delay",
            "description": "Base backoff delay in seconds",
            "validation": _non_negative,
        },
    },
    "ROUTING_CONFIG": {
        "prefer_cheap": {"type": bool, "default": False, "description": "Route simple tasks to the cheapest backend"},
        "prefer_fast": {"type": bool, "default": False, "description": "Promote fast backends"},
        "allow_fallback": {"type": bool, "default": True, "description": "Allow fallback backends"},
        "max_cost_per_request": {
            "type": float,
            "default": 0.50,
            "description": "Estimated cost ceiling per request (USD)",
            "validation": _non_negative,
        },
    },
    "CONSENSUS": {
        "embedder": {
            "type": str,
            "default": "auto",
            "description": "Embedder for semantic similarity: auto, openai, sentence_transformers, token_overlap",
            "validation": lambda x: x in ("auto", "openai", "sentence_transformers", "token_overlap"),
        },
        "embedding_model": {
            "type": str,
            "description": "Embedding model name; each embedder has its own default",
        },
    },
    "CONSENSUS:{method}": {
        "min_agreement": {"type": float, "description": "Minimum agreement", "validation": _probability},
        "confidence_threshold": {"type": float, "description": "Minimum confidence", "validation": _probability},
        "require_human_review": {"type": bool, "description": "Always flag results for review"},
    },
    "COST_BUDGET": {
        "daily": {"type": float, "default": 10.0, "description": "Daily budget (USD)", "validation": _non_negative},
        "weekly": {"type": float, "default": 50.0, "description": "Rolling 7-day budget (USD)", "validation": _non_negative},
        "monthly": {"type": float, "default": 200.0, "description": "Rolling 30-day budget (USD)", "validation": _non_negative},
        "per_request": {"type": float, "default": 0.50, "description": "Per-request limit (USD)", "validation": _non_negative},
        "alert_threshold": {"type": float, "default": 0.8, "description": "Fraction of a limit that raises an alert", "validation": _probability},
        "hard_stop": {"type": bool, "default": False, "description": "Refuse new calls once a window limit is reached"},
        "ledger_path": {"type": str, "description": "Append-only JSONL ledger file; in-memory when empty"},
    },
    "ORCHESTRATOR": {
        "default_strategy": {
            "type": str,
            "default": "single",
            "description": "Strategy used when a request does not name one",
            "validation": lambda x: x in ("single", "dual", "triple"),
        },
        "fanout_timeout": {
            "type": float,
            "description": "Seconds to wait for a fan-out before reporting stragglers as timeouts",
            "validation": lambda x: x > 0,
        },
    },
}


@dataclass(frozen=True)
class OrchestratorConfig:
    """Parsed, validated configuration for one orchestrator instance"""
    providers: Dict[str, Any] = field(default_factory=dict)
    aws: Dict[str, Any] = field(default_factory=dict)
    retry_policies: Dict[str, RetryPolicy] = field(default_factory=lambda: dict(DEFAULT_RETRY_POLICIES))
    routing: Dict[str, Any] = field(default_factory=dict)
    routing_rules: Dict[TaskType, List[str]] = field(default_factory=dict)
    consensus: Dict[str, Any] = field(default_factory=dict)
    consensus_thresholds: Dict[ConsensusMethod, Dict[str, Any]] = field(default_factory=dict)
    budget: Dict[str, Any] = field(default_factory=dict)
    orchestrator: Dict[str, Any] = field(default_factory=dict)

    @property
    def default_strategy(self) -> OrchestrationStrategy:
        return OrchestrationStrategy(self.orchestrator.get("default_strategy", "single"))


def _convert(raw_value: Any, value_type: type) -> Any:
    if value_type is bool:
        if isinstance(raw_value, bool):
            return raw_value
        lowered = str(raw_value).strip().lower()
        if lowered not in configparser.ConfigParser.BOOLEAN_STATES:
            raise ValueError(f"not a boolean: {raw_value}")
        return configparser.ConfigParser.BOOLEAN_STATES[lowered]
    if value_type is int:
        return int(raw_value)
    if value_type is float:
        return float(raw_value)
    return str(raw_value).strip()


def _parse_section(
    section: Optional[Mapping[str, str]],
    schema: Dict[str, Dict[str, Any]],
    section_name: str,
    errors: List[str],
    env: Mapping[str, str],
    placeholders: Optional[Dict[str, str]] = None,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Parse one section against its schema, collecting errors instead of raising"""
    placeholders = placeholders or {}
    defaults = defaults or {}
    parsed = {}

    for field_template, field_schema in schema.items():
        field_name = field_template
        for placeholder, value in placeholders.items():
            field_name = field_name.replace(f"{{{placeholder}}}", value)

        raw_value = section.get(field_name) if section is not None else None
        if not _non_empty(raw_value) and field_schema.get("env"):
            raw_value = env.get(field_schema["env"])

        if not _non_empty(raw_value):
            default_val = field_schema.get("default")
            if isinstance(default_val, str) and default_val in defaults:
                default_val = defaults[default_val]
            if default_val is None:
                continue
            raw_value = default_val

        try:
            value = _convert(raw_value, field_schema["type"])
        except (ValueError, TypeError):
            errors.append(f"Invalid {field_schema['type'].__name__} value for [{section_name}] {field_name}: {raw_value}")
            continue

        validation = field_schema.get("validation")
        if validation is not None and not validation(value):
            errors.append(f"Invalid value for [{section_name}] {field_name}: {raw_value}")
            continue

        parsed[field_name] = value

    return parsed


def _parse_routing_rules(section: Optional[Mapping[str, str]], errors: List[str]) -> Dict[TaskType, List[str]]:
    rules = {}
    if section is None:
        return rules
    for key, raw_value in section.items():
        try:
            task_type = TaskType(key.strip().lower())
        except ValueError:
            errors.append(f"Unknown task type in [ROUTING_RULES]: {key}")
            continue
        backends = [name.strip() for name in raw_value.split(",") if name.strip()]
        if not backends:
            errors.append(f"Empty routing rule for {key}")
            continue
        rules[task_type] = backends
    return rules


def config_from_parser(parser: configparser.ConfigParser, env: Optional[Mapping[str, str]] = None) -> OrchestratorConfig:
    """
    Build an OrchestratorConfig from an already-read ConfigParser.

    Args:
        parser: Parser holding the INI content
        env: Environment used for secret fallbacks (defaults to os.environ)

    Returns:
        OrchestratorConfig: Parsed configuration

    Raises:
        ConfigurationError: If any section fails validation; all errors are reported together
    """
    env = os.environ if env is None else env
    errors: List[str] = []

    def section(name: str):
        return parser[name] if parser.has_section(name) else None

    providers = _parse_section(section("PROVIDER_CONFIGS"), CONFIG_SCHEMA["PROVIDER_CONFIGS"],
                               "PROVIDER_CONFIGS", errors, env)
    aws = _parse_section(section("AWS_BEDROCK"), CONFIG_SCHEMA["AWS_BEDROCK"], "AWS_BEDROCK", errors, env)

    retry_policies = {}
    for backend, backend_key in BACKEND_CONFIG_KEYS.items():
        default_policy = DEFAULT_RETRY_POLICIES[backend]
        values = _parse_section(
            section("RETRY_POLICY"), CONFIG_SCHEMA["RETRY_POLICY"], "RETRY_POLICY", errors, env,
            placeholders={"backend_key": backend_key},
            defaults={
                "policy.timeout": default_policy.timeout,
                "policy.max_retries": default_policy.max_retries,
                "policy.base_delay": default_policy.base_delay,
            },
        )
        retry_policies[backend] = RetryPolicy(
            timeout=values.get(f"{backend_key}_timeout", default_policy.timeout),
            max_retries=values.get(f"{backend_key}_max_retries", default_policy.max_retries),
            base_delay=values.get(f"{backend_key}_base_delay", default_policy.base_delay),
        )

    routing = _parse_section(section("ROUTING_CONFIG"), CONFIG_SCHEMA["ROUTING_CONFIG"], "ROUTING_CONFIG", errors, env)
    routing_rules = _parse_routing_rules(section("ROUTING_RULES"), errors)
    consensus = _parse_section(section("CONSENSUS"), CONFIG_SCHEMA["CONSENSUS"], "CONSENSUS", errors, env)

    consensus_thresholds = {}
    for method in ConsensusMethod:
        section_name = f"CONSENSUS:{method.value}"
        if not parser.has_section(section_name):
            continue
        values = _parse_section(parser[section_name], CONFIG_SCHEMA["CONSENSUS:{method}"], section_name, errors, env)
        if values:
            consensus_thresholds[method] = values

    budget = _parse_section(section("COST_BUDGET"), CONFIG_SCHEMA["COST_BUDGET"], "COST_BUDGET", errors, env)
    orchestrator = _parse_section(section("ORCHESTRATOR"), CONFIG_SCHEMA["ORCHESTRATOR"], "ORCHESTRATOR", errors, env)

    if errors:
        raise ConfigurationError("Configuration errors:\n" + "\n".join(f"  - {error}" for error in errors))

    return OrchestratorConfig(
        providers=providers,
        aws=aws,
        retry_policies=retry_policies,
        routing=routing,
        routing_rules=routing_rules,
        consensus=consensus,
        consensus_thresholds=consensus_thresholds,
        budget=budget,
        orchestrator=orchestrator,
    )


def load_config(config_file: str = "config.ini", env: Optional[Mapping[str, str]] = None) -> OrchestratorConfig:
    """Load configuration from an INI file.

    Args:
        config_file: Path to configuration file
        env: Environment used for secret fallbacks

    Returns:
        OrchestratorConfig: Parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file fails validation
    """
    config_path = Path(config_file)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    config = config_from_parser(parser, env)
    logger.info(f"Configuration loaded from {config_path}")
    return config


def generate_config_documentation() -> str:
    """Generate INI documentation from the schema"""
    doc_lines = ["# Multi-model orchestrator configuration", ""]
    for section_name, schema in CONFIG_SCHEMA.items():
        if section_name == "RETRY_POLICY":
            doc_lines.append(f"# backend keys: {', '.join(BACKEND_CONFIG_KEYS.values())}")
        if section_name == "CONSENSUS:{method}":
            doc_lines.append(f"# one section per method: {', '.join(m.value for m in ConsensusMethod)}")
        doc_lines.append(f"[{section_name}]")
        for field_name, field_schema in schema.items():
            doc_lines.append(f"# {field_schema['description']}")
            if field_schema.get("env"):
                doc_lines.append(f"# Falls back to ${field_schema['env']} when empty")
            default_val = field_schema.get("default")
            default_text = "" if default_val is None else str(default_val)
            doc_lines.append(f"{field_name} = {default_text}")
        doc_lines.append("")
    return "\n".join(doc_lines)
