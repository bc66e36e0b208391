"""
Tests for INI configuration parsing.
"""

import configparser

import pytest

from core.config import (
    DEFAULT_RETRY_POLICIES, RetryPolicy, config_from_parser, generate_config_documentation, load_config
)
from core.data_models import ConsensusMethod, OrchestrationStrategy, TaskType
from core.exceptions import ConfigurationError
from core.model_catalog import CLAUDE, GEMINI, GPT4


def _parse(text="", env=None):
    parser = configparser.ConfigParser()
    parser.read_string(text)
    return config_from_parser(parser, env=env or {})


class TestDefaults:

    def test_empty_file(self):
        config = _parse()
        assert config.retry_policies == DEFAULT_RETRY_POLICIES
        assert config.routing["prefer_cheap"] is False
        assert config.routing["max_cost_per_request"] == 0.50
        assert config.budget["daily"] == 10.0
        assert config.budget["hard_stop"] is False
        assert "ledger_path" not in config.budget
        assert config.default_strategy == OrchestrationStrategy.SINGLE
        assert config.aws["aws_region"] == "us-east-1"
        assert "openai_api_key" not in config.providers
        assert config.routing_rules == {}

    def test_retry_policy_defaults(self):
        assert RetryPolicy() == RetryPolicy(timeout=30.0, max_retries=3, base_delay=1.0)
        assert DEFAULT_RETRY_POLICIES[GEMINI].base_delay == 0.5


class TestSecrets:

    def test_environment_fallback(self):
        config = _parse(env={"OPENAI_API_KEY": "sk-env", "AWS_REGION": "eu-west-1"})
        assert config.providers["openai_api_key"] == "sk-env"
        assert config.aws["aws_region"] == "eu-west-1"

    def test_file_value_wins(self):
        config = _parse("[PROVIDER_CONFIGS]\nopenai_api_key = sk-file\n", env={"OPENAI_API_KEY": "sk-env"})
        assert config.providers["openai_api_key"] == "sk-file"

    def test_empty_value_falls_back(self):
        config = _parse("[PROVIDER_CONFIGS]\ngoogle_api_key =\n", env={"GOOGLE_AI_API_KEY": "g-env"})
        assert config.providers["google_api_key"] == "g-env"


class TestSections:

    def test_retry_policy_override(self):
        config = _parse("[RETRY_POLICY]\ngpt4_max_retries = 5\ngemini_timeout = 10\n")
        assert config.retry_policies[GPT4].max_retries == 5
        assert config.retry_policies[GPT4].base_delay == 1.0
        assert config.retry_policies[GEMINI].timeout == 10.0
        assert config.retry_policies[CLAUDE] == DEFAULT_RETRY_POLICIES[CLAUDE]

    def test_routing_rules(self):
        config = _parse("[ROUTING_RULES]\ntechnical = gemini-1.5-pro, gpt-4\n")
        assert config.routing_rules == {TaskType.TECHNICAL: [GEMINI, GPT4]}

    def test_consensus_thresholds(self):
        config = _parse("[CONSENSUS:majority-vote]\nmin_agreement = 0.6\nrequire_human_review = yes\n")
        assert config.consensus_thresholds == {
            ConsensusMethod.MAJORITY_VOTE: {"min_agreement": 0.6, "require_human_review": True}
        }

    def test_orchestrator_section(self):
        config = _parse("[ORCHESTRATOR]\ndefault_strategy = dual\nfanout_timeout = 45\n")
        assert config.default_strategy == OrchestrationStrategy.DUAL
        assert config.orchestrator["fanout_timeout"] == 45.0


class TestValidation:

    def test_errors_are_collected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            _parse("[COST_BUDGET]\ndaily = lots\n[ORCHESTRATOR]\ndefault_strategy = quintuple\n")
        message = str(exc_info.value)
        assert "[COST_BUDGET] daily" in message
        assert "[ORCHESTRATOR] default_strategy" in message

    def test_out_of_range(self):
        with pytest.raises(ConfigurationError):
            _parse("[COST_BUDGET]\nalert_threshold = 1.5\n")

    def test_unknown_task_type(self):
        with pytest.raises(ConfigurationError) as exc_info:
            _parse("[ROUTING_RULES]\npoetry = gpt-4\n")
        assert "poetry" in str(exc_info.value)

    def test_bad_boolean(self):
        with pytest.raises(ConfigurationError):
            _parse("[ROUTING_CONFIG]\nprefer_cheap = sometimes\n")


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.ini"))

    def test_reads_file(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[COST_BUDGET]\ndaily = 2.5\n", encoding="utf-8")
        assert load_config(str(path), env={}).budget["daily"] == 2.5

    def test_documentation_lists_sections(self):
        documentation = generate_config_documentation()
        assert "[COST_BUDGET]" in documentation
        assert "$OPENAI_API_KEY" in documentation
        assert "gpt4" in documentation
