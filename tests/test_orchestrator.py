"""
End-to-end orchestration tests over scripted backends.
"""

import configparser

import pytest
from pydantic import ValidationError

from core.config import config_from_parser
from core.data_models import ConsensusMethod, OrchestrationStrategy
from core.exceptions import AllBackendsFailedError, BudgetExceededError, ConfigurationError, ConsensusError
from core.model_catalog import CLAUDE, GEMINI, GPT4
from consensus import AbstractEmbedder
from cost_tracking import CostBudget
from llm_providers import AuthenticationError
from orchestrator import OrchestrationRequest, Orchestrator, OrchestratorSettings


class UnreachableEmbedder(AbstractEmbedder):
    """Embedder whose endpoint is down"""

    def __init__(self):
        super().__init__("unreachable")

    def embed(self, texts):
        raise ConnectionError("embedding endpoint down")

    def get_implementation_info(self):
        return {"name": "Unreachable", "type": "unreachable"}


class TestStrategies:

    def test_ask_returns_text(self, build_orchestrator):
        orchestrator = build_orchestrator({GPT4: ["The bug is on line 3"]})
        assert orchestrator.ask("Debug this code") == "The bug is on line 3"

    def test_ask_with_explicit_model(self, build_orchestrator):
        orchestrator = build_orchestrator()
        assert orchestrator.ask("Debug this code", model=GEMINI) == f"Answer from {GEMINI}"

    def test_single(self, build_orchestrator):
        result = build_orchestrator().orchestrate(OrchestrationRequest(prompt="Debug this code"))
        assert result.strategy == OrchestrationStrategy.SINGLE
        assert [response.model_name for response in result.responses] == [GPT4]
        assert result.consensus is None
        assert result.metadata["routing"] == f"Single model ({GPT4})"
        assert result.metadata["task_type"] == "technical"
        assert result.total_cost == pytest.approx(0.0025)

    def test_dual_reaches_consensus(self, build_orchestrator):
        orchestrator = build_orchestrator({GPT4: ["42"], CLAUDE: ["42"]})
        result = orchestrator.orchestrate(OrchestrationRequest(prompt="Debug this code", strategy="dual"))
        assert result.strategy == OrchestrationStrategy.DUAL
        assert result.metadata["models_used"] == [GPT4, CLAUDE]
        assert result.metadata["routing"] == f"Multi-model ({GPT4}, {CLAUDE})"
        assert result.consensus.method == ConsensusMethod.MAJORITY_VOTE
        assert result.primary.content == "42"
        assert result.requires_review is False
        assert result.total_cost == pytest.approx(0.0025 + 0.0003 + 0.00075)

    def test_consensus_can_be_skipped(self, build_orchestrator):
        result = build_orchestrator().orchestrate(
            OrchestrationRequest(prompt="Debug this code", strategy="triple", require_consensus=False)
        )
        assert len(result.responses) == 3
        assert result.consensus is None
        assert result.primary.model_name == GPT4
        assert result.metadata["consensus_method"] is None

    def test_explicit_models_are_custom(self, build_orchestrator):
        orchestrator = build_orchestrator()
        result = orchestrator.orchestrate_with([GEMINI, CLAUDE], "Debug this code")
        assert result.strategy == OrchestrationStrategy.CUSTOM
        assert result.metadata["models_used"] == [GEMINI, CLAUDE]
        assert result.consensus is not None

    def test_explicit_models_override_strategy(self, build_orchestrator):
        result = build_orchestrator().orchestrate(
            OrchestrationRequest(prompt="Debug this code", strategy="triple", models=[CLAUDE])
        )
        assert result.strategy == OrchestrationStrategy.CUSTOM
        assert [response.model_name for response in result.responses] == [CLAUDE]

    def test_default_strategy_from_settings(self, build_orchestrator):
        orchestrator = build_orchestrator(
            settings=OrchestratorSettings(default_strategy=OrchestrationStrategy.DUAL)
        )
        result = orchestrator.orchestrate({"prompt": "Debug this code"})
        assert result.strategy == OrchestrationStrategy.DUAL
        assert len(result.responses) == 2

    def test_request_temperature_default(self, build_orchestrator):
        orchestrator = build_orchestrator()
        orchestrator.ask("Debug this code")
        provider = orchestrator.client.providers[GPT4]
        assert provider.calls[0].temperature == 0.7

    def test_sampling_parameters_reach_backend(self, build_orchestrator):
        orchestrator = build_orchestrator()
        orchestrator.orchestrate({
            "prompt": "Debug this code", "stop_sequences": ["END"], "top_k": 5, "top_p": 0.9, "max_tokens": 64
        })
        sent = orchestrator.client.providers[GPT4].calls[0]
        assert sent.stop_sequences == ["END"]
        assert sent.top_k == 5
        assert sent.top_p == 0.9
        assert sent.max_tokens == 64


class TestDegradedRouting:

    def test_triple_capped_to_available_backends(self, build_orchestrator):
        orchestrator = build_orchestrator(backends=(GPT4, GEMINI))
        result = orchestrator.orchestrate(OrchestrationRequest(prompt="Debug this code", strategy="triple"))
        assert result.strategy == OrchestrationStrategy.DUAL
        assert result.metadata["models_used"] == [GPT4, GEMINI]
        assert result.metadata["unavailable_backends"] == [CLAUDE]
        assert result.metadata["requested_strategy"] == "triple"
        assert "triple" in result.metadata["strategy_adjustment"]

    def test_no_routed_backend_available(self, build_orchestrator):
        orchestrator = build_orchestrator(backends=())
        with pytest.raises(AllBackendsFailedError) as exc_info:
            orchestrator.ask("Debug this code")
        assert exc_info.value.backends == [GPT4, CLAUDE, GEMINI]

    def test_partial_failure_keeps_survivors(self, build_orchestrator):
        orchestrator = build_orchestrator({CLAUDE: [AuthenticationError("denied", "anthropic")]})
        result = orchestrator.orchestrate(OrchestrationRequest(prompt="Debug this code", strategy="dual"))
        assert [response.model_name for response in result.responses] == [GPT4]
        assert result.metadata["responding_models"] == [GPT4]
        assert [failure["backend"] for failure in result.metadata["failures"]] == [CLAUDE]
        assert result.consensus is None

    def test_every_backend_failed(self, build_orchestrator):
        orchestrator = build_orchestrator({GPT4: [AuthenticationError("denied", "openai")]})
        with pytest.raises(AllBackendsFailedError) as exc_info:
            orchestrator.ask("Debug this code")
        assert exc_info.value.backends == [GPT4]
        assert len(orchestrator.cost_tracker.ledger) == 0


class TestBudgets:

    def test_hard_stop_blocks_dispatch(self, build_orchestrator):
        orchestrator = build_orchestrator(budget=CostBudget(daily=0.001, hard_stop=True))
        orchestrator.ask("Debug this code")
        with pytest.raises(BudgetExceededError):
            orchestrator.ask("Debug this code")
        assert len(orchestrator.client.providers[GPT4].calls) == 1

    def test_alerts_reported_in_metadata(self, build_orchestrator):
        orchestrator = build_orchestrator(budget=CostBudget(per_request=0.001))
        result = orchestrator.orchestrate(OrchestrationRequest(prompt="Debug this code"))
        assert len(result.metadata["alerts"]) == 1
        assert "exceeds limit" in result.metadata["alerts"][0]

    def test_every_response_is_tracked(self, build_orchestrator):
        orchestrator = build_orchestrator()
        orchestrator.orchestrate(OrchestrationRequest(prompt="Debug this code", strategy="triple", user_id="u1"))
        stats = orchestrator.cost_tracker.get_stats()
        assert stats.total_requests == 3
        assert stats.by_task_type["technical"]["requests"] == 3

    def test_responses_tracked_when_consensus_fails(self, build_orchestrator):
        orchestrator = build_orchestrator(embedder=UnreachableEmbedder())
        request = OrchestrationRequest(
            prompt="Debug this code", strategy="dual", consensus_method="semantic-similarity"
        )
        with pytest.raises(ConsensusError) as exc_info:
            orchestrator.orchestrate(request)
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        records = orchestrator.cost_tracker.ledger.query()
        assert [record.model_name for record in records] == [GPT4, CLAUDE]


class TestAudit:

    def test_entry_written_for_identified_callers(self, build_orchestrator):
        entries = []
        orchestrator = build_orchestrator(audit_sink=entries.append)
        orchestrator.ask("Debug this code", user_id="u1", session_id="s1")
        assert len(entries) == 1
        entry = entries[0]
        assert entry["role"] == "OPS"
        assert entry["user_id"] == "u1"
        assert entry["session_id"] == "s1"
        assert entry["models"] == [GPT4]
        assert entry["tokens_used"] == 150

    def test_anonymous_calls_not_audited(self, build_orchestrator):
        entries = []
        build_orchestrator(audit_sink=entries.append).ask("Debug this code")
        assert entries == []

    def test_failing_sink_is_tolerated(self, build_orchestrator):
        def broken_sink(entry):
            raise IOError("disk full")

        orchestrator = build_orchestrator(audit_sink=broken_sink)
        assert orchestrator.ask("Debug this code", user_id="u1") == f"Answer from {GPT4}"


class TestRequestValidation:

    def test_dict_request(self, build_orchestrator):
        result = build_orchestrator().orchestrate({"prompt": "Debug this code", "strategy": "dual"})
        assert result.strategy == OrchestrationStrategy.DUAL

    @pytest.mark.parametrize("payload", [
        {"prompt": ""},
        {"prompt": "Debug this code", "strategy": "custom"},
        {"prompt": "Debug this code", "models": [GPT4, GPT4]},
        {"prompt": "Debug this code", "temperature": 3.0},
        {"prompt": "Debug this code", "top_k": 0},
        {"prompt": "Debug this code", "strategy": "quad"},
    ])
    def test_invalid_requests(self, build_orchestrator, payload):
        with pytest.raises(ValidationError):
            build_orchestrator().orchestrate(payload)


class TestConvenienceCalls:

    def test_compare_models_uses_every_backend(self, build_orchestrator):
        result = build_orchestrator().compare_models("Debug this code")
        assert [response.model_name for response in result.responses] == [GPT4, CLAUDE, GEMINI]
        assert result.consensus is not None

    def test_ask_with_consensus(self, build_orchestrator):
        result = build_orchestrator().ask_with_consensus("Debug this code")
        assert result.strategy == OrchestrationStrategy.DUAL
        assert result.consensus is not None

    def test_ask_with_consensus_needs_multiple_backends(self, build_orchestrator):
        with pytest.raises(ConfigurationError):
            build_orchestrator().ask_with_consensus("Debug this code", strategy="single")

    def test_filter_payload(self, build_orchestrator):
        result = build_orchestrator().orchestrate(
            OrchestrationRequest(prompt="Debug this code", user_id="u1", session_id="s1")
        )
        payload = result.to_filter_payload()
        assert payload["content"] == result.primary.content
        assert payload["role"] == "OPS"
        assert payload["context"]["models_used"] == [GPT4]
        assert payload["context"]["user_id"] == "u1"
        assert result.to_filter_payload(role="ADMIN")["role"] == "ADMIN"

    def test_provider_stats(self, build_orchestrator):
        orchestrator = build_orchestrator()
        orchestrator.ask("Debug this code")
        assert orchestrator.get_provider_stats()[GPT4]["request_count"] == 1


class TestConfiguration:

    def test_reload_config(self, build_orchestrator):
        orchestrator = build_orchestrator()
        parser = configparser.ConfigParser()
        parser.read_string("[ORCHESTRATOR]\ndefault_strategy = dual\n[COST_BUDGET]\ndaily = 5\n")

        orchestrator.reload_config(config_from_parser(parser, env={}))

        assert orchestrator.get_settings().default_strategy == OrchestrationStrategy.DUAL
        assert orchestrator.cost_tracker.get_budget().daily == 5.0
        result = orchestrator.orchestrate({"prompt": "Debug this code"})
        assert len(result.responses) == 2

    def test_from_config_in_mock_mode(self):
        config = config_from_parser(configparser.ConfigParser(), env={})
        orchestrator = Orchestrator.from_config(config, mock=True)
        assert orchestrator.client.available_backends() == [GPT4, CLAUDE, GEMINI]
        assert orchestrator.ask("Summarize the key points of this memo")
