"""
Tests for task classification and backend routing.
"""

import pytest

from core.data_models import Complexity, TaskType
from core.exceptions import ConfigurationError
from core.model_catalog import CLAUDE, GEMINI, GPT4, cheapest_backend
from routers import RouterConfig, TaskRouter, rules_with_overrides


@pytest.fixture
def router():
    return TaskRouter()


class TestClassify:

    def test_debug_is_technical(self, router):
        classification = router.classify("debug")
        assert classification.task_type == TaskType.TECHNICAL
        assert classification.indicators == ["debug"]
        assert classification.confidence == pytest.approx(0.2)

    def test_summarization(self, router):
        classification = router.classify("Summarize the key points of this memo")
        assert classification.task_type == TaskType.SUMMARIZATION
        assert set(classification.indicators) == {"summarize", "key points"}
        assert classification.confidence == pytest.approx(0.4)

    def test_confidence_is_capped(self, router):
        prompt = "Debug the code: the function calls an api, check the algorithm and database performance"
        classification = router.classify(prompt)
        assert classification.task_type == TaskType.TECHNICAL
        assert classification.confidence == 1.0

    def test_no_indicators_is_mixed(self, router):
        classification = router.classify("Hello there")
        assert classification.task_type == TaskType.MIXED
        assert classification.confidence == pytest.approx(0.3)
        assert classification.indicators == ["no clear indicators"]

    def test_short_question_without_keywords(self, router):
        assert router.classify("Why is the sky blue?").task_type == TaskType.CLASSIFICATION

    def test_tie_falls_back_to_structure(self, router):
        classification = router.classify("classify the code")
        assert classification.task_type == TaskType.MIXED
        assert set(classification.indicators) == {"classify", "code"}
        assert classification.confidence == pytest.approx(0.2)


class TestAnalyze:

    def test_simple_prompt(self, router):
        analysis = router.analyze("Debug this code")
        assert analysis.characteristics.complexity == Complexity.SIMPLE
        assert analysis.characteristics.requires_reasoning is True
        assert analysis.estimated_input_tokens == 4
        assert analysis.estimated_output_tokens == 500

    def test_complex_prompt(self, router):
        analysis = router.analyze("debug " * 100)
        assert analysis.characteristics.complexity == Complexity.COMPLEX
        assert analysis.estimated_output_tokens == 1500

    def test_system_prompt_counts_towards_input(self, router):
        without = router.analyze("Debug this code").estimated_input_tokens
        with_system = router.analyze("Debug this code", system_prompt="You are a senior engineer").estimated_input_tokens
        assert with_system > without

    def test_classification_output_estimate(self, router):
        assert router.analyze("Classify this ticket").estimated_output_tokens == 100


class TestRoute:

    def test_technical_prefers_gpt4(self, router):
        decision = router.route("Debug this code")
        assert decision.task_type == TaskType.TECHNICAL
        assert decision.primary == GPT4
        assert decision.fallback == [CLAUDE, GEMINI]
        assert decision.backends == [GPT4, CLAUDE, GEMINI]
        assert decision.estimated_cost > 0
        assert decision.estimated_latency > 0

    def test_task_type_override(self, router):
        decision = router.route("Debug this code", task_type="creative")
        assert decision.task_type == TaskType.CREATIVE
        assert decision.primary == CLAUDE

    def test_prefer_cheap_reroutes_simple_tasks(self, router):
        decision = router.route("Debug this code", prefer_cheap=True)
        assert decision.primary == GEMINI
        assert decision.fallback == [GPT4, CLAUDE]
        assert "cheapest" in decision.reasoning

    def test_cheapest_backend_by_list_price(self):
        assert cheapest_backend([GPT4, CLAUDE]) == CLAUDE
        assert cheapest_backend([GPT4, CLAUDE, GEMINI]) == GEMINI

    def test_prefer_fast_promotes_fast_backend(self, router):
        decision = router.route("Write a story about the sea", prefer_fast=True)
        assert decision.primary == GEMINI
        assert decision.fallback[0] == CLAUDE

    def test_cost_ceiling_switches_to_cheaper_backend(self):
        router = TaskRouter(RouterConfig(max_cost_per_request=0.01))
        decision = router.route("Debug this code")
        assert decision.primary == GEMINI
        assert decision.estimated_cost <= 0.01

    def test_cost_ceiling_nothing_fits(self):
        router = TaskRouter(RouterConfig(max_cost_per_request=0.0))
        decision = router.route("Debug this code")
        assert decision.primary == GPT4
        assert "no backend fits" in decision.reasoning

    def test_fallback_disabled(self):
        decision = TaskRouter(RouterConfig(allow_fallback=False)).route("Debug this code")
        assert decision.fallback == []

    def test_missing_rule(self):
        rules = dict(rules_with_overrides(None))
        del rules[TaskType.TECHNICAL]
        router = TaskRouter(RouterConfig(rules=rules))
        with pytest.raises(ConfigurationError):
            router.route("Debug this code")


class TestConfiguration:

    def test_unknown_backend_in_rules(self):
        rules = rules_with_overrides({TaskType.TECHNICAL: ["gpt-2", GPT4]})
        with pytest.raises(ConfigurationError):
            TaskRouter(RouterConfig(rules=rules))

    def test_repeated_backend_in_rules(self):
        rules = rules_with_overrides({TaskType.TECHNICAL: [GPT4, GPT4]})
        with pytest.raises(ConfigurationError):
            TaskRouter(RouterConfig(rules=rules))

    def test_override_keeps_reasoning(self):
        rules = rules_with_overrides({TaskType.TECHNICAL: [GEMINI, GPT4]})
        router = TaskRouter(RouterConfig(rules=rules))
        decision = router.route("Debug this code")
        assert decision.primary == GEMINI
        assert decision.fallback == [GPT4]
        assert "GPT-4 excels" in decision.reasoning

    def test_update_config(self, router):
        updated = router.update_config(prefer_cheap=True)
        assert updated.prefer_cheap is True
        assert router.get_config().prefer_cheap is True
        assert router.route("Debug this code").primary == GEMINI

    def test_update_config_rejects_unknown_field(self, router):
        with pytest.raises(ConfigurationError):
            router.update_config(prefer_slow=True)

    def test_rejected_update_keeps_previous_rules(self, router):
        with pytest.raises(ConfigurationError):
            router.update_config(rules=rules_with_overrides({TaskType.TECHNICAL: ["gpt-2"]}))
        assert router.get_best_model(TaskType.TECHNICAL) == GPT4


class TestCompareModels:

    def test_sorted_by_suitability(self, router):
        comparison = router.compare_models("Debug this code", [GEMINI, CLAUDE, GPT4])
        assert comparison[0]["model"] == GPT4
        assert comparison[0]["suitability"] == 0.9
        assert len(comparison) == 3

    def test_suitable_models(self, router):
        assert router.get_suitable_models("summarization") == [GEMINI, CLAUDE, GPT4]
