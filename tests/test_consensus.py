"""
Tests for consensus strategies, validation and embedder selection.
"""

import numpy as np
import pytest

from core.data_models import ConsensusMethod
from core.exceptions import ConfigurationError, ConsensusError
from core.model_catalog import CLAUDE, GEMINI, GPT4
from consensus import (
    ConsensusEngine, EmbedderFactory, TokenOverlapEmbedder, cosine_similarity_matrix, select_method
)


@pytest.fixture
def engine():
    return ConsensusEngine(TokenOverlapEmbedder())


@pytest.fixture
def trio(make_response):
    """Three responses from the three backends with equal cost"""
    def _trio(*contents, cost=0.01):
        names = [GPT4, CLAUDE, GEMINI]
        return [make_response(content, model_name=name, cost=cost) for content, name in zip(contents, names)]
    return _trio


class TestBuild:

    def test_no_responses(self, engine):
        with pytest.raises(ConsensusError):
            engine.build([])

    def test_single_response_passes_through(self, engine, make_response):
        result = engine.build([make_response("Only answer")])
        assert result.result == "Only answer"
        assert result.confidence == 0.7
        assert result.agreement == 1.0
        assert result.requires_review is False

    def test_unknown_method(self, engine, trio):
        with pytest.raises(ConsensusError):
            engine.build(trio("a", "b", "c"), "coin-flip")


class TestMajorityVote:

    def test_unanimous(self, engine, trio):
        result = engine.build(trio("Yes", "yes", " YES "), ConsensusMethod.MAJORITY_VOTE)
        assert result.result == "yes"
        assert result.agreement == 1.0
        assert result.confidence == 1.0
        assert result.disagreements == []
        assert result.requires_review is False
        assert result.warnings == []

    def test_two_against_one(self, engine, trio):
        result = engine.build(trio("Yes", "yes", "No"), "majority-vote")
        assert result.result == "yes"
        assert result.agreement == pytest.approx(2 / 3)
        assert [d.model_name for d in result.disagreements] == [GEMINI]
        assert result.requires_review is True
        assert any("disagreed" in warning for warning in result.warnings)

    def test_all_different_first_group_wins(self, engine, trio):
        result = engine.build(trio("alpha", "beta", "gamma"), "majority-vote")
        assert result.result == "alpha"
        assert result.agreement == pytest.approx(1 / 3)


class TestWeightedAverage:

    def test_close_numbers(self, engine, trio):
        result = engine.build(trio("85", "90", "88"), ConsensusMethod.WEIGHTED_AVERAGE)
        assert result.result == "87.67"
        assert result.agreement > 0.9
        assert result.requires_review is False

    def test_cheaper_responses_weigh_more(self, engine, make_response):
        responses = [
            make_response("100", model_name=GPT4, cost=0.099),
            make_response("200", model_name=GEMINI, cost=0.0),
        ]
        result = engine.build(responses, "weighted-average")
        assert float(result.result) > 190

    def test_non_numeric_responses_left_out(self, engine, trio):
        result = engine.build(trio("about 10 units", "10", "no idea"), "weighted-average")
        assert result.details["numeric_values"] == 2
        assert result.result == "10.00"
        assert result.disagreements == []
        assert result.requires_review is False

    def test_no_numbers(self, engine, trio):
        result = engine.build(trio("yes", "no", "maybe"), "weighted-average")
        assert result.result == "yes"
        assert result.confidence == pytest.approx(0.3)
        assert result.requires_review is True


class TestSemanticSimilarity:

    def test_returns_verbatim_central_response(self, fixed_embedder, trio):
        contents = ("Paris is the capital.", "The capital is Paris.", "Berlin, probably.")
        embedder = fixed_embedder({
            contents[0]: [1.0, 0.0],
            contents[1]: [1.0, 0.1],
            contents[2]: [0.0, 1.0],
        })
        result = ConsensusEngine(embedder).build(trio(*contents), ConsensusMethod.SEMANTIC_SIMILARITY)
        assert result.result in contents
        assert result.result == contents[1]
        assert [d.model_name for d in result.disagreements] == [GEMINI]
        assert result.requires_review is True

    def test_token_overlap_picks_an_input(self, engine, trio):
        contents = (
            "The outage was caused by an expired TLS certificate on the gateway",
            "An expired TLS certificate on the gateway caused the outage",
            "Traffic spiked after the marketing campaign launched"
        )
        result = engine.build(trio(*contents), "semantic-similarity")
        assert result.result in contents[:2]
        assert 0.0 <= result.agreement <= 1.0

    def test_tiebreaker_reconciles_semantically(self, engine, trio):
        result = engine.build(trio("same answer here", "same answer here", "other"), ConsensusMethod.TIEBREAKER)
        assert result.method == ConsensusMethod.SEMANTIC_SIMILARITY
        assert result.details["requested_method"] == "tiebreaker"
        assert result.result == "same answer here"


class TestLongestCommon:

    def test_keeps_shared_sentences(self, engine, trio):
        result = engine.build(trio(
            "The service restarted cleanly. Memory usage is stable. Nothing else changed.",
            "The service restarted cleanly. Memory usage is stable. Disk is nearly full.",
            "The service restarted cleanly. Memory usage is stable."
        ), ConsensusMethod.LONGEST_COMMON)
        assert result.result == "The service restarted cleanly. Memory usage is stable."
        assert result.details["common_sentences"] == 2
        assert result.requires_review is True

    def test_nothing_shared_returns_first(self, engine, trio):
        first = "Alpha bravo charlie delta. Echo foxtrot golf hotel."
        result = engine.build(trio(first, "Completely different text here.", "Also unrelated words."),
                              "longest-common")
        assert result.result == first
        assert result.agreement == pytest.approx(0.1)


class TestConfidenceWeighted:

    def test_weights_are_reported_not_applied(self, engine, make_response):
        responses = [
            make_response("Deploy on Tuesday after the freeze", model_name=GPT4, cost=0.009),
            make_response("Deploy on Tuesday after the freeze", model_name=GEMINI, cost=0.001),
        ]
        result = engine.build(responses, ConsensusMethod.CONFIDENCE_WEIGHTED)
        assert result.method == ConsensusMethod.CONFIDENCE_WEIGHTED
        assert result.details["weights_applied"] is False
        weights = result.details["weights"]
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights[GEMINI] > weights[GPT4]


class TestSelectMethod:

    def test_short_responses_vote(self, trio):
        assert select_method(trio("yes", "no", "yes")) == ConsensusMethod.MAJORITY_VOTE

    def test_long_numeric_responses_average(self, trio):
        long_text = "The projected quarterly revenue after the pricing change comes to {} million"
        responses = trio(long_text.format(12), long_text.format(13), long_text.format(12))
        assert select_method(responses) == ConsensusMethod.WEIGHTED_AVERAGE

    def test_long_text_responses_compare_meaning(self, trio):
        text = "The migration should happen after the holiday freeze, with a rollback plan ready"
        assert select_method(trio(text, text, text)) == ConsensusMethod.SEMANTIC_SIMILARITY

    def test_auto_selection_in_build(self, engine, trio):
        result = engine.build(trio("42", "42", "41"))
        assert result.method == ConsensusMethod.MAJORITY_VOTE


class TestValidation:

    def test_semantic_always_needs_review(self, engine, trio):
        text = "identical long answer about the deployment schedule"
        result = engine.build(trio(text, text, text), ConsensusMethod.SEMANTIC_SIMILARITY)
        assert result.agreement == pytest.approx(1.0)
        assert result.requires_review is True

    def test_update_config_changes_thresholds(self, engine, trio):
        engine.update_config(ConsensusMethod.MAJORITY_VOTE, min_agreement=0.9)
        assert engine.get_config("majority-vote").min_agreement == 0.9
        validation = engine.validate(engine.build(trio("a", "a", "a"), "majority-vote"))
        assert validation.is_valid is True
        result = engine.build(trio("a", "a", "b"), "majority-vote")
        assert any(warning.startswith("Low agreement") for warning in result.warnings)

    def test_update_config_rejects_out_of_range(self, engine):
        with pytest.raises(ConfigurationError):
            engine.update_config(ConsensusMethod.MAJORITY_VOTE, confidence_threshold=1.5)
        assert engine.get_config(ConsensusMethod.MAJORITY_VOTE).confidence_threshold == 0.7

    def test_confidence_levels(self):
        assert ConsensusEngine.get_confidence_level(0.9) == "high"
        assert ConsensusEngine.get_confidence_level(0.7) == "medium"
        assert ConsensusEngine.get_confidence_level(0.2) == "low"


class TestAgreementAnalysis:

    def test_identical(self, engine, trio):
        analysis = engine.analyze_agreement(trio("same words", "same words", "same words"))
        assert analysis.agreement_score == 1.0
        assert analysis.divergences == []

    def test_disjoint(self, engine, trio):
        analysis = engine.analyze_agreement(trio("alpha beta", "gamma delta", "epsilon zeta"))
        assert analysis.agreement_score == 0.0
        assert len(analysis.divergences) == 3

    def test_single_response(self, engine, make_response):
        assert engine.analyze_agreement([make_response("x")]).agreement_score == 1.0


class TestEmbedders:

    def test_cosine_similarity_handles_zero_vectors(self):
        similarities = cosine_similarity_matrix(np.array([[1.0, 0.0], [0.0, 0.0]]))
        assert similarities[0, 0] == pytest.approx(1.0)
        assert similarities[1, 1] == 0.0
        assert similarities[0, 1] == 0.0

    def test_token_overlap_ignores_stop_words(self):
        vectors = TokenOverlapEmbedder().embed(["the cat", "a cat"])
        assert np.array_equal(vectors[0], vectors[1])

    def test_factory_creates_named_embedder(self):
        assert isinstance(EmbedderFactory.create_embedder("token_overlap"), TokenOverlapEmbedder)

    def test_factory_unknown_embedder(self):
        with pytest.raises(ConfigurationError):
            EmbedderFactory.create_embedder("word2vec")

    def test_openai_embedder_needs_credentials(self):
        with pytest.raises(ConfigurationError):
            EmbedderFactory.create_embedder("openai")

    def test_token_overlap_is_last_resort(self):
        available = EmbedderFactory.get_available_implementations()
        assert available[-1] == "token_overlap"
        assert "openai" not in available
