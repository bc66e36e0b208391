"""
Consensus Strategies

Algorithms that reconcile several backend responses into one answer. Each
strategy returns a ConsensusResult whose ``requires_review`` reflects only the
strategy's own judgement; the engine adds threshold validation on top.
"""

import logging
import re
from typing import Dict, List

import numpy as np

from core.data_models import ConsensusMethod, ConsensusResult, Disagreement, LLMResponse
from core.exceptions import ConsensusError
from .abstract_embedder import AbstractEmbedder, cosine_similarity_matrix

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")
SENTENCE_SPLIT = re.compile(r"[.!?]\s+")

# Added to costs before inverting them into weights
COST_EPSILON = 0.001
SEMANTIC_DISSENT_THRESHOLD = 0.7
MIN_SENTENCE_LENGTH = 10


def _require_responses(responses: List[LLMResponse]) -> None:
    if not responses:
        raise ConsensusError("No responses to build consensus from")


def cost_weights(responses: List[LLMResponse]) -> List[float]:
    """Inverse-cost weight of each response"""
    return [1.0 / (response.total_cost + COST_EPSILON) for response in responses]


def majority_vote(responses: List[LLMResponse]) -> ConsensusResult:
    """
    Majority vote over normalized (trimmed, lower-cased) responses.

    The first group to reach the highest count wins.
    """
    _require_responses(responses)

    votes: Dict[str, List[str]] = {}
    for response in responses:
        votes.setdefault(response.content.strip().lower(), []).append(response.model_name)

    winner = ""
    max_votes = 0
    for content, models in votes.items():
        if len(models) > max_votes:
            max_votes = len(models)
            winner = content

    agreement = max_votes / len(responses)
    disagreements = [
        Disagreement(response.model_name, response.content, "Different classification")
        for response in responses
        if response.content.strip().lower() != winner
    ]

    return ConsensusResult(
        method=ConsensusMethod.MAJORITY_VOTE,
        result=winner,
        confidence=agreement,
        agreement=agreement,
        requires_review=agreement < 0.7,
        details={"votes": {content: len(models) for content, models in votes.items()}}
    )


def weighted_average(responses: List[LLMResponse]) -> ConsensusResult:
    """
    Weighted mean of the first number found in each response.

    Weights are ``1 / (cost + epsilon)``. Responses without a number are
    left out of the mean; ``details["numeric_values"]`` counts the ones used.
    """
    _require_responses(responses)

    values = []
    weights = []
    for response in responses:
        match = NUMBER_PATTERN.search(response.content)
        if match:
            values.append(float(match.group(1)))
            weights.append(1.0 / (response.total_cost + COST_EPSILON))

    if not values:
        return ConsensusResult(
            method=ConsensusMethod.WEIGHTED_AVERAGE,
            result=responses[0].content,
            confidence=0.3,
            agreement=0.3,
            requires_review=True,
            details={"numeric_values": 0}
        )

    values = np.array(values)
    weights = np.array(weights)
    average = float(np.average(values, weights=weights))
    std_dev = float(np.sqrt(np.average((values - average) ** 2, weights=weights)))

    if average == 0:
        agreement = 1.0 if std_dev == 0 else 0.0
    else:
        agreement = max(0.0, 1.0 - std_dev / average)

    return ConsensusResult(
        method=ConsensusMethod.WEIGHTED_AVERAGE,
        result=f"{average:.2f}",
        confidence=agreement,
        agreement=agreement,
        requires_review=agreement < 0.7,
        details={
            "numeric_values": len(values),
            "weighted_mean": average,
            "std_dev": std_dev
        }
    )


def semantic_similarity(responses: List[LLMResponse], embedder: AbstractEmbedder) -> ConsensusResult:
    """
    Pick the response closest in meaning to all the others.

    Agreement is the mean pairwise cosine similarity. Responses whose
    similarity to the chosen one is below 0.7 are dissents.
    """
    _require_responses(responses)

    if len(responses) == 1:
        return ConsensusResult(
            method=ConsensusMethod.SEMANTIC_SIMILARITY,
            result=responses[0].content,
            confidence=0.6,
            agreement=1.0
        )

    embeddings = embedder.embed([response.content for response in responses])
    similarities = cosine_similarity_matrix(embeddings)
    count = len(responses)

    upper = np.triu_indices(count, k=1)
    agreement = float(np.clip(similarities[upper].mean(), 0.0, 1.0))

    average_to_others = (similarities.sum(axis=1) - np.diag(similarities)) / (count - 1)
    central = int(np.argmax(average_to_others))

    disagreements = [
        Disagreement(response.model_name, response.content, "Semantically different")
        for index, response in enumerate(responses)
        if index != central and similarities[index, central] < SEMANTIC_DISSENT_THRESHOLD
    ]

    return ConsensusResult(
        method=ConsensusMethod.SEMANTIC_SIMILARITY,
        result=responses[central].content,
        confidence=agreement,
        agreement=agreement,
        disagreements=disagreements,
        requires_review=agreement < 0.75,
        details={
            "central_model": responses[central].model_name,
            "pairwise_similarity": [
                {
                    "model_a": responses[i].model_name,
                    "model_b": responses[j].model_name,
                    "similarity": float(similarities[i, j])
                }
                for i, j in zip(*upper)
            ]
        }
    )


def longest_common(responses: List[LLMResponse]) -> ConsensusResult:
    """
    Keep the sentences of the first response that at least half of the other
    responses repeat verbatim.
    """
    _require_responses(responses)

    if len(responses) == 1:
        return ConsensusResult(
            method=ConsensusMethod.LONGEST_COMMON,
            result=responses[0].content,
            confidence=0.6,
            agreement=1.0
        )

    base = responses[0].content
    others = responses[1:]
    common_parts = []

    for sentence in SENTENCE_SPLIT.split(base):
        sentence = sentence.strip()
        if len(sentence) < MIN_SENTENCE_LENGTH:
            continue
        matches = sum(1 for response in others if sentence in response.content)
        if matches >= len(others) / 2:
            common_parts.append(sentence.rstrip(".!?"))

    result = ". ".join(common_parts) + ("." if common_parts else "")
    agreement = min(len(result) / len(base), 1.0) if result else 0.1

    return ConsensusResult(
        method=ConsensusMethod.LONGEST_COMMON,
        result=result or base,
        confidence=agreement,
        agreement=agreement,
        requires_review=agreement < 0.5,
        details={"common_sentences": len(common_parts)}
    )


def confidence_weighted(responses: List[LLMResponse], embedder: AbstractEmbedder) -> ConsensusResult:
    """
    Semantic similarity with inverse-cost weights reported alongside.

    The weights are computed and returned in ``details`` but do not change
    the similarity computation.
    """
    _require_responses(responses)

    weights = cost_weights(responses)
    total_weight = sum(weights)
    result = semantic_similarity(responses, embedder)

    details = dict(result.details)
    details["weights"] = {
        response.model_name: weight / total_weight
        for response, weight in zip(responses, weights)
    }
    details["weights_applied"] = False

    return ConsensusResult(
        method=ConsensusMethod.CONFIDENCE_WEIGHTED,
        result=result.result,
        confidence=result.confidence,
        agreement=result.agreement,
        disagreements=result.disagreements,
        requires_review=result.requires_review,
        details=details
    )
