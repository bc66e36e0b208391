"""
Consensus Engine.

Combines the outputs of several backends into one answer, validates the
result against per-method thresholds and reports warnings and review flags
to the caller.
"""

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Union

from core.config import OrchestratorConfig
from core.data_models import ConsensusMethod, ConsensusResult, LLMResponse
from core.exceptions import ConsensusError, ConfigurationError
from .abstract_embedder import AbstractEmbedder
from .config import ConsensusConfig, DEFAULT_CONSENSUS_CONFIGS, consensus_configs_from
from .factory import create_embedder_from_config
from .token_overlap_embedder import TokenOverlapEmbedder
from . import strategies

logger = logging.getLogger(__name__)

SHORT_RESPONSE_LENGTH = 50
NUMERIC_TOKEN = re.compile(r"\d+(?:\.\d+)?")
DIVERGENCE_THRESHOLD = 0.5


@dataclass(frozen=True)
class ConsensusValidation:
    """Outcome of checking a consensus result against its method's thresholds"""
    is_valid: bool
    confidence: float
    warnings: List[str] = field(default_factory=list)
    requires_review: bool = False


@dataclass(frozen=True)
class AgreementAnalysis:
    """Pairwise lexical agreement between responses"""
    agreement_score: float
    similarities: List[Dict[str, Any]] = field(default_factory=list)
    divergences: List[Dict[str, Any]] = field(default_factory=list)


def select_method(responses: List[LLMResponse]) -> ConsensusMethod:
    """Pick a consensus method from the shape of the responses"""
    average_length = sum(len(response.content) for response in responses) / len(responses)
    if average_length < SHORT_RESPONSE_LENGTH:
        return ConsensusMethod.MAJORITY_VOTE
    if any(NUMERIC_TOKEN.search(response.content) for response in responses):
        return ConsensusMethod.WEIGHTED_AVERAGE
    return ConsensusMethod.SEMANTIC_SIMILARITY


class ConsensusEngine:
    """
    Builds consensus from multiple responses.

    Threshold configurations are immutable and swapped under a lock, so a
    build running concurrently with ``update_config`` validates against one
    consistent configuration.
    """

    def __init__(self, embedder: Optional[AbstractEmbedder] = None,
                 configs: Optional[Mapping[ConsensusMethod, ConsensusConfig]] = None):
        """
        Initialize the engine.

        Args:
            embedder: Embedder for semantic similarity; token overlap when omitted
            configs: Per-method thresholds overriding the defaults
        """
        self.embedder = embedder or TokenOverlapEmbedder()
        merged = dict(DEFAULT_CONSENSUS_CONFIGS)
        merged.update(configs or {})
        self._configs = merged
        self._config_lock = threading.Lock()
        logger.info(f"Consensus engine initialized with {type(self.embedder).__name__}")

    @classmethod
    def from_config(cls, config: OrchestratorConfig, embedder: Optional[AbstractEmbedder] = None) -> "ConsensusEngine":
        """Build an engine from the [CONSENSUS] sections"""
        return cls(embedder or create_embedder_from_config(config), consensus_configs_from(config))

    def get_config(self, method: Union[ConsensusMethod, str]) -> ConsensusConfig:
        return self._configs[ConsensusMethod(method)]

    def update_config(self, method: Union[ConsensusMethod, str], **changes: Any) -> ConsensusConfig:
        """
        Replace thresholds for one method.

        Raises:
            ConfigurationError: If a field is unknown or a threshold is outside [0, 1]
        """
        method = ConsensusMethod(method)
        with self._config_lock:
            try:
                new_config = replace(self._configs[method], **changes)
            except TypeError as e:
                raise ConfigurationError(f"Invalid consensus setting: {e}") from e
            for name in ("min_agreement", "confidence_threshold"):
                if not 0.0 <= getattr(new_config, name) <= 1.0:
                    raise ConfigurationError(f"{name} for {method.value} must be between 0 and 1")
            configs = dict(self._configs)
            configs[method] = new_config
            self._configs = configs
        logger.info(f"Consensus configuration updated for {method.value}: {sorted(changes)}")
        return new_config

    def _run_strategy(self, method: ConsensusMethod, responses: List[LLMResponse]) -> ConsensusResult:
        if method == ConsensusMethod.MAJORITY_VOTE:
            return strategies.majority_vote(responses)
        if method == ConsensusMethod.WEIGHTED_AVERAGE:
            return strategies.weighted_average(responses)
        if method == ConsensusMethod.SEMANTIC_SIMILARITY:
            return strategies.semantic_similarity(responses, self.embedder)
        if method == ConsensusMethod.LONGEST_COMMON:
            return strategies.longest_common(responses)
        if method == ConsensusMethod.CONFIDENCE_WEIGHTED:
            return strategies.confidence_weighted(responses, self.embedder)
        if method == ConsensusMethod.TIEBREAKER:
            # a tiebreaker needs another backend call; reconcile semantically instead
            result = strategies.semantic_similarity(responses, self.embedder)
            return replace(result, details={**result.details, "requested_method": method.value})
        raise ConsensusError(f"Unsupported consensus method: {method}")

    def build(self, responses: List[LLMResponse],
              method: Optional[Union[ConsensusMethod, str]] = None) -> ConsensusResult:
        """
        Build consensus from multiple responses.

        Args:
            responses: Successful backend responses
            method: Consensus method; selected from the responses when omitted

        Returns:
            ConsensusResult: Reconciled answer with warnings and review flag

        Raises:
            ConsensusError: If there are no responses, the method is unknown or the strategy fails
        """
        if not responses:
            raise ConsensusError("No responses to build consensus from")

        if len(responses) == 1:
            return ConsensusResult(
                method=ConsensusMethod.SEMANTIC_SIMILARITY,
                result=responses[0].content,
                confidence=0.7,
                agreement=1.0
            )

        if method is None:
            method = select_method(responses)
            logger.debug(f"Auto-selected consensus method {method.value}")
        else:
            try:
                method = ConsensusMethod(method)
            except ValueError:
                raise ConsensusError(f"Unsupported consensus method: {method}") from None

        try:
            result = self._run_strategy(method, responses)
        except ConsensusError:
            raise
        except Exception as e:
            logger.error(f"{method.value} consensus failed: {e}")
            raise ConsensusError(f"{method.value} consensus failed: {e}") from e
        validation = self.validate(result, method)

        if validation.warnings:
            logger.warning(f"Consensus validation warnings ({method.value}): {validation.warnings}")

        return replace(
            result,
            requires_review=validation.requires_review or result.requires_review,
            warnings=list(result.warnings) + validation.warnings
        )

    def validate(self, result: ConsensusResult,
                 method: Optional[Union[ConsensusMethod, str]] = None) -> ConsensusValidation:
        """
        Check a result against the thresholds of the method that produced it.

        Args:
            result: Consensus result
            method: Method whose thresholds apply; the result's method when omitted

        Returns:
            ConsensusValidation: Validity, warnings and review flag
        """
        config = self.get_config(method or result.method)
        warnings = []

        has_min_agreement = result.agreement >= config.min_agreement
        if not has_min_agreement:
            warnings.append(
                f"Low agreement: {result.agreement * 100:.1f}% (min: {config.min_agreement * 100:.1f}%)"
            )

        has_min_confidence = result.confidence >= config.confidence_threshold
        if not has_min_confidence:
            warnings.append(
                f"Low confidence: {result.confidence * 100:.1f}% (min: {config.confidence_threshold * 100:.1f}%)"
            )

        if result.disagreements:
            warnings.append(f"{len(result.disagreements)} model(s) disagreed with consensus")

        is_valid = has_min_agreement and has_min_confidence
        return ConsensusValidation(
            is_valid=is_valid,
            confidence=result.confidence,
            warnings=warnings,
            requires_review=not is_valid or config.require_human_review or bool(warnings)
        )

    def analyze_agreement(self, responses: List[LLMResponse]) -> AgreementAnalysis:
        """
        Pairwise Jaccard similarity of the responses' word sets.

        Pairs below 0.5 are reported as divergences.
        """
        if len(responses) < 2:
            return AgreementAnalysis(agreement_score=1.0)

        similarities = []
        for i in range(len(responses)):
            for j in range(i + 1, len(responses)):
                words_a = set(responses[i].content.lower().split())
                words_b = set(responses[j].content.lower().split())
                union = words_a | words_b
                similarity = len(words_a & words_b) / len(union) if union else 1.0
                similarities.append({
                    "model_a": responses[i].model_name,
                    "model_b": responses[j].model_name,
                    "similarity": similarity
                })

        agreement_score = sum(item["similarity"] for item in similarities) / len(similarities)
        divergences = [
            {
                "models": [item["model_a"], item["model_b"]],
                "reason": f"Low similarity: {item['similarity'] * 100:.1f}%"
            }
            for item in similarities
            if item["similarity"] < DIVERGENCE_THRESHOLD
        ]

        return AgreementAnalysis(agreement_score, similarities, divergences)

    @staticmethod
    def get_confidence_level(confidence: float) -> str:
        if confidence >= 0.85:
            return "high"
        if confidence >= 0.7:
            return "medium"
        return "low"
