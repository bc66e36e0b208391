"""
Per-method validation thresholds for the consensus engine.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping

from core.config import OrchestratorConfig
from core.data_models import ConsensusMethod


@dataclass(frozen=True)
class ConsensusConfig:
    """Validation thresholds for one consensus method"""
    method: ConsensusMethod
    min_agreement: float
    confidence_threshold: float
    require_human_review: bool = False


DEFAULT_CONSENSUS_CONFIGS: Mapping[ConsensusMethod, ConsensusConfig] = MappingProxyType({
    ConsensusMethod.MAJORITY_VOTE: ConsensusConfig(ConsensusMethod.MAJORITY_VOTE, 0.5, 0.7),
    ConsensusMethod.WEIGHTED_AVERAGE: ConsensusConfig(ConsensusMethod.WEIGHTED_AVERAGE, 0.6, 0.7),
    ConsensusMethod.SEMANTIC_SIMILARITY: ConsensusConfig(
        ConsensusMethod.SEMANTIC_SIMILARITY, 0.7, 0.75, require_human_review=True
    ),
    ConsensusMethod.TIEBREAKER: ConsensusConfig(ConsensusMethod.TIEBREAKER, 0.5, 0.6),
    ConsensusMethod.LONGEST_COMMON: ConsensusConfig(
        ConsensusMethod.LONGEST_COMMON, 0.5, 0.65, require_human_review=True
    ),
    ConsensusMethod.CONFIDENCE_WEIGHTED: ConsensusConfig(ConsensusMethod.CONFIDENCE_WEIGHTED, 0.7, 0.75),
})


def consensus_configs_from(config: OrchestratorConfig) -> Dict[ConsensusMethod, ConsensusConfig]:
    """Defaults overlaid with the [CONSENSUS:<method>] sections"""
    configs = dict(DEFAULT_CONSENSUS_CONFIGS)
    for method, values in config.consensus_thresholds.items():
        base = configs[method]
        configs[method] = ConsensusConfig(
            method=method,
            min_agreement=values.get("min_agreement", base.min_agreement),
            confidence_threshold=values.get("confidence_threshold", base.confidence_threshold),
            require_human_review=values.get("require_human_review", base.require_human_review)
        )
    return configs
