"""
Consensus Package.

Reconciles divergent backend outputs: consensus strategies, per-method
validation thresholds and the embedders used for semantic similarity.
"""

from .abstract_embedder import AbstractEmbedder, cosine_similarity_matrix
from .token_overlap_embedder import TokenOverlapEmbedder
from .sentence_transformer_embedder import SentenceTransformerEmbedder
from .openai_embedder import OpenAIEmbedder
from .factory import EmbedderFactory, create_embedder_from_config
from .config import ConsensusConfig, DEFAULT_CONSENSUS_CONFIGS, consensus_configs_from
from .engine import ConsensusEngine, ConsensusValidation, AgreementAnalysis, select_method

__all__ = [
    "AbstractEmbedder",
    "cosine_similarity_matrix",
    "TokenOverlapEmbedder",
    "SentenceTransformerEmbedder",
    "OpenAIEmbedder",
    "EmbedderFactory",
    "create_embedder_from_config",
    "ConsensusConfig",
    "DEFAULT_CONSENSUS_CONFIGS",
    "consensus_configs_from",
    "ConsensusEngine",
    "ConsensusValidation",
    "AgreementAnalysis",
    "select_method"
]
