"""
Embedder Factory

Factory pattern implementation for selecting the embedder used by
semantic-similarity consensus, based on configuration and on which
implementations can run in the current environment.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from core.config import OrchestratorConfig
from core.exceptions import ConfigurationError
from .abstract_embedder import AbstractEmbedder
from .openai_embedder import OpenAIEmbedder
from .sentence_transformer_embedder import SentenceTransformerEmbedder
from .token_overlap_embedder import TokenOverlapEmbedder

logger = logging.getLogger(__name__)


class EmbedderFactory:
    """Factory for creating embedder implementations"""

    # Registry of available implementations
    _implementations: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def register_implementation(cls, name: str, implementation_class: Type[AbstractEmbedder],
                                priority: int = 100):
        """
        Register an embedder implementation

        Args:
            name: Implementation name
            implementation_class: Class implementing AbstractEmbedder
            priority: Priority for auto-selection (lower = higher priority)
        """
        cls._implementations[name] = {
            'class': implementation_class,
            'priority': priority
        }

    @classmethod
    def get_available_implementations(cls, **settings) -> List[str]:
        """Implementation names that can run with the given settings, best first"""
        ranked = sorted(cls._implementations.items(), key=lambda item: item[1]['priority'])
        return [name for name, info in ranked if info['class'].is_available(**settings)]

    @classmethod
    def get_best_implementation(cls, **settings) -> Optional[str]:
        available = cls.get_available_implementations(**settings)
        return available[0] if available else None

    @classmethod
    def create_embedder(cls, implementation: str = "auto", model_name: Optional[str] = None,
                        **settings) -> AbstractEmbedder:
        """
        Create an embedder instance

        Args:
            implementation: Implementation name, or "auto" to pick the best available
            model_name: Embedding model; each implementation has its own default
            **settings: Implementation settings such as ``api_key``

        Returns:
            AbstractEmbedder instance

        Raises:
            ConfigurationError: If the implementation is unknown or cannot run here
        """
        if implementation in (None, "auto"):
            implementation = cls.get_best_implementation(**settings)
            if implementation is None:
                raise ConfigurationError("No suitable embedder implementation found")

        impl_info = cls._implementations.get(implementation)
        if impl_info is None:
            raise ConfigurationError(
                f"Unknown embedder: {implementation}. Available: {list(cls._implementations)}"
            )

        implementation_class = impl_info['class']
        if not implementation_class.is_available(**settings):
            raise ConfigurationError(f"Embedder '{implementation}' is not available with the current settings")

        logger.info(f"Creating embedder implementation: {implementation}")
        if implementation_class is OpenAIEmbedder:
            return implementation_class(model_name=model_name, **settings)
        return implementation_class(model_name=model_name)


def _register_default_implementations():
    """Register default implementations with the factory"""
    EmbedderFactory.register_implementation('openai', OpenAIEmbedder, priority=10)
    EmbedderFactory.register_implementation('sentence_transformers', SentenceTransformerEmbedder, priority=20)
    EmbedderFactory.register_implementation('token_overlap', TokenOverlapEmbedder, priority=100)


# Register implementations on module import
_register_default_implementations()


def create_embedder_from_config(config: OrchestratorConfig) -> AbstractEmbedder:
    """Create the embedder named in the [CONSENSUS] section"""
    settings = {}
    api_key = config.providers.get("openai_api_key")
    if api_key:
        settings["api_key"] = api_key
        if config.providers.get("azure_openai_endpoint"):
            settings["azure_endpoint"] = config.providers["azure_openai_endpoint"]
            settings["api_version"] = config.providers.get("azure_openai_api_version", "2024-02-01")
    return EmbedderFactory.create_embedder(
        config.consensus.get("embedder", "auto"),
        model_name=config.consensus.get("embedding_model"),
        **settings
    )
