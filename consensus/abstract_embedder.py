"""
Abstract Embedder Interface

This module defines the abstract base class for the text embedders used by
semantic-similarity consensus, so the engine can switch between hosted,
local and lexical embeddings without changing the strategy code.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

import numpy as np


class AbstractEmbedder(ABC):
    """Abstract base class for text embedders"""

    def __init__(self, model_name: str = None):
        """
        Initialize the embedder

        Args:
            model_name: Embedding model name, when the implementation has one
        """
        self.model_name = model_name

    @abstractmethod
    def embed(self, texts: List[str]) -> np.ndarray:
        """
        Embed a batch of texts

        Vectors are only guaranteed to be comparable within one batch.

        Args:
            texts: Texts to embed

        Returns:
            Array of shape (len(texts), dimension)
        """
        pass

    @abstractmethod
    def get_implementation_info(self) -> Dict[str, Any]:
        """
        Get information about the current implementation

        Returns:
            Dictionary with implementation details
        """
        pass

    @classmethod
    def is_available(cls, **kwargs) -> bool:
        """Whether this implementation can run with the given settings"""
        return True


def cosine_similarity_matrix(embeddings: np.ndarray) -> np.ndarray:
    """
    Pairwise cosine similarities of a batch of vectors.

    A zero vector has similarity 0 with everything, itself included.
    """
    vectors = np.asarray(embeddings, dtype=float)
    norms = np.linalg.norm(vectors, axis=1)
    safe_norms = np.where(norms == 0, 1.0, norms)
    unit = vectors / safe_norms[:, None]
    unit[norms == 0] = 0.0
    return unit @ unit.T
