"""
Token Overlap Embedder

Lexical fallback embedder: each text becomes a binary bag-of-words vector
over the batch's shared vocabulary. Works offline without model downloads.
"""

import logging
import re
from typing import Any, Dict, List, Set

import numpy as np

from .abstract_embedder import AbstractEmbedder

logger = logging.getLogger(__name__)


class TokenOverlapEmbedder(AbstractEmbedder):
    """Simple token overlap-based embedder as fallback"""

    def __init__(self, model_name: str = None, min_token_length: int = 2):
        """
        Initialize Token Overlap Embedder

        Args:
            model_name: Unused, kept for interface consistency
            min_token_length: Shorter tokens are ignored
        """
        super().__init__(model_name or "token-overlap")
        self.min_token_length = min_token_length
        self.stop_words = {
            'a', 'an', 'and', 'are', 'as', 'at', 'be', 'by', 'for', 'from',
            'has', 'he', 'in', 'is', 'it', 'its', 'of', 'on', 'that', 'the',
            'to', 'was', 'were', 'will', 'with', 'would', 'you', 'your'
        }
        logger.info("Using token overlap similarity for semantic consensus")

    def _tokenize(self, text: str) -> Set[str]:
        """
        Tokenize text into normalized tokens

        Args:
            text: Input text

        Returns:
            Set of normalized tokens
        """
        tokens = re.findall(r'\b[a-zA-Z0-9]+\b', text.lower())
        return {
            token for token in tokens
            if len(token) >= self.min_token_length and token not in self.stop_words
        }

    def embed(self, texts: List[str]) -> np.ndarray:
        token_sets = [self._tokenize(text) for text in texts]
        vocabulary = sorted(set().union(*token_sets)) if token_sets else []
        index = {token: position for position, token in enumerate(vocabulary)}

        vectors = np.zeros((len(texts), max(len(vocabulary), 1)))
        for row, tokens in enumerate(token_sets):
            for token in tokens:
                vectors[row, index[token]] = 1.0
        return vectors

    def get_implementation_info(self) -> Dict[str, Any]:
        """Get implementation information"""
        return {
            'name': 'Token Overlap',
            'type': 'token_overlap',
            'description': 'Binary bag-of-words vectors over the batch vocabulary',
            'min_token_length': self.min_token_length,
            'stop_words_count': len(self.stop_words),
            'dependencies': ['numpy']
        }
