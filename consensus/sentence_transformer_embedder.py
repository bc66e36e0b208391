"""
Sentence Transformer Embedder

Local dense embeddings using Sentence Transformers. The model is loaded once
per embedder and runs on GPU when torch reports one.
"""

import importlib.util
import logging
from typing import Any, Dict, List

import numpy as np

from .abstract_embedder import AbstractEmbedder

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'all-MiniLM-L6-v2'


class SentenceTransformerEmbedder(AbstractEmbedder):
    """Sentence-transformers embedder with normalized output vectors"""

    def __init__(self, model_name: str = None, batch_size: int = 32):
        """
        Initialize the embedder and load its model

        Args:
            model_name: Sentence transformer model name
            batch_size: Encoding batch size
        """
        super().__init__(model_name or DEFAULT_MODEL)
        self.batch_size = batch_size
        self._load_model()

    @classmethod
    def is_available(cls, **kwargs) -> bool:
        return (importlib.util.find_spec('sentence_transformers') is not None
                and importlib.util.find_spec('torch') is not None)

    def _load_model(self):
        """Load sentence transformer model"""
        import torch
        from sentence_transformers import SentenceTransformer

        self.use_gpu = torch.cuda.is_available() and torch.cuda.device_count() > 0
        device = 'cuda' if self.use_gpu else 'cpu'
        logger.info(f"Loading sentence transformer model: {self.model_name} on {device}")

        self.model = SentenceTransformer(self.model_name, device=device)
        self.embedding_dim = self.model.get_sentence_embedding_dimension()

    def embed(self, texts: List[str]) -> np.ndarray:
        embeddings = self.model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False
        )
        return np.asarray(embeddings, dtype=float)

    def get_implementation_info(self) -> Dict[str, Any]:
        """Get implementation information"""
        return {
            'name': 'Sentence Transformers',
            'type': 'sentence_transformers',
            'description': 'Local dense embeddings',
            'model_name': self.model_name,
            'embedding_dim': self.embedding_dim,
            'gpu_acceleration': self.use_gpu,
            'dependencies': ['sentence-transformers', 'torch', 'numpy']
        }
