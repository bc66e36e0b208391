"""
OpenAI Embedder

Hosted embeddings through the OpenAI (or Azure OpenAI) embeddings endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import openai
from openai import OpenAI, AzureOpenAI

from core.exceptions import ConsensusError
from .abstract_embedder import AbstractEmbedder

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'text-embedding-3-small'


class OpenAIEmbedder(AbstractEmbedder):
    """Embedder backed by the OpenAI embeddings API"""

    def __init__(self, model_name: str = None, api_key: Optional[str] = None,
                 azure_endpoint: Optional[str] = None, api_version: str = "2024-02-01",
                 timeout: float = 30.0, client=None):
        """
        Initialize the embedder

        Args:
            model_name: Embedding model (or Azure deployment) name
            api_key: OpenAI API key
            azure_endpoint: Azure OpenAI endpoint; api.openai.com when omitted
            api_version: Azure OpenAI API version
            timeout: Request timeout in seconds
            client: Pre-built OpenAI client (used by tests)

        Raises:
            ValueError: If no API key is given and no client is supplied
        """
        super().__init__(model_name or DEFAULT_MODEL)
        if client is not None:
            self.client = client
        else:
            if not api_key or not api_key.strip():
                raise ValueError("api_key is required and cannot be empty")
            if azure_endpoint:
                self.client = AzureOpenAI(
                    api_key=api_key, azure_endpoint=azure_endpoint, api_version=api_version, timeout=timeout
                )
            else:
                self.client = OpenAI(api_key=api_key, timeout=timeout)
        logger.info(f"OpenAI embedder initialized with model {self.model_name}")

    @classmethod
    def is_available(cls, api_key: Optional[str] = None, client=None, **kwargs) -> bool:
        return client is not None or bool(api_key and api_key.strip())

    def embed(self, texts: List[str]) -> np.ndarray:
        """
        Embed a batch of texts in one API call

        Raises:
            ConsensusError: If the embeddings request fails
        """
        try:
            response = self.client.embeddings.create(model=self.model_name, input=list(texts))
        except openai.OpenAIError as e:
            raise ConsensusError(f"Embedding request failed: {e}") from e

        ordered = sorted(response.data, key=lambda item: item.index)
        return np.array([item.embedding for item in ordered], dtype=float)

    def get_implementation_info(self) -> Dict[str, Any]:
        """Get implementation information"""
        return {
            'name': 'OpenAI Embeddings',
            'type': 'openai',
            'description': 'Hosted dense embeddings',
            'model_name': self.model_name,
            'dependencies': ['openai', 'numpy']
        }
