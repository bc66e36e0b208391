"""
LLM Providers Package.

This package is the model client layer: a unified interface over the OpenAI,
Anthropic (Amazon Bedrock) and Google Gemini backends, plus an offline mock,
with retry and parallel fan-out handled by ``ModelClient``.
"""

# Base classes and types
from .base_provider import (
    BaseLLMProvider,
    LLMProviderType,
    LLMProviderError,
    RateLimitError,
    AuthenticationError,
    ModelNotFoundError,
    InvalidRequestError,
    ProviderTimeoutError,
    ProviderConnectionError,
    ProviderServerError,
    is_retryable_error,
    error_for_status
)

# Provider implementations
from .openai import OpenAIProvider, create_openai_provider
from .anthropic import AnthropicProvider, create_anthropic_provider
from .google import GoogleProvider, create_google_provider
from .mock import MockProvider

# Factory and client
from .factory import ProviderFactory, create_providers
from .client import ModelClient, FanOutResult

__version__ = "1.0.0"

__all__ = [
    # Base classes and types
    "BaseLLMProvider",
    "LLMProviderType",
    "LLMProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
    "InvalidRequestError",
    "ProviderTimeoutError",
    "ProviderConnectionError",
    "ProviderServerError",
    "is_retryable_error",
    "error_for_status",

    # Provider implementations
    "OpenAIProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "MockProvider",

    # Factory functions
    "create_openai_provider",
    "create_anthropic_provider",
    "create_google_provider",

    # Factory and client
    "ProviderFactory",
    "create_providers",
    "ModelClient",
    "FanOutResult"
]

# Package metadata
SUPPORTED_PROVIDERS = ["openai", "anthropic", "google"]
