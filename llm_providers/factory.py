"""
LLM Provider Factory for easy instantiation and management.

This module builds one adapter per catalog backend from the parsed
configuration.
"""

import logging
from typing import Dict, Mapping, Optional, Union

from core.config import OrchestratorConfig, DEFAULT_RETRY_POLICIES
from core.exceptions import ConfigurationError
from core.model_catalog import BACKEND_CATALOG, BackendInfo, get_backend_info
from .base_provider import BaseLLMProvider, LLMProviderType, LLMProviderError
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .google import GoogleProvider
from .mock import MockProvider

logger = logging.getLogger(__name__)


def _build_openai(backend: BackendInfo, config: OrchestratorConfig, timeout: float) -> Optional[BaseLLMProvider]:
    settings = config.providers
    api_key = settings.get("openai_api_key")
    if not api_key:
        return None
    return OpenAIProvider(
        api_key=api_key,
        model=settings.get("openai_model"),
        backend=backend,
        azure_endpoint=settings.get("azure_openai_endpoint"),
        api_version=settings.get("azure_openai_api_version", "2024-02-01"),
        timeout=timeout
    )


def _build_anthropic(backend: BackendInfo, config: OrchestratorConfig, timeout: float) -> Optional[BaseLLMProvider]:
    aws = config.aws
    if not aws.get("aws_access_key_id") or not aws.get("aws_secret_access_key"):
        return None
    return AnthropicProvider(
        aws_access_key_id=aws["aws_access_key_id"],
        aws_secret_access_key=aws["aws_secret_access_key"],
        aws_region=aws.get("aws_region", "us-east-1"),
        model_id=config.providers.get("claude_model_id"),
        backend=backend,
        timeout=timeout
    )


def _build_google(backend: BackendInfo, config: OrchestratorConfig, timeout: float) -> Optional[BaseLLMProvider]:
    settings = config.providers
    api_key = settings.get("google_api_key")
    if not api_key:
        return None
    return GoogleProvider(
        api_key=api_key,
        model=settings.get("gemini_model"),
        backend=backend,
        base_url=settings.get("gemini_base_url", "https://generativelanguage.googleapis.com/v1beta"),
        timeout=timeout
    )


class ProviderFactory:
    """
    Factory class for creating backend adapters.

    Provides a unified interface for instantiating the adapter that serves
    each catalog backend with consistent configuration and error handling.
    """

    # Registry of available providers
    PROVIDERS = {
        LLMProviderType.OPENAI: {
            "class": OpenAIProvider,
            "builder": _build_openai,
            "credentials": "openai_api_key in [PROVIDER_CONFIGS] or $OPENAI_API_KEY"
        },
        LLMProviderType.ANTHROPIC: {
            "class": AnthropicProvider,
            "builder": _build_anthropic,
            "credentials": "aws_access_key_id and aws_secret_access_key in [AWS_BEDROCK]"
        },
        LLMProviderType.GOOGLE: {
            "class": GoogleProvider,
            "builder": _build_google,
            "credentials": "google_api_key in [PROVIDER_CONFIGS] or $GOOGLE_AI_API_KEY"
        }
    }

    @classmethod
    def create_provider(cls, backend: Union[str, BackendInfo], config: OrchestratorConfig,
                        mock: bool = False) -> Optional[BaseLLMProvider]:
        """
        Create the adapter for one backend.

        Args:
            backend: Backend name or catalog entry
            config: Parsed configuration
            mock: Build a MockProvider instead of a real adapter

        Returns:
            BaseLLMProvider or None when the backend's credentials are not configured

        Raises:
            LLMProviderError: If the backend's provider type is not registered
        """
        if isinstance(backend, str):
            backend = get_backend_info(backend)
        policy = config.retry_policies.get(backend.name, DEFAULT_RETRY_POLICIES.get(backend.name))
        timeout = policy.timeout if policy else 30.0

        if mock:
            return MockProvider(backend, timeout=timeout)

        try:
            provider_type = LLMProviderType(backend.provider)
        except ValueError:
            raise LLMProviderError(
                f"Unsupported provider type: {backend.provider}. "
                f"Available: {cls.get_available_providers()}",
                provider=backend.provider
            ) from None

        if provider_type not in cls.PROVIDERS:
            raise LLMProviderError(f"Provider {provider_type.value} not registered", provider=provider_type.value)

        return cls.PROVIDERS[provider_type]["builder"](backend, config, timeout)

    @classmethod
    def get_available_providers(cls):
        """Get list of registered provider types"""
        return [provider.value for provider in cls.PROVIDERS.keys()]

    @classmethod
    def credential_hint(cls, provider: str) -> str:
        info = cls.PROVIDERS.get(LLMProviderType(provider))
        return info["credentials"] if info else "no credentials known"


def create_providers(config: OrchestratorConfig, mock: bool = False,
                     catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG) -> Dict[str, BaseLLMProvider]:
    """
    Create adapters for every catalog backend that is configured.

    Backends without credentials are skipped with a warning. Construction
    failures are collected and reported together.

    Args:
        config: Parsed configuration
        mock: Build deterministic mock adapters for every backend
        catalog: Backends to build adapters for

    Returns:
        Dictionary mapping backend names to provider instances

    Raises:
        ConfigurationError: If any adapter fails to build or none is configured
    """
    providers = {}
    errors = []

    for name, backend in catalog.items():
        try:
            provider = ProviderFactory.create_provider(backend, config, mock=mock)
        except (LLMProviderError, ValueError) as e:
            errors.append(f"Failed to create provider for {name}: {e}")
            continue
        if provider is None:
            logger.warning(
                f"Backend {name} skipped: credentials not configured "
                f"({ProviderFactory.credential_hint(backend.provider)})"
            )
            continue
        providers[name] = provider

    if errors:
        raise ConfigurationError(
            "Provider initialization failed with the following errors:\n" + "\n".join(f"  - {error}" for error in errors)
        )

    if not providers:
        raise ConfigurationError(
            "No providers were created. Please configure at least one backend:\n" +
            "\n".join(
                f"  - {name}: {ProviderFactory.credential_hint(backend.provider)}"
                for name, backend in catalog.items()
            )
        )

    logger.info(f"Created {len(providers)} provider(s): {list(providers.keys())}")
    return providers
