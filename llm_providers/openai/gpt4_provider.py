"""
OpenAI GPT-4 Provider Implementation.

This module provides integration with GPT-4 through the OpenAI API or, when
an endpoint is configured, through Azure OpenAI Service.
"""

import logging
import time
from typing import Optional

import openai
from openai import AzureOpenAI, OpenAI

from core.data_models import LLMRequest, LLMResponse, FinishReason
from core.model_catalog import BACKEND_CATALOG, BackendInfo, GPT4
from ..base_provider import (
    BaseLLMProvider, LLMProviderType, LLMProviderError, RateLimitError, AuthenticationError,
    ModelNotFoundError, InvalidRequestError, ProviderTimeoutError, ProviderConnectionError,
    error_for_status
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI GPT-4 provider implementation.

    Handles communication with the chat completions endpoint. The SDK's own
    retries are disabled; ModelClient owns the retry policy.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 backend: BackendInfo = BACKEND_CATALOG[GPT4], azure_endpoint: Optional[str] = None,
                 api_version: str = "2024-02-01", timeout: float = 30.0, client=None, **kwargs):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI or Azure OpenAI API key
            model: Vendor model name, or deployment name for Azure
            backend: Catalog entry this adapter serves
            azure_endpoint: Azure endpoint; api.openai.com is used when omitted
            api_version: Azure OpenAI API version
            timeout: Per-call timeout in seconds
            client: Pre-built client (used by tests)

        Raises:
            ValueError: If no client is given and the API key is empty
        """
        super().__init__(backend, timeout=timeout, **kwargs)
        self.vendor_model = model or backend.vendor_model_id
        self.azure_endpoint = azure_endpoint

        if client is not None:
            self.client = client
        else:
            if not api_key or not api_key.strip():
                raise ValueError("api_key is required and cannot be empty")
            if azure_endpoint:
                self.client = AzureOpenAI(
                    api_key=api_key,
                    azure_endpoint=azure_endpoint,
                    api_version=api_version,
                    timeout=timeout,
                    max_retries=0
                )
            else:
                self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

        logger.info(f"OpenAI provider initialized for {self.model_name} (model: {self.vendor_model})")

    def get_provider_type(self) -> LLMProviderType:
        """Get the provider type"""
        return LLMProviderType.OPENAI

    def generate_response(self, request: LLMRequest) -> LLMResponse:
        """
        Generate response using GPT-4.

        Args:
            request: Standardized LLM request

        Returns:
            LLMResponse: Generated response

        Raises:
            LLMProviderError: For API errors, classified for the retry policy
        """
        start_time = time.time()

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        api_params = {
            "model": self.vendor_model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "top_p": request.top_p if request.top_p is not None else 1.0,
        }
        if request.stop_sequences:
            api_params["stop"] = request.stop_sequences

        try:
            completion = self.client.chat.completions.create(**api_params)
        except Exception as e:
            self._record_failure()
            raise self._handle_provider_error(e) from e

        if not completion.choices:
            self._record_failure()
            raise LLMProviderError("Invalid response from OpenAI: no choices", "openai")

        choice = completion.choices[0]
        content = choice.message.content or ""

        usage = completion.usage
        if usage is not None:
            input_tokens = usage.prompt_tokens
            output_tokens = usage.completion_tokens
        else:
            input_tokens = self.estimate_tokens(request.full_prompt())
            output_tokens = self.estimate_tokens(content)

        if choice.finish_reason == "stop":
            finish_reason = FinishReason.STOP
        elif choice.finish_reason == "length":
            finish_reason = FinishReason.LENGTH
        else:
            finish_reason = FinishReason.ERROR

        return self._build_response(
            request, content, input_tokens, output_tokens, finish_reason, start_time,
            metadata={
                "model_id": getattr(completion, "model", self.vendor_model),
                "vendor_finish_reason": choice.finish_reason,
                "azure_endpoint": self.azure_endpoint,
                "usage_estimated": usage is None
            }
        )

    def _handle_provider_error(self, error: Exception) -> LLMProviderError:
        """
        Handle OpenAI SDK errors.

        Args:
            error: Original OpenAI error

        Returns:
            LLMProviderError: Standardized error
        """
        message = f"OpenAI error: {error}"
        # APITimeoutError is a subclass of APIConnectionError
        if isinstance(error, openai.APITimeoutError):
            return ProviderTimeoutError(message, "openai")
        if isinstance(error, openai.APIConnectionError):
            return ProviderConnectionError(message, "openai")
        if isinstance(error, openai.RateLimitError):
            return RateLimitError(message, "openai", status_code=429)
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AuthenticationError(message, "openai", status_code=error.status_code)
        if isinstance(error, openai.NotFoundError):
            return ModelNotFoundError(message, "openai", status_code=404)
        if isinstance(error, openai.BadRequestError):
            return InvalidRequestError(message, "openai", status_code=400)
        if isinstance(error, openai.APIStatusError):
            return error_for_status(error.status_code, message, "openai")
        return super()._handle_provider_error(error)


def create_openai_provider(api_key: str, model: Optional[str] = None, **kwargs) -> OpenAIProvider:
    """
    Factory function to create the OpenAI provider.

    Args:
        api_key: API key (MANDATORY - no defaults)
        model: Vendor model or deployment name
        **kwargs: Additional configuration

    Returns:
        OpenAIProvider: Configured provider instance
    """
    if not api_key or not api_key.strip():
        raise ValueError("api_key is required and cannot be empty")
    return OpenAIProvider(api_key=api_key, model=model, **kwargs)
