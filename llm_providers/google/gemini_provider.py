"""
Google Gemini Provider Implementation.

This module provides integration with Google's Gemini models through the
Generative Language REST API.
"""

import logging
import time
from typing import Optional

import requests

from core.data_models import LLMRequest, LLMResponse, FinishReason
from core.model_catalog import BACKEND_CATALOG, BackendInfo, GEMINI
from ..base_provider import (
    BaseLLMProvider, LLMProviderType, LLMProviderError, InvalidRequestError,
    ProviderTimeoutError, ProviderConnectionError, error_for_status
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MAX_TOKENS = 8192


class GoogleProvider(BaseLLMProvider):
    """
    Google Gemini provider implementation.

    Gemini has no separate system slot in this integration, so the system
    prompt is prepended to the user prompt.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 backend: BackendInfo = BACKEND_CATALOG[GEMINI], base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 20.0, session: Optional[requests.Session] = None, **kwargs):
        """
        Initialize Google provider.

        Args:
            api_key: Google AI API key
            model: Gemini model name; the catalog's id is used when omitted
            backend: Catalog entry this adapter serves
            base_url: Custom API base URL
            timeout: Request timeout in seconds
            session: Pre-built requests session (used by tests)

        Raises:
            ValueError: If the API key is empty
        """
        super().__init__(backend, timeout=timeout, **kwargs)
        if not api_key or not api_key.strip():
            raise ValueError("api_key is required and cannot be empty")

        self.api_key = api_key
        self.vendor_model = model or backend.vendor_model_id
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

        logger.info(f"Google provider initialized for {self.model_name} (model: {self.vendor_model})")

    def get_provider_type(self) -> LLMProviderType:
        """Get the provider type"""
        return LLMProviderType.GOOGLE

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.vendor_model}:generateContent"

    def generate_response(self, request: LLMRequest) -> LLMResponse:
        """
        Generate response using Google Gemini.

        Args:
            request: Standardized LLM request

        Returns:
            LLMResponse: Generated response

        Raises:
            LLMProviderError: For API errors, classified for the retry policy
        """
        start_time = time.time()
        full_prompt = request.full_prompt()

        generation_config = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "topP": request.top_p if request.top_p is not None else 1.0,
        }
        if request.top_k is not None:
            generation_config["topK"] = request.top_k
        if request.stop_sequences:
            generation_config["stopSequences"] = request.stop_sequences

        payload = {
            "contents": [{"role": "user", "parts": [{"text": full_prompt}]}],
            "generationConfig": generation_config,
        }

        try:
            http_response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            self._record_failure()
            raise self._handle_provider_error(e) from e

        if http_response.status_code >= 400:
            self._record_failure()
            raise self._error_from_response(http_response)

        try:
            body = http_response.json()
        except ValueError as e:
            self._record_failure()
            raise LLMProviderError(f"Failed to parse response: {e}", "google") from e

        candidates = body.get("candidates") or []
        if not candidates:
            self._record_failure()
            block_reason = body.get("promptFeedback", {}).get("blockReason", "no candidates returned")
            raise InvalidRequestError(f"Gemini returned no content: {block_reason}", "google")

        candidate = candidates[0]
        parts = candidate.get("content", {}).get("parts", [])
        content = "".join(part.get("text", "") for part in parts)

        usage = body.get("usageMetadata")
        if usage and "promptTokenCount" in usage:
            input_tokens = usage.get("promptTokenCount", 0)
            output_tokens = usage.get("candidatesTokenCount", 0)
        else:
            input_tokens = self.estimate_tokens(full_prompt)
            output_tokens = self.estimate_tokens(content)

        vendor_reason = candidate.get("finishReason")
        if vendor_reason is None or vendor_reason == "STOP":
            finish_reason = FinishReason.STOP
        elif vendor_reason == "MAX_TOKENS":
            finish_reason = FinishReason.LENGTH
        else:
            finish_reason = FinishReason.ERROR

        return self._build_response(
            request, content, input_tokens, output_tokens, finish_reason, start_time,
            metadata={
                "model_id": self.vendor_model,
                "vendor_finish_reason": vendor_reason,
                "safety_ratings": candidate.get("safetyRatings"),
                "usage_estimated": not usage
            }
        )

    def _error_from_response(self, http_response: requests.Response) -> LLMProviderError:
        try:
            error_body = http_response.json().get("error", {})
            message = error_body.get("message", http_response.text)
            error_code = error_body.get("status")
        except ValueError:
            message = http_response.text
            error_code = None
        return error_for_status(
            http_response.status_code,
            f"Gemini error ({http_response.status_code}): {message}",
            "google",
            error_code
        )

    def _handle_provider_error(self, error: Exception) -> LLMProviderError:
        """
        Handle transport errors raised by requests.

        Args:
            error: Original requests error

        Returns:
            LLMProviderError: Standardized error
        """
        # ConnectTimeout is both a Timeout and a ConnectionError
        if isinstance(error, requests.Timeout):
            return ProviderTimeoutError(f"Gemini request timed out: {error}", "google")
        if isinstance(error, requests.ConnectionError):
            return ProviderConnectionError(f"Gemini connection failed: {error}", "google")
        return super()._handle_provider_error(error)


def create_google_provider(api_key: str, model: Optional[str] = None, **kwargs) -> GoogleProvider:
    """
    Factory function to create Google provider.

    Args:
        api_key: Google API key
        model: Model to use
        **kwargs: Additional configuration

    Returns:
        GoogleProvider: Configured provider instance
    """
    return GoogleProvider(api_key=api_key, model=model, **kwargs)
