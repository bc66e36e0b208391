"""
Abstract Base Class for LLM Provider Integration.

This module defines the base interface that all backend adapters must
implement, together with the provider error taxonomy used by the retry
policy.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Any, Optional, List

from core.data_models import LLMRequest, LLMResponse, FinishReason
from core.model_catalog import BackendInfo

logger = logging.getLogger(__name__)


class LLMProviderType(Enum):
    """Enumeration of supported LLM providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    MOCK = "mock"


class LLMProviderError(Exception):
    """Base exception for backend call failures"""
    retryable = False
    backend: Optional[str] = None

    def __init__(self, message: str, provider: str, error_code: Optional[str] = None,
                 status_code: Optional[int] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.provider = provider
        self.error_code = error_code
        self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable
        elif status_code is not None:
            self.retryable = status_code == 429 or status_code >= 500


class RateLimitError(LLMProviderError):
    """Raised when rate limits are exceeded"""
    retryable = True


class AuthenticationError(LLMProviderError):
    """Raised when authentication fails"""
    pass


class ModelNotFoundError(LLMProviderError):
    """Raised when requested model is not available"""
    pass


class InvalidRequestError(LLMProviderError):
    """Raised when the backend rejects the request as malformed"""
    pass


class ProviderTimeoutError(LLMProviderError):
    """Raised when a backend call exceeds its timeout"""
    retryable = True


class ProviderConnectionError(LLMProviderError):
    """Raised on connection resets and other transport failures"""
    retryable = True


class ProviderServerError(LLMProviderError):
    """Raised on 5xx responses"""
    retryable = True


def is_retryable_error(error: Exception) -> bool:
    """Whether a failed call may be retried under the backoff policy"""
    if isinstance(error, LLMProviderError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))


def error_for_status(status_code: int, message: str, provider: str,
                     error_code: Optional[str] = None) -> LLMProviderError:
    """Map an HTTP status to the provider error taxonomy"""
    if status_code == 429:
        return RateLimitError(message, provider, error_code, status_code)
    if status_code in (401, 403):
        return AuthenticationError(message, provider, error_code, status_code)
    if status_code == 404:
        return ModelNotFoundError(message, provider, error_code, status_code)
    if status_code == 408:
        return ProviderTimeoutError(message, provider, error_code, status_code)
    if status_code >= 500:
        return ProviderServerError(message, provider, error_code, status_code)
    return InvalidRequestError(message, provider, error_code, status_code)


class BaseLLMProvider(ABC):
    """
    Abstract base class for all backend adapters.

    An adapter owns one backend from the catalog. It composes the vendor
    request, extracts text and token usage from the vendor response, maps the
    finish cause and prices the call. Retries are not the adapter's concern;
    ModelClient applies the retry policy around ``generate_response``.
    """

    def __init__(self, backend: BackendInfo, timeout: float = 30.0, **kwargs):
        """
        Initialize the provider.

        Args:
            backend: Catalog entry this adapter serves
            timeout: Per-call timeout in seconds
            **kwargs: Additional provider-specific configuration
        """
        self.backend = backend
        self.model_name = backend.name
        self.timeout = timeout
        self.config = kwargs
        self._stats_lock = threading.Lock()
        self._request_count = 0
        self._failed_requests = 0
        self._total_tokens = 0
        self._total_cost = 0.0

    @abstractmethod
    def generate_response(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a response from the backend.

        Args:
            request: Standardized LLM request object

        Returns:
            LLMResponse: Standardized response object

        Raises:
            LLMProviderError: For provider-specific errors, already classified
        """
        pass

    @abstractmethod
    def get_provider_type(self) -> LLMProviderType:
        pass

    def health_check(self) -> Dict[str, Any]:
        """
        Perform a health check with a minimal request.

        Returns:
            Dict[str, Any]: Health status information
        """
        try:
            response = self.generate_response(LLMRequest(prompt="Hi", max_tokens=10, temperature=0.1))
            return {
                "status": "healthy",
                "provider": self.get_provider_type().value,
                "model": self.model_name,
                "response_time": response.generation_time,
                "timestamp": time.time()
            }
        except LLMProviderError as e:
            return {
                "status": "unhealthy",
                "provider": self.get_provider_type().value,
                "model": self.model_name,
                "error": str(e),
                "timestamp": time.time()
            }

    def estimate_tokens(self, text: str) -> int:
        return self.backend.estimate_tokens(text)

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return self.backend.cost(input_tokens, output_tokens)

    def get_available_models(self) -> List[str]:
        return [self.model_name]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get usage statistics for this provider instance.

        Returns:
            Dict[str, Any]: Statistics including request count, tokens, cost
        """
        with self._stats_lock:
            request_count = self._request_count
            return {
                "provider": self.get_provider_type().value,
                "model_name": self.model_name,
                "request_count": request_count,
                "failed_requests": self._failed_requests,
                "total_tokens": self._total_tokens,
                "total_cost": self._total_cost,
                "avg_tokens_per_request": self._total_tokens / request_count if request_count > 0 else 0,
                "avg_cost_per_request": self._total_cost / request_count if request_count > 0 else 0
            }

    def reset_stats(self) -> None:
        """Reset usage statistics"""
        with self._stats_lock:
            self._request_count = 0
            self._failed_requests = 0
            self._total_tokens = 0
            self._total_cost = 0.0

    def _update_stats(self, response: LLMResponse) -> None:
        """Update internal statistics after a successful request"""
        with self._stats_lock:
            self._request_count += 1
            self._total_tokens += response.token_count
            self._total_cost += response.total_cost

    def _record_failure(self) -> None:
        with self._stats_lock:
            self._failed_requests += 1

    def _build_response(self, request: LLMRequest, content: str, input_tokens: int, output_tokens: int,
                        finish_reason: FinishReason, start_time: float,
                        metadata: Optional[Dict[str, Any]] = None) -> LLMResponse:
        """Price and package a successful call, then update statistics"""
        response = LLMResponse(
            content=content,
            model_name=self.model_name,
            provider=self.get_provider_type().value,
            generation_time=time.time() - start_time,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_cost=self.calculate_cost(input_tokens, output_tokens),
            finish_reason=finish_reason.value,
            request_id=request.request_id,
            metadata=metadata or {}
        )
        self._update_stats(response)
        return response

    def _handle_provider_error(self, error: Exception) -> LLMProviderError:
        """
        Convert provider-specific errors to standardized errors.

        Concrete implementations override this to handle their SDK's
        exception types and fall back here for anything unrecognised.

        Args:
            error: Original exception from the provider

        Returns:
            LLMProviderError: Standardized error
        """
        if isinstance(error, LLMProviderError):
            return error
        provider = self.get_provider_type().value
        if isinstance(error, TimeoutError):
            return ProviderTimeoutError(f"Request timed out: {error}", provider)
        if isinstance(error, ConnectionError):
            return ProviderConnectionError(f"Connection failed: {error}", provider)
        return LLMProviderError(f"Unexpected error: {error}", provider)

    def __str__(self) -> str:
        """String representation of the provider"""
        return f"{self.get_provider_type().value.title()}Provider(model={self.model_name})"

    def __repr__(self) -> str:
        """Detailed string representation of the provider"""
        return (
            f"{self.__class__.__name__}("
            f"model_name='{self.model_name}', "
            f"requests={self._request_count}, "
            f"tokens={self._total_tokens}"
            f")"
        )
