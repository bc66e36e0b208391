"""
Model client layer.

``ModelClient`` is the single entry point the orchestrator uses to reach
backends. It resolves a backend name to its adapter, applies the backend's
retry policy and fans requests out to several backends in parallel.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Any

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.config import RetryPolicy, DEFAULT_RETRY_POLICIES
from core.data_models import LLMRequest, LLMResponse
from core.exceptions import AllBackendsFailedError
from core.model_catalog import BACKEND_CATALOG, BackendInfo, get_backend_info, estimate_tokens
from .base_provider import (
    BaseLLMProvider, LLMProviderError, ModelNotFoundError, ProviderTimeoutError, is_retryable_error
)

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Settled outcome of one fan-out: successes in request order plus failures"""
    responses: List[LLMResponse] = field(default_factory=list)
    failures: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def failed_backends(self) -> List[str]:
        return [backend for backend, _ in self.failures]


class ModelClient:
    """
    Uniform call interface over every configured backend adapter.

    Adapters are stateless apart from usage statistics, so one client may be
    shared by concurrent orchestration calls.
    """

    def __init__(self, providers: Mapping[str, BaseLLMProvider],
                 retry_policies: Optional[Mapping[str, RetryPolicy]] = None,
                 catalog: Mapping[str, BackendInfo] = BACKEND_CATALOG,
                 sleep: Callable[[float], None] = time.sleep,
                 max_workers: Optional[int] = None):
        """
        Initialize the client.

        Args:
            providers: Backend name to adapter mapping
            retry_policies: Backend name to retry policy; catalog defaults when omitted
            catalog: Backend catalog used for pricing and token estimates
            sleep: Function used to wait between retries
            max_workers: Upper bound on fan-out threads; one per backend when omitted
        """
        self.providers = dict(providers)
        self.retry_policies = dict(retry_policies or DEFAULT_RETRY_POLICIES)
        self.catalog = catalog
        self.sleep = sleep
        self.max_workers = max_workers

    def available_backends(self) -> List[str]:
        """Backends that have a configured adapter, in catalog order"""
        ordered = [name for name in self.catalog if name in self.providers]
        return ordered + [name for name in self.providers if name not in ordered]

    def _provider_for(self, backend: str) -> BaseLLMProvider:
        provider = self.providers.get(backend)
        if provider is None:
            error = ModelNotFoundError(
                f"No adapter configured for backend {backend}. Available: {self.available_backends()}",
                provider="unknown"
            )
            error.backend = backend
            raise error
        return provider

    def _policy_for(self, backend: str) -> RetryPolicy:
        return self.retry_policies.get(backend) or DEFAULT_RETRY_POLICIES.get(backend) or RetryPolicy()

    def _attempt(self, backend: str, provider: BaseLLMProvider, request: LLMRequest) -> LLMResponse:
        try:
            response = provider.generate_response(request)
        except LLMProviderError as e:
            e.backend = backend
            raise
        logger.debug(
            f"{backend} answered request {request.request_id} in {response.latency_ms}ms "
            f"({response.token_count} tokens, ${response.total_cost:.4f})"
        )
        return response

    def call(self, backend: str, request: LLMRequest) -> LLMResponse:
        """
        Call one backend under its retry policy.

        Retryable errors are retried with exponential backoff
        (``base_delay * 2 ** n``); anything else propagates at once.

        Args:
            backend: Backend name
            request: Request to send

        Returns:
            LLMResponse: Normalized response

        Raises:
            LLMProviderError: Terminal error, or the last retryable error once retries are exhausted
        """
        provider = self._provider_for(backend)
        policy = self._policy_for(backend)
        attempts = policy.max_retries + 1

        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                f"{backend} attempt {retry_state.attempt_number}/{attempts} failed: "
                f"{retry_state.outcome.exception()}. Retrying in {retry_state.next_action.sleep:.1f}s"
            )

        retrying = Retrying(
            retry=retry_if_exception(is_retryable_error),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=policy.base_delay),
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True
        )
        return retrying(self._attempt, backend, provider, request)

    def call_many_with_failures(self, backends: List[str], request: LLMRequest,
                                timeout: Optional[float] = None) -> FanOutResult:
        """
        Send one request to several backends concurrently and wait for all of them.

        Args:
            backends: Backend names, in the order results should be returned
            request: Request to send
            timeout: Overall wait in seconds; unsettled calls are reported as timeouts

        Returns:
            FanOutResult: Successes in request order and every failure
        """
        if not backends:
            return FanOutResult()

        executor = ThreadPoolExecutor(
            max_workers=self.max_workers or len(backends),
            thread_name_prefix="model-client"
        )
        try:
            futures = [executor.submit(self.call, backend, request) for backend in backends]
            wait(futures, timeout=timeout)
        finally:
            # stragglers keep running in the background; their results are discarded
            executor.shutdown(wait=timeout is None)

        result = FanOutResult()
        for backend, future in zip(backends, futures):
            if not future.done():
                future.cancel()
                error = ProviderTimeoutError(
                    f"{backend} did not settle within {timeout}s", provider=self.catalog[backend].provider
                    if backend in self.catalog else "unknown"
                )
                error.backend = backend
                result.failures.append((backend, error))
                logger.warning(f"{backend} timed out in fan-out for request {request.request_id}")
                continue

            error = future.exception()
            if error is None:
                result.responses.append(future.result())
            else:
                result.failures.append((backend, error))
                logger.warning(f"{backend} failed for request {request.request_id}: {error}")

        return result

    def call_many(self, backends: List[str], request: LLMRequest,
                  timeout: Optional[float] = None) -> List[LLMResponse]:
        """
        Send one request to several backends concurrently.

        Args:
            backends: Backend names
            request: Request to send
            timeout: Overall wait in seconds

        Returns:
            List[LLMResponse]: Successful responses in request order

        Raises:
            AllBackendsFailedError: If no backend succeeded
        """
        outcome = self.call_many_with_failures(backends, request, timeout=timeout)
        if not outcome.responses:
            raise AllBackendsFailedError(outcome.failures, request_id=request.request_id)
        return outcome.responses

    def estimate_cost(self, backend: str, input_tokens: int, output_tokens: int) -> float:
        """List-price cost of a call with the given token counts"""
        return get_backend_info(backend, self.catalog).cost(input_tokens, output_tokens)

    def estimate_tokens(self, text: str, backend: Optional[str] = None) -> int:
        return estimate_tokens(text, backend, self.catalog)

    def health_check_all(self) -> Dict[str, Dict[str, Any]]:
        """Perform health checks on all configured adapters"""
        results = {}
        for name, provider in self.providers.items():
            try:
                results[name] = provider.health_check()
            except Exception as e:
                results[name] = {
                    "status": "error",
                    "error": str(e),
                    "timestamp": time.time()
                }
        return results

    def get_stats_all(self) -> Dict[str, Dict[str, Any]]:
        """Get usage statistics for all adapters"""
        return {name: provider.get_stats() for name, provider in self.providers.items()}
