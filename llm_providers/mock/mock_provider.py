"""
Mock Provider for offline runs.

Produces deterministic responses with realistic token counts and prices so
that routing, consensus and cost tracking can be exercised without network
access or credentials.
"""

import logging
import time
import zlib

import numpy as np

from core.data_models import LLMRequest, LLMResponse, FinishReason
from core.model_catalog import BackendInfo
from ..base_provider import BaseLLMProvider, LLMProviderType, ProviderServerError

logger = logging.getLogger(__name__)

MOCK_TEMPLATES = [
    "This is a response from {model}. The query was about: {preview}",
    "{model} processed your request: {preview} The main considerations are scope, risk and cost.",
    "Response from {model}: Analyzing the prompt '{preview}' yields the following insights.",
]


class MockProvider(BaseLLMProvider):
    """Deterministic stand-in for a real backend"""

    def __init__(self, backend: BackendInfo, response_time: float = 0.0, error_rate: float = 0.0,
                 seed: int = 0, **kwargs):
        """
        Initialize the mock provider.

        Args:
            backend: Catalog entry this mock impersonates
            response_time: Simulated latency in seconds
            error_rate: Probability of a simulated retryable server error
            seed: Seed mixed into the per-prompt generator
        """
        super().__init__(backend, **kwargs)
        self.response_time = response_time
        self.error_rate = error_rate
        self.seed = seed
        logger.info(f"Mock provider initialized for {self.model_name}")

    def get_provider_type(self) -> LLMProviderType:
        return LLMProviderType.MOCK

    def _rng(self, request: LLMRequest) -> np.random.Generator:
        key = f"{self.model_name}|{request.system_prompt or ''}|{request.prompt}".encode("utf-8")
        return np.random.default_rng(zlib.crc32(key) ^ self.seed)

    def generate_response(self, request: LLMRequest) -> LLMResponse:
        """Generate a deterministic mock response"""
        start_time = time.time()
        rng = self._rng(request)

        if self.error_rate and rng.random() < self.error_rate:
            self._record_failure()
            raise ProviderServerError(f"Mock error from {self.model_name}", "mock", status_code=503)

        if self.response_time:
            time.sleep(self.response_time)

        preview = request.prompt[:50] + "..." if len(request.prompt) > 50 else request.prompt
        template = MOCK_TEMPLATES[int(rng.integers(len(MOCK_TEMPLATES)))]
        content = template.format(model=self.backend.display_name, preview=preview)

        return self._build_response(
            request,
            content,
            self.estimate_tokens(request.full_prompt()),
            self.estimate_tokens(content),
            FinishReason.STOP,
            start_time,
            metadata={"mock": True}
        )
