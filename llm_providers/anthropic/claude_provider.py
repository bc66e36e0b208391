"""
Anthropic Provider for Amazon Bedrock Integration.

This module provides an implementation of the LLM provider interface
for Anthropic's Claude models accessed via Amazon Bedrock.
"""

import json
import logging
import time
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError,
    ConnectionClosedError
)

from core.data_models import LLMRequest, LLMResponse, FinishReason
from core.model_catalog import BACKEND_CATALOG, BackendInfo, CLAUDE
from ..base_provider import (
    BaseLLMProvider, LLMProviderType, LLMProviderError, RateLimitError, AuthenticationError,
    ModelNotFoundError, InvalidRequestError, ProviderTimeoutError, ProviderConnectionError,
    ProviderServerError, error_for_status
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"
DEFAULT_MAX_TOKENS = 4096

# Bedrock error codes mapped onto the provider error taxonomy
CLIENT_ERROR_MAP = {
    "ThrottlingException": RateLimitError,
    "TooManyRequestsException": RateLimitError,
    "AccessDeniedException": AuthenticationError,
    "UnrecognizedClientException": AuthenticationError,
    "ExpiredTokenException": AuthenticationError,
    "ValidationException": InvalidRequestError,
    "ResourceNotFoundException": ModelNotFoundError,
    "ModelTimeoutException": ProviderTimeoutError,
    "ModelNotReadyException": ProviderServerError,
    "ServiceUnavailableException": ProviderServerError,
    "InternalServerException": ProviderServerError,
}


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic Provider implementation using Amazon Bedrock.

    This provider integrates with Anthropic's Claude models through
    Amazon Bedrock managed service, providing enterprise-grade
    authentication and access controls.
    """

    def __init__(self, aws_access_key_id: Optional[str] = None, aws_secret_access_key: Optional[str] = None,
                 aws_region: str = "us-east-1", model_id: Optional[str] = None,
                 backend: BackendInfo = BACKEND_CATALOG[CLAUDE], timeout: float = 30.0,
                 client=None, **kwargs):
        """
        Initialize the Anthropic provider.

        Args:
            aws_access_key_id: AWS access key ID
            aws_secret_access_key: AWS secret access key
            aws_region: Region hosting Bedrock
            model_id: Bedrock model id; the catalog's id is used when omitted
            backend: Catalog entry this adapter serves
            timeout: Per-call timeout in seconds
            client: Pre-built bedrock-runtime client (used by tests)

        Raises:
            LLMProviderError: If credentials are missing or the client cannot be built
        """
        super().__init__(backend, timeout=timeout, **kwargs)
        self.model_id = model_id or backend.vendor_model_id
        self.aws_region = aws_region

        if client is not None:
            self.bedrock_client = client
        else:
            if not aws_access_key_id or not aws_secret_access_key:
                raise LLMProviderError(
                    "AWS credentials not found. Set aws_access_key_id and aws_secret_access_key "
                    "in the [AWS_BEDROCK] section or the environment.",
                    "anthropic"
                )
            try:
                self.bedrock_client = boto3.client(
                    "bedrock-runtime",
                    aws_access_key_id=aws_access_key_id,
                    aws_secret_access_key=aws_secret_access_key,
                    region_name=aws_region,
                    config=Config(
                        connect_timeout=timeout,
                        read_timeout=timeout,
                        retries={"max_attempts": 0}
                    )
                )
            except BotoCoreError as e:
                raise LLMProviderError(f"Failed to initialize Bedrock client: {e}", "anthropic") from e

        logger.info(f"Anthropic provider initialized for {self.model_name} (model_id: {self.model_id})")

    def get_provider_type(self) -> LLMProviderType:
        """Get the provider type."""
        return LLMProviderType.ANTHROPIC

    def generate_response(self, request: LLMRequest) -> LLMResponse:
        """
        Generate response from Claude via Bedrock.

        Args:
            request (LLMRequest): The request to process

        Returns:
            LLMResponse: The generated response

        Raises:
            LLMProviderError: If the request fails
        """
        start_time = time.time()

        payload = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
            "top_p": request.top_p if request.top_p is not None else 1.0,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        if request.top_k is not None:
            payload["top_k"] = request.top_k
        if request.stop_sequences:
            payload["stop_sequences"] = request.stop_sequences

        try:
            response = self.bedrock_client.invoke_model(
                modelId=self.model_id,
                body=json.dumps(payload)
            )
            response_body = json.loads(response["body"].read())
        except json.JSONDecodeError as e:
            self._record_failure()
            raise LLMProviderError(f"Failed to parse response: {e}", "anthropic") from e
        except Exception as e:
            self._record_failure()
            raise self._handle_provider_error(e) from e

        # Claude returns a list of content blocks
        content_blocks = response_body.get("content", [])
        text_content = "".join(
            block.get("text", "") for block in content_blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )

        usage = response_body.get("usage")
        if usage:
            input_tokens = usage.get("input_tokens", 0)
            output_tokens = usage.get("output_tokens", 0)
        else:
            input_tokens = self.estimate_tokens(request.full_prompt())
            output_tokens = self.estimate_tokens(text_content)

        stop_reason = response_body.get("stop_reason")
        if stop_reason in ("end_turn", "stop_sequence"):
            finish_reason = FinishReason.STOP
        elif stop_reason == "max_tokens":
            finish_reason = FinishReason.LENGTH
        else:
            finish_reason = FinishReason.ERROR

        return self._build_response(
            request, text_content, input_tokens, output_tokens, finish_reason, start_time,
            metadata={
                "bedrock_request_id": response.get("ResponseMetadata", {}).get("RequestId"),
                "model_id": self.model_id,
                "aws_region": self.aws_region,
                "stop_reason": stop_reason
            }
        )

    def _handle_provider_error(self, error: Exception) -> LLMProviderError:
        """Map botocore failures onto the provider error taxonomy"""
        if isinstance(error, ClientError):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))
            status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            message = f"AWS error ({error_code}): {error_message}"

            error_class = CLIENT_ERROR_MAP.get(error_code)
            if error_class is not None:
                return error_class(message, "anthropic", error_code, status_code)
            if status_code:
                return error_for_status(status_code, message, "anthropic", error_code)
            return LLMProviderError(message, "anthropic", error_code)

        if isinstance(error, (ReadTimeoutError, ConnectTimeoutError)):
            return ProviderTimeoutError(f"Bedrock request timed out: {error}", "anthropic")
        if isinstance(error, (EndpointConnectionError, ConnectionClosedError)):
            return ProviderConnectionError(f"Bedrock connection failed: {error}", "anthropic")
        if isinstance(error, BotoCoreError):
            return LLMProviderError(f"AWS service error: {error}", "anthropic")
        return super()._handle_provider_error(error)

    def __str__(self) -> str:
        """String representation of the provider."""
        return f"AnthropicProvider(model={self.model_id}, region={self.aws_region})"


def create_anthropic_provider(aws_access_key_id: str, aws_secret_access_key: str, **kwargs) -> AnthropicProvider:
    """
    Create an Anthropic provider instance.

    Args:
        aws_access_key_id: AWS access key ID (MANDATORY - no defaults)
        aws_secret_access_key: AWS secret access key (MANDATORY - no defaults)
        **kwargs: Additional configuration (region, model id, timeout)

    Returns:
        AnthropicProvider: Configured Anthropic provider instance
    """
    return AnthropicProvider(
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key,
        **kwargs
    )
