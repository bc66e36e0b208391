"""
OpenAI Provider Package.

This package provides integration with OpenAI's GPT-4 models, directly or
through Azure OpenAI Service.
"""

from .gpt4_provider import OpenAIProvider, create_openai_provider

__all__ = [
    "OpenAIProvider",
    "create_openai_provider"
]
