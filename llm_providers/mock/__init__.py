"""
Mock Provider Package.

Deterministic offline adapters used for demos and dry runs.
"""

from .mock_provider import MockProvider

__all__ = [
    "MockProvider"
]
