"""
SDK for Note Forge.

Provides the client for the upstream generation service.
"""

from .generation_client import GenerationClient, GenerationResult

__all__ = ["GenerationClient", "GenerationResult"]
