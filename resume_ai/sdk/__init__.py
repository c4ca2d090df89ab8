"""
SDK for resume-ai.

Provides the client for the generation API.
"""

from .openai_client import GenerationClient

__all__ = ["GenerationClient"]
