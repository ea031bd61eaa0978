"""LLM module - unified interface for generative-text providers."""

from .base import LLMProvider, LLMResponse
from .gemini_provider import GeminiProvider
from .factory import create_llm_provider

__all__ = [
    'LLMProvider',
    'LLMResponse',
    'GeminiProvider',
    'create_llm_provider',
]
