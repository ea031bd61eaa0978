"""
LLM Provider Base - Abstract base for generative-text providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class LLMResponse:
    """Response from a generation call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


class LLMProvider(ABC):
    """
    Abstract base class for generative-text providers.
    One operation: prompt in, text out. Output parsing is up to the caller.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def generate_content(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate text for a single prompt.

        Args:
            prompt: Full prompt text
            model: Model override (defaults to the provider's model)
            temperature: Sampling temperature override
            max_tokens: Max output tokens override

        Returns:
            LLMResponse with the generated text
        """
        pass
