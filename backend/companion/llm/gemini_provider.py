"""
Google Gemini LLM Provider.
Calls the Generative Language REST API (``models/{model}:generateContent``).
"""

import httpx
import logging
import time
from typing import Optional, Dict, Any

from .base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """Provider for Gemini models authenticated with an API key."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_temperature: float = 0.7,
        default_max_tokens: int = 1024,
        timeout: float = 60.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens)
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def generate_content(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send a single-turn prompt to ``generateContent``."""
        start_time = time.time()
        model_name = model or self.model
        url = f"{self.base_url}/models/{model_name}:generateContent"
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature if temperature is not None else self.default_temperature,
                "maxOutputTokens": max_tokens or self.default_max_tokens,
            },
        }

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=gemini, model={model_name}, "
                f"prompt: {prompt[:200]}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            usage_meta = data.get("usageMetadata", {})
            usage = {
                "prompt_tokens": usage_meta.get("promptTokenCount", 0),
                "completion_tokens": usage_meta.get("candidatesTokenCount", 0),
                "total_tokens": usage_meta.get("totalTokenCount", 0),
            }
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model_name,
                    **usage,
                    "duration_ms": round(duration_ms, 2),
                }}
            )

            return LLMResponse(
                content=self._extract_text(data),
                model=data.get("modelVersion", model_name),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model_name,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
