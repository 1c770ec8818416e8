"""OpenRouter LLM client with cost tracking and rate-limit retries."""

import os
import time
from typing import Any, Dict, Optional
import openai
from openai import OpenAI
from mpesa_engine.constants import (
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    LLM_MAX_RETRIES,
    LLM_BASE_DELAY_SECONDS,
    LLM_TIMEOUT_SECONDS
)
from mpesa_engine.orchestrator.retry_handler import retry_with_exponential_backoff
from mpesa_engine.utils.config_loader import get_section
from mpesa_engine.utils.errors import LLMError, RateLimitError
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import (
    llm_tokens_counter,
    llm_cost_counter,
    llm_api_latency,
    llm_rate_limit_hits
)

logger = get_logger(__name__)

# Pricing per 1M tokens (input tokens, simplified)
MODEL_PRICING = {
    "google/gemini-2.5-flash": 0.30 / 1_000_000,
    "google/gemini-2.5-pro": 1.25 / 1_000_000,
    "anthropic/claude-haiku-4.5": 0.80 / 1_000_000,
    "openai/gpt-4o-mini": 0.15 / 1_000_000,
}
DEFAULT_PRICE_PER_TOKEN = 0.15 / 1_000_000


def calculate_cost(tokens: int, model: str) -> float:
    """
    Calculate cost based on token usage and model pricing.

    Args:
        tokens: Number of tokens used
        model: Model name

    Returns:
        Cost in USD
    """
    return tokens * MODEL_PRICING.get(model, DEFAULT_PRICE_PER_TOKEN)


def _is_rate_limit(error: Exception) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    return getattr(error, "status_code", None) == 429


class LLMClient:
    """
    Chat-completion client for an OpenAI-compatible endpoint.

    Constructed explicitly and handed to whatever needs it; there is no
    module-level client. The underlying SDK client is created on first use so
    a missing API key only surfaces when a call is attempted.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_LLM_MODEL,
        base_url: str = DEFAULT_LLM_BASE_URL,
        max_retries: int = LLM_MAX_RETRIES,
        base_delay: float = LLM_BASE_DELAY_SECONDS,
        max_delay: float = 8,
        timeout: float = LLM_TIMEOUT_SECONDS,
        temperature: float = 0.1,
        max_tokens: int = 4000,
        client: Optional[Any] = None
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None, client: Optional[Any] = None) -> "LLMClient":
        """
        Build a client from the 'llm' config section and the environment.

        OPENROUTER_API_KEY, LLM_BASE_URL and DEFAULT_LLM_MODEL override the
        file values.
        """
        section = get_section(config, 'llm')
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY") or None,
            model=os.getenv("DEFAULT_LLM_MODEL") or section.get('model', DEFAULT_LLM_MODEL),
            base_url=os.getenv("LLM_BASE_URL") or section.get('base_url', DEFAULT_LLM_BASE_URL),
            max_retries=section.get('max_retries', LLM_MAX_RETRIES),
            base_delay=section.get('base_delay_seconds', LLM_BASE_DELAY_SECONDS),
            max_delay=section.get('max_delay_seconds', 8),
            timeout=section.get('timeout_seconds', LLM_TIMEOUT_SECONDS),
            temperature=section.get('temperature', 0.1),
            max_tokens=section.get('max_tokens', 4000),
            client=client
        )

    @property
    def is_configured(self) -> bool:
        """True when a call could be attempted"""
        return self._client is not None or bool(self.api_key)

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise LLMError("OPENROUTER_API_KEY environment variable is not set")
            # Retries happen in complete() only
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    def complete(self, prompt: str) -> str:
        """
        Send one prompt and return the response text.

        Rate-limit responses are retried with exponential backoff up to
        max_retries attempts; every other failure raises on the first attempt.

        Args:
            prompt: User prompt

        Returns:
            LLM response text

        Raises:
            RateLimitError: If still rate limited after all attempts
            LLMError: On any other API failure
        """
        return retry_with_exponential_backoff(
            self._complete_once,
            self.max_retries,
            self.base_delay,
            self.max_delay,
            (RateLimitError,),
            prompt
        )

    def _complete_once(self, prompt: str) -> str:
        client = self._get_client()
        start_time = time.time()

        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout
            )
        except Exception as e:
            if _is_rate_limit(e):
                llm_rate_limit_hits.labels(model_name=self.model).inc()
                logger.warning("Rate limit hit", model=self.model)
                raise RateLimitError(f"Rate limited by LLM provider: {e}") from e
            logger.error(f"LLM API error: {e}", model=self.model)
            raise LLMError(f"LLM API call failed: {e}") from e

        # Track metrics
        latency = time.time() - start_time
        usage = getattr(response, 'usage', None)
        tokens = getattr(usage, 'total_tokens', 0) or 0
        cost = calculate_cost(tokens, self.model)

        llm_tokens_counter.labels(model_name=self.model).inc(tokens)
        llm_cost_counter.labels(model_name=self.model).inc(cost)
        llm_api_latency.labels(model_name=self.model).observe(latency)

        logger.info(
            "LLM call successful",
            model=self.model,
            tokens=tokens,
            cost=cost,
            latency=latency
        )

        content = response.choices[0].message.content
        if not content:
            raise LLMError("LLM returned an empty response")
        return content
