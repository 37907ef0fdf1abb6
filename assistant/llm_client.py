"""
LLM client for sending chat conversations to OpenAI or Claude.

Uses the OpenAI Python SDK, which talks to both OpenAI and Anthropic's
OpenAI-compatible endpoint, providing a unified interface for both providers.
"""

import logging
from typing import Optional
from openai import OpenAI

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"


class LLMClient:
    """
    Client for interacting with LLM providers.

    Uses OpenAI SDK which natively supports both OpenAI and Anthropic models
    through a unified interface.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str,
        temperature: float = 0.3,
        max_tokens: int = 1000
    ):
        """
        Initialize LLM client.

        Args:
            provider: LLM provider - 'anthropic' or 'openai'
            model: Model name (e.g., 'gpt-4o', 'claude-sonnet-4-5-20250929')
            api_key: API key for the provider
            temperature: Sampling temperature (default 0.3)
            max_tokens: Maximum tokens in response (default 1000, plenty for one bug draft)

        Raises:
            ValueError: If provider is not supported or API key is missing
        """
        self.provider = provider.lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        # Validate provider
        if self.provider not in ["anthropic", "openai"]:
            raise ValueError(f"Unsupported provider: {provider}. Must be 'anthropic' or 'openai'")

        # Validate API key
        if not api_key:
            raise ValueError(f"{provider} API key is required but not provided")

        if self.provider == "anthropic":
            self.client = OpenAI(api_key=api_key, base_url=ANTHROPIC_BASE_URL)
        else:
            self.client = OpenAI(api_key=api_key)

        logger.info(f"Initialized LLMClient: provider={provider}, model={model}")

    def chat(self, messages: list[dict[str, str]]) -> str:
        """
        Send a full conversation and return the assistant's reply text.

        Args:
            messages: Chat messages as {"role": ..., "content": ...} dicts,
                      system message first

        Returns:
            Text response from the LLM

        Raises:
            ValueError: If the LLM returns an empty reply
            Exception: If the API call fails (auth, rate limit, etc.)
        """
        try:
            logger.debug(f"Sending {len(messages)} messages to {self.provider}")

            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

            response_text = response.choices[0].message.content

            # Log token usage
            if hasattr(response, "usage") and response.usage:
                logger.info(
                    f"LLM usage: {response.usage.prompt_tokens} prompt tokens, "
                    f"{response.usage.completion_tokens} completion tokens, "
                    f"{response.usage.total_tokens} total"
                )

            if not response_text:
                raise ValueError(f"Empty response from {self.provider}")

            logger.debug(f"Received response from {self.provider} ({len(response_text)} chars)")
            return response_text

        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

    def send_prompt(self, prompt: str, system: Optional[str] = None) -> str:
        """Single-turn convenience wrapper around chat()."""
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        return self.chat(messages)
