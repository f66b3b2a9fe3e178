"""
Review Insights LLM Client
==========================

Abstract client for the text-generation oracle.
Supports OpenAI and Claude (Anthropic).

The oracle is used to:
1. Group negative reviews into named themes
2. Write insight titles, rationales and suggested actions
3. Extract praise/complaint categories and love/hate bullets

Every caller must supply a fallback: any exception raised here means
"oracle unavailable" and is never propagated out of the pipeline.
"""

import os
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Transport failure or unusable oracle payload."""


class LLMProvider(Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class LLMResponse:
    """Raw response of an LLM call."""
    content: str
    model: str
    provider: LLMProvider
    tokens_input: int
    tokens_output: int
    cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


JSON_ONLY_INSTRUCTIONS = """

IMPORTANT: Respond ONLY with valid JSON.
No text before or after the JSON.
No ```json or other markers."""


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse an LLM reply into a JSON object.

    Strips markdown fences. Raises LLMError on malformed JSON or when
    the top-level value is not an object.
    """
    text = (content or "").strip()
    if text.startswith("```"):
        parts = text.split("```")
        text = parts[1] if len(parts) > 1 else ""
        if text.startswith("json"):
            text = text[4:]
    text = text.strip()
    if not text:
        raise LLMError("LLM returned an empty response")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}\nContent: {text[:500]}")
        raise LLMError(f"LLM did not return valid JSON: {e}")

    if not isinstance(payload, dict):
        raise LLMError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


class LLMClient(ABC):
    """Abstract text-generation oracle."""

    model: str = "unknown"
    # Accumulated USD cost of calls made through this client
    total_cost: float = 0.0

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a free-text response."""

    async def generate_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 1000,
    ) -> Dict[str, Any]:
        """Generate a structured JSON object."""
        json_system = (system or "") + JSON_ONLY_INSTRUCTIONS
        if schema:
            json_system += f"\n\nExpected schema:\n{json.dumps(schema, indent=2)}"

        response = await self.generate(
            prompt=prompt,
            system=json_system,
            max_tokens=max_tokens,
        )
        return parse_json_content(response.content)


class AnthropicClient(LLMClient):
    """
    Client for Claude (Anthropic).

    Available models:
    - claude-sonnet-4-20250514 (default)
    - claude-3-haiku-20240307 (fast, cheap)
    """

    # Pricing per 1M tokens (USD)
    PRICING = {
        "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
        "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client = None
        self.total_cost = 0.0

        if not self.api_key:
            logger.warning("ANTHROPIC_API_KEY not set - LLM features disabled")

    def _get_client(self):
        """Lazy init of the async Anthropic client."""
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise ImportError("pip install anthropic required")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pricing = self.PRICING.get(self.model, {"input": 3.0, "output": 15.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
        return round(cost, 6)

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        if not self.api_key:
            raise LLMError("ANTHROPIC_API_KEY required")

        client = self._get_client()

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await client.messages.create(**kwargs)
        except Exception as e:
            raise LLMError(f"Anthropic request failed: {e}") from e

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        cost = self._calculate_cost(input_tokens, output_tokens)
        self.total_cost += cost

        return LLMResponse(
            content=response.content[0].text,
            model=self.model,
            provider=LLMProvider.ANTHROPIC,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=cost,
        )


class OpenAIClient(LLMClient):
    """
    Client for OpenAI chat models.
    JSON requests use the native json_object response format.
    """

    PRICING = {
        "gpt-4o": {"input": 2.5, "output": 10.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.6},
        "gpt-5-mini": {"input": 0.25, "output": 2.0},
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.timeout = timeout
        self._client = None
        self.total_cost = 0.0

    def _get_client(self):
        if self._client is None:
            try:
                import openai
            except ImportError:
                raise ImportError("pip install openai required")
            self._client = openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pricing = self.PRICING.get(self.model, {"input": 2.5, "output": 10.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
        return round(cost, 6)

    async def _complete(self, messages, max_tokens: int, **extra) -> LLMResponse:
        if not self.api_key:
            raise LLMError("OPENAI_API_KEY required")

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_completion_tokens=max_tokens,
                **extra,
            )
        except Exception as e:
            raise LLMError(f"OpenAI request failed: {e}") from e

        input_tokens = response.usage.prompt_tokens
        output_tokens = response.usage.completion_tokens
        cost = self._calculate_cost(input_tokens, output_tokens)
        self.total_cost += cost

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self.model,
            provider=LLMProvider.OPENAI,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=cost,
        )

    @staticmethod
    def _messages(prompt: str, system: Optional[str]):
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        extra = {} if temperature is None else {"temperature": temperature}
        return await self._complete(self._messages(prompt, system), max_tokens, **extra)

    async def generate_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 1000,
    ) -> Dict[str, Any]:
        json_system = (system or "") + "\nRespond only with a valid JSON object, no markdown."
        if schema:
            json_system += f"\nExpected schema:\n{json.dumps(schema)}"

        response = await self._complete(
            self._messages(prompt, json_system),
            max_tokens,
            response_format={"type": "json_object"},
        )
        return parse_json_content(response.content)


def get_llm_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = 30.0,
) -> LLMClient:
    """
    Factory returning an LLM client.

    Priority:
    1. Explicit provider
    2. OPENAI_API_KEY present -> OpenAI
    3. ANTHROPIC_API_KEY present -> Claude
    4. Error
    """
    openai_key = os.getenv("OPENAI_API_KEY")
    anthropic_key = os.getenv("ANTHROPIC_API_KEY")

    if provider == "openai" or (not provider and openai_key):
        return OpenAIClient(model=model or "gpt-4o-mini", timeout=timeout)

    if provider == "anthropic" or anthropic_key:
        return AnthropicClient(model=model or "claude-sonnet-4-20250514", timeout=timeout)

    raise ValueError(
        "No LLM API key found. Set OPENAI_API_KEY or ANTHROPIC_API_KEY"
    )
