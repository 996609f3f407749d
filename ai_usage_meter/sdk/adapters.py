"""
Provider adapters.

Each adapter turns a canonical generation request into one vendor API
call and normalizes the reply into text plus token counts. Vendor
exceptions never cross this boundary; they surface as ProviderError.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from anthropic import Anthropic
from google import genai
from google.genai import types
from openai import OpenAI

from ..core.token_counter import TokenUsage, estimate_tokens
from .errors import ProviderError

logger = logging.getLogger(__name__)

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"

# Models that reject temperature and spend hidden reasoning tokens
REASONING_MODELS = frozenset({"o1", "o1-mini", "o3", "o3-high", "o3-mini", "o4-mini"})


def is_reasoning_model(model: str) -> bool:
    return model in REASONING_MODELS


class ResponseFormat(Enum):
    """Hint for the shape of the expected response."""
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class GenerationRequest:
    """Canonical request passed to every adapter.

    `temperature` is None for reasoning models and is then left out of
    the vendor request.
    """
    prompt: str
    max_tokens: int
    temperature: Optional[float] = None
    response_format: ResponseFormat = ResponseFormat.TEXT


@dataclass(frozen=True)
class GenerationResult:
    """Normalized provider reply."""
    text: str
    usage: TokenUsage

    @property
    def input_tokens(self) -> int:
        return self.usage.input_tokens

    @property
    def output_tokens(self) -> int:
        return self.usage.output_tokens

    @property
    def tokens_estimated(self) -> bool:
        return self.usage.estimated


class ProviderAdapter(ABC):
    """Base class for vendor adapters."""

    provider_name = ""

    def __init__(self, api_key: str):
        if not api_key or not api_key.strip():
            raise ValueError(f"{self.provider_name} API key is required and cannot be empty")
        self._api_key = api_key

    def invoke(self, model: str, request: GenerationRequest) -> GenerationResult:
        """Call the vendor and normalize its reply.

        Raises:
            ProviderError: On any vendor, network or authentication failure
        """
        try:
            result = self._generate(model, request)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(self.provider_name, str(e)) from e

        logger.debug(
            "%s/%s: %d input, %d output tokens%s",
            self.provider_name,
            model,
            result.input_tokens,
            result.output_tokens,
            " (estimated)" if result.tokens_estimated else "",
        )
        return result

    @abstractmethod
    def _generate(self, model: str, request: GenerationRequest) -> GenerationResult:
        """Perform the vendor call; may raise vendor exceptions."""

    @staticmethod
    def _build_result(
        request: GenerationRequest,
        text: str,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
    ) -> GenerationResult:
        """Use reported counts when both are present, else estimate both."""
        if input_tokens is None or output_tokens is None:
            usage = TokenUsage(
                input_tokens=estimate_tokens(request.prompt),
                output_tokens=estimate_tokens(text),
                estimated=True,
            )
        else:
            usage = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)
        return GenerationResult(text=text, usage=usage)


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions."""

    provider_name = "openai"
    base_url: Optional[str] = None

    def __init__(self, api_key: str):
        super().__init__(api_key)
        if self.base_url:
            self.client = OpenAI(api_key=api_key, base_url=self.base_url)
        else:
            self.client = OpenAI(api_key=api_key)

    def build_params(self, model: str, request: GenerationRequest) -> Dict[str, Any]:
        """Build chat completion keyword arguments for a request."""
        params: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        # Reasoning models take max_completion_tokens and no temperature
        if is_reasoning_model(model):
            params["max_completion_tokens"] = request.max_tokens
        else:
            params["max_tokens"] = request.max_tokens
            if request.temperature is not None:
                params["temperature"] = request.temperature
        if request.response_format == ResponseFormat.JSON:
            params["response_format"] = {"type": "json_object"}
        return params

    def _generate(self, model: str, request: GenerationRequest) -> GenerationResult:
        response = self.client.chat.completions.create(**self.build_params(model, request))

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        if usage is None:
            return self._build_result(request, text, None, None)
        return self._build_result(request, text, usage.prompt_tokens, usage.completion_tokens)


class DeepSeekAdapter(OpenAIAdapter):
    """DeepSeek, through its OpenAI-compatible endpoint."""

    provider_name = "deepseek"
    base_url = DEEPSEEK_BASE_URL


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages API."""

    provider_name = "anthropic"

    def __init__(self, api_key: str):
        super().__init__(api_key)
        self.client = Anthropic(api_key=api_key)

    def build_params(self, model: str, request: GenerationRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        return params

    def _generate(self, model: str, request: GenerationRequest) -> GenerationResult:
        response = self.client.messages.create(**self.build_params(model, request))

        text = ""
        for block in response.content or []:
            if block.type == "text":
                text = block.text
                break

        usage = getattr(response, "usage", None)
        if usage is None:
            return self._build_result(request, text, None, None)
        return self._build_result(request, text, usage.input_tokens, usage.output_tokens)


class GeminiAdapter(ProviderAdapter):
    """Google Gemini through the google-genai SDK."""

    provider_name = "gemini"

    def __init__(self, api_key: str):
        super().__init__(api_key)
        self.client = genai.Client(api_key=api_key)

    def build_config(self, request: GenerationRequest) -> types.GenerateContentConfig:
        kwargs: Dict[str, Any] = {"max_output_tokens": request.max_tokens}
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.response_format == ResponseFormat.JSON:
            kwargs["response_mime_type"] = "application/json"
        return types.GenerateContentConfig(**kwargs)

    def _generate(self, model: str, request: GenerationRequest) -> GenerationResult:
        response = self.client.models.generate_content(
            model=model,
            contents=request.prompt,
            config=self.build_config(request),
        )
        text = response.text or ""

        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return self._build_result(request, text, None, None)
        return self._build_result(
            request,
            text,
            metadata.prompt_token_count,
            metadata.candidates_token_count,
        )


ADAPTERS = {
    "gemini": GeminiAdapter,
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "deepseek": DeepSeekAdapter,
}


def create_adapter(provider: str, api_key: str) -> ProviderAdapter:
    """Create the adapter for a provider.

    Raises:
        ValueError: If the provider is not supported or the key is empty
    """
    if provider not in ADAPTERS:
        raise ValueError(f"Unsupported provider: {provider}")
    return ADAPTERS[provider](api_key)
