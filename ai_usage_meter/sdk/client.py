"""
Multi-provider LLM client with usage metering.

Task-shaped operations over one bound provider model. Every operation
writes exactly one usage record, whether it succeeds or fails.
"""

import json
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..core import prompts
from ..core.token_counter import estimate_tokens
from ..storage.ledger import UsageLedger, get_ledger
from .adapters import (
    GenerationRequest,
    ProviderAdapter,
    ResponseFormat,
    create_adapter,
    is_reasoning_model,
)
from .errors import ResponseParseError

logger = logging.getLogger(__name__)

NONE_SENTINEL = "NONE"

SUPPORTED_MODELS: Dict[str, Tuple[str, ...]] = {
    "gemini": ("gemini-2.0-flash", "gemini-1.5-pro", "gemini-2.0-pro"),
    "openai": (
        "o3",
        "o3-high",
        "gpt-4.1",
        "gpt-4.1-mini",
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-3.5-turbo",
    ),
    "anthropic": (
        "claude-3-haiku-20240307",
        "claude-sonnet-4-20250514",
        "claude-opus-4-20250514",
        "claude-3-5-sonnet-latest",
    ),
    "deepseek": ("deepseek-chat", "deepseek-coder"),
}

DEFAULT_DECK_CATEGORIES = (
    "AI",
    "Neuroscience",
    "General Health",
    "Trading",
    "Business/Startup",
    "Philosophy",
    "Uncategorized",
)
FALLBACK_CATEGORY = "Uncategorized"

_JSON_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL | re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-•*]\s*")


@dataclass(frozen=True)
class ModelConfig:
    """Provider model bound to one client instance."""
    provider: str
    model: str
    api_key: str = field(repr=False)
    track_usage: bool = True

    def __post_init__(self):
        """Validate provider, model and credential."""
        if self.provider not in SUPPORTED_MODELS:
            raise ValueError(f"Unsupported provider: {self.provider}")
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if not self.api_key or not self.api_key.strip():
            raise ValueError("api_key is required and cannot be empty")


@dataclass(frozen=True)
class OperationSettings:
    """Generation parameters for one operation."""
    command: str
    max_tokens: int
    reasoning_max_tokens: int
    temperature: float
    response_format: ResponseFormat = ResponseFormat.TEXT


DETECT_ACTION = OperationSettings("detect_action", 50, 256, 0.3)
EXTRACT_TASKS = OperationSettings("extract_multiple_tasks", 500, 512, 0.3)
ANKI_CARDS = OperationSettings("generate_anki_cards", 300, 10000, 0.3, ResponseFormat.JSON)
TWEET_THREAD = OperationSettings("make_tweet_thread", 500, 400, 0.7)
VIRAL_TWEET = OperationSettings("make_viral_tweet", 100, 10000, 0.8)
IMPROVE_PROMPT = OperationSettings("improve_prompt", 1000, 10000, 0.3)


@dataclass(frozen=True)
class AnkiCard:
    """One flashcard filed under a deck category."""
    category: str
    question: str
    answer: str
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, categories: Sequence[str]) -> "AnkiCard":
        """Build a card from a model-produced JSON object.

        Accepts the prompt's `deckName`/`front`/`back` keys or the
        `category`/`question`/`answer` field names.

        Raises:
            ValueError: If the object lacks a required field
        """
        if not isinstance(data, dict):
            raise ValueError(f"card must be a JSON object, got {type(data).__name__}")

        values = {}
        for name, alias in (("category", "deckName"), ("question", "front"), ("answer", "back")):
            value = data.get(alias, data.get(name))
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"card is missing required field '{alias}'")
            values[name] = value.strip()

        if values["category"] not in categories and FALLBACK_CATEGORY in categories:
            values["category"] = FALLBACK_CATEGORY

        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError("card 'tags' must be a list")

        return cls(tags=tuple(str(tag) for tag in tags), **values)

    def with_tags(self, *extra: str) -> "AnkiCard":
        """Copy of the card with extra tags appended."""
        return AnkiCard(self.category, self.question, self.answer, self.tags + tuple(extra))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deckName": self.category,
            "front": self.question,
            "back": self.answer,
            "tags": list(self.tags),
        }


@dataclass
class _CallUsage:
    input_tokens: int
    output_tokens: int = 0


def clean_json_response(response: str) -> str:
    """Strip a ```json fenced block (language tag optional) around JSON.

    Only a fence wrapping the whole reply is removed; backticks inside
    JSON string values are left alone.
    """
    text = response.strip()
    match = _JSON_FENCE_RE.fullmatch(text)
    if match:
        return match.group(1).strip()
    return text


def parse_task_lines(response: str) -> List[str]:
    """Split a task-list reply into task strings.

    "NONE" means no tasks. Blank lines are dropped and leading bullet
    markers (-, *, •) are stripped.
    """
    if response.strip() == NONE_SENTINEL:
        return []

    tasks = []
    for line in response.splitlines():
        task = _BULLET_RE.sub("", line.strip()).strip()
        if task:
            tasks.append(task)
    return tasks


class MultiProviderLLM:
    """Provider-agnostic LLM client that meters every call.

    One instance is bound to one provider, model and credential. The
    adapter and ledger can be injected; otherwise they are built from
    the config and the shared ledger is used.
    """

    def __init__(
        self,
        config: ModelConfig,
        ledger: Optional[UsageLedger] = None,
        adapter: Optional[ProviderAdapter] = None,
    ):
        """Initialize the client.

        Args:
            config: Bound provider model and credential
            ledger: Usage ledger (defaults to the shared ledger when tracking)
            adapter: Provider adapter (defaults to one built for config.provider)

        Raises:
            ValueError: If the configuration is invalid
        """
        self.config = config
        self.adapter = adapter or create_adapter(config.provider, config.api_key)
        if ledger is None and config.track_usage:
            ledger = get_ledger()
        self.ledger = ledger

    def model_name(self) -> str:
        return f"{self.config.provider}/{self.config.model}"

    def detect_action(self, text: str) -> str:
        """Detect a single actionable task; returns the task text or "NONE"."""
        prompt = prompts.detect_action_prompt(text)
        with self._track_usage(DETECT_ACTION.command, prompt) as usage:
            response = self._complete(usage, prompt, DETECT_ACTION)
        return response.strip() or NONE_SENTINEL

    def extract_multiple_tasks(self, text: str) -> List[str]:
        """Extract every actionable task, in order; empty when there are none."""
        prompt = prompts.extract_tasks_prompt(text)
        with self._track_usage(EXTRACT_TASKS.command, prompt) as usage:
            response = self._complete(usage, prompt, EXTRACT_TASKS)
            return parse_task_lines(response.strip() or NONE_SENTINEL)

    def generate_anki_cards(
        self,
        text: str,
        categories: Sequence[str] = DEFAULT_DECK_CATEGORIES,
    ) -> List[AnkiCard]:
        """Generate flashcards from text, each filed under one of `categories`.

        Raises:
            ResponseParseError: If the reply is not valid card JSON; the
                call is recorded as failed
            ProviderError: If the provider call fails
        """
        categories = list(categories) or list(DEFAULT_DECK_CATEGORIES)
        prompt = prompts.anki_prompt(text, categories)
        with self._track_usage(ANKI_CARDS.command, prompt) as usage:
            response = self._complete(usage, prompt, ANKI_CARDS)
            return self._parse_cards(response or "[]", categories)

    def make_tweet_thread(self, text: str) -> str:
        """Produce a numbered 5-tweet thread, one tweet per line."""
        prompt = prompts.tweet_thread_prompt(text)
        with self._track_usage(TWEET_THREAD.command, prompt) as usage:
            response = self._complete(usage, prompt, TWEET_THREAD)
        return response.strip()

    def make_viral_tweet(
        self,
        text: str,
        style: str = "engagement",
        custom_prompt: Optional[str] = None,
    ) -> str:
        """Generate a single tweet in the given style.

        Args:
            text: Source text
            style: "engagement" or "informative"
            custom_prompt: Full prompt that replaces the style template

        Raises:
            ValueError: If style is unknown and no custom prompt is given
        """
        prompt = custom_prompt or prompts.viral_tweet_prompt(text, style)
        with self._track_usage(VIRAL_TWEET.command, prompt) as usage:
            response = self._complete(usage, prompt, VIRAL_TWEET)
        return response.strip()

    def improve_prompt(self, text: str) -> str:
        """Rewrite a prompt for clarity and completeness."""
        prompt = prompts.improve_prompt_prompt(text)
        with self._track_usage(IMPROVE_PROMPT.command, prompt) as usage:
            response = self._complete(usage, prompt, IMPROVE_PROMPT)
        return response.strip()

    def build_request(self, prompt: str, settings: OperationSettings) -> GenerationRequest:
        """Apply an operation's generation parameters for the bound model."""
        if is_reasoning_model(self.config.model):
            return GenerationRequest(
                prompt=prompt,
                max_tokens=settings.reasoning_max_tokens,
                temperature=None,
                response_format=settings.response_format,
            )
        return GenerationRequest(
            prompt=prompt,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            response_format=settings.response_format,
        )

    def _complete(self, usage: _CallUsage, prompt: str, settings: OperationSettings) -> str:
        result = self.adapter.invoke(self.config.model, self.build_request(prompt, settings))
        usage.input_tokens = result.input_tokens
        usage.output_tokens = result.output_tokens
        return result.text

    def _parse_cards(self, response: str, categories: Sequence[str]) -> List[AnkiCard]:
        provider = self.config.provider
        try:
            parsed = json.loads(clean_json_response(response))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse %s response: %s", provider, response)
            raise ResponseParseError(provider, str(e), response) from e

        if isinstance(parsed, dict) and isinstance(parsed.get("cards"), list):
            parsed = parsed["cards"]
        elif isinstance(parsed, dict):
            parsed = [parsed]
        if not isinstance(parsed, list):
            logger.error("Unexpected %s response shape: %s", provider, response)
            raise ResponseParseError(provider, "expected a JSON array or object", response)

        try:
            return [AnkiCard.from_dict(item, categories) for item in parsed]
        except ValueError as e:
            logger.error("Invalid card in %s response: %s", provider, response)
            raise ResponseParseError(provider, str(e), response) from e

    @contextmanager
    def _track_usage(self, command: str, prompt: str) -> Iterator[_CallUsage]:
        """Record exactly one usage entry for the enclosed call.

        Input tokens start as an estimate of the prompt so failed calls
        still carry a count. The entry is written on every exit path and
        never changes the call's outcome.
        """
        usage = _CallUsage(input_tokens=estimate_tokens(prompt))
        success = False
        error = None
        try:
            yield usage
            success = True
        except Exception as e:
            error = str(e)
            raise
        finally:
            self._record(command, usage, success, error)

    def _record(self, command: str, usage: _CallUsage, success: bool, error: Optional[str]) -> None:
        if not self.config.track_usage or self.ledger is None:
            return
        try:
            self.ledger.record(
                provider=self.config.provider,
                model=self.config.model,
                command=command,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                success=success,
                error=error,
            )
        except Exception:
            logger.exception("Usage recording failed for %s", command)
