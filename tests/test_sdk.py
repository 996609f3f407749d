"""
Unit tests for provider adapters.

Tests request building per vendor, text and usage extraction, token
estimation and error normalization.
"""

from unittest.mock import Mock, patch

import pytest

from ai_usage_meter.sdk.adapters import (
    DEEPSEEK_BASE_URL,
    AnthropicAdapter,
    DeepSeekAdapter,
    GeminiAdapter,
    GenerationRequest,
    OpenAIAdapter,
    ResponseFormat,
    create_adapter,
    is_reasoning_model,
)
from ai_usage_meter.sdk.errors import ProviderError


def _openai_response(content="Call John", prompt_tokens=12, completion_tokens=3):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


def _block(block_type, text=None):
    block = Mock()
    block.type = block_type
    block.text = text
    return block


class TestReasoningModels:
    """Test the reasoning model allow-list."""

    def test_o3_family_is_reasoning(self):
        assert is_reasoning_model("o3")
        assert is_reasoning_model("o3-high")

    def test_regular_models_are_not(self):
        assert not is_reasoning_model("gpt-4.1-mini")
        assert not is_reasoning_model("claude-3-haiku-20240307")


class TestOpenAIAdapter:
    """Test the OpenAI chat completions adapter."""

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_init_creates_client(self, mock_openai_class):
        """Test the vendor client is created with the key."""
        OpenAIAdapter("sk-test")
        mock_openai_class.assert_called_once_with(api_key="sk-test")

    def test_init_missing_key(self):
        """Test initialization fails with missing key."""
        with pytest.raises(ValueError, match="API key is required"):
            OpenAIAdapter("")

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_regular_model_request(self, mock_openai_class):
        """Test regular models send max_tokens and temperature."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response()
        mock_openai_class.return_value = mock_client

        adapter = OpenAIAdapter("sk-test")
        result = adapter.invoke("gpt-4.1-mini", GenerationRequest("prompt", 50, 0.3))

        mock_client.chat.completions.create.assert_called_once_with(
            model="gpt-4.1-mini",
            messages=[{"role": "user", "content": "prompt"}],
            max_tokens=50,
            temperature=0.3,
        )
        assert result.text == "Call John"
        assert result.input_tokens == 12
        assert result.output_tokens == 3
        assert result.tokens_estimated is False

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_reasoning_model_request(self, mock_openai_class):
        """Test reasoning models use max_completion_tokens and no temperature."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response()
        mock_openai_class.return_value = mock_client

        OpenAIAdapter("sk-test").invoke("o3", GenerationRequest("prompt", 10000, 0.3))

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["max_completion_tokens"] == 10000
        assert "max_tokens" not in kwargs
        assert "temperature" not in kwargs

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_json_response_format(self, mock_openai_class):
        """Test the JSON hint maps onto json_object mode."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response("[]")
        mock_openai_class.return_value = mock_client

        request = GenerationRequest("prompt", 300, 0.3, ResponseFormat.JSON)
        OpenAIAdapter("sk-test").invoke("gpt-4o", request)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_missing_usage_is_estimated(self, mock_openai_class):
        """Test counts are estimated from text when usage is absent."""
        response = _openai_response(content="x" * 40)
        response.usage = None
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = response
        mock_openai_class.return_value = mock_client

        result = OpenAIAdapter("sk-test").invoke("gpt-4o", GenerationRequest("p" * 81, 50, 0.3))

        assert result.input_tokens == 21
        assert result.output_tokens == 10
        assert result.tokens_estimated is True

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_null_content_yields_empty_text(self, mock_openai_class):
        """Test a null message content becomes an empty string."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _openai_response(content=None)
        mock_openai_class.return_value = mock_client

        result = OpenAIAdapter("sk-test").invoke("gpt-4o", GenerationRequest("p", 50, 0.3))

        assert result.text == ""

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_vendor_error_is_normalized(self, mock_openai_class):
        """Test vendor exceptions surface as ProviderError with the cause kept."""
        cause = RuntimeError("401 invalid api key")
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = cause
        mock_openai_class.return_value = mock_client

        with pytest.raises(ProviderError, match="invalid api key") as exc_info:
            OpenAIAdapter("sk-test").invoke("gpt-4o", GenerationRequest("p", 50, 0.3))

        assert exc_info.value.provider == "openai"
        assert exc_info.value.__cause__ is cause


class TestDeepSeekAdapter:
    """Test the DeepSeek adapter."""

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_uses_deepseek_endpoint(self, mock_openai_class):
        """Test the OpenAI client is pointed at DeepSeek."""
        DeepSeekAdapter("ds-test")
        mock_openai_class.assert_called_once_with(api_key="ds-test", base_url=DEEPSEEK_BASE_URL)

    @patch('ai_usage_meter.sdk.adapters.OpenAI')
    def test_errors_name_deepseek(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = ConnectionError("unreachable")
        mock_openai_class.return_value = mock_client

        with pytest.raises(ProviderError) as exc_info:
            DeepSeekAdapter("ds-test").invoke("deepseek-chat", GenerationRequest("p", 50, 0.3))

        assert exc_info.value.provider == "deepseek"


class TestAnthropicAdapter:
    """Test the Anthropic messages adapter."""

    @patch('ai_usage_meter.sdk.adapters.Anthropic')
    def test_request_and_usage(self, mock_anthropic_class):
        """Test request parameters and reported usage."""
        response = Mock()
        response.content = [_block("text", "NONE")]
        response.usage.input_tokens = 30
        response.usage.output_tokens = 2
        mock_client = Mock()
        mock_client.messages.create.return_value = response
        mock_anthropic_class.return_value = mock_client

        result = AnthropicAdapter("ak-test").invoke(
            "claude-3-haiku-20240307", GenerationRequest("prompt", 50, 0.3)
        )

        mock_client.messages.create.assert_called_once_with(
            model="claude-3-haiku-20240307",
            max_tokens=50,
            messages=[{"role": "user", "content": "prompt"}],
            temperature=0.3,
        )
        assert result.text == "NONE"
        assert (result.input_tokens, result.output_tokens) == (30, 2)
        assert result.tokens_estimated is False

    @patch('ai_usage_meter.sdk.adapters.Anthropic')
    def test_temperature_omitted_when_none(self, mock_anthropic_class):
        response = Mock()
        response.content = [_block("text", "ok")]
        response.usage = None
        mock_client = Mock()
        mock_client.messages.create.return_value = response
        mock_anthropic_class.return_value = mock_client

        AnthropicAdapter("ak-test").invoke("claude-x", GenerationRequest("prompt", 256))

        assert "temperature" not in mock_client.messages.create.call_args.kwargs

    @patch('ai_usage_meter.sdk.adapters.Anthropic')
    def test_first_text_block_selected(self, mock_anthropic_class):
        """Test non-text blocks are skipped."""
        response = Mock()
        response.content = [_block("thinking"), _block("text", "first"), _block("text", "second")]
        response.usage = None
        mock_client = Mock()
        mock_client.messages.create.return_value = response
        mock_anthropic_class.return_value = mock_client

        result = AnthropicAdapter("ak-test").invoke("claude-x", GenerationRequest("p", 50, 0.3))

        assert result.text == "first"

    @patch('ai_usage_meter.sdk.adapters.Anthropic')
    def test_no_text_block_yields_empty_string(self, mock_anthropic_class):
        """Test a reply without text blocks is empty, not an error."""
        response = Mock()
        response.content = [_block("tool_use")]
        response.usage = None
        mock_client = Mock()
        mock_client.messages.create.return_value = response
        mock_anthropic_class.return_value = mock_client

        result = AnthropicAdapter("ak-test").invoke("claude-x", GenerationRequest("abcdefgh", 50, 0.3))

        assert result.text == ""
        assert result.input_tokens == 2
        assert result.output_tokens == 0
        assert result.tokens_estimated is True


class TestGeminiAdapter:
    """Test the Gemini adapter."""

    @patch('ai_usage_meter.sdk.adapters.genai')
    def test_request_config(self, mock_genai):
        """Test generation config carries the canonical parameters."""
        response = Mock()
        response.text = "[]"
        response.usage_metadata.prompt_token_count = 40
        response.usage_metadata.candidates_token_count = 1
        mock_genai.Client.return_value.models.generate_content.return_value = response

        adapter = GeminiAdapter("g-test")
        request = GenerationRequest("prompt", 300, 0.3, ResponseFormat.JSON)
        result = adapter.invoke("gemini-2.0-flash", request)

        mock_genai.Client.assert_called_once_with(api_key="g-test")
        call = mock_genai.Client.return_value.models.generate_content.call_args
        assert call.kwargs["model"] == "gemini-2.0-flash"
        assert call.kwargs["contents"] == "prompt"
        config = call.kwargs["config"]
        assert config.max_output_tokens == 300
        assert config.temperature == 0.3
        assert config.response_mime_type == "application/json"
        assert (result.input_tokens, result.output_tokens) == (40, 1)
        assert result.tokens_estimated is False

    @patch('ai_usage_meter.sdk.adapters.genai')
    def test_missing_usage_metadata_is_estimated(self, mock_genai):
        """Test both counts are estimated when metadata is absent."""
        response = Mock()
        response.text = "Send the report"
        response.usage_metadata = None
        mock_genai.Client.return_value.models.generate_content.return_value = response

        result = GeminiAdapter("g-test").invoke("gemini-2.0-flash", GenerationRequest("x" * 100, 50, 0.3))

        assert result.input_tokens == 25
        assert result.output_tokens == 4
        assert result.tokens_estimated is True

    @patch('ai_usage_meter.sdk.adapters.genai')
    def test_vendor_error_is_normalized(self, mock_genai):
        mock_genai.Client.return_value.models.generate_content.side_effect = ValueError("bad key")

        with pytest.raises(ProviderError) as exc_info:
            GeminiAdapter("g-test").invoke("gemini-2.0-flash", GenerationRequest("p", 50, 0.3))

        assert exc_info.value.provider == "gemini"
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestCreateAdapter:
    """Test the adapter factory."""

    @patch('ai_usage_meter.sdk.adapters.Anthropic')
    def test_creates_by_provider(self, mock_anthropic_class):
        assert isinstance(create_adapter("anthropic", "ak-test"), AnthropicAdapter)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider: mistral"):
            create_adapter("mistral", "key")
