"""
Shared fixtures for the test suite.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from ai_usage_meter.sdk.adapters import GenerationRequest, GenerationResult, ProviderAdapter
from ai_usage_meter.storage.kv import MemoryKeyValueStore
from ai_usage_meter.storage.ledger import UsageLedger


class FakeAdapter(ProviderAdapter):
    """Adapter that replays a scripted reply and keeps every request."""

    provider_name = "fake"

    def __init__(
        self,
        text: str = "",
        input_tokens: Optional[int] = 10,
        output_tokens: Optional[int] = 5,
        error: Optional[Exception] = None,
    ):
        super().__init__("test-key")
        self.text = text
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.requests: List[GenerationRequest] = []
        self.models: List[str] = []

    def _generate(self, model: str, request: GenerationRequest) -> GenerationResult:
        self.models.append(model)
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self._build_result(request, self.text, self.input_tokens, self.output_tokens)


class StepClock:
    """Clock that advances one minute per reading."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


@pytest.fixture
def memory_ledger():
    return UsageLedger(MemoryKeyValueStore())


@pytest.fixture
def fake_adapter():
    return FakeAdapter()
