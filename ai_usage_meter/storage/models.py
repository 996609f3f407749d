"""
Data models for storage layer.

Defines usage records and the aggregate statistics built from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one metered LLM call.

    Append-only records that create an auditable ledger of AI costs.
    Once written, these records must never be modified.
    """
    timestamp: datetime
    provider: str
    model: str
    command: str
    input_tokens: int
    output_tokens: int
    cost: float
    success: bool
    error: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider,
            "model": self.model,
            "command": self.command,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "success": self.success,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        """Rebuild a record produced by `to_dict`.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the timestamp is malformed
        """
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            provider=data["provider"],
            model=data["model"],
            command=data["command"],
            input_tokens=int(data["input_tokens"]),
            output_tokens=int(data["output_tokens"]),
            cost=float(data["cost"]),
            success=bool(data["success"]),
            error=data.get("error"),
        )


@dataclass
class UsageBreakdown:
    """Totals for one provider, model or command."""
    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    calls: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, record: UsageRecord) -> None:
        self.cost += record.cost
        self.input_tokens += record.input_tokens
        self.output_tokens += record.output_tokens
        self.calls += 1


@dataclass
class UsageStats:
    """Aggregate statistics over a set of usage records.

    `by_model` is keyed by "provider/model" so identical model names from
    different providers stay apart.
    """
    total_cost: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    call_count: int = 0
    error_count: int = 0
    by_provider: Dict[str, UsageBreakdown] = field(default_factory=dict)
    by_model: Dict[str, UsageBreakdown] = field(default_factory=dict)
    by_command: Dict[str, UsageBreakdown] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    def add(self, record: UsageRecord) -> None:
        """Fold one record into the totals and every breakdown."""
        self.total_cost += record.cost
        self.total_input_tokens += record.input_tokens
        self.total_output_tokens += record.output_tokens
        self.call_count += 1
        if not record.success:
            self.error_count += 1

        self.by_provider.setdefault(record.provider, UsageBreakdown()).add(record)
        model_key = f"{record.provider}/{record.model}"
        self.by_model.setdefault(model_key, UsageBreakdown()).add(record)
        self.by_command.setdefault(record.command, UsageBreakdown()).add(record)
