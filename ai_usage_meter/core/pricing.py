"""
Pricing calculations and rate management.

Static per-(provider, model) rates and the cost computations built on them.
Rates are USD per 1K tokens.
"""

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .token_counter import TokenUsage


@dataclass(frozen=True)
class PricingEntry:
    """Per-token pricing for a specific provider model."""
    provider: str
    model: str
    input_cost_per_1k: Decimal  # Cost per 1K input tokens
    output_cost_per_1k: Decimal  # Cost per 1K output tokens


@dataclass(frozen=True)
class PricingTable:
    """Read-only pricing table keyed by (provider, model)."""
    entries: Mapping[Tuple[str, str], PricingEntry]

    def lookup(self, provider: str, model: str) -> Optional[PricingEntry]:
        """Get pricing for a provider model.

        Args:
            provider: Provider identifier (e.g. "openai")
            model: Model identifier

        Returns:
            PricingEntry for the model, or None if it is not priced
        """
        return self.entries.get((provider, model))

    def models_for(self, provider: str) -> Tuple[str, ...]:
        """Priced model names for a provider, in table order."""
        return tuple(model for (p, model) in self.entries if p == provider)


def _build_table(rates: Mapping[str, Mapping[str, Tuple[str, str]]]) -> PricingTable:
    entries = {}
    for provider, models in rates.items():
        for model, (input_rate, output_rate) in models.items():
            entries[(provider, model)] = PricingEntry(
                provider=provider,
                model=model,
                input_cost_per_1k=Decimal(input_rate),
                output_cost_per_1k=Decimal(output_rate),
            )
    return PricingTable(MappingProxyType(entries))


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = _build_table({
    "openai": {
        "gpt-4o": ("0.005", "0.02"),
        "gpt-4o-mini": ("0.0006", "0.0024"),
        "gpt-4.1": ("0.002", "0.008"),
        "gpt-4.1-mini": ("0.0004", "0.0016"),
        "gpt-4.1-nano": ("0.0001", "0.0004"),
        "o3": ("0.002", "0.008"),
        "o4-mini": ("0.0011", "0.0044"),
    },
    "anthropic": {
        "claude-3-haiku-20240307": ("0.00025", "0.00125"),
        "claude-3-5-haiku-latest": ("0.0008", "0.004"),
        "claude-sonnet-4-20250514": ("0.003", "0.015"),
        "claude-opus-4-20250514": ("0.015", "0.075"),
    },
    "gemini": {
        "gemini-2.0-flash": ("0.0001", "0.0004"),
        "gemini-1.5-flash": ("0.000075", "0.0003"),
        "gemini-1.5-pro": ("0.00125", "0.005"),
    },
    "deepseek": {
        "deepseek-chat": ("0.00027", "0.0011"),
        "deepseek-reasoner": ("0.00055", "0.00219"),
    },
})


def calculate_cost(
    provider: str,
    model: str,
    usage: TokenUsage,
    table: PricingTable = PRICING_TABLE,
) -> float:
    """Calculate the cost of a call in USD.

    Unpriced models cost nothing; this is an estimate, not a bill, so
    a missing entry is not an error.

    Args:
        provider: Provider identifier
        model: Model identifier
        usage: Token usage data
        table: Pricing table to use

    Returns:
        Unrounded cost in USD
    """
    entry = table.lookup(provider, model)
    if entry is None:
        return 0.0

    # (tokens / 1000) * cost_per_1k
    input_cost = (Decimal(usage.input_tokens) / Decimal("1000")) * entry.input_cost_per_1k
    output_cost = (Decimal(usage.output_tokens) / Decimal("1000")) * entry.output_cost_per_1k

    return float(input_cost + output_cost)


def format_cost(amount: float) -> str:
    """Format a USD amount, keeping sub-cent costs visible."""
    if amount < 0.01:
        return f"${amount:.4f}"
    return f"${amount:,.2f}"


def format_tokens(tokens: int) -> str:
    """Format a token count compactly (950, 1.2K, 3.40M)."""
    if tokens < 1000:
        return str(tokens)
    if tokens < 1_000_000:
        return f"{tokens / 1000:.1f}K"
    return f"{tokens / 1_000_000:.2f}M"
