"""Model pricing tables and cost calculation."""

from dataclasses import dataclass
from typing import Mapping, Optional

from claude_roi.types.sessions import CostBreakdown, TokenUsage

PER_MILLION = 1_000_000

_NEW_VERSIONS = ("4-5", "4.5", "4-6", "4.6")


@dataclass(frozen=True)
class PricingTier:
    """USD per million tokens."""
    input: float
    output: float
    cache_read: float
    cache_write: float


@dataclass(frozen=True)
class PricingTable:
    """Maps model identifiers to tiers.

    ``rules`` are checked in order; a rule matches when the lowercased model
    contains ``family`` and, if ``versions`` is non-empty, any of them.
    """
    tiers: Mapping[str, PricingTier]
    rules: tuple[tuple[str, tuple[str, ...], str], ...]

    def tier_for(self, model: Optional[str]) -> Optional[PricingTier]:
        if not model:
            return None
        lower = model.lower()
        for family, versions, tier_name in self.rules:
            if family not in lower:
                continue
            if versions and not any(v in lower for v in versions):
                continue
            return self.tiers.get(tier_name)
        return None


# Cache reads are 0.1x base input, 5 minute cache writes 1.25x.
VERSIONED_PRICING = PricingTable(
    tiers={
        "opus-new":  PricingTier(input=5.00,  output=25.00, cache_read=0.50, cache_write=6.25),
        "opus-old":  PricingTier(input=15.00, output=75.00, cache_read=1.50, cache_write=18.75),
        "sonnet":    PricingTier(input=3.00,  output=15.00, cache_read=0.30, cache_write=3.75),
        "haiku-new": PricingTier(input=1.00,  output=5.00,  cache_read=0.10, cache_write=1.25),
        "haiku-35":  PricingTier(input=0.80,  output=4.00,  cache_read=0.08, cache_write=1.00),
        "haiku-3":   PricingTier(input=0.25,  output=1.25,  cache_read=0.03, cache_write=0.30),
    },
    rules=(
        ("opus", _NEW_VERSIONS, "opus-new"),
        ("opus", (), "opus-old"),
        ("sonnet", (), "sonnet"),
        ("haiku", _NEW_VERSIONS, "haiku-new"),
        ("haiku", ("3-5", "3.5"), "haiku-35"),
        ("haiku", (), "haiku-3"),
    ),
)

# Older flat per-family pricing, one tier per family regardless of version.
FLAT_PRICING = PricingTable(
    tiers={
        "opus":   PricingTier(input=15.00, output=75.00, cache_read=1.50, cache_write=18.75),
        "sonnet": PricingTier(input=3.00,  output=15.00, cache_read=0.30, cache_write=3.75),
        "haiku":  PricingTier(input=0.80,  output=4.00,  cache_read=0.08, cache_write=1.00),
    },
    rules=(
        ("opus", (), "opus"),
        ("sonnet", (), "sonnet"),
        ("haiku", (), "haiku"),
    ),
)

PRICING_TABLES: dict[str, PricingTable] = {
    "versioned": VERSIONED_PRICING,
    "flat": FLAT_PRICING,
}

MODEL_FAMILIES = ("opus", "sonnet", "haiku")


def get_model_family(model: Optional[str]) -> Optional[str]:
    """Return "opus", "sonnet" or "haiku" for a raw model id, else None."""
    if not model:
        return None
    lower = model.lower()
    for family in MODEL_FAMILIES:
        if family in lower:
            return family
    return None


def calculate_cost_breakdown(
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int,
    cache_creation_tokens: int,
    model: Optional[str],
    table: PricingTable = VERSIONED_PRICING,
) -> CostBreakdown:
    """Price token counts at the model's tier. Unknown models cost nothing."""
    tier = table.tier_for(model)
    if tier is None:
        return CostBreakdown()
    return CostBreakdown(
        input_cost=input_tokens * tier.input / PER_MILLION,
        output_cost=output_tokens * tier.output / PER_MILLION,
        cache_read_cost=cache_read_tokens * tier.cache_read / PER_MILLION,
        cache_creation_cost=cache_creation_tokens * tier.cache_write / PER_MILLION,
    )


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int,
    cache_creation_tokens: int,
    model: Optional[str],
    table: PricingTable = VERSIONED_PRICING,
) -> float:
    """Calculate total cost in USD for the given token counts and model."""
    return calculate_cost_breakdown(
        input_tokens, output_tokens, cache_read_tokens, cache_creation_tokens,
        model, table,
    ).total_cost


def usage_cost(usage: TokenUsage, model: Optional[str],
               table: PricingTable = VERSIONED_PRICING) -> CostBreakdown:
    return calculate_cost_breakdown(
        usage.input_tokens, usage.output_tokens,
        usage.cache_read_tokens, usage.cache_creation_tokens,
        model, table,
    )


def session_cost(model_usage: Mapping[str, TokenUsage],
                 table: PricingTable = VERSIONED_PRICING) -> CostBreakdown:
    """Sum of per-model costs, each model priced independently at its own tier."""
    total = CostBreakdown()
    for model, usage in model_usage.items():
        total = total + usage_cost(usage, model, table)
    return total
