"""
Pricing calculations and model recommendation.

Estimates request costs from a static per-model price table.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from .token_counter import TokenUsage, estimate_tokens, estimate_usage

logger = logging.getLogger(__name__)

_TOKENS_PER_MILLION = Decimal("1000000")

# Identifier fragments that mark a higher-quality model tier
PREMIUM_TIER_MARKERS = ("pro",)


class Complexity(Enum):
    """How demanding a task is, used to pick a model."""
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    name: str  # Display name
    input_cost_per_1m: Decimal  # Cost per 1M prompt tokens
    output_cost_per_1m: Decimal  # Cost per 1M completion tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Dict[str, ModelPricing]

    def lookup(self, model: str) -> Optional[ModelPricing]:
        """Return pricing for a model, or None when it is not listed."""
        return self.prices.get(model)

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]

    @property
    def models(self) -> List[str]:
        return list(self.prices)


@dataclass(frozen=True)
class ModelRecommendation:
    """Cheapest suitable model for a task."""
    model: str
    estimated_cost: float
    reasoning: str


# Fixed pricing table - loaded once, never mutated
PRICING_TABLE = PricingTable({
    "gemini-1.5-flash": ModelPricing(
        name="Gemini 1.5 Flash",
        input_cost_per_1m=Decimal("0.075"),
        output_cost_per_1m=Decimal("0.30")
    ),
    "gemini-1.5-pro": ModelPricing(
        name="Gemini 1.5 Pro",
        input_cost_per_1m=Decimal("3.50"),
        output_cost_per_1m=Decimal("10.50")
    ),
    "gemini-1.0-pro": ModelPricing(
        name="Gemini 1.0 Pro",
        input_cost_per_1m=Decimal("0.50"),
        output_cost_per_1m=Decimal("1.50")
    )
})


def calculate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate the cost of a request from its token usage.

    Args:
        model: Model identifier
        usage: Token usage data
        table: Pricing table to consult

    Returns:
        Estimated cost in dollars, 0.0 when the model has no pricing
    """
    pricing = table.lookup(model)
    if pricing is None:
        logger.info("Unknown model pricing: %s", model)
        return 0.0

    input_cost = (Decimal(usage.prompt_tokens) / _TOKENS_PER_MILLION) * pricing.input_cost_per_1m
    output_cost = (Decimal(usage.completion_tokens) / _TOKENS_PER_MILLION) * pricing.output_cost_per_1m

    return float(input_cost + output_cost)


def estimate_cost(
    model: str,
    input_text: str,
    output_text: str,
    table: PricingTable = PRICING_TABLE
) -> float:
    """Estimate the cost of a prompt/response pair from word counts."""
    return calculate_cost(model, estimate_usage(input_text, output_text), table)


def recommend_model(
    input_text: str,
    complexity: Complexity = Complexity.MEDIUM,
    table: PricingTable = PRICING_TABLE
) -> ModelRecommendation:
    """Pick a model for a task by balancing estimated cost against quality.

    Output length is guessed conservatively as half the input, capped at
    1000 tokens. Models are ranked cheapest first.

    Args:
        input_text: Prompt that will be sent
        complexity: Task complexity
        table: Pricing table to rank

    Returns:
        ModelRecommendation for the chosen model

    Raises:
        ValueError: If the pricing table is empty
    """
    if not table.prices:
        raise ValueError("pricing table has no models to recommend")

    input_tokens = estimate_tokens(input_text)
    output_tokens = min(input_tokens * 0.5, 1000)
    usage = TokenUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens)

    ranked = sorted(
        ((model, calculate_cost(model, usage, table)) for model in table.models),
        key=lambda item: item[1]
    )

    if complexity == Complexity.SIMPLE:
        selected = ranked[0]
        reasoning = "Simple task - using most cost-effective model"
    elif complexity == Complexity.COMPLEX:
        premium = [item for item in ranked if any(m in item[0] for m in PREMIUM_TIER_MARKERS)]
        selected = premium[0] if premium else ranked[0]
        reasoning = "Complex task - using higher quality model despite cost"
    else:
        selected = ranked[1] if len(ranked) > 1 else ranked[0]
        reasoning = "Medium complexity - balancing cost and quality"

    return ModelRecommendation(
        model=selected[0],
        estimated_cost=selected[1],
        reasoning=reasoning
    )


def format_cost(cost: float) -> str:
    """Format a cost for display; sub-cent amounts are shown in thousandths."""
    if cost < 0.01:
        return f"${cost * 1000:.2f}‰"
    return f"${cost:.4f}"
