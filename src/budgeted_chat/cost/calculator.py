"""Cost calculation from provider-reported token usage."""

import math
from dataclasses import dataclass
from typing import Any, Optional

from .pricing import PricingTable

_PER_MILLION = 1_000_000.0

# Where providers report cached prompt tokens, in lookup order.
_CACHED_DETAIL_FIELDS = (
    "input_tokens_details",
    "input_token_details",
    "prompt_tokens_details",
)


@dataclass(frozen=True)
class TokenCounts:
    """Token counts pulled out of a usage object. ``cached`` is already clamped."""

    input: int = 0
    output: int = 0
    cached: int = 0

    @property
    def non_cached(self) -> int:
        return max(0, self.input - self.cached)


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _count(value: Any) -> int:
    """Coerce a reported token count to a non-negative int (0 when unusable)."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number <= 0:
        return 0
    return int(number)


def extract_token_counts(usage: Any) -> TokenCounts:
    """Read input/output/cached counts from a usage object.

    Accepts mappings and attribute-style objects (SDK usage models,
    :class:`~budgeted_chat.types.StandardizedUsage`). Both naming schemes
    are understood; ``input_tokens``/``output_tokens`` take priority over
    ``prompt_tokens``/``completion_tokens`` when both are present.
    """
    if usage is None:
        return TokenCounts()

    input_tokens = _count(_field(usage, "input_tokens")) or _count(_field(usage, "prompt_tokens"))
    output_tokens = _count(_field(usage, "output_tokens")) or _count(
        _field(usage, "completion_tokens")
    )

    cached = _count(_field(usage, "cached_prompt_tokens"))
    if not cached:
        for detail_name in _CACHED_DETAIL_FIELDS:
            cached = _count(_field(_field(usage, detail_name), "cached_tokens"))
            if cached:
                break

    cached = max(0, min(cached, input_tokens))
    return TokenCounts(input=input_tokens, output=output_tokens, cached=cached)


class CostCalculator:
    """Calculates the cost of one exchange from its reported usage.

    Pure: no I/O, and unknown models or missing usage cost ``0`` rather
    than raising.

    Attributes:
        _pricing: PricingTable instance for looking up model prices
    """

    def __init__(self, pricing_table: Optional[PricingTable] = None) -> None:
        """Initialize CostCalculator.

        Args:
            pricing_table: PricingTable with model prices. Defaults to the
                bundled table.
        """
        self._pricing = pricing_table if pricing_table is not None else PricingTable()

    @property
    def pricing(self) -> PricingTable:
        return self._pricing

    def compute(self, usage: Any, model: Optional[str]) -> float:
        """Calculate the cost of one exchange.

        Args:
            usage: Usage object (mapping or attribute style) or None
            model: Model identifier the exchange was billed against

        Returns:
            Cost in USD, rounded to six decimal places. 0 for unknown models.
        """
        return self.compute_with_breakdown(usage, model)["total_cost"]

    def compute_with_breakdown(self, usage: Any, model: Optional[str]) -> dict:
        """Calculate cost with detailed breakdown.

        Returns:
            Dictionary with:
                - total_cost: Total cost in USD (rounded to 1e-6)
                - input_cost / cached_input_cost / output_cost: Unrounded parts
                - input_tokens / cached_tokens / output_tokens: Counts used
                - price_key: Resolved price-table key, or None
        """
        price_key = self._pricing.resolve_model(model)
        counts = extract_token_counts(usage)
        breakdown = {
            "total_cost": 0.0,
            "input_cost": 0.0,
            "cached_input_cost": 0.0,
            "output_cost": 0.0,
            "input_tokens": counts.input,
            "cached_tokens": counts.cached,
            "output_tokens": counts.output,
            "price_key": price_key,
        }
        if price_key is None:
            return breakdown

        price = self._pricing.get_price(price_key)
        if price.has_cached_rate:
            input_cost = counts.non_cached * price.input_per_1m / _PER_MILLION
            cached_cost = counts.cached * price.cached_input_per_1m / _PER_MILLION
        else:
            input_cost = counts.input * price.input_per_1m / _PER_MILLION
            cached_cost = 0.0
        output_cost = counts.output * price.output_per_1m / _PER_MILLION

        breakdown.update(
            total_cost=round(input_cost + cached_cost + output_cost, 6),
            input_cost=input_cost,
            cached_input_cost=cached_cost,
            output_cost=output_cost,
        )
        return breakdown
