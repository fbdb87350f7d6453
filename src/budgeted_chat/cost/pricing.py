"""Pricing configuration loader and manager."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import PricingDataError

_MATCH_KINDS = ("prefix", "substring")


@dataclass(frozen=True)
class ModelPrice:
    """Rates for one model family, in USD per one million tokens."""

    input_per_1m: float
    output_per_1m: float
    cached_input_per_1m: Optional[float] = None

    @property
    def has_cached_rate(self) -> bool:
        return self.cached_input_per_1m is not None


@dataclass(frozen=True)
class ModelPattern:
    match: str
    pattern: str
    model: str

    def matches(self, model: str) -> bool:
        if self.match == "prefix":
            return model.startswith(self.pattern)
        return self.pattern in model


class PricingTable:
    """Manages model pricing data.

    Loads pricing information from pricing.json and resolves free-form
    model identifiers (``mistral-large-latest``, ``gpt-5-mini``) to a price
    entry through an ordered list of name patterns.

    Attributes:
        _data: Raw pricing configuration data
        _models: Model family -> ModelPrice
        _patterns: Ordered patterns; the first match wins
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """Initialize PricingTable.

        Args:
            config_path: Optional path to pricing JSON file. If None, uses the
                        pricing.json bundled in the package's data directory.

        Raises:
            PricingDataError: If pricing file cannot be loaded or is malformed
        """
        if config_path is None:
            path = Path(__file__).parent.parent / "data" / "pricing.json"
        else:
            path = Path(config_path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                self._data: Dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PricingDataError(f"Failed to load pricing configuration: {e}") from e

        if not isinstance(self._data, dict):
            raise PricingDataError("Pricing configuration must be a JSON object")

        self._models: Dict[str, ModelPrice] = self._parse_models(self._data.get("models", {}))
        self._patterns: List[ModelPattern] = self._parse_patterns(
            self._data.get("model_patterns", [])
        )

        if not self._models:
            raise PricingDataError("Pricing configuration contains no models")

    @staticmethod
    def _parse_models(raw: Any) -> Dict[str, ModelPrice]:
        if not isinstance(raw, dict):
            raise PricingDataError("'models' must be an object")
        models: Dict[str, ModelPrice] = {}
        for name, entry in raw.items():
            try:
                cached = entry.get("cached_input_price_per_1m")
                models[name] = ModelPrice(
                    input_per_1m=float(entry["input_price_per_1m"]),
                    output_per_1m=float(entry["output_price_per_1m"]),
                    cached_input_per_1m=float(cached) if cached is not None else None,
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise PricingDataError(f"Invalid price entry for model '{name}': {e}") from e
        return models

    def _parse_patterns(self, raw: Any) -> List[ModelPattern]:
        if not isinstance(raw, list):
            raise PricingDataError("'model_patterns' must be a list")
        patterns: List[ModelPattern] = []
        for entry in raw:
            try:
                pattern = ModelPattern(
                    match=str(entry.get("match", "prefix")),
                    pattern=str(entry["pattern"]).lower(),
                    model=str(entry["model"]),
                )
            except (AttributeError, KeyError) as e:
                raise PricingDataError(f"Invalid model pattern {entry!r}: {e}") from e
            if pattern.match not in _MATCH_KINDS:
                raise PricingDataError(
                    f"Unknown match kind '{pattern.match}' (expected one of {_MATCH_KINDS})"
                )
            if pattern.model not in self._models:
                raise PricingDataError(
                    f"Pattern '{pattern.pattern}' references unknown model '{pattern.model}'"
                )
            patterns.append(pattern)
        return patterns

    def resolve_model(self, model: Optional[str]) -> Optional[str]:
        """Resolve a model identifier to its price-table key.

        Exact keys win; otherwise patterns are tried in file order.

        Args:
            model: Model identifier as sent to the provider.

        Returns:
            Price-table key, or None when the model is not billed.
        """
        name = str(model or "").strip().lower()
        if not name:
            return None
        if name in self._models:
            return name
        for pattern in self._patterns:
            if pattern.matches(name):
                return pattern.model
        return None

    def get_price(self, model: Optional[str]) -> Optional[ModelPrice]:
        """Get the rates for a model, or None if the model is unknown."""
        key = self.resolve_model(model)
        if key is None:
            return None
        return self._models[key]

    def known_models(self) -> List[str]:
        return sorted(self._models)

    @property
    def currency(self) -> str:
        return str(self._data.get("currency", "USD"))
