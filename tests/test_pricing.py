"""Test pricing table and cost calculator."""

import json
from types import SimpleNamespace

import pytest

from budgeted_chat.cost.calculator import CostCalculator, extract_token_counts
from budgeted_chat.cost.pricing import PricingTable
from budgeted_chat.exceptions import PricingDataError
from budgeted_chat.types import StandardizedUsage


def _write_pricing(tmp_path, data):
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestPricingTable:
    def setup_method(self):
        self.pricing = PricingTable()

    def test_bundled_table_loads(self):
        assert "mistral-small" in self.pricing.known_models()
        assert self.pricing.currency == "USD"

    def test_exact_key(self):
        assert self.pricing.resolve_model("gpt-5") == "gpt-5"

    def test_prefix_patterns(self):
        assert self.pricing.resolve_model("gpt-5-mini") == "gpt-5"
        assert self.pricing.resolve_model("gpt-4o-mini-2024-07-18") == "gpt-4o-mini"

    def test_substring_patterns(self):
        assert self.pricing.resolve_model("mistral-large-latest") == "mistral-large"
        assert self.pricing.resolve_model("mistral-medium-2505") == "mistral-medium"
        assert self.pricing.resolve_model("open-mistral-small") == "mistral-small"

    def test_tiny_is_billed_as_small(self):
        assert self.pricing.resolve_model("mistral-tiny") == "mistral-small"

    def test_matching_ignores_case_and_whitespace(self):
        assert self.pricing.resolve_model("  Mistral-Large-Latest ") == "mistral-large"

    def test_unknown_model_resolves_to_none(self):
        assert self.pricing.resolve_model("claude-sonnet-4") is None
        assert self.pricing.resolve_model("") is None
        assert self.pricing.resolve_model(None) is None
        assert self.pricing.get_price("gpt-4o") is None

    def test_cached_rate_only_where_defined(self):
        assert self.pricing.get_price("gpt-5").has_cached_rate
        assert not self.pricing.get_price("mistral-small").has_cached_rate

    def test_custom_config_path(self, tmp_path):
        path = _write_pricing(
            tmp_path,
            {
                "models": {"house": {"input_price_per_1m": 1, "output_price_per_1m": 2}},
                "model_patterns": [{"match": "prefix", "pattern": "house-", "model": "house"}],
            },
        )
        pricing = PricingTable(config_path=path)
        assert pricing.resolve_model("house-v2") == "house"
        assert pricing.resolve_model("mistral-small") is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(PricingDataError):
            PricingTable(config_path=str(tmp_path / "nope.json"))

    def test_malformed_json_raises(self, tmp_path):
        path = tmp_path / "pricing.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PricingDataError):
            PricingTable(config_path=str(path))

    def test_pattern_to_unknown_model_raises(self, tmp_path):
        path = _write_pricing(
            tmp_path,
            {
                "models": {"a": {"input_price_per_1m": 1, "output_price_per_1m": 1}},
                "model_patterns": [{"match": "prefix", "pattern": "b", "model": "b"}],
            },
        )
        with pytest.raises(PricingDataError):
            PricingTable(config_path=path)

    def test_unknown_match_kind_raises(self, tmp_path):
        path = _write_pricing(
            tmp_path,
            {
                "models": {"a": {"input_price_per_1m": 1, "output_price_per_1m": 1}},
                "model_patterns": [{"match": "regex", "pattern": "a.*", "model": "a"}],
            },
        )
        with pytest.raises(PricingDataError):
            PricingTable(config_path=path)


class TestTokenExtraction:
    def test_prompt_completion_naming(self):
        counts = extract_token_counts({"prompt_tokens": 10, "completion_tokens": 5})
        assert (counts.input, counts.output, counts.cached) == (10, 5, 0)

    def test_input_output_naming_wins(self):
        counts = extract_token_counts(
            {"input_tokens": 7, "output_tokens": 3, "prompt_tokens": 100, "completion_tokens": 50}
        )
        assert (counts.input, counts.output) == (7, 3)

    def test_attribute_style_details(self):
        usage = SimpleNamespace(
            input_tokens=100,
            output_tokens=10,
            input_tokens_details=SimpleNamespace(cached_tokens=30),
        )
        assert extract_token_counts(usage).cached == 30

    def test_mapping_style_details(self):
        usage = {"prompt_tokens": 100, "prompt_tokens_details": {"cached_tokens": 25}}
        assert extract_token_counts(usage).cached == 25

    def test_cached_clamped_to_input(self):
        counts = extract_token_counts({"input_tokens": 50, "cached_prompt_tokens": 80})
        assert counts.cached == 50
        assert counts.non_cached == 0

    def test_garbage_counts_become_zero(self):
        counts = extract_token_counts({"prompt_tokens": -4, "completion_tokens": "many"})
        assert (counts.input, counts.output) == (0, 0)


class TestCostCalculator:
    def setup_method(self):
        self.calculator = CostCalculator()

    def test_no_cached_rate_formula(self):
        usage = StandardizedUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000)
        assert self.calculator.compute(usage, "mistral-large-latest") == pytest.approx(2.0)

    def test_cached_rate_formula(self):
        usage = {
            "input_tokens": 1_000_000,
            "output_tokens": 100_000,
            "input_tokens_details": {"cached_tokens": 200_000},
        }
        # 800k * 1.25 + 200k * 0.125 + 100k * 10.0, per million
        assert self.calculator.compute(usage, "gpt-5") == pytest.approx(2.025)

    def test_cached_tokens_ignored_without_cached_rate(self):
        usage = StandardizedUsage(prompt_tokens=1_000_000, cached_prompt_tokens=500_000)
        assert self.calculator.compute(usage, "mistral-small") == pytest.approx(0.1)

    def test_cached_over_input_never_goes_negative(self):
        usage = {"input_tokens": 1000, "cached_prompt_tokens": 5000}
        breakdown = self.calculator.compute_with_breakdown(usage, "gpt-5")
        assert breakdown["cached_tokens"] == 1000
        assert breakdown["input_cost"] == 0.0
        assert breakdown["total_cost"] == pytest.approx(0.000125)

    def test_unknown_model_costs_zero(self):
        usage = {"prompt_tokens": 10_000, "completion_tokens": 10_000}
        assert self.calculator.compute(usage, "llama-3-70b") == 0
        assert self.calculator.compute(usage, None) == 0

    def test_absent_usage_costs_zero(self):
        assert self.calculator.compute(None, "gpt-5") == 0
        assert self.calculator.compute({}, "gpt-5") == 0

    def test_rounded_to_six_decimals(self):
        usage = {"prompt_tokens": 1234, "completion_tokens": 5678}
        cost = self.calculator.compute(usage, "gpt-5")
        assert cost == round(cost, 6)

    def test_deterministic_and_non_negative(self):
        usages = [
            None,
            {"prompt_tokens": 3},
            {"input_tokens": 999_999, "output_tokens": 1},
            StandardizedUsage(total_tokens=15, prompt_tokens=10, completion_tokens=5),
        ]
        for model in ("gpt-5", "gpt-4o-mini", "mistral-tiny", "unknown"):
            for usage in usages:
                first = self.calculator.compute(usage, model)
                assert first >= 0
                assert first == self.calculator.compute(usage, model)

    def test_breakdown_names_price_key(self):
        breakdown = self.calculator.compute_with_breakdown(
            {"prompt_tokens": 10}, "Mistral-Small-Latest"
        )
        assert breakdown["price_key"] == "mistral-small"
