"""Per-model pricing in USD per million tokens.

Each table is ordered most specific first; the first rule whose substring
occurs in the model id wins, otherwise the table's default tier applies.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceTier:
    match: str
    input_per_million: float
    output_per_million: float


@dataclass(frozen=True)
class PriceTable:
    rules: tuple[PriceTier, ...]
    default: PriceTier

    def tier_for(self, model: str) -> PriceTier:
        for rule in self.rules:
            if rule.match in model:
                return rule
        return self.default

    def cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        tier = self.tier_for(model)
        return (
            max(0, tokens_in) * tier.input_per_million + max(0, tokens_out) * tier.output_per_million
        ) / 1_000_000


ANTHROPIC_PRICES = PriceTable(
    rules=(
        PriceTier("opus-4-6", 5.0, 25.0),
        PriceTier("opus-4-5", 5.0, 25.0),
        PriceTier("opus", 15.0, 75.0),
        PriceTier("sonnet", 3.0, 15.0),
        PriceTier("haiku-4", 1.0, 5.0),
        PriceTier("haiku", 0.8, 4.0),
    ),
    default=PriceTier("*", 3.0, 15.0),
)

GOOGLE_PRICES = PriceTable(
    rules=(
        PriceTier("2.5-pro", 1.25, 10.0),
        PriceTier("2.5-flash-lite", 0.10, 0.40),
        PriceTier("2.5-flash", 0.30, 2.50),
        PriceTier("flash-lite", 0.075, 0.30),
        PriceTier("flash", 0.10, 0.40),
        PriceTier("pro", 1.25, 5.0),
    ),
    default=PriceTier("*", 0.10, 0.40),
)
