"""
Price helpers and the price/score Pareto frontier.
"""

from typing import List, Sequence

TYPICAL_INPUT_TOKENS = 1000
TYPICAL_OUTPUT_TOKENS = 500
TYPICAL_REASONING_OUTPUT_TOKENS = 5000


def estimate_typical_query_cost(input_price_per_1m: float, output_price_per_1m: float,
                                is_reasoning_model: bool) -> float:
    """Dollar cost of a typical query; reasoning models emit far more output tokens."""
    output_tokens = TYPICAL_REASONING_OUTPUT_TOKENS if is_reasoning_model else TYPICAL_OUTPUT_TOKENS
    return (TYPICAL_INPUT_TOKENS * input_price_per_1m + output_tokens * output_price_per_1m) / 1_000_000


def avg_price_per_1m(input_price_per_1m: float, output_price_per_1m: float) -> float:
    return (input_price_per_1m + output_price_per_1m) / 2


def pareto_frontier(models: Sequence) -> List[str]:
    """
    Slugs of priced models no other priced model beats on both price and score.

    Models need ``slug``, ``composite_score`` and a ``pricing`` with
    ``input_per_1m`` / ``output_per_1m`` (or ``None``).
    """
    priced = [
        m for m in models
        if m.pricing is not None and m.pricing.input_per_1m > 0 and m.pricing.output_per_1m > 0
    ]

    frontier = []
    for model in priced:
        price = avg_price_per_1m(model.pricing.input_per_1m, model.pricing.output_per_1m)
        dominated = False
        for other in priced:
            if other.slug == model.slug:
                continue
            other_price = avg_price_per_1m(other.pricing.input_per_1m, other.pricing.output_per_1m)
            if (other_price <= price and other.composite_score >= model.composite_score
                    and (other_price < price or other.composite_score > model.composite_score)):
                dominated = True
                break
        if not dominated:
            frontier.append(model.slug)

    return frontier
