import math
from collections.abc import Sequence
from fractions import Fraction

from pydantic import BaseModel

from exa_search_mcp.models.responses import CostEstimate, TokenEstimate

CHARACTERS_PER_TOKEN = 4

# chars/4 fits English prose; CJK text, code and URLs tokenize denser. Estimates
# must never come in under chars/4.
SAFETY_MARGIN = Fraction(13, 10)

COST_PER_MILLION_INPUT_TOKENS = 3.00

DEFAULT_SAFE_TOKEN_LIMIT = 25_000


def estimate_tokens(text: str) -> TokenEstimate:
    """Estimate the number of tokens for a given text."""
    characters = len(text)

    return TokenEstimate(
        characters=characters,
        words=len(text.split()),
        estimated_tokens=math.ceil(Fraction(characters, CHARACTERS_PER_TOKEN) * SAFETY_MARGIN),
    )


def estimate_model_tokens(basemodel: BaseModel | Sequence[BaseModel]) -> int:
    """Estimate the number of tokens for a given base model."""
    if isinstance(basemodel, Sequence):
        return sum(estimate_model_tokens(item) for item in basemodel)

    return estimate_tokens(basemodel.model_dump_json()).estimated_tokens


def estimate_cost(tokens: int, price_per_million: float = COST_PER_MILLION_INPUT_TOKENS) -> CostEstimate:
    """Estimate the input cost, in USD, of feeding `tokens` tokens to a model."""
    return CostEstimate(
        input_tokens=tokens,
        estimated_cost_usd=round(tokens / 1_000_000 * price_per_million, 6),
    )


def exceeds_safe_limit(tokens: int, limit: int = DEFAULT_SAFE_TOKEN_LIMIT) -> bool:
    return tokens > limit
