"""
ConfidentialReco Recommendation Engine

Maps four revealed profile values to a product id and a match score.

The scoring formula is a replaceable policy, not a security boundary:
it only ever sees plaintext that an oracle has already authenticated.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .confidential import check_u32

MAX_MATCH_SCORE = 100

PRODUCT_CAPITAL_PRESERVATION = 1
PRODUCT_BALANCED_GROWTH = 2
PRODUCT_HIGH_GROWTH = 3

ScoringPolicy = Callable[[int, int, int, int], Tuple[int, int]]


@dataclass(frozen=True)
class FinancialProduct:
    id: int
    name: str
    category: str
    risk_level: int  # 1 (low) .. 5 (very high)

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "name": self.name, "category": self.category, "risk_level": self.risk_level}


PRODUCT_CATALOG: Dict[int, FinancialProduct] = {
    PRODUCT_CAPITAL_PRESERVATION: FinancialProduct(
        PRODUCT_CAPITAL_PRESERVATION, "Capital Preservation Savings", "savings", 1),
    PRODUCT_BALANCED_GROWTH: FinancialProduct(
        PRODUCT_BALANCED_GROWTH, "Balanced Growth Fund", "fund", 3),
    PRODUCT_HIGH_GROWTH: FinancialProduct(
        PRODUCT_HIGH_GROWTH, "High Growth Equity Portfolio", "equity", 5),
}


def lookup_product(product_id: int) -> Optional[FinancialProduct]:
    return PRODUCT_CATALOG.get(product_id)


def compute(income: int, assets: int, risk_score: int, goals: int) -> Tuple[int, int]:
    """
    Derive (product_id, match_score) from plaintext profile values.

    product_id:
        3 if risk_score > 70 and assets > 500000
        2 if income > 100000 and goals == 2
        1 otherwise
    match_score:
        income // 10000 + assets // 100000 + risk_score + goals * 10,
        capped at 100
    """
    if risk_score > 70 and assets > 500000:
        product_id = PRODUCT_HIGH_GROWTH
    elif income > 100000 and goals == 2:
        product_id = PRODUCT_BALANCED_GROWTH
    else:
        product_id = PRODUCT_CAPITAL_PRESERVATION

    score = income // 10000 + assets // 100000 + risk_score + goals * 10
    return product_id, min(score, MAX_MATCH_SCORE)


class RecommendationEngine:
    """Applies a scoring policy to revealed profile values."""

    def __init__(self, policy: ScoringPolicy = compute):
        self._policy = policy

    def compute(self, income: int, assets: int, risk_score: int, goals: int) -> Tuple[int, int]:
        product_id, match_score = self._policy(income, assets, risk_score, goals)
        return check_u32(product_id, "product_id"), check_u32(match_score, "match_score")
