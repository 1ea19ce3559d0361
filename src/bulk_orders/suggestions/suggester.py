"""Similarity-ranked alternative products for unavailable items."""

import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bulk_orders.models.config import SuggesterConfig
from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    AvailabilityState,
    ProductAttributes,
)


DEFAULT_WEIGHTS: Dict[str, float] = {
    "category": 0.30,
    "brand": 0.20,
    "attributes": 0.25,
    "price": 0.10,
    "name": 0.10,
    "tags": 0.05,
}

B2B_WEIGHTS: Dict[str, float] = {
    "category": 0.40,
    "brand": 0.15,
    "attributes": 0.30,
    "price": 0.05,
    "name": 0.05,
    "tags": 0.05,
}

_NON_WORD = re.compile(r"[^\w\s]")


def _jaccard(left: Iterable[Any], right: Iterable[Any]) -> float:
    set1, set2 = set(left), set(right)
    union = set1 | set2
    return len(set1 & set2) / len(union) if union else 0.0


def _tokenize(name: str) -> List[str]:
    return [token for token in _NON_WORD.sub(" ", name.lower()).split() if len(token) > 2]


def _values_match(val1: Any, val2: Any) -> bool:
    if isinstance(val1, (list, tuple, set)) and isinstance(val2, (list, tuple, set)):
        return bool(set(val1) & set(val2))
    if _is_number(val1) and _is_number(val2):
        a, b = float(val1), float(val2)
        # 10% tolerance on numeric specs
        return abs(a - b) <= abs(min(a, b)) * 0.1
    return val1 == val2


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


class AlternativeSuggester:
    """
    Ranks substitute products by weighted similarity.

    Signals: category overlap (Jaccard), brand match, technical attribute
    overlap, price proximity within a tolerance window, name tokens and tags.
    Only in-stock candidates are considered.
    """

    base_weights: Dict[str, float] = DEFAULT_WEIGHTS

    def __init__(self, config: Optional[SuggesterConfig] = None):
        self.config = config or SuggesterConfig()
        self.weights = {**self.base_weights, **self.config.weights}

    def find_alternatives(
        self,
        target: ProductAttributes,
        candidate_pool: Sequence[ProductAttributes],
        max_price_reference: Optional[Decimal] = None,
        bulk_quantity: Optional[int] = None
    ) -> List[AlternativeSuggestion]:
        """
        Find substitutes for an unavailable product.

        Args:
            target: The product that cannot be fulfilled
            candidate_pool: Products to consider as substitutes
            max_price_reference: Price the proximity window is centred on
                (defaults to the target's price)
            bulk_quantity: Quantity the buyer asked for; used by the B2B variant

        Returns:
            Suggestions sorted by descending score, ties broken by lower
            price, truncated to max_suggestions
        """
        reference = target.price if max_price_reference is None else max_price_reference

        scored = []
        for candidate in candidate_pool:
            if candidate.sku == target.sku:
                continue
            if candidate.availability != AvailabilityState.IN_STOCK:
                continue
            score = self.calculate_similarity(target, candidate, reference)
            if score < self.config.min_similarity:
                continue
            scored.append((score, candidate))

        scored.sort(key=lambda pair: (-round(pair[0], 6), pair[1].price))

        return [
            AlternativeSuggestion(
                sku=candidate.sku,
                name=candidate.name,
                similarity_score=round(min(score, 1.0), 2),
                availability_state=candidate.availability,
                price=candidate.price,
                rationale=self.generate_rationale(target, candidate, reference),
            )
            for score, candidate in scored[:self.config.max_suggestions]
        ]

    def calculate_similarity(
        self,
        original: ProductAttributes,
        candidate: ProductAttributes,
        price_reference: Optional[Decimal] = None
    ) -> float:
        """Weighted similarity score in [0, 1]."""
        reference = original.price if price_reference is None else price_reference
        w = self.weights

        score = w["category"] * _jaccard(original.category, candidate.category)

        same_brand = original.brand is not None and original.brand == candidate.brand
        if same_brand:
            score += w["brand"]
        elif self.config.enable_cross_brand:
            score += w["brand"] * 0.5

        score += w["attributes"] * self.attribute_similarity(original.attributes, candidate.attributes)
        score += w["price"] * self.price_similarity(reference, candidate.price)
        score += w["name"] * _jaccard(_tokenize(original.name), _tokenize(candidate.name))

        if original.tags and candidate.tags:
            score += w["tags"] * _jaccard(original.tags, candidate.tags)

        return score

    @staticmethod
    def attribute_similarity(attrs1: Dict[str, Any], attrs2: Dict[str, Any]) -> float:
        """Share of common attribute keys whose values match."""
        if not attrs1 and not attrs2:
            return 1.0
        shared = [key for key in attrs1 if key in attrs2]
        if not shared:
            return 0.0
        matches = sum(1 for key in shared if _values_match(attrs1[key], attrs2[key]))
        return matches / len(shared)

    def price_similarity(self, reference: Decimal, price: Decimal) -> float:
        """1.0 at equal prices, falling linearly to 0 at the tolerance edge."""
        high, low = max(reference, price), min(reference, price)
        if high == 0:
            return 1.0
        percent_diff = float((high - low) / high * 100)
        tolerance = self.config.price_tolerance_percent
        if tolerance <= 0 or percent_diff > tolerance:
            return 0.0
        return 1.0 - percent_diff / tolerance

    def generate_rationale(
        self,
        original: ProductAttributes,
        candidate: ProductAttributes,
        price_reference: Optional[Decimal] = None
    ) -> str:
        """Human-readable reasons for a suggestion."""
        reference = original.price if price_reference is None else price_reference
        reasons: List[str] = []

        if _jaccard(original.category, candidate.category) > 0.5:
            reasons.append("Same category")

        if original.brand is not None and original.brand == candidate.brand:
            reasons.append("Same brand")

        if self.price_similarity(reference, candidate.price) > 0.8:
            reasons.append("Similar price")
        elif reference and candidate.price < reference:
            savings = round((reference - candidate.price) / reference * 100)
            reasons.append(f"{savings}% lower price")

        if self.attribute_similarity(original.attributes, candidate.attributes) > 0.7:
            reasons.append("Matching specifications")

        return ", ".join(reasons) if reasons else "Similar product available"


class B2BAlternativeSuggester(AlternativeSuggester):
    """Suggester tuned for business buyers: specs over brand and price."""

    base_weights = B2B_WEIGHTS

    def find_alternatives(
        self,
        target: ProductAttributes,
        candidate_pool: Sequence[ProductAttributes],
        max_price_reference: Optional[Decimal] = None,
        bulk_quantity: Optional[int] = None
    ) -> List[AlternativeSuggestion]:
        suggestions = super().find_alternatives(target, candidate_pool, max_price_reference)

        annotated = []
        for suggestion in suggestions:
            rationale = suggestion.rationale
            if bulk_quantity and bulk_quantity > 100:
                rationale += ". Bulk availability confirmed"
            if suggestion.price is not None and target.price:
                savings = (target.price - suggestion.price) * (bulk_quantity or 1)
                if savings > 0:
                    rationale += f". Potential savings: ${savings:.2f}"
            annotated.append(AlternativeSuggestion(
                sku=suggestion.sku,
                name=suggestion.name,
                similarity_score=suggestion.similarity_score,
                availability_state=suggestion.availability_state,
                price=suggestion.price,
                rationale=rationale,
            ))
        return annotated


def build_suggester(config: Optional[SuggesterConfig] = None) -> AlternativeSuggester:
    """Create the suggester variant selected by the configuration."""
    config = config or SuggesterConfig()
    return B2BAlternativeSuggester(config) if config.b2b else AlternativeSuggester(config)
