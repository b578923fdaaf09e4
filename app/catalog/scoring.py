"""Recommendation and flash-deal scoring.

Pure functions over already-loaded products; nothing here touches the
database.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.catalog.models import Product
from app.domain.value_objects import round2, round_half_up

# Badge weights used by recommendations, with the reason shown for each.
BADGE_WEIGHTS: tuple[tuple[str, int, str], ...] = (
    ("mark_as_featured", 15, "Featured product"),
    ("mark_as_top_seller", 10, "Top seller"),
    ("is_on_sale", 10, "On sale"),
    ("mark_as_new", 5, "New arrival"),
    ("shipping_free", 5, "Free shipping"),
)

CATEGORY_MATCH_POINTS = 15
PRIMARY_CATEGORY_POINTS = 25
CLOSE_PRICE_POINTS = 15
NEAR_PRICE_POINTS = 10
SAME_COMPANY_POINTS = 20

# (minimum discount, tier, urgency), checked top-down.
DEAL_TIERS: tuple[tuple[int, str, str], ...] = (
    (70, "mega_deal", "critical"),
    (50, "super_deal", "high"),
    (30, "great_deal", "medium"),
    (20, "good_deal", "moderate"),
)

URGENCY_RANK = {"critical": 5, "high": 4, "medium": 3, "moderate": 2, "low": 1}


# ============================================================================
# Recommendations
# ============================================================================


@dataclass
class RecommendationScore:
    """Score of one candidate with the reasons that produced it."""

    product: Product
    score: int = 0
    reasons: list[str] = field(default_factory=list)
    category_overlap: int = 0


def score_candidate(source: Product, candidate: Product) -> RecommendationScore:
    """Score how well ``candidate`` fits as a recommendation for ``source``.

    Args:
        source: Product the recommendations are for.
        candidate: Product being considered.

    Returns:
        Score and human-readable reasons.
    """
    result = RecommendationScore(product=candidate)

    source_categories = set(source.category_ids)
    candidate_categories = set(candidate.category_ids)
    overlap = len(source_categories & candidate_categories)
    if overlap:
        result.category_overlap = overlap
        result.score += CATEGORY_MATCH_POINTS * overlap
        result.reasons.append(f"{overlap} matching categories")

    primary = source.primary_category_id
    if primary and primary in candidate_categories:
        result.score += PRIMARY_CATEGORY_POINTS
        result.reasons.append("Same primary category")

    source_price = Decimal(source.final_price_nett or 0)
    if source_price > 0:
        relative = abs(Decimal(candidate.final_price_nett or 0) - source_price) / source_price
        if relative <= Decimal("0.2"):
            result.score += CLOSE_PRICE_POINTS
            result.reasons.append("Similar price range")
        elif relative <= Decimal("0.5"):
            result.score += NEAR_PRICE_POINTS
            result.reasons.append("Similar price range")

    if source.company_id and candidate.company_id == source.company_id:
        result.score += SAME_COMPANY_POINTS
        result.reasons.append("Same brand")

    for attribute, points, reason in BADGE_WEIGHTS:
        if getattr(candidate, attribute):
            result.score += points
            result.reasons.append(reason)

    return result


def _created_ts(product: Product) -> float:
    created = product.created_at
    return created.timestamp() if created else 0.0


def rank_recommendations(
    source: Product,
    candidates: Iterable[Product],
    limit: int,
) -> list[RecommendationScore]:
    """Score, sort and cut candidates.

    Ties break on featured, then top seller, then newest.
    """
    scored = [score_candidate(source, c) for c in candidates if c.id != source.id]
    scored.sort(
        key=lambda s: (
            s.score,
            s.product.mark_as_featured,
            s.product.mark_as_top_seller,
            _created_ts(s.product),
        ),
        reverse=True,
    )
    return scored[:limit]


def recommendation_stats(ranked: Sequence[RecommendationScore]) -> dict[str, Any]:
    """Summary statistics of a recommendation list."""
    total = len(ranked)
    return {
        "total_recommendations": total,
        "average_score": round(sum(r.score for r in ranked) / total, 2) if total else 0,
        "category_matches": sum(1 for r in ranked if any("categor" in x for x in r.reasons)),
        "price_similar": sum(1 for r in ranked if "Similar price range" in r.reasons),
        "same_brand": sum(1 for r in ranked if "Same brand" in r.reasons),
        "on_sale_count": sum(1 for r in ranked if r.product.is_on_sale),
    }


# ============================================================================
# Flash Deals
# ============================================================================


def deal_tier(discount: Decimal | float, is_special_offer: bool = False, is_on_sale: bool = False) -> str:
    """Classify a deal by discount, overridden by the offer flags.

    Example:
        >>> deal_tier(55)
        'super_deal'
        >>> deal_tier(55, is_on_sale=True)
        'flash_sale'
    """
    if is_special_offer and is_on_sale:
        return "special_flash_sale"
    if is_special_offer:
        return "special_offer"
    if is_on_sale:
        return "flash_sale"
    discount = Decimal(str(discount))
    for minimum, tier, _ in DEAL_TIERS:
        if discount >= minimum:
            return tier
    return "standard_deal"


def urgency_level(discount: Decimal | float, is_special_offer: bool = False) -> str:
    """Urgency shown with a deal; special offers are always ``high`` or above."""
    discount = Decimal(str(discount))
    level = "low"
    for minimum, _, urgency in DEAL_TIERS:
        if discount >= minimum:
            level = urgency
            break
    if is_special_offer and URGENCY_RANK[level] < URGENCY_RANK["high"]:
        return "high"
    return level


def deal_quality_score(discount: Decimal | float, savings: Decimal | float) -> int:
    """``min(100, round(discount * 1.2 + savings / 10))`` with half-up rounding."""
    raw = Decimal(str(discount)) * Decimal("1.2") + Decimal(str(savings)) / 10
    return min(100, round_half_up(raw))


def value_rating(savings: Decimal | float) -> str:
    """Qualitative rating of the amount saved."""
    savings = Decimal(str(savings))
    if savings >= 200:
        return "excellent"
    if savings >= 100:
        return "very_good"
    if savings >= 50:
        return "good"
    return "fair"


def describe_deal(product: Product) -> dict[str, Any]:
    """Deal details of a discounted product."""
    discount = Decimal(product.discount_percentage_nett or 0)
    savings_nett = round2(
        max(Decimal(product.regular_price_nett) - Decimal(product.final_price_nett), Decimal("0"))
    )
    savings_gross = round2(
        max(Decimal(product.regular_price_gross) - Decimal(product.final_price_gross), Decimal("0"))
    )
    return {
        "discount_percentage": float(discount),
        "deal_type": deal_tier(discount, product.is_special_offer, product.is_on_sale),
        "urgency": urgency_level(discount, product.is_special_offer),
        "savings_amount_nett": float(savings_nett),
        "savings_amount_gross": float(savings_gross),
        "is_special_offer": product.is_special_offer,
        "is_flash_sale": product.is_on_sale,
        "is_mega_deal": discount >= 70,
        "is_super_deal": discount >= 50,
        "deal_quality_score": deal_quality_score(discount, savings_nett),
    }


def deal_badges(product: Product) -> dict[str, bool]:
    """Merchandising badges plus flash-deal specific ones."""
    discount = Decimal(product.discount_percentage_nett or 0)
    savings_nett = Decimal(product.regular_price_nett) - Decimal(product.final_price_nett)
    return {
        "is_new": product.mark_as_new,
        "is_featured": product.mark_as_featured,
        "is_top_seller": product.mark_as_top_seller,
        "is_on_sale": product.is_on_sale,
        "is_special_offer": product.is_special_offer,
        "free_shipping": product.shipping_free,
        "hot_deal": discount >= 40,
        "mega_deal": discount >= 70,
        "super_deal": discount >= 50,
        "limited_time": product.is_on_sale or product.is_special_offer,
        "best_value": savings_nett >= 100,
    }


def deal_metadata(product: Product) -> dict[str, Any]:
    """Secondary scores shown with advanced flash deals."""
    discount = Decimal(product.discount_percentage_nett or 0)
    savings_nett = max(Decimal(product.regular_price_nett) - Decimal(product.final_price_nett), Decimal("0"))
    recommendation = (
        discount * Decimal("0.6")
        + (10 if product.mark_as_featured else 0)
        + (10 if product.mark_as_top_seller else 0)
        + savings_nett / 10
    )
    return {
        "deal_score": round_half_up(discount + savings_nett / 5),
        "value_rating": value_rating(savings_nett),
        "recommendation_score": min(100, round_half_up(recommendation)),
    }


def deal_stats(products: Sequence[Product]) -> dict[str, Any]:
    """Aggregate statistics of a page of deals."""
    deals = [describe_deal(p) for p in products]
    total = len(deals)
    deal_types: dict[str, int] = {}
    urgency_levels: dict[str, int] = {}
    for deal in deals:
        deal_types[deal["deal_type"]] = deal_types.get(deal["deal_type"], 0) + 1
        urgency_levels[deal["urgency"]] = urgency_levels.get(deal["urgency"], 0) + 1
    return {
        "total_deals": total,
        "average_discount": round(sum(d["discount_percentage"] for d in deals) / total, 2) if total else 0,
        "max_discount": max((d["discount_percentage"] for d in deals), default=0),
        "total_savings": round(sum(d["savings_amount_nett"] for d in deals), 2),
        "deal_types": deal_types,
        "urgency_levels": urgency_levels,
    }
