"""
Shared Filter Utilities Module

Hard, user-chosen constraints applied to the candidate set before scoring:
- Price range (inclusive, either bound optional)
- Category: substring of product type or of any tag, case-insensitive
- Brand: vendor membership, case-insensitive
- Availability: in stock / out of stock

Constraints only exclude; they never change a score. With no constraints
set the candidate list is returned as is.
"""

from typing import List, Optional, Sequence, Set

from core.utils import normalize_string_set
from recs.models import Availability, CatalogItem, FilterContext, PriceRange


def passes_price(item: CatalogItem, price_range: Optional[PriceRange]) -> bool:
    if price_range is None:
        return True
    if price_range.min_price is not None and item.price < price_range.min_price:
        return False
    if price_range.max_price is not None and item.price > price_range.max_price:
        return False
    return True


def passes_category(item: CatalogItem, categories: Set[str]) -> bool:
    if not categories:
        return True
    product_type = item.product_type.lower()
    return any(
        category in product_type or any(category in tag for tag in item.tag_set)
        for category in categories
    )


def passes_brand(item: CatalogItem, brands: Set[str]) -> bool:
    if not brands:
        return True
    return item.vendor.lower().strip() in brands


def passes_availability(item: CatalogItem, availability: Availability) -> bool:
    if availability == Availability.IN_STOCK:
        return item.is_available
    if availability == Availability.OUT_OF_STOCK:
        return not item.is_available
    return True


def apply_filters(
    candidates: Sequence[CatalogItem],
    context: FilterContext,
) -> List[CatalogItem]:
    """
    Keep the candidates that pass every active constraint, order preserved.

    Args:
        candidates: Candidate catalog items
        context: Filter context carrying the constraints

    Returns:
        Filtered list (a new list; the input is not modified)
    """
    if not context.has_constraints:
        return list(candidates)

    categories = normalize_string_set(context.categories)
    brands = normalize_string_set(context.brands)

    return [
        item for item in candidates
        if passes_price(item, context.price_range)
        and passes_availability(item, context.availability)
        and passes_category(item, categories)
        and passes_brand(item, brands)
    ]
