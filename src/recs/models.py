"""
Pydantic models for the recommendation pipeline.

Models cover:
- Session interaction events and the behavior profile derived from them
- Intent classifications (rule-based or provider-produced)
- Read-only catalog items and static reference data
- Scored recommendations and the assembled ranking result
- API request/response schemas

Wire payloads use camelCase (``productId``, ``sourceTag``); every model
also accepts its snake_case field names.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Type, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from config.constants import CONFIDENCE_BUCKET_THRESHOLDS, DEFAULT_ASSEMBLER_CONFIG


M = TypeVar("M", bound=BaseModel)


# =============================================================================
# Enums
# =============================================================================

class InteractionKind(str, Enum):
    """Kinds of storefront actions recorded in the interaction log."""
    VIEW = "view"
    HOVER_START = "hover_start"
    HOVER_END = "hover_end"
    QUICK_BOUNCE = "quick_bounce"  # hover_end shorter than the bounce window
    CART_ADD = "cart_add"
    CART_REMOVE = "cart_remove"
    WISHLIST_ADD = "wishlist_add"
    WISHLIST_REMOVE = "wishlist_remove"
    PAGE_VISIT = "page_visit"


class PageContext(str, Enum):
    """Page the visitor is looking at when a ranking is requested."""
    COLLECTION = "collection"
    SEARCH = "search"
    PRODUCT_PAGE = "product-page"
    HOME = "home"
    ALL_PRODUCTS = "all-products"

    @classmethod
    def parse(cls, value: Any) -> Optional["PageContext"]:
        """Map loose client spellings to a context, None if unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("_", "-")
        return _CONTEXT_ALIASES.get(key)


_CONTEXT_ALIASES: Dict[str, PageContext] = {
    "collection": PageContext.COLLECTION,
    "category": PageContext.COLLECTION,
    "search": PageContext.SEARCH,
    "product-page": PageContext.PRODUCT_PAGE,
    "product": PageContext.PRODUCT_PAGE,
    "home": PageContext.HOME,
    "homepage": PageContext.HOME,
    "all-products": PageContext.ALL_PRODUCTS,
    "products": PageContext.ALL_PRODUCTS,
}


class IntentLabel(str, Enum):
    """Discrete shopping intent assigned to a session."""
    IMPULSE_BUYER = "impulse_buyer"
    RESEARCHER = "researcher"
    PRICE_SENSITIVE = "price_sensitive"
    BRAND_LOYAL = "brand_loyal"
    SEASONAL = "seasonal"
    BULK_BUYER = "bulk_buyer"
    BROWSER = "browser"


class SourceTag(str, Enum):
    """Which generator produced a recommendation."""
    COLLABORATIVE = "collaborative"
    MARKET_BASKET = "market_basket"
    BEHAVIORAL = "behavioral"
    SEARCH = "search"
    CONTEXTUAL = "contextual"
    HYBRID = "hybrid"
    BASELINE = "baseline"  # fallback ranker and plain user sorts


class ConfidenceBucket(str, Enum):
    """Coarse display bucket for a recommendation's confidence."""
    NONE = "none"  # scoring bypassed (plain user sort)
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Availability(str, Enum):
    """Availability constraint of the filter context."""
    ALL = "all"
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


def bucket_for_confidence(confidence: float) -> ConfidenceBucket:
    """Bucket a 0-1 confidence value, thresholds checked top-down."""
    for name, lower in CONFIDENCE_BUCKET_THRESHOLDS.items():
        if confidence >= lower:
            return ConfidenceBucket(name)
    return ConfidenceBucket.LOW


def coerce_optional_str(v: Any) -> Optional[str]:
    """Ids and free text arrive as strings or numbers; anything else is absent."""
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return str(int(v)) if v.is_integer() else str(v)
    if isinstance(v, str):
        return v or None
    return None


class CamelModel(BaseModel):
    """Base for models exchanged over the wire in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Interaction Log
# =============================================================================

class InteractionEvent(CamelModel):
    """
    One recorded storefront action. Immutable once recorded.

    ``timestamp`` is epoch milliseconds. ``duration_ms`` is only meaningful
    on hover_end events.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    product_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("productId", "product_id"),
    )
    kind: InteractionKind = Field(
        validation_alias=AliasChoices("type", "kind"),
        serialization_alias="type",
    )
    timestamp: float
    duration_ms: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("durationMs", "duration_ms", "duration"),
    )
    context: Optional[PageContext] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_product_id(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        if isinstance(v, datetime):
            dt = v if v.tzinfo else v.replace(tzinfo=timezone.utc)
            return dt.timestamp() * 1000
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return dt.timestamp() * 1000
        return v

    @field_validator("context", mode="before")
    @classmethod
    def parse_context(cls, v):
        return PageContext.parse(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, v):
        return v if isinstance(v, dict) else {}


# =============================================================================
# Behavior Profile & Classification
# =============================================================================

class BehaviorProfile(CamelModel):
    """Fixed-shape summary of a session's interaction log. All-zero when empty."""

    total_interactions: int = 0
    page_visits: int = 0
    avg_hover_duration_ms: float = 0.0
    cart_actions: int = 0
    wishlist_actions: int = 0
    quick_bounces: int = 0
    session_duration_ms: float = 0.0
    categories_seen: List[str] = Field(default_factory=list)
    avg_time_between_actions_ms: float = 0.0
    recent_action_sequence: List[str] = Field(default_factory=list)
    # Products viewed, carted or wishlisted, first-seen order
    interacted_product_ids: List[str] = Field(default_factory=list)

    # Timing detail used by the inference prompt
    fast_action_count: int = 0
    slow_action_count: int = 0
    session_length_ms: float = 0.0
    sequence_pattern: str = ""


class IntentClassification(CamelModel):
    """Intent label plus predictions. ``source`` is "rules" or a provider name."""

    label: IntentLabel
    confidence: float = Field(ge=0.0, le=1.0)
    indicators: List[str] = Field(default_factory=list)
    predicted_actions: List[str] = Field(default_factory=list)
    estimated_time_to_convert_sec: float = 0.0
    estimated_order_value: float = 0.0
    source: str = "rules"


# =============================================================================
# Catalog & Reference Data
# =============================================================================

class Variant(CamelModel):
    """Purchasable variant of a catalog item."""

    id: Optional[str] = None
    title: Optional[str] = None
    available_for_sale: bool = True
    quantity_available: Optional[int] = None
    price: Optional[float] = None


class CatalogItem(CamelModel):
    """
    Read-only catalog record. The engine never writes these back.

    ``featured_rank`` is the merchandiser's manual position (1 = first) used
    by the baseline ranker.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    title: str = ""
    description: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: List[str] = Field(default_factory=list)
    price: float = 0.0
    compare_at_price: Optional[float] = None
    published_at: Optional[datetime] = None
    variants: List[Variant] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)
    available_for_sale: Optional[bool] = None
    featured_rank: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    @field_validator("collections", mode="before")
    @classmethod
    def collection_handles(cls, v):
        if v is None:
            return []
        # accept [{"handle": "kits"}, ...] as well as ["kits", ...]
        return [c.get("handle", "") if isinstance(c, dict) else c for c in v]

    @property
    def is_available(self) -> bool:
        if self.available_for_sale is not None:
            return self.available_for_sale
        if self.variants:
            return any(v.available_for_sale for v in self.variants)
        return True

    @property
    def quantity_available(self) -> Optional[int]:
        """Summed stock over variants that report it, None if none do."""
        known = [v.quantity_available for v in self.variants if v.quantity_available is not None]
        return sum(known) if known else None

    @property
    def is_on_sale(self) -> bool:
        return self.compare_at_price is not None and self.compare_at_price > self.price

    @property
    def tag_set(self) -> FrozenSet[str]:
        return frozenset(t.lower().strip() for t in self.tags if t)


class AssociationRule(CamelModel):
    """Market-basket rule: antecedent items imply consequent items."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    antecedent: FrozenSet[str]
    consequent: FrozenSet[str]
    support: float
    confidence: float
    lift: float


class SimilarityEdge(CamelModel):
    """Item-to-item co-engagement similarity."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    from_item: str
    to_item: str
    similarity: float = Field(ge=0.0, le=1.0)


# =============================================================================
# Recommendations
# =============================================================================

class Recommendation(CamelModel):
    """
    One scored item. Generators create these; the combiner builds new ones
    when merging, so an instance is never changed after creation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    item_id: str
    score: float
    reasons: Tuple[str, ...] = ()
    source_tag: SourceTag
    confidence: float = 0.0
    confidence_bucket: ConfidenceBucket = ConfidenceBucket.LOW
    sources: Tuple[SourceTag, ...] = ()
    rank: Optional[int] = None

    @classmethod
    def create(
        cls,
        item_id: str,
        score: float,
        reason: str,
        source_tag: SourceTag,
        confidence: float,
    ) -> "Recommendation":
        """Single-generator recommendation with its bucket derived from confidence."""
        return cls(
            item_id=item_id,
            score=score,
            reasons=(reason,),
            source_tag=source_tag,
            confidence=confidence,
            confidence_bucket=bucket_for_confidence(confidence),
            sources=(source_tag,),
        )

    @computed_field
    @property
    def reason(self) -> str:
        return DEFAULT_ASSEMBLER_CONFIG.REASON_SEPARATOR.join(self.reasons)


class PriceRange(BaseModel):
    """Inclusive price range filter. Either bound may be open."""
    min_price: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("min_price", "minPrice", "min")
    )
    max_price: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("max_price", "maxPrice", "max")
    )


class FilterContext(CamelModel):
    """
    Page context plus the user's hard constraints and chosen sort.

    Constraints only ever exclude items; they never change a score.
    """

    context: PageContext = PageContext.ALL_PRODUCTS
    search_query: Optional[str] = None
    collection_handle: Optional[str] = None
    current_product_id: Optional[str] = None
    price_range: Optional[PriceRange] = None
    categories: List[str] = Field(default_factory=list)
    brands: List[str] = Field(default_factory=list)
    availability: Availability = Availability.ALL
    sort_by: str = "recommended"

    @field_validator("context", mode="before")
    @classmethod
    def parse_context(cls, v):
        return PageContext.parse(v) or PageContext.ALL_PRODUCTS

    @field_validator("search_query", "collection_handle", "current_product_id", mode="before")
    @classmethod
    def coerce_identity(cls, v):
        return coerce_optional_str(v)

    @field_validator("availability", mode="before")
    @classmethod
    def parse_availability(cls, v):
        if v is None or v is False:
            return Availability.ALL
        if v is True:
            return Availability.IN_STOCK
        if isinstance(v, str):
            value = v.strip().lower().replace("-", "_")
            return value if value in Availability._value2member_map_ else Availability.ALL
        return v

    @field_validator("categories", "brands", mode="before")
    @classmethod
    def coerce_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("sort_by", mode="before")
    @classmethod
    def default_sort(cls, v):
        return v.strip().lower() if isinstance(v, str) and v.strip() else "recommended"

    @property
    def has_constraints(self) -> bool:
        has_price = self.price_range is not None and (
            self.price_range.min_price is not None or self.price_range.max_price is not None
        )
        return bool(
            has_price or self.categories or self.brands
            or self.availability != Availability.ALL
        )


class RankingMetadata(CamelModel):
    """Summary attached to every assembled ranking."""

    total_candidates: int = 0
    per_source_counts: Dict[str, int] = Field(default_factory=dict)
    high_confidence_count: int = 0
    active_count: int = 0
    strategy: str
    context: str
    timestamp: int
    cached: bool = False


class RankedResult(CamelModel):
    """Ordered, truncated recommendations plus metadata."""

    recommendations: List[Recommendation] = Field(default_factory=list)
    metadata: RankingMetadata


# =============================================================================
# Lenient parsing helpers
# =============================================================================

def parse_each(model: Type[M], raw: Any) -> List[M]:
    """
    Validate each element of ``raw`` as ``model``, dropping the ones that fail.

    A non-list input is treated as empty.
    """
    if not isinstance(raw, (list, tuple)):
        return []
    parsed: List[M] = []
    for entry in raw:
        if isinstance(entry, model):
            parsed.append(entry)
            continue
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError:
            continue
    return parsed


def parse_events(raw: Any) -> List[InteractionEvent]:
    """Parse interaction events, dropping malformed entries."""
    return parse_each(InteractionEvent, raw)


# =============================================================================
# API Request Schemas
# =============================================================================

class BehaviorAnalysisRequest(CamelModel):
    """Body of POST /api/ai/behavior-analysis."""

    interactions: List[InteractionEvent] = Field(default_factory=list)
    behavior_data: Optional[BehaviorProfile] = None
    session_id: Optional[str] = None

    @field_validator("interactions", mode="before")
    @classmethod
    def lenient_interactions(cls, v):
        return parse_events(v)

    @field_validator("session_id", mode="before")
    @classmethod
    def coerce_session_id(cls, v):
        return coerce_optional_str(v)

    @field_validator("behavior_data", mode="before")
    @classmethod
    def lenient_behavior_data(cls, v):
        if not isinstance(v, dict):
            return None
        try:
            return BehaviorProfile.model_validate(v)
        except ValidationError:
            return None


class RecommendationsRequest(CamelModel):
    """Body of POST /api/ai/recommendations."""

    user_id: Optional[str] = None
    session_id: Optional[str] = None
    current_product_id: Optional[str] = None
    user_behavior: List[InteractionEvent] = Field(default_factory=list)
    context: PageContext = PageContext.ALL_PRODUCTS
    limit: Optional[int] = None
    candidates: Optional[List[CatalogItem]] = None
    search_query: Optional[str] = None
    collection_handle: Optional[str] = None

    @field_validator(
        "user_id", "session_id", "current_product_id", "search_query", "collection_handle",
        mode="before",
    )
    @classmethod
    def coerce_ids(cls, v):
        return coerce_optional_str(v)

    @field_validator("user_behavior", mode="before")
    @classmethod
    def lenient_behavior(cls, v):
        return parse_events(v)

    @field_validator("context", mode="before")
    @classmethod
    def parse_context(cls, v):
        return PageContext.parse(v) or PageContext.ALL_PRODUCTS

    @field_validator("candidates", mode="before")
    @classmethod
    def lenient_candidates(cls, v):
        if v is None:
            return None
        return parse_each(CatalogItem, v)

    @field_validator("limit", mode="before")
    @classmethod
    def lenient_limit(cls, v):
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            return None
        try:
            return int(v)
        except ValueError:
            return None

    def filter_context(self) -> FilterContext:
        return FilterContext(
            context=self.context,
            search_query=self.search_query,
            collection_handle=self.collection_handle,
            current_product_id=self.current_product_id,
        )


class RankRequest(RecommendationsRequest):
    """Body of POST /api/ai/rank: a product grid with user filters."""

    filters: FilterContext = Field(default_factory=FilterContext)

    @field_validator("filters", mode="before")
    @classmethod
    def lenient_filters(cls, v):
        return v if isinstance(v, (dict, FilterContext)) else {}

    def filter_context(self) -> FilterContext:
        """Explicit filter fields win; page identity falls back to the top level."""
        explicit = self.filters.model_fields_set
        updates: Dict[str, Any] = {}
        if "context" not in explicit:
            updates["context"] = self.context
        for name in ("search_query", "collection_handle", "current_product_id"):
            if getattr(self.filters, name) is None and getattr(self, name) is not None:
                updates[name] = getattr(self, name)
        return self.filters.model_copy(update=updates) if updates else self.filters


class InteractionBatchRequest(CamelModel):
    """Body of POST /api/ai/sessions/{session_id}/interactions."""

    interactions: List[InteractionEvent] = Field(default_factory=list)

    @field_validator("interactions", mode="before")
    @classmethod
    def lenient_interactions(cls, v):
        if isinstance(v, dict):
            v = [v]
        return parse_events(v)
