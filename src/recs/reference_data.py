"""
Static reference data for the signal generators.

- Similarity edges (collaborative filter): item -> co-engaged items
- Association rules (market basket): antecedent items -> consequent items
- Curated picks (behavioral recommender): intent label -> tagged pick list

Loaded once, read-only afterwards. The built-in defaults are the seed data
the storefront shipped with; a JSON file (``REFERENCE_DATA_PATH``) replaces
them wholesale:

    {
      "similarityEdges": [{"fromItem": "a", "toItem": "b", "similarity": 0.8}],
      "associationRules": [{"antecedent": ["a"], "consequent": ["b"],
                            "support": 0.1, "confidence": 0.7, "lift": 2.0}],
      "curatedPicks": {"impulse_buyer": [{"tag": "trending", "baseScore": 0.8,
                                          "confidence": 0.9}]}
    }
"""

import json
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from config.settings import Settings
from core.errors import CatalogLookupError
from core.logging import get_logger
from recs.models import AssociationRule, CamelModel, SimilarityEdge

logger = get_logger(__name__)


DEFAULT_PICKS_KEY = "default"


class CuratedPick(CamelModel):
    """
    A pick in a label's curated list. Matches candidates carrying ``tag``.

    ``base_score`` is scaled by the behavioral weight; ``confidence`` is
    passed through to the recommendation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    tag: str
    base_score: float
    confidence: float = Field(ge=0.0, le=1.0)


DEFAULT_SIMILARITY_EDGES: Tuple[SimilarityEdge, ...] = (
    SimilarityEdge(from_item="product-1", to_item="product-2", similarity=0.85),
    SimilarityEdge(from_item="product-1", to_item="product-3", similarity=0.72),
    SimilarityEdge(from_item="product-1", to_item="product-4", similarity=0.68),
    SimilarityEdge(from_item="product-2", to_item="product-1", similarity=0.85),
    SimilarityEdge(from_item="product-2", to_item="product-5", similarity=0.79),
    SimilarityEdge(from_item="product-2", to_item="product-6", similarity=0.65),
)

DEFAULT_ASSOCIATION_RULES: Tuple[AssociationRule, ...] = (
    AssociationRule(
        antecedent=frozenset({"mushroom-kit-1"}),
        consequent=frozenset({"growing-medium-1"}),
        support=0.15, confidence=0.75, lift=2.1,
    ),
    AssociationRule(
        antecedent=frozenset({"substrate-1", "spores-1"}),
        consequent=frozenset({"sterilization-kit-1"}),
        support=0.08, confidence=0.68, lift=3.2,
    ),
    AssociationRule(
        antecedent=frozenset({"beginner-kit-1"}),
        consequent=frozenset({"growing-guide-1", "ph-strips-1"}),
        support=0.12, confidence=0.82, lift=1.9,
    ),
)

# Highest base score first within each label
CURATED_PICKS: Dict[str, Tuple[CuratedPick, ...]] = {
    "impulse_buyer": (
        CuratedPick(tag="trending", base_score=0.8, confidence=0.9),
        CuratedPick(tag="popular", base_score=0.7, confidence=0.8),
    ),
    "researcher": (
        CuratedPick(tag="detailed", base_score=0.9, confidence=0.8),
        CuratedPick(tag="premium", base_score=0.8, confidence=0.7),
    ),
    "price_sensitive": (
        CuratedPick(tag="sale", base_score=0.8, confidence=0.9),
        CuratedPick(tag="value", base_score=0.7, confidence=0.8),
    ),
    DEFAULT_PICKS_KEY: (
        CuratedPick(tag="general", base_score=0.6, confidence=0.6),
    ),
}


class ReferenceData:
    """
    Read-only bundle of edges, rules and curated picks with an edge index.

    Usage:
        data = ReferenceData.default()
        edges = data.edges_from("product-1")
    """

    def __init__(
        self,
        similarity_edges: Sequence[SimilarityEdge] = DEFAULT_SIMILARITY_EDGES,
        association_rules: Sequence[AssociationRule] = DEFAULT_ASSOCIATION_RULES,
        curated_picks: Optional[Mapping[str, Sequence[CuratedPick]]] = None,
    ):
        self.similarity_edges: Tuple[SimilarityEdge, ...] = tuple(similarity_edges)
        self.association_rules: Tuple[AssociationRule, ...] = tuple(association_rules)
        picks = CURATED_PICKS if curated_picks is None else curated_picks
        self.curated_picks: Dict[str, Tuple[CuratedPick, ...]] = {
            label: tuple(entries) for label, entries in picks.items()
        }

        self._edges_by_item: Dict[str, List[SimilarityEdge]] = {}
        for edge in self.similarity_edges:
            self._edges_by_item.setdefault(edge.from_item, []).append(edge)

    @classmethod
    def default(cls) -> "ReferenceData":
        return cls()

    def edges_from(self, item_id: str) -> Tuple[SimilarityEdge, ...]:
        """Edges leaving ``item_id`` in declaration order."""
        return tuple(self._edges_by_item.get(item_id, ()))

    def picks_for(self, label: str) -> Tuple[CuratedPick, ...]:
        """Curated picks for a label, the default list for unknown labels."""
        return self.curated_picks.get(label) or self.curated_picks.get(DEFAULT_PICKS_KEY, ())

    @classmethod
    def from_json(cls, path: Path) -> "ReferenceData":
        """
        Load reference data from a JSON file. Missing sections keep defaults.

        Raises:
            CatalogLookupError: file unreadable or malformed
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogLookupError(f"Cannot read reference data {path}: {e}") from e
        if not isinstance(raw, dict):
            raise CatalogLookupError(f"Reference data {path} must be a JSON object")

        try:
            edges = (
                [SimilarityEdge.model_validate(e) for e in raw["similarityEdges"]]
                if "similarityEdges" in raw else DEFAULT_SIMILARITY_EDGES
            )
            rules = (
                [AssociationRule.model_validate(r) for r in raw["associationRules"]]
                if "associationRules" in raw else DEFAULT_ASSOCIATION_RULES
            )
            picks = (
                {
                    label: [CuratedPick.model_validate(p) for p in entries]
                    for label, entries in raw["curatedPicks"].items()
                }
                if "curatedPicks" in raw else None
            )
        except (ValidationError, TypeError, AttributeError) as e:
            raise CatalogLookupError(f"Malformed reference data {path}: {e}") from e

        data = cls(similarity_edges=edges, association_rules=rules, curated_picks=picks)
        logger.info(
            "Loaded reference data",
            path=str(path),
            edges=len(data.similarity_edges),
            rules=len(data.association_rules),
            labels=sorted(data.curated_picks),
        )
        return data


def load_reference_data(settings: Settings) -> ReferenceData:
    """Reference data from ``settings.reference_data_path`` or the built-in seed."""
    if settings.reference_data_path is None:
        return ReferenceData.default()
    return ReferenceData.from_json(settings.reference_data_path)
