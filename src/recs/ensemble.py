"""
Ensemble combiner: merge generator outputs by item id.

- score: arithmetic sum of every contribution
- reasons: concatenated in generator run order
- confidence: max over contributions (bucket re-derived from it)
- source_tag: ``hybrid`` once more than one generator contributed
"""

from typing import Dict, Iterable, List, Sequence

from recs.models import Recommendation, SourceTag, bucket_for_confidence


def merge_pair(existing: Recommendation, incoming: Recommendation) -> Recommendation:
    """New recommendation combining two contributions for the same item."""
    sources = existing.sources + tuple(
        s for s in incoming.sources if s not in existing.sources
    )
    confidence = max(existing.confidence, incoming.confidence)
    return Recommendation(
        item_id=existing.item_id,
        score=existing.score + incoming.score,
        reasons=existing.reasons + incoming.reasons,
        source_tag=SourceTag.HYBRID if len(sources) > 1 else existing.source_tag,
        confidence=confidence,
        confidence_bucket=bucket_for_confidence(confidence),
        sources=sources,
    )


def combine(outputs: Iterable[Sequence[Recommendation]]) -> List[Recommendation]:
    """
    Merge per-generator outputs into one recommendation per item.

    Args:
        outputs: Generator outputs in run order

    Returns:
        Merged recommendations in first-seen order. Inputs are untouched.
    """
    merged: Dict[str, Recommendation] = {}
    for recommendations in outputs:
        for rec in recommendations:
            current = merged.get(rec.item_id)
            merged[rec.item_id] = rec if current is None else merge_pair(current, rec)
    return list(merged.values())
