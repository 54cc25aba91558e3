"""
Knowledge Base Merging Module

Folds the document extracted from one batch into the cumulative knowledge
base. Category and business names are matched case-insensitively and the
first-seen spelling stays canonical. Nothing already in the base is ever
removed: BusinessInfo fields, recommendation entries and suggestion entries
are only added or overwritten by what the incoming document contains.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from app.models.knowledge import (
    BusinessRecord,
    KnowledgeBase,
    normalize_key,
)

logger = logging.getLogger(__name__)


@dataclass
class MergeStats:
    """Counts describing what one merge changed."""

    categories_added: int = 0
    businesses_added: int = 0
    businesses_updated: int = 0
    entries_added: int = 0
    entries_overwritten: int = 0


def _union(existing: Dict[str, str], incoming: Dict[str, str], stats: MergeStats) -> Dict[str, str]:
    merged = dict(existing)
    for key, value in incoming.items():
        if key in merged:
            stats.entries_overwritten += 1
        else:
            stats.entries_added += 1
        merged[key] = value
    return merged


def _merge_record(existing: BusinessRecord, incoming: BusinessRecord, stats: MergeStats) -> BusinessRecord:
    existing.business_info = {**existing.business_info, **incoming.business_info}
    existing.recommendations.positive = _union(
        existing.recommendations.positive, incoming.recommendations.positive, stats
    )
    existing.recommendations.negative = _union(
        existing.recommendations.negative, incoming.recommendations.negative, stats
    )
    existing.suggestions = _union(existing.suggestions, incoming.suggestions, stats)
    return existing


def merge_with_stats(
    base: KnowledgeBase, incoming: KnowledgeBase
) -> Tuple[KnowledgeBase, MergeStats]:
    """
    Merge an extraction document into a knowledge base.

    Args:
        base: Cumulative knowledge base (not modified)
        incoming: Document extracted from one batch (not modified)

    Returns:
        Tuple of (merged KnowledgeBase, MergeStats)
    """
    merged = base.model_copy(deep=True)
    stats = MergeStats()

    # Lowercased name -> canonical spelling
    category_names: Dict[str, str] = {}
    for category in merged.categories():
        category_names.setdefault(normalize_key(category), category)

    for category, businesses in incoming.root.items():
        canonical_category = category_names.setdefault(normalize_key(category), category)
        if canonical_category not in merged.root:
            merged.root[canonical_category] = {}
            stats.categories_added += 1

        target = merged.root[canonical_category]
        business_names: Dict[str, str] = {}
        for business in target:
            business_names.setdefault(normalize_key(business), business)

        for business, record in businesses.items():
            canonical_business = business_names.setdefault(normalize_key(business), business)

            if canonical_business not in target:
                target[canonical_business] = record.model_copy(deep=True)
                stats.businesses_added += 1
                stats.entries_added += record.entry_count()
                continue

            _merge_record(target[canonical_business], record, stats)
            stats.businesses_updated += 1

    return merged, stats


def merge_knowledge(base: KnowledgeBase, incoming: KnowledgeBase) -> KnowledgeBase:
    """Merge incoming into base and return the new knowledge base."""
    merged, stats = merge_with_stats(base, incoming)
    logger.debug(
        f"Merged: +{stats.categories_added} categories, +{stats.businesses_added} businesses, "
        f"{stats.businesses_updated} updated, +{stats.entries_added} entries"
    )
    return merged
