"""
Vectorization and similarity for log messages.

Tokenizes message fields, feature-hashes tokens into count vectors, sums them
per group and compares groups or single entries by cosine similarity.
"""

from .tokenizer import Tokenizer, tokenize
from .embedder import HashingEmbedder, embed, collision_probability, expected_colliding_pairs
from .aggregator import Aggregator, GroupVector, aggregate, merge, merge_all
from .similarity import (
    NO_SIGNAL,
    NoSignal,
    EntryComparison,
    EntryRanker,
    EntryScore,
    GroupComparison,
    compare_entry_to_group,
    compare_groups,
    cosine,
    is_no_signal,
)

__all__ = [
    'Tokenizer',
    'tokenize',
    'HashingEmbedder',
    'embed',
    'collision_probability',
    'expected_colliding_pairs',
    'Aggregator',
    'GroupVector',
    'aggregate',
    'merge',
    'merge_all',
    'NO_SIGNAL',
    'NoSignal',
    'cosine',
    'is_no_signal',
    'GroupComparison',
    'compare_groups',
    'EntryComparison',
    'compare_entry_to_group',
    'EntryScore',
    'EntryRanker',
]
