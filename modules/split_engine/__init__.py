"""
Split Engine Module
===================

Responsibility:
- Seeded, deterministic train/test partitioning of a dataset.
- Persistence of both subsets and of the partition indices.
"""

from .split_engine import SplitEngine, Split, partition_indices, make_split

__all__ = ['SplitEngine', 'Split', 'partition_indices', 'make_split']
