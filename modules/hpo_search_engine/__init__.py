"""
HPO Search Engine
=================

Responsibility:
- Plain k-fold cross-validation of hyperparameter candidates.
- Ranking of candidates by cross-validated RMSE.
- Resumable search with a JSONL progress file.
"""

from .hpo_search_engine import (
    HPOSearchEngine,
    CrossValidationResult,
    GridSearchResult,
    fold_indices,
    cross_validate,
    evaluate_grid,
    rank_results,
)

__all__ = [
    'HPOSearchEngine',
    'CrossValidationResult',
    'GridSearchResult',
    'fold_indices',
    'cross_validate',
    'evaluate_grid',
    'rank_results',
]
