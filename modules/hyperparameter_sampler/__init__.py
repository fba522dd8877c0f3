"""
Hyperparameter Sampler Module
=============================

Responsibility:
- Seeded log-uniform sampling of integer hyperparameters.
- Construction of the candidate grid (cartesian or paired).
"""

from .hyperparameter_sampler import (
    HyperparameterCandidate,
    sample_log_uniform,
    sample_candidates,
    build_candidate_grid,
    grid_size,
)

__all__ = [
    'HyperparameterCandidate',
    'sample_log_uniform',
    'sample_candidates',
    'build_candidate_grid',
    'grid_size',
]
