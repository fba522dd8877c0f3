"""
Interpretation Engine Module
============================

Responsibility:
- Impurity and permutation variable importance per source feature.
- Partial dependence tables for the most important numeric features.
"""

from .interpretation_engine import (
    InterpretationEngine,
    variable_importance,
    impurity_importance,
    partial_dependence_table,
)

__all__ = ['InterpretationEngine', 'variable_importance', 'impurity_importance', 'partial_dependence_table']
