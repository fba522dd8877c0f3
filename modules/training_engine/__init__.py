"""
Training Engine Module
======================

Responsibility:
- Fits scikit-learn pipelines built by ModelFactory on a feature/target frame.
- Wraps the result in an immutable FittedModel.
- Persists trained models (.pkl) and training metadata (.json).
"""

from .training_engine import TrainingEngine, FittedModel, train, load_model

__all__ = ['TrainingEngine', 'FittedModel', 'train', 'load_model']
