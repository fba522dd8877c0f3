"""
Evaluation Engine Module
========================

Responsibility:
- RMSE scoring of predicted against actual values.
- Full regression metric reports (MSE, RMSE, MAE, R2) per split.
"""

from .evaluation_engine import EvaluationEngine, PerformanceReport, rmse, compute_metrics, squared_errors

__all__ = ['EvaluationEngine', 'PerformanceReport', 'rmse', 'compute_metrics', 'squared_errors']
