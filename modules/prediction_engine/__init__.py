from .prediction_engine import PredictionEngine, predict

__all__ = ['PredictionEngine', 'predict']
