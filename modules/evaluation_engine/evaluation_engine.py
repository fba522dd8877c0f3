import math
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, r2_score

from modules.base.base_engine import BaseEngine
from utils.error_handling import handle_engine_errors
from utils.exceptions import DataValidationError
from utils import constants


@dataclass(frozen=True)
class PerformanceReport:
    """Error metrics of one set of predictions against actual values."""
    mse: float
    rmse: float
    mae: float
    r2: float
    n_samples: int

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _as_paired_arrays(predicted: Sequence[float], actual: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    predicted = np.asarray(predicted, dtype=float).ravel()
    actual = np.asarray(actual, dtype=float).ravel()
    if len(predicted) != len(actual):
        raise DataValidationError(
            f"Predicted and actual values differ in length ({len(predicted)} vs {len(actual)})."
        )
    if len(predicted) == 0:
        raise DataValidationError("Cannot score an empty set of predictions.")
    return predicted, actual


def squared_errors(predicted: Sequence[float], actual: Sequence[float]) -> np.ndarray:
    predicted, actual = _as_paired_arrays(predicted, actual)
    return (predicted - actual) ** 2


def rmse(predicted: Sequence[float], actual: Sequence[float]) -> float:
    """Root-mean-squared error of two equal-length, non-empty sequences."""
    return float(np.sqrt(np.mean(squared_errors(predicted, actual))))


def compute_metrics(predicted: Sequence[float], actual: Sequence[float]) -> PerformanceReport:
    predicted, actual = _as_paired_arrays(predicted, actual)
    mse = float(np.mean((predicted - actual) ** 2))
    # r2 is undefined for a single sample
    r2 = float(r2_score(actual, predicted)) if len(actual) >= 2 else math.nan
    return PerformanceReport(
        mse=mse,
        rmse=math.sqrt(mse),
        mae=float(mean_absolute_error(actual, predicted)),
        r2=r2,
        n_samples=len(actual),
    )


class EvaluationEngine(BaseEngine):
    """
    Computes regression metrics for a predictions table and saves them per split.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)

    def _get_engine_directory_name(self) -> str:
        return constants.EVALUATION_DIR

    @handle_engine_errors("Evaluation")
    def execute(self, predictions: pd.DataFrame, split_name: str, run_id: str) -> Dict[str, float]:
        """
        Compute metrics and save the evaluation report.

        Parameters:
            predictions: DataFrame with 'predicted' and 'actual' columns.
            split_name: 'baseline_test', 'test', etc.
            run_id: Run identifier.

        Returns:
            dict: Dictionary of computed metrics.
        """
        self.logger.info(f"Starting Evaluation for {split_name} set...")

        report = compute_metrics(predictions['predicted'].to_numpy(), predictions['actual'].to_numpy())
        metrics = report.to_dict()

        metrics_df = pd.DataFrame([{'run_id': run_id, 'split': split_name, **metrics}])
        self._save_table(metrics_df, f"metrics_{split_name}.parquet")

        self.logger.info(f"Evaluation complete. {split_name} RMSE: {report.rmse:.4f} (R2: {report.r2:.4f})")
        return metrics
