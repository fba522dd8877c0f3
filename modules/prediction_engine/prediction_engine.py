import logging

import numpy as np
import pandas as pd

from modules.training_engine import FittedModel
from utils.exceptions import PredictionError
from modules.base.base_engine import BaseEngine
from utils.error_handling import handle_engine_errors
from utils import constants


def predict(model: FittedModel, dataset: pd.DataFrame) -> np.ndarray:
    """Predictions for every record of ``dataset``, in the same order."""
    if not isinstance(model, FittedModel):
        raise PredictionError(f"Expected a FittedModel, got {type(model).__name__}")
    return model.predict(dataset)


class PredictionEngine(BaseEngine):
    """
    Generates predictions with a trained model and pairs them with the actual
    target values.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)

    def _get_engine_directory_name(self) -> str:
        return constants.PREDICTIONS_DIR

    @handle_engine_errors("Prediction")
    def execute(self, model: FittedModel, data_df: pd.DataFrame, split_name: str, run_id: str) -> pd.DataFrame:
        """
        Generate predictions and per-record errors.

        Parameters:
            model: FittedModel from the training engine.
            data_df: DataFrame containing features and the target.
            split_name: 'test', 'baseline_test', etc.
            run_id: Run identifier.

        Returns:
            DataFrame with row_index, actual, predicted, error and abs_error.
        """
        self.logger.info(f"Generating predictions for {split_name} set ({len(data_df)} samples)...")

        target = model.target_column
        if target not in data_df.columns:
            raise PredictionError(f"Target column '{target}' missing from {split_name} data.")

        preds = predict(model, data_df)
        actual = data_df[target].to_numpy(dtype=float)

        results_df = pd.DataFrame({
            'row_index': data_df.index,
            'actual': actual,
            'predicted': preds,
            'error': preds - actual,
            'abs_error': np.abs(preds - actual),
        })
        results_df.attrs['split'] = split_name

        if self.config.get('outputs', {}).get('save_predictions', True):
            self._save_table(results_df, f"predictions_{split_name}.parquet")
            self.logger.info(f"Predictions saved for {split_name} split.")

        return results_df
