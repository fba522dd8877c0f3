import gc
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import joblib
import numpy as np
import pandas as pd
from sklearn.pipeline import Pipeline

from modules.model_factory import ModelFactory
from utils.exceptions import DataValidationError, ModelTrainingError, PredictionError
from modules.base.base_engine import BaseEngine
from utils.error_handling import handle_engine_errors
from utils import constants


@dataclass(frozen=True)
class FittedModel:
    """
    A trained pipeline together with the columns it was trained on.

    Evaluation is not part of this type; scores are computed separately from
    its predictions.
    """
    pipeline: Pipeline
    model_name: str
    params: Dict[str, Any]
    feature_columns: List[str]
    target_column: str
    training_rows: int = 0
    training_time_sec: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def estimator(self):
        return self.pipeline.named_steps[ModelFactory.MODEL_STEP]

    def predict(self, dataset: pd.DataFrame) -> np.ndarray:
        """One prediction per record of ``dataset``, in input order."""
        missing = [c for c in self.feature_columns if c not in dataset.columns]
        if missing:
            raise PredictionError(f"Missing features required by the model: {missing}")
        return np.asarray(self.pipeline.predict(dataset[self.feature_columns]), dtype=float)


def _check_training_frame(dataset: pd.DataFrame, feature_columns: Sequence[str], target_column: str) -> None:
    if dataset.empty:
        raise DataValidationError("Cannot train on an empty dataset.")
    if not feature_columns:
        raise ModelTrainingError("No feature columns given for training.")
    missing = [c for c in list(feature_columns) + [target_column] if c not in dataset.columns]
    if missing:
        raise DataValidationError(f"Missing required columns in dataset: {missing}")


def train(dataset: pd.DataFrame, feature_columns: Sequence[str], target_column: str,
          model_name: str, hyperparameters: Optional[Dict[str, Any]] = None,
          random_state: Optional[int] = None, n_jobs: Optional[int] = None) -> FittedModel:
    """
    Fit ``model_name`` with ``hyperparameters`` on ``dataset``.

    Errors raised by scikit-learn during fitting propagate unchanged.
    """
    feature_columns = list(feature_columns)
    _check_training_frame(dataset, feature_columns, target_column)
    params = dict(hyperparameters or {})

    pipeline = ModelFactory.create(model_name, params, random_state=random_state, n_jobs=n_jobs)

    start_time = time.time()
    pipeline.fit(dataset[feature_columns], dataset[target_column])
    duration = time.time() - start_time

    return FittedModel(
        pipeline=pipeline,
        model_name=model_name,
        params=params,
        feature_columns=feature_columns,
        target_column=target_column,
        training_rows=len(dataset),
        training_time_sec=duration,
    )


class TrainingEngine(BaseEngine):
    """
    Trains a model from a ``{'model': name, 'params': {...}}`` configuration
    and saves it together with its training metadata.
    """

    def __init__(self, config: dict, logger: logging.Logger, directory_name: str = constants.FINAL_MODEL_DIR):
        self._directory_name = directory_name
        super().__init__(config, logger)
        self.target_column = self.config['data']['target_column']
        self.random_state = self.config.get('_internal_seeds', {}).get('model')
        self.n_jobs = self.config.get('execution', {}).get('n_jobs', 1)

    def _get_engine_directory_name(self) -> str:
        return self._directory_name

    @handle_engine_errors("Training")
    def execute(self, train_df: pd.DataFrame, model_config: Dict[str, Any],
                feature_columns: Sequence[str], run_id: str) -> FittedModel:
        """
        Train the model on the full training subset.

        Args:
            train_df: Training data containing features and the target.
            model_config: Dictionary containing 'model' (name) and 'params'.
            feature_columns: Columns the model is fitted on.
            run_id: Run identifier.

        Returns:
            The FittedModel.
        """
        model_name = model_config.get('model')
        params = model_config.get('params', {})
        if not model_name:
            raise ModelTrainingError("Model configuration missing 'model' name.")

        self.logger.info(f"Training {model_name} {params} on {len(train_df)} samples "
                         f"with {len(feature_columns)} features.")

        model = train(train_df, feature_columns, self.target_column, model_name, params,
                      random_state=self.random_state, n_jobs=self.n_jobs)
        self.logger.info(f"Training completed in {model.training_time_sec:.2f} seconds.")

        if self.writes_artifacts and self.config.get('outputs', {}).get('save_models', True):
            model_path = self.output_dir / constants.FINAL_MODEL_FILE
            joblib.dump(model, model_path)
            self.logger.info(f"Model saved to {model_path}")

            self._save_json({
                'run_id': run_id,
                'model': model_name,
                'params': params,
                'random_state': self.random_state,
                'features': model.feature_columns,
                'target': model.target_column,
                'training_rows': model.training_rows,
                'training_time_sec': model.training_time_sec,
                'timestamp': time.strftime("%Y-%m-%d %H:%M:%S")
            }, constants.TRAINING_METADATA_FILE)

        # Fitted forests can be large; drop transient references before the next stage.
        gc.collect()
        return model


def load_model(path) -> FittedModel:
    """Load a model previously saved by TrainingEngine."""
    model = joblib.load(path)
    if not isinstance(model, FittedModel):
        raise ModelTrainingError(f"File does not contain a fitted model: {path}")
    return model
