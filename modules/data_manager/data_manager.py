import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn import datasets as sk_datasets

from modules.base.base_engine import BaseEngine
from utils.exceptions import DataValidationError
from utils.file_io import read_dataframe
from utils.error_handling import handle_engine_errors
from utils import constants

# Datasets that ship with scikit-learn and need no download.
BUILTIN_DATASETS = {
    'diabetes': sk_datasets.load_diabetes,
}

class DataManager(BaseEngine):
    """
    Loads and validates the source dataset and resolves the feature columns.

    The dataset is read once and not modified afterwards; downstream stages
    receive slices of it.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.data_cfg = self.config.get('data', {})
        self.data: Optional[pd.DataFrame] = None

    def _get_engine_directory_name(self) -> str:
        return constants.DATA_INTEGRITY_DIR

    @handle_engine_errors("Data Management")
    def execute(self, run_id: str) -> pd.DataFrame:
        """
        Execute complete data loading and validation workflow.

        Args:
            run_id: Unique identifier for the run.

        Returns:
            pd.DataFrame: The validated dataset.
        """
        self.logger.info("Starting Data Manager execution...")

        self.load_data()
        self.validate_columns()
        stats_df = self.validate_nan_inf()

        self._save_table(stats_df, "column_stats.parquet")
        self._save_table(self.data, "validated_data.parquet")
        self.logger.info(f"Dataset validated: {len(self.data)} records, "
                         f"{len(self.feature_columns())} features, target '{self.target_column}'.")
        return self.data

    @property
    def target_column(self) -> str:
        return self.data_cfg['target_column']

    def load_data(self) -> pd.DataFrame:
        """Load from ``data.file_path`` or from ``data.builtin_dataset``."""
        builtin = self.data_cfg.get('builtin_dataset')
        file_path = self.data_cfg.get('file_path')

        if builtin:
            if builtin not in BUILTIN_DATASETS:
                raise DataValidationError(
                    f"Unknown builtin dataset '{builtin}'. Available: {list(BUILTIN_DATASETS)}"
                )
            self.logger.info(f"Loading builtin dataset '{builtin}'")
            self.data = BUILTIN_DATASETS[builtin](as_frame=True).frame
        elif file_path:
            path = Path(file_path)
            if not path.exists():
                raise DataValidationError(f"Data file not found: {path}")
            self.logger.info(f"Loading data from {path}")
            try:
                self.data = read_dataframe(path)
            except ValueError as e:
                raise DataValidationError(str(e)) from e
        else:
            raise DataValidationError("Either data.file_path or data.builtin_dataset must be set.")

        if self.data.empty:
            raise DataValidationError("Loaded dataframe is empty.")

        self.logger.info(f"Data loaded successfully. Shape: {self.data.shape}")
        return self.data

    def feature_columns(self) -> List[str]:
        """Configured features, or every column except the target and drop_columns."""
        configured = self.data_cfg.get('feature_columns')
        if configured:
            return list(configured)
        excluded = set(self.data_cfg.get('drop_columns', [])) | {self.target_column}
        return [c for c in self.data.columns if c not in excluded]

    def validate_columns(self) -> None:
        """Ensure the target and all feature columns exist and the target is numeric."""
        if self.data is None or self.data.empty:
            raise DataValidationError("Dataframe is empty or None.")

        required = [self.target_column] + self.feature_columns()
        missing = [col for col in required if col not in self.data.columns]
        if missing:
            raise DataValidationError(f"Missing required columns in dataset: {missing}")

        if not self.feature_columns():
            raise DataValidationError("No feature columns left after excluding target and drop_columns.")

        target = self.data[self.target_column]
        if not pd.api.types.is_numeric_dtype(target) or pd.api.types.is_bool_dtype(target):
            raise DataValidationError(f"Target column '{self.target_column}' must be numeric, got {target.dtype}.")

    def validate_nan_inf(self) -> pd.DataFrame:
        """Check for NaN and Inf values and return per-column statistics."""
        stats = []
        for col in self.data.columns:
            series = self.data[col]
            is_numeric = pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series)
            nan_count = int(series.isna().sum())
            inf_count = int(np.isinf(series).sum()) if is_numeric else 0

            stats.append({
                'column': col,
                'dtype': str(series.dtype),
                'nan_count': nan_count,
                'inf_count': inf_count,
                'n_unique': int(series.nunique()),
                'min': float(series.min()) if is_numeric else np.nan,
                'max': float(series.max()) if is_numeric else np.nan,
                'mean': float(series.mean()) if is_numeric else np.nan,
            })

            if col == self.target_column and (nan_count or inf_count):
                raise DataValidationError(
                    f"Target column '{col}' contains {nan_count} NaN and {inf_count} infinite values."
                )
            if nan_count > 0:
                self.logger.warning(f"Column '{col}' contains {nan_count} NaNs.")
            if inf_count > 0:
                self.logger.warning(f"Column '{col}' contains {inf_count} infinite values.")

        return pd.DataFrame(stats)
