"""
SplitEngine for the Forest Tuning Workflow.

Partitions the validated dataset into disjoint training and test subsets. The
partition is a seeded random permutation cut at a fixed fraction, so the same
seed and dataset size always reproduce the same membership.
"""
import math
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

from modules.base.base_engine import BaseEngine
from utils.error_handling import handle_engine_errors
from utils.exceptions import DataValidationError
from utils import constants


@dataclass(frozen=True, eq=False)
class Split:
    """
    Positional train/test indices of one partition.

    The index arrays are stored as read-only copies; two splits are equal
    when their fraction, seed and both index arrays match.
    """
    train_indices: np.ndarray
    test_indices: np.ndarray
    fraction: float
    seed: int

    def __post_init__(self):
        for name in ('train_indices', 'test_indices'):
            indices = np.array(getattr(self, name), dtype=np.int64)
            indices.setflags(write=False)
            object.__setattr__(self, name, indices)

    def __eq__(self, other):
        if not isinstance(other, Split):
            return NotImplemented
        return (self.fraction == other.fraction
                and self.seed == other.seed
                and np.array_equal(self.train_indices, other.train_indices)
                and np.array_equal(self.test_indices, other.test_indices))

    def __hash__(self):
        return hash((self.fraction, self.seed,
                     self.train_indices.tobytes(), self.test_indices.tobytes()))

    @property
    def n_records(self) -> int:
        return len(self.train_indices) + len(self.test_indices)

    def to_dict(self) -> dict:
        return {
            'fraction': self.fraction,
            'seed': self.seed,
            'n_records': self.n_records,
            'train_indices': self.train_indices.tolist(),
            'test_indices': self.test_indices.tolist(),
        }


def partition_indices(n_records: int, fraction: float, seed: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split ``range(n_records)`` into sorted train and test index arrays.

    The train set holds the first ``floor(fraction * n_records)`` positions of a
    permutation drawn from ``np.random.default_rng(seed)``; the test set holds
    the rest.

    Raises:
        DataValidationError: if the dataset is empty or fraction is not in (0, 1).
    """
    if n_records <= 0:
        raise DataValidationError(f"Cannot partition an empty dataset (n_records={n_records}).")
    if not (0.0 < fraction < 1.0):
        raise DataValidationError(f"Split fraction must be in (0, 1) exclusive, got {fraction}.")

    n_train = math.floor(fraction * n_records)
    permutation = np.random.default_rng(seed).permutation(n_records)

    train_idx = np.sort(permutation[:n_train])
    test_idx = np.sort(permutation[n_train:])
    return train_idx, test_idx


def make_split(n_records: int, fraction: float, seed: int) -> Split:
    train_idx, test_idx = partition_indices(n_records, fraction, seed)
    return Split(train_indices=train_idx, test_indices=test_idx, fraction=fraction, seed=seed)


class SplitEngine(BaseEngine):
    """
    Applies the seeded partition to a DataFrame and persists both subsets.

    Rows are selected positionally, so the original index labels are carried
    into ``train.parquet`` and ``test.parquet`` unchanged.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        split_cfg = self.config.get('splitting', {})
        self.fraction = split_cfg.get('train_fraction', 0.75)
        self.seed = self.config.get('_internal_seeds', {}).get('split', split_cfg.get('seed', 123))

    def _get_engine_directory_name(self) -> str:
        return constants.MASTER_SPLITS_DIR

    @handle_engine_errors("Data Splitting")
    def execute(self, df: pd.DataFrame, run_id: str) -> Tuple[pd.DataFrame, pd.DataFrame, Split]:
        """
        Execute the splitting workflow.

        Returns:
            train, test DataFrames and the Split that produced them.
        """
        self.logger.info(f"Starting Split Engine execution (fraction={self.fraction}, seed={self.seed})...")

        split = make_split(len(df), self.fraction, self.seed)
        train = df.iloc[split.train_indices]
        test = df.iloc[split.test_indices]

        self._save_table(train, "train.parquet", index=True)
        self._save_table(test, "test.parquet", index=True)
        self._save_json(split.to_dict(), constants.SPLIT_INDICES_FILE)

        self.logger.info(f"Splits saved: Train={len(train)}, Test={len(test)}")
        if len(test) == 0 or len(train) == 0:
            self.logger.warning("One side of the split is empty; check train_fraction against the dataset size.")

        return train, test, split
