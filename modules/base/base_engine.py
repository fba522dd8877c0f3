import abc
import logging
from pathlib import Path
from typing import Dict, Any

import pandas as pd

from utils.file_io import save_dataframe, save_json

class BaseEngine(abc.ABC):
    """
    Abstract base class for all workflow engines.

    Provides common functionality for:
    - Configuration and logger attachment.
    - A numbered output directory per engine under the results directory.
    - Parquet/JSON artifact helpers honouring the output settings.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        self.config = config
        self.logger = logger
        outputs = self.config.get('outputs', {})
        self.base_dir = Path(outputs.get('base_results_dir', 'results'))
        self.excel_copy = outputs.get('save_excel_copy', False)
        self.output_dir = self.base_dir / self._get_engine_directory_name()

        self._setup_directories()

    @abc.abstractmethod
    def _get_engine_directory_name(self) -> str:
        """
        Directory name for the engine's output, e.g. '03_TrainTestSplit'.
        """
        raise NotImplementedError("Subclasses must implement _get_engine_directory_name.")

    def _setup_directories(self):
        if self.config.get('outputs', {}).get('skip_dir_creation', False):
            # Compute-only helpers (tests, dry runs) write nothing
            return

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Output directory for {self.__class__.__name__}: {self.output_dir}")

    @property
    def writes_artifacts(self) -> bool:
        return not self.config.get('outputs', {}).get('skip_dir_creation', False)

    def _save_table(self, df: pd.DataFrame, filename: str, index: bool = False) -> None:
        if self.writes_artifacts:
            save_dataframe(df, self.output_dir / filename, excel_copy=self.excel_copy, index=index)

    def _save_json(self, payload: Any, filename: str) -> None:
        if self.writes_artifacts:
            save_json(payload, self.output_dir / filename)

    @abc.abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Main execution method for the engine.
        This must be implemented by all subclasses.
        """
        pass
