import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from modules.hyperparameter_sampler.hyperparameter_sampler import GRID_MODES, grid_size
from modules.model_factory import ModelFactory
from utils.exceptions import ConfigurationError
from utils import constants

class ConfigurationManager:
    """
    Manages workflow configuration loading, validation, and access.

    - Structural validation against a JSON schema.
    - Logical validation of fractions, fold counts and sampling ranges.
    - Resource guardrails (candidate grid size, memory ceiling).
    - Deterministic seed propagation from one master seed.
    """

    DEFAULT_MAX_HPO_CONFIGS = 1000  # Prevent accidental combinatoric explosions

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Loads config, validates schema/logic/resources and propagates seeds.

        Returns:
            Dict[str, Any]: The validated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        self._validate_schema()
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """Timestamp-based run identifier (YYYYMMDD_HHMMSS), generated once."""
        if not self.run_id:
            self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for reproducibility:
        the exact config, its SHA256 hash and environment metadata.
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()
        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }
        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Logical validation beyond what the schema expresses."""
        # --- Data Section ---
        data = self.config.get('data', {})
        if not data.get('target_column'):
            raise ConfigurationError("Data 'target_column' must be specified and non-empty.")
        if not data.get('file_path') and not data.get('builtin_dataset'):
            raise ConfigurationError("Either data 'file_path' or 'builtin_dataset' must be specified.")
        if data.get('target_column') in (data.get('feature_columns') or []):
            raise ConfigurationError("The target column cannot also be a feature column.")

        # --- Splitting Section ---
        split = self.config.get('splitting', {})
        fraction = split.get('train_fraction', 0.75)
        if not (0.0 < fraction < 1.0):
            raise ConfigurationError(f"train_fraction must be between 0 and 1 (exclusive), got {fraction}")
        if split.get('seed', 123) < 0:
            raise ConfigurationError("Splitting seed must be non-negative.")

        # --- Baseline Section ---
        baseline = self.config.get('baseline', {})
        if baseline.get('enabled', True):
            self._validate_model_name(baseline.get('model', 'DecisionTreeRegressor'), 'baseline')

        # --- Tuning Section ---
        tuning = self.config.get('tuning', {})
        self._validate_model_name(tuning.get('model', 'RandomForestRegressor'), 'tuning')

        cv_folds = tuning.get('cv_folds', 5)
        if cv_folds < 2:
            raise ConfigurationError(f"cv_folds must be >= 2, got {cv_folds}.")
        n_samples = tuning.get('n_samples', 5)
        if n_samples < 1:
            raise ConfigurationError(f"n_samples must be >= 1, got {n_samples}.")
        grid_mode = tuning.get('grid_mode', 'cartesian')
        if grid_mode not in GRID_MODES:
            raise ConfigurationError(f"grid_mode must be one of {list(GRID_MODES)}, got '{grid_mode}'.")

        ranges = tuning.get('ranges', {})
        if not ranges:
            raise ConfigurationError("tuning.ranges cannot be empty.")
        for name, bounds in ranges.items():
            if len(bounds) != 2:
                raise ConfigurationError(f"tuning.ranges.{name} must be [lo, hi], got {bounds}")
            lo, hi = bounds
            if lo <= 0 or hi <= 0:
                raise ConfigurationError(f"tuning.ranges.{name} must be positive for log-uniform sampling.")
            if lo > hi:
                raise ConfigurationError(f"tuning.ranges.{name} has lo ({lo}) > hi ({hi}).")

        # --- Interpretation Section ---
        interp = self.config.get('interpretation', {})
        if interp.get('permutation_repeats', 5) < 1:
            raise ConfigurationError("interpretation.permutation_repeats must be >= 1.")
        if interp.get('grid_resolution', 20) < 2:
            raise ConfigurationError("interpretation.grid_resolution must be >= 2.")

        # --- Execution Section ---
        execution = self.config.get('execution', {})
        if 'n_jobs' in execution:
            n_jobs = execution['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")

    @staticmethod
    def _validate_model_name(model_name: str, section: str) -> None:
        if model_name not in ModelFactory.get_available_models():
            raise ConfigurationError(
                f"{section}.model '{model_name}' is not supported. Available: {ModelFactory.get_available_models()}"
            )

    def _validate_resources(self) -> None:
        """
        Bound the candidate grid and record a memory ceiling for other modules.
        """
        resources = self.config.get('resources', {})
        tuning = self.config.get('tuning', {})

        total_configs = grid_size(tuning.get('ranges', {}), tuning.get('n_samples', 5),
                                  tuning.get('grid_mode', 'cartesian'))
        max_configs = resources.get('max_hpo_configs', self.DEFAULT_MAX_HPO_CONFIGS)
        if total_configs > max_configs:
            raise ConfigurationError(
                f"HPO Grid Explosion Detected! Up to {total_configs} candidates exceeds "
                f"safety limit ({max_configs}). Reduce n_samples or increase 'resources.max_hpo_configs'."
            )
        self.logger.info(f"HPO grid size validated: up to {total_configs} candidates (Limit: {max_configs})")

        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        config_max_ram = resources.get('max_memory_mb', int(system_ram_mb * 0.8))
        if config_max_ram > system_ram_mb:
            self.logger.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM ({system_ram_mb}MB). "
                "This may lead to instability."
            )

        self.config.setdefault('resources', {})
        self.config['resources']['max_memory_mb'] = config_max_ram
        self.config['resources'].setdefault('max_hpo_configs', max_configs)

    def _propagate_seeds(self) -> None:
        """
        Derive one seed per stage from the master seed at fixed offsets so each
        stage is reproducible on its own.
        """
        master_seed = self.config['splitting']['seed']
        self.config['_internal_seeds'] = {
            stage: master_seed + offset for stage, offset in constants.SEED_OFFSETS.items()
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
