# utils/constants.py

# --- Top-Level Result Directories ---
# Sequentially numbered so a run directory sorts in workflow order.

CONFIG_DIR = "01_RunConfiguration"                  # Run config, metadata, seeds
DATA_INTEGRITY_DIR = "02_DataQualityChecks"         # Loaded dataset and column stats
MASTER_SPLITS_DIR = "03_TrainTestSplit"             # Train/test partition
BASELINE_MODEL_DIR = "04_BaselineDecisionTree"      # Shallow tree baseline
HPO_OPTIMIZATION_DIR = "05_HyperparameterSearch"    # Sampled grid and CV ranking
FINAL_MODEL_DIR = "06_TrainedModel"                 # Refit of the best candidate
PREDICTIONS_DIR = "07_ModelPredictions"             # Per-split prediction tables
EVALUATION_DIR = "08_PerformanceMetrics"            # Per-split metrics
INTERPRETATION_DIR = "09_ModelInterpretation"       # Importance and partial dependence

# --- HPO Sub-Directories ---
HPO_PROGRESS_DIR = "progress"
HPO_RESULTS_DIR = "results"

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
HPO_PROGRESS_FILE = "hpo_progress.jsonl"
ALL_CONFIGURATIONS_FILE = "all_configurations.parquet"
BEST_CONFIGURATION_FILE = "best_configuration.json"
FINAL_MODEL_FILE = "final_model.pkl"
TRAINING_METADATA_FILE = "training_metadata.json"
SPLIT_INDICES_FILE = "split_indices.json"
VARIABLE_IMPORTANCE_FILE = "variable_importance.parquet"
WORKFLOW_SUMMARY_FILE = "workflow_summary.json"

# --- Seed Offsets (added to the master seed) ---
SEED_OFFSETS = {
    'split': 0,
    'sampler': 500,
    'cv': 1000,
    'model': 2000,
    'interpretation': 3000,
}
