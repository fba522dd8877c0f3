#!/usr/bin/env python
"""
Forest Tuning Workflow - Main Entry Point

Loads a tabular dataset, fits a decision-tree baseline, tunes a random forest
with cross-validated search over log-uniformly sampled hyperparameters, scores
the result on a held-out test set and writes importance tables.
"""
import sys
import logging
import argparse
import traceback
from pathlib import Path

from modules.config_manager import ConfigurationManager
from modules.logging_config import LoggingConfigurator
from modules.workflow import WorkflowRunner
from utils.exceptions import WorkflowException


def parse_arguments(argv=None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Forest Tuning Workflow - decision tree baseline and random forest search",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default="config/schema.json",
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Optional run identifier (defaults to timestamp if not provided)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and setup without running the workflow"
    )

    return parser.parse_args(argv)


def setup_run_directory(config: dict, run_id: str, logger: logging.Logger) -> Path:
    """
    Create ``<base_results_dir>/<run_id>`` and point the configuration at it.

    Reusing a run id reuses its directory, which lets an interrupted
    hyperparameter search resume from its progress file.
    """
    base_results_dir = config.get('outputs', {}).get('base_results_dir', 'results')
    run_dir = (Path(base_results_dir) / run_id).absolute()
    run_dir.mkdir(parents=True, exist_ok=True)
    config['outputs']['base_results_dir'] = str(run_dir)
    logger.info(f"Run directory: {run_dir}")
    return run_dir


def main(argv=None):
    """
    Workflow orchestration entry point.

    Returns:
        int: Exit code (0 for success, 1 for errors, 130 on interruption)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()

        if args.verbose:
            config.setdefault('logging', {})['level'] = 'DEBUG'

        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('workflow')
        logger.info(f"Configuration loaded from: {args.config}")

        if args.run_id:
            config_manager.run_id = args.run_id
        run_id = config_manager.generate_run_id()
        run_dir = setup_run_directory(config, run_id, logger)
        config_manager.save_artifacts(str(run_dir))

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without running the workflow.")
            return 0

        result = WorkflowRunner(config, logger).run(run_id)

        logger.info("-" * 60)
        logger.info("WORKFLOW COMPLETED SUCCESSFULLY")
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Best parameters: {result.search.best.label()}")
        logger.info(f"Output Directory: {run_dir}")
        logger.info("-" * 60)
        return 0

    except WorkflowException as e:
        msg = f"Workflow Error: {str(e)}"
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            print(f"[ERROR] {msg}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        if logger:
            logger.warning("Workflow interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
