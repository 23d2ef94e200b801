#!/usr/bin/env python3
"""
Example: MongoDB shop database to PostgreSQL

Runs the migration described in run_definition.json and prints per-table
progress while it is running.

Usage:
    # Validate the definition and show the generated SQL
    python run_migration.py --validate

    # Run the migration
    python run_migration.py

    # With a custom definition
    python run_migration.py --config my_definition.json
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from docmigrate.cli import main as cli_main
from docmigrate.models.migration import RunStatus
from docmigrate.models.payloads import RunDefinition
from docmigrate.orchestrator import MigrationCoordinator
from docmigrate.services.metadata_store import InMemoryMetadataStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

DEFAULT_DEFINITION = Path(__file__).parent / "run_definition.json"


def run_with_progress(definition_path: str, poll_seconds: float = 2.0) -> int:
    """Start the migration in the background and report progress until it finishes."""
    definition = RunDefinition.from_json_file(definition_path)

    store = InMemoryMetadataStore()
    migration = store.save_migration(definition.to_migration())
    store.save_plan(definition.to_plan(migration.id))

    coordinator = MigrationCoordinator(store, definition.to_engine_config())
    run, future = coordinator.start_migration(migration.id)
    logger.info(f"Started run {run.id}")

    while not future.done():
        time.sleep(poll_seconds)
        for progress in store.progress_for_run(run.id):
            metrics = coordinator.metrics_for(progress.table_name)
            if metrics is None:
                continue
            logger.info(
                f"{progress.table_name}: {progress.rows_processed}/{progress.rows_total} rows "
                f"({metrics.percent_complete(progress.rows_total):.1f}%, "
                f"{metrics.throughput:.0f} docs/sec, eta {metrics.eta_seconds(progress.rows_total):.0f}s)"
            )

    result = future.result()
    logger.info(f"Run {result.id} finished with status {result.status.value}")
    if result.error:
        logger.warning(f"Errors: {result.error}")
    return 0 if result.status == RunStatus.COMPLETED else 1


def main():
    parser = argparse.ArgumentParser(description="MongoDB to PostgreSQL example migration")
    parser.add_argument("--config", default=str(DEFAULT_DEFINITION), help="Run definition file")
    parser.add_argument("--validate", action="store_true", help="Only validate the definition")
    args = parser.parse_args()

    if args.validate:
        return cli_main(["validate", "--config", args.config])
    return run_with_progress(args.config)


if __name__ == "__main__":
    sys.exit(main())
