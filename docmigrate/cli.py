"""Command-line entry point for the migration engine."""

import argparse
import logging
import sys
from typing import List, Optional

from .errors import ConfigurationError, MigrationError
from .models.migration import EngineConfig, RunStatus
from .models.payloads import RunDefinition
from .orchestrator import MigrationCoordinator
from .services.metadata_store import InMemoryMetadataStore
from .services.sql_builder import build_create_table, build_insert

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Document store migration - copy MongoDB collections into PostgreSQL tables"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run migration
    run_parser = subparsers.add_parser("run", help="Run a migration")
    run_parser.add_argument("--config", required=True, help="Path to run definition JSON file")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    # Validate run definition
    validate_parser = subparsers.add_parser("validate", help="Validate a run definition")
    validate_parser.add_argument("--config", required=True, help="Path to run definition JSON file")
    validate_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command == "run":
        return run_migration(args)
    elif args.command == "validate":
        return run_validation(args)

    parser.print_help()
    return 2


def run_migration(args) -> int:
    """Run a migration from a run definition file."""
    try:
        definition = RunDefinition.from_json_file(args.config)
        config = definition.to_engine_config(EngineConfig.from_env())
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    store = InMemoryMetadataStore()
    migration = store.save_migration(definition.to_migration())
    store.save_plan(definition.to_plan(migration.id))

    coordinator = MigrationCoordinator(store, config)
    try:
        run = coordinator.execute_migration(migration.id)
    except MigrationError as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 60)
    print("MIGRATION COMPLETE")
    print("=" * 60)
    print(f"Status: {run.status.value}")
    for progress in sorted(store.progress_for_run(run.id), key=lambda p: p.table_name):
        line = f"  {progress.table_name}: {progress.rows_processed}/{progress.rows_total} rows ({progress.status.value})"
        metrics = coordinator.metrics_for(progress.table_name)
        if metrics and metrics.errors:
            line += f", {metrics.errors} failed batches"
        print(line)
        if progress.error:
            print(f"    error: {progress.error}")
    if run.duration_seconds is not None:
        print(f"Duration: {run.duration_seconds:.2f} seconds")

    return 0 if run.status == RunStatus.COMPLETED else 1


def run_validation(args) -> int:
    """Validate a run definition and print the statements it would issue."""
    try:
        definition = RunDefinition.from_json_file(args.config)
        config = definition.to_engine_config(EngineConfig.from_env())
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    migration = definition.to_migration()
    plan = definition.to_plan(migration.id)

    print("\n=== Validating Run Definition ===")
    errors = []
    if not migration.target.is_complete():
        errors.append("Target database credentials are not configured")
    if not plan.collection_mappings:
        errors.append("Plan has no table mappings")

    for mapping in plan.collection_mappings:
        print(f"\n{mapping.source_collection} -> {mapping.target_table}")
        print(f"  {build_create_table(mapping.target_table, mapping.columns)}")
        print(f"  {build_insert(mapping.target_table, mapping.columns)}")

    print(f"\nEngine: {config.to_dict()}")

    if errors:
        for error in errors:
            print(f"  - {error}")
        print(f"\nFound {len(errors)} validation errors")
        return 1

    print("\nRun definition is valid!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
