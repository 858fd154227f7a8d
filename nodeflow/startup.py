"""Command line interface for the workflow engine."""

import argparse
import json
import sys
from typing import Any, Dict

from .config import AppConfig, HistoryBackend, get_testing_config, load_config
from .core.exceptions import ConfigurationError
from .core.logging import get_logger, setup_logging


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="nodeflow - workflow execution engine for trading automation pipelines"
    )

    parser.add_argument("--host", help="Host to bind the server to")
    parser.add_argument("--port", type=int, help="Port to bind the server to")
    parser.add_argument("--config", help="Path to a .env configuration file")
    parser.add_argument("--testing", action="store_true", help="Use the testing configuration preset")
    parser.add_argument("--database-url", help="Database URL of the SQL run history store")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level"
    )
    parser.add_argument("--log-file", help="Path to log file")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Run the HTTP server")

    execute_parser = subparsers.add_parser("execute", help="Run a workflow file once and print its run record")
    execute_parser.add_argument("workflow_file", help="JSON file with 'nodes' and 'connections'")
    execute_parser.add_argument("--workflow-id", help="Workflow id recorded on the run")

    db_parser = subparsers.add_parser("db", help="Run history database commands")
    db_subparsers = db_parser.add_subparsers(dest="db_command", help="Database commands")
    db_subparsers.add_parser("init", help="Create run history tables")
    db_subparsers.add_parser("reset", help="Drop and recreate run history tables")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    config_subparsers.add_parser("show", help="Show current configuration")

    return parser


def load_configuration(args: argparse.Namespace) -> AppConfig:
    """Load configuration, then apply command line overrides."""
    config = get_testing_config() if args.testing else load_config(args.config)

    overrides: Dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.database_url:
        overrides["database_url"] = args.database_url
        overrides["history_backend"] = HistoryBackend.SQL
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_file:
        overrides["log_file"] = args.log_file
    if args.debug:
        overrides["debug"] = True

    if not overrides:
        return config
    return AppConfig.model_validate({**config.model_dump(), **overrides})


def run_server(config: AppConfig):
    """Run the workflow engine server."""
    import uvicorn
    from .factory import create_app

    app = create_app(config)
    get_logger(__name__).info(f"Serving on {config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.value.lower())


def execute_workflow_file(config: AppConfig, workflow_file: str, workflow_id=None) -> int:
    """Execute a workflow file; exit status is 0 only for a successful run."""
    from .core.execution_engine import ExecutionEngine
    from .core.node_registry import create_default_registry
    from .factory import create_run_history
    from .models.core import RunStatus, WorkflowSnapshot

    with open(workflow_file, "r", encoding="utf-8") as f:
        snapshot = WorkflowSnapshot.model_validate(json.load(f))

    engine = ExecutionEngine(
        registry=create_default_registry(config=config),
        history=create_run_history(config),
        node_timeout=config.node_timeout,
        max_concurrent_runs=config.max_concurrent_runs,
    )
    record = engine.run_sync(snapshot, workflow_id=workflow_id)
    print(json.dumps(record.to_payload(), indent=2))
    return 0 if record.status == RunStatus.SUCCESS else 1


def run_database_command(command: str, config: AppConfig):
    """Run run-history database commands."""
    from .storage.database import create_database_engine, create_tables, drop_tables

    logger = get_logger(__name__)
    engine = create_database_engine(config.database_url, echo=config.database_echo)

    if command == "init":
        logger.info("Creating run history tables...")
        create_tables(engine)
    elif command == "reset":
        logger.info("Resetting run history tables...")
        drop_tables(engine)
        create_tables(engine)
    engine.dispose()
    logger.info(f"Database command '{command}' completed")


def show_configuration(config: AppConfig):
    """Show current configuration."""
    print("Current Configuration:")
    print(f"  App Name: {config.app_name}")
    print(f"  Version: {config.app_version}")
    print(f"  Debug: {config.debug}")
    print(f"  Host: {config.host}")
    print(f"  Port: {config.port}")
    print(f"  History Backend: {config.history_backend.value}")
    print(f"  Database URL: {config.database_url}")
    print(f"  Log Level: {config.log_level.value}")
    print(f"  Max Concurrent Runs: {config.max_concurrent_runs}")
    print(f"  Node Timeout: {config.node_timeout if config.node_timeout is not None else 'disabled'}")


def main(argv=None):
    """Main entry point for the command line interface."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)

        if args.command in ("serve", None):
            run_server(config)
            return

        setup_logging(level=config.log_level.value, log_file=config.log_file, log_format=config.log_format)

        if args.command == "execute":
            sys.exit(execute_workflow_file(config, args.workflow_file, args.workflow_id))
        elif args.command == "db":
            if not args.db_command:
                print("Database command required. Use --help for options.")
                sys.exit(1)
            run_database_command(args.db_command, config)
        elif args.command == "config":
            if args.config_command != "show":
                print("Configuration command required. Use --help for options.")
                sys.exit(1)
            show_configuration(config)

    except (OSError, ValueError, ConfigurationError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
