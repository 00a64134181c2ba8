"""minirecord CLI - command-line interface for schema setup and query inspection."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from minirecord.base import Base
    from minirecord.config import DatabaseConfig

logger = logging.getLogger(__name__)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success)
    """
    parser = argparse.ArgumentParser(
        prog="minirecord",
        description="minirecord - a small active-record ORM for SQLite",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log SQL statements",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # create-tables
    tables_parser = subparsers.add_parser(
        "create-tables", help="Create the tables of every model in a module"
    )
    tables_parser.add_argument(
        "-m", "--models",
        required=True,
        help="Python module containing models (e.g., 'app.models')",
    )
    tables_parser.add_argument(
        "--url",
        help="Database URL (overrides config)",
    )
    tables_parser.add_argument(
        "-c", "--config",
        help="Path to an ini file with a [minirecord] section",
    )
    tables_parser.add_argument(
        "--if-not-exists",
        action="store_true",
        help="Skip tables that already exist",
    )

    # sql
    sql_parser = subparsers.add_parser(
        "sql", help="Print the SQL and bind values a query compiles to"
    )
    sql_parser.add_argument(
        "-m", "--models",
        required=True,
        help="Python module containing models (e.g., 'app.models')",
    )
    sql_parser.add_argument("model", help="Model class name")
    sql_parser.add_argument(
        "-w", "--where",
        action="append",
        default=[],
        metavar="COLUMN=VALUE",
        help="Equality condition; repeat for more",
    )
    sql_parser.add_argument(
        "-s", "--select",
        action="append",
        default=[],
        metavar="EXPR",
        help="Projection expression; repeat for more",
    )
    sql_parser.add_argument(
        "-o", "--order",
        action="append",
        default=[],
        metavar="COLUMN[:DIRECTION]",
        help="Ordering term; repeat for more",
    )
    sql_parser.add_argument("--limit", type=int, help="LIMIT value")
    sql_parser.add_argument("--offset", type=int, help="OFFSET value")
    sql_parser.add_argument("--join", help="Association to join")

    # Parse arguments
    parsed = parser.parse_args(args)

    if parsed.verbose:
        configure_logging(logging.DEBUG)

    if parsed.command is None:
        parser.print_help()
        return 1

    if parsed.command == "create-tables":
        return _create_tables(parsed)

    if parsed.command == "sql":
        return _show_sql(parsed)

    return 0


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send minirecord logs to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("minirecord")
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


def _create_tables(args: Any) -> int:
    """Create tables for every model found in the models module."""
    from minirecord.database import Database
    from minirecord.exceptions import MiniRecordError

    models = _load_models(args.models)
    if not models:
        print("Error: No models found. Use --models to specify the models module.")
        return 1

    config = _load_config(args)
    if config is None:
        return 1

    try:
        with Database(config) as db:
            db.create_tables(*models, if_not_exists=args.if_not_exists)
    except MiniRecordError as e:
        print(f"Error: {e}")
        return 1

    print(f"Created {len(models)} table(s) in {config.url}:")
    for model in models:
        print(f"  {model.__tablename__} ({model.__name__})")
    return 0


def _show_sql(args: Any) -> int:
    """Compile a query without running it."""
    from minirecord.query import select

    models = {model.__name__: model for model in _load_models(args.models)}
    model = models.get(args.model)
    if model is None:
        print(f"Error: No model named {args.model} in {args.models}")
        return 1

    conditions: dict[str, str] = {}
    for item in args.where:
        column, sep, value = item.partition("=")
        if not sep or not column:
            print(f"Error: --where expects COLUMN=VALUE, got {item!r}")
            return 1
        conditions[column] = value

    query = select(model).where(conditions).select(*args.select)
    for item in args.order:
        column, _, direction = item.partition(":")
        query = query.order((column, direction or "ASC"))
    if args.limit is not None:
        query = query.limit(args.limit)
    if args.offset is not None:
        query = query.offset(args.offset)
    if args.join:
        query = query.join(args.join)

    print(query.to_sql())
    print(f"-- bind values: {query.bind_values!r}")
    return 0


def _load_config(args: Any) -> DatabaseConfig | None:
    """Build the database config from --url, --config or the environment."""
    from minirecord.config import DEFAULT_ENV_VAR, DatabaseConfig
    from minirecord.exceptions import ConfigurationError

    try:
        if getattr(args, "url", None):
            return DatabaseConfig.from_url(args.url)
        if getattr(args, "config", None):
            return DatabaseConfig.from_ini(Path(args.config))
        return DatabaseConfig.from_env()
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Error: {e}")
        print(f"Pass --url, --config, or set {DEFAULT_ENV_VAR}.")
        return None


def _load_models(models_path: str | None) -> list[type[Base]]:
    """Load models from a Python module path.

    Args:
        models_path: Module path like 'app.models'

    Returns:
        List of model classes, in definition order
    """
    if not models_path:
        return []

    try:
        module = importlib.import_module(models_path)
    except ImportError as e:
        print(f"Error importing models: {e}")
        return []

    # Find all Base subclasses defined in the module
    from minirecord.base import Base

    models = []
    for obj in vars(module).values():
        if (
            isinstance(obj, type)
            and issubclass(obj, Base)
            and obj is not Base
            and obj.__module__ == module.__name__
        ):
            models.append(obj)

    logger.debug("Loaded %d model(s) from %s", len(models), models_path)
    return models


if __name__ == "__main__":
    sys.exit(main())
