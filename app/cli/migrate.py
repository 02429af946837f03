# ABOUTME: CLI command for applying SQL migration scripts
# ABOUTME: Runs each script's statements in file order, skipping objects that already exist

import argparse
import sys
from pathlib import Path
from typing import List

from sqlalchemy import create_engine

from app.config import get_settings
from app.exceptions import KeyVPNError
from app.services.migrations import apply_migration
from app.utils.logging_setup import setup_logging


def run_migrations(script_paths: List[str]) -> None:
    """
    Apply migration scripts in the order given.

    The first failing statement stops the run and exits with status 1.
    """
    settings = get_settings()
    engine = create_engine(settings.sqlalchemy_url)

    try:
        for script_path in script_paths:
            print(f"Applying migration: {script_path}")
            report = apply_migration(engine, script_path)

            for number in sorted(report.executed + report.skipped):
                if number in report.skipped:
                    print(f"  Statement {number}/{report.total} skipped (already exists)")
                else:
                    print(f"  Statement {number}/{report.total} executed")

        print("Migration completed successfully!")

    except KeyVPNError as e:
        print(f"Error: migration failed: {e.message}")
        sys.exit(1)
    finally:
        engine.dispose()


def main():
    """CLI entry point for the migrate command."""
    parser = argparse.ArgumentParser(description="Apply SQL migration scripts")
    parser.add_argument("scripts", nargs="+", help="Paths to .sql migration scripts, applied in order")

    args = parser.parse_args()

    for script in args.scripts:
        if not Path(script).exists():
            print(f"Error: File not found: {script}")
            sys.exit(1)

    setup_logging(get_settings().log_level)
    run_migrations(args.scripts)


if __name__ == "__main__":
    main()
