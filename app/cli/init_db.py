# ABOUTME: CLI command for first-run database bootstrap
# ABOUTME: Creates the database and tables if absent and seeds key groups and the default admin

import argparse
import sys

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.config import get_settings
from app.exceptions import KeyVPNError
from app.services.bootstrap import ensure_database, ensure_schema, seed_reference_data
from app.utils.logging_setup import setup_logging


def bootstrap(create_database: bool = True) -> None:
    """
    Bring the configured database to the current schema and seed it.

    Safe to run on every deployment. Exits with status 1 on any
    unrecoverable error.

    Args:
        create_database: If True, issue CREATE DATABASE IF NOT EXISTS first
    """
    settings = get_settings()
    url = settings.sqlalchemy_url
    engine = None

    try:
        if create_database:
            print(f"Ensuring database: {url.database}")
            ensure_database(url, settings.db_charset)
            print("Database created/verified")

        engine = create_engine(url)
        Session = sessionmaker(bind=engine)

        print("Creating tables...")
        created = ensure_schema(engine)
        if created:
            print(f"Created tables: {', '.join(created)}")
        else:
            print("All tables already exist")

        session = Session()
        try:
            report = seed_reference_data(session, settings)
        finally:
            session.close()
        print(f"Reference data: {report.created} created, {report.skipped} already present")

    except (KeyVPNError, SQLAlchemyError) as e:
        print(f"Error: database initialization failed: {e}")
        sys.exit(1)
    finally:
        if engine is not None:
            engine.dispose()

    print("Database initialization completed!")


def main():
    """CLI entry point for the bootstrap command."""
    parser = argparse.ArgumentParser(description="Initialize the KeyVPN database")
    parser.add_argument("--skip-create-database", action="store_true",
                        help="Assume the database exists; only create tables and seed data")

    args = parser.parse_args()

    setup_logging(get_settings().log_level)
    bootstrap(create_database=not args.skip_create_database)


if __name__ == "__main__":
    main()
