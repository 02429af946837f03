# ABOUTME: CLI command for the periodic key expiry sweep
# ABOUTME: Expires due active keys and releases their account bindings, suitable for cron

import argparse
import sys

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.config import get_settings
from app.services.keys import expire_keys
from app.utils.logging_setup import setup_logging


def sweep() -> list:
    """Run one expiry sweep against the configured database."""
    settings = get_settings()
    engine = create_engine(settings.sqlalchemy_url)
    Session = sessionmaker(bind=engine)
    session = Session()

    try:
        expired = expire_keys(session)
    except SQLAlchemyError as e:
        session.rollback()
        print(f"Error during expiry sweep: {e}")
        sys.exit(1)
    finally:
        session.close()
        engine.dispose()

    if expired:
        print(f"Expired {len(expired)} key(s):")
        for code in expired:
            print(f"  - {code}")
    else:
        print("No keys due for expiry.")
    return expired


def main():
    """CLI entry point for the expiry sweep."""
    parser = argparse.ArgumentParser(description="Expire VPN keys past their validity window")
    parser.parse_args()

    setup_logging(get_settings().log_level)
    sweep()


if __name__ == "__main__":
    main()
