#!/usr/bin/env python3
"""
Database setup script for the session store.

Creates the sessions table described by the SESSIONSTORE_* settings and can
sweep expired rows, e.g. from cron.
"""

import argparse
import sys

from sessionstore.core.config import settings
from sessionstore.core.logging_config import init_logging
from sessionstore.db.init_db import init_database, purge_expired
from sessionstore.db.session import build_engine


def main(argv=None) -> bool:
    parser = argparse.ArgumentParser(description="Session store database setup")
    parser.add_argument("--create", action="store_true", help="create the sessions table if missing")
    parser.add_argument("--purge", action="store_true", help="delete expired sessions")
    args = parser.parse_args(argv)

    if not args.create and not args.purge:
        parser.error("nothing to do, pass --create and/or --purge")

    init_logging(settings)
    print(f"Session table: {settings.SESSION_TABLE}")

    try:
        if args.create:
            init_database(settings)
            print("Session table initialized")
        if args.purge:
            purged = purge_expired(build_engine(settings.DATABASE_URL), settings.table_naming())
            print(f"Purged {purged} expired sessions")
        return True

    except Exception as e:
        print(f"Database setup failed: {e}")
        return False


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
