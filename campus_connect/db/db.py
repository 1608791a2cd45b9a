"""
Schema management for local and test databases.

    python -m campus_connect.db.db reset     # drop, create, seed demo accounts
    python -m campus_connect.db.db create
"""

import argparse

from .models import Base
from .seeds.main import seed_all_data
from .session import engine

from campus_connect.utils.logging import get_logger

logger = get_logger()


def create_tables():
    Base.metadata.create_all(engine)
    logger.info(f"Ensured {len(Base.metadata.tables)} tables on {engine.url.drivername}")


def drop_tables():
    Base.metadata.drop_all(engine)
    logger.warning("All tables dropped")


def reset_db():
    drop_tables()
    create_tables()
    seed_all_data()
    logger.info("Database reset with demo accounts")


COMMANDS = {
    "create": create_tables,
    "drop": drop_tables,
    "seed": seed_all_data,
    "reset": reset_db,
}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage the Campus Connect schema")
    parser.add_argument("command", choices=sorted(COMMANDS), nargs="?", default="reset")
    COMMANDS[parser.parse_args().command]()
