"""
Main seeding file that orchestrates all database seeding operations.

Runs seeding functions in dependency order so that foreign keys resolve.
"""

from campus_connect.db.session import SessionLocal
from campus_connect.utils.logging import get_logger

from .users_seed import seed_users

logger = get_logger()


def seed_all_data():
    """Seed demo users (students with profiles plus one admin)."""

    db_session = SessionLocal()
    try:
        logger.info("Starting database seeding...")

        seed_users(db_session)

        logger.info("Database seeding completed successfully!")
        return True

    except Exception as e:
        logger.error(f"Database seeding failed: {str(e)}")
        db_session.rollback()
        raise e
    finally:
        db_session.close()
