"""
Database table creation script for Identity Reconciliation API
Creates the contacts table and its indexes, then checks it can be queried.
Run this script after setting up your database to initialize the schema.
"""

import asyncio
import logging
import sys

from sqlalchemy import func, select

from database import DatabaseManager
from models import Contact

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def create_tables(db_manager: DatabaseManager) -> bool:
    """
    Create all database tables defined in the models
    Returns False if the database cannot be reached
    """
    logger.info("Starting database table creation...")

    if not await db_manager.test_connection():
        logger.error("Database connection failed - cannot create tables")
        return False

    await db_manager.create_tables()

    async with db_manager.get_session() as session:
        count = await session.scalar(select(func.count()).select_from(Contact))
        logger.info(f"Contacts table accessible - current count: {count}")

    return True


async def main() -> bool:
    db_manager = DatabaseManager()
    try:
        success = await create_tables(db_manager)
    finally:
        await db_manager.dispose()

    if success:
        logger.info("Database setup completed successfully!")
        logger.info("You can now start the API server with: python main.py")
    else:
        logger.error("Database setup failed! Check your database configuration and try again")

    return success


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(main()) else 1)
