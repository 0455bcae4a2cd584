#!/usr/bin/env python3
"""
Initialize the Book Instance database.

This script:
1. Creates all database tables
2. Seeds the MaxLoanDuration policy
3. Optionally loads sample books and copies in every status
4. Verifies the database is ready for MCP server use

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data] [--loan-days N]
"""

import argparse
import logging
import random
import sys
import uuid
from datetime import timedelta
from pathlib import Path

from faker import Faker
from sqlalchemy import text

# Add the src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from book_instance_mcp.config import get_config
from book_instance_mcp.database import (
    Book,
    BookInstance,
    DatabaseManager,
    InstanceStatusEnum,
    PolicyRepository,
    get_db_manager,
)
from book_instance_mcp.lifecycle.transitions import utc_today
from book_instance_mcp.models.policy import MAX_LOAN_DURATION

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"books", "book_instances", "library_policies"}

# Initialize Faker for realistic data generation
fake = Faker()
Faker.seed(42)  # Consistent data across runs
random.seed(42)


def main():
    """Main entry point for database initialization."""
    config = get_config()

    parser = argparse.ArgumentParser(description="Initialize the Book Instance MCP Server database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load sample books and copies after creating tables",
    )
    parser.add_argument(
        "--loan-days",
        type=int,
        default=config.default_max_loan_duration,
        help="Value for the MaxLoanDuration policy",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args()
    if args.loan_days < 0:
        parser.error("--loan-days must be >= 0")

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        with db_manager.session_scope() as session:
            PolicyRepository(session).set_policy_value(
                MAX_LOAN_DURATION, args.loan_days, "Days a loan lasts before it is due"
            )

        if args.sample_data:
            logger.info("Loading sample data...")
            load_sample_data(db_manager)

        with db_manager.session_scope() as session:
            result = session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
            )
            tables = [row[0] for row in result]
            logger.info("Created tables: %s", ", ".join(tables))

            missing_tables = EXPECTED_TABLES - set(tables)
            if missing_tables:
                logger.error("Missing expected tables: %s", missing_tables)
                sys.exit(1)

        logger.info("Database initialization complete")
    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


def load_sample_data(db_manager: DatabaseManager, num_books: int = 20) -> None:
    """
    Load sample data for trying the MCP server.

    Creates ``num_books`` books with one to four copies each. Most copies
    are Available; the rest are spread over Loaned, Reserved and
    Maintenance with holders and due dates consistent with their status.
    A few reservations are already past their date so the sweeper has
    something to revert on the first request.
    """
    today = utc_today()
    readers = [f"user_{fake.unique.user_name()}" for _ in range(8)]
    statuses = [
        InstanceStatusEnum.AVAILABLE,
        InstanceStatusEnum.AVAILABLE,
        InstanceStatusEnum.AVAILABLE,
        InstanceStatusEnum.LOANED,
        InstanceStatusEnum.RESERVED,
        InstanceStatusEnum.MAINTENANCE,
    ]

    with db_manager.session_scope() as session:
        books = [
            Book(
                book_id=f"book_{index:04d}",
                title=fake.catch_phrase().title(),
            )
            for index in range(1, num_books + 1)
        ]
        session.add_all(books)
        session.flush()

        instances = []
        for book in books:
            for _ in range(random.randint(1, 4)):
                status = random.choice(statuses)
                holder = None
                available_by = None
                if status == InstanceStatusEnum.LOANED:
                    holder = random.choice(readers)
                    available_by = today + timedelta(days=random.randint(-3, 14))
                elif status == InstanceStatusEnum.RESERVED:
                    holder = random.choice(readers)
                    available_by = today + timedelta(days=random.randint(-2, 5))

                instances.append(
                    BookInstance(
                        instance_id=str(uuid.uuid4()),
                        book_id=book.book_id,
                        imprint=f"{fake.company()}, {fake.year()}",
                        status=status,
                        user_id=holder,
                        available_by=available_by,
                    )
                )
        session.add_all(instances)

    logger.info("Loaded %d books with %d instances", len(books), len(instances))


if __name__ == "__main__":
    main()
