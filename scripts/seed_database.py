#!/usr/bin/env python3
"""
Database Seeding Script - creates the schema, the default chart of accounts
and the open fiscal period for the current month.
"""

import logging
import sys

from ledger.core.logging import setup_logging
from ledger.domain.entities import FiscalPeriodEntity
from ledger.domain.value_objects import FiscalPeriod
from ledger.infrastructure.database import SessionLocal, init_db
from ledger.infrastructure.database.repositories import SQLAccountRepository, SQLFiscalPeriodRepository
from ledger.infrastructure.database.seed import seed_chart_of_accounts

logger = logging.getLogger("ledger.scripts.seed")


def main() -> int:
    """Main function."""
    setup_logging()
    init_db()

    db = SessionLocal()
    try:
        created = seed_chart_of_accounts(SQLAccountRepository(db))

        periods = SQLFiscalPeriodRepository(db)
        current = FiscalPeriod.current()
        if not periods.period_exists(current):
            periods.save(FiscalPeriodEntity.create(current.year, current.month))
            logger.info("Opened fiscal period %s", current)
        else:
            logger.info("Fiscal period %s already exists", current)

        db.commit()
        logger.info("Seeding complete: %d accounts created", len(created))
        return 0
    except Exception:
        db.rollback()
        logger.exception("Seeding failed")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
