"""Infrastructure layer."""

from ledger.infrastructure.database import SessionLocal, get_db, init_db, make_engine, make_session_factory
from ledger.infrastructure.database.repositories import (
    SQLAccountBalanceRepository,
    SQLAccountRepository,
    SQLBankTransactionRepository,
    SQLFiscalPeriodRepository,
    SQLFixedAssetRepository,
    SQLJournalEntryRepository,
)
from ledger.infrastructure.database.seed import seed_chart_of_accounts
