"""
Pytest configuration and fixtures.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.application.services import (
    AuditService,
    BankReconciliationService,
    BankStatementImportService,
    DepreciationService,
    FiscalPeriodService,
    FixedAssetService,
    JournalEntryService,
)
from ledger.core.config import LedgerSettings
from ledger.domain.entities import Account, BankAccount, FiscalPeriodEntity, JournalEntry
from ledger.infrastructure.database.seed import seed_chart_of_accounts
from tests.fakes import Repositories, line


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(
        database_url="sqlite://",
        match_date_tolerance_days=3,
        match_amount_tolerance=Decimal("0"),
        declining_balance_factor=Decimal("2"),
    )


@pytest.fixture
def repos() -> Repositories:
    return Repositories()


@pytest.fixture
def chart(repos) -> dict[str, Account]:
    """Default chart of accounts keyed by code."""
    seed_chart_of_accounts(repos.accounts, created_by="test")
    return {account.code: account for account in repos.accounts.find_all()}


@pytest.fixture
def cash_account(chart) -> Account:
    return chart["1100"]


@pytest.fixture
def bank_gl_account(chart) -> Account:
    return chart["1110"]


@pytest.fixture
def revenue_account(chart) -> Account:
    return chart["4100"]


@pytest.fixture
def open_period(repos):
    """Factory saving an Open fiscal period."""

    def _open(year: int, month: int) -> FiscalPeriodEntity:
        entity = FiscalPeriodEntity.create(year, month)
        repos.periods.save(entity)
        return entity

    return _open


@pytest.fixture
def audit(repos) -> AuditService:
    return AuditService(repos.audit)


@pytest.fixture
def journal_service(repos, audit) -> JournalEntryService:
    return JournalEntryService(repos.entries, repos.accounts, repos.periods, repos.balances, audit)


@pytest.fixture
def period_service(repos, audit) -> FiscalPeriodService:
    return FiscalPeriodService(repos.periods, repos.balances, repos.accounts, repos.entries, audit)


@pytest.fixture
def import_service(repos) -> BankStatementImportService:
    return BankStatementImportService(repos.bank_accounts, repos.statements, repos.transactions)


@pytest.fixture
def reconciliation_service(repos, journal_service, settings, audit) -> BankReconciliationService:
    return BankReconciliationService(
        repos.reconciliations,
        repos.bank_accounts,
        repos.transactions,
        repos.entries,
        repos.balances,
        journal_service=journal_service,
        settings=settings,
        audit=audit,
    )


@pytest.fixture
def asset_service(repos, audit) -> FixedAssetService:
    return FixedAssetService(repos.assets, repos.categories, audit)


@pytest.fixture
def depreciation_service(repos, journal_service, settings) -> DepreciationService:
    return DepreciationService(
        repos.assets, repos.categories, repos.schedules, repos.runs, journal_service, settings
    )


@pytest.fixture
def bank_account(repos, bank_gl_account) -> BankAccount:
    account = BankAccount.create(bank_gl_account.id, "Bank Central", "0012345678", account_name="Operating")
    repos.bank_accounts.save(account)
    return account


@pytest.fixture
def sale_entry(cash_account, revenue_account) -> JournalEntry:
    """Draft: debit cash 1000, credit revenue 1000 on 2024-03-15."""
    return JournalEntry.create(
        [line(cash_account, "Debit", "1000"), line(revenue_account, "Credit", "1000")],
        date(2024, 3, 15),
        "Cash sale",
        "tester",
        entry_number="JE-2024-000001",
    )
