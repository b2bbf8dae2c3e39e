"""
Integration tests - SQL repositories against a throwaway SQLite database.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from ledger.domain.entities import (
    AccountBalance,
    BankTransaction,
    FiscalPeriodEntity,
    FixedAsset,
    JournalEntry,
)
from ledger.domain.exceptions import ConcurrencyConflictError
from ledger.domain.repositories import AccountFilter, JournalEntryFilter, Pagination
from ledger.domain.value_objects import (
    AccountType,
    AssetStatus,
    BankTransactionType,
    FiscalPeriod,
    FiscalPeriodStatus,
    JournalEntryStatus,
    MatchStatus,
    NormalBalance,
)
from ledger.infrastructure.database import init_db, make_engine, make_session_factory
from ledger.infrastructure.database.repositories import (
    SQLAccountBalanceRepository,
    SQLAccountRepository,
    SQLBankTransactionRepository,
    SQLFiscalPeriodRepository,
    SQLFixedAssetRepository,
    SQLJournalEntryRepository,
)
from ledger.infrastructure.database.seed import seed_chart_of_accounts
from tests.fakes import line

MARCH = FiscalPeriod(2024, 3)


@pytest.fixture
def session(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    db = make_session_factory(engine)()
    try:
        yield db
    finally:
        db.rollback()
        db.close()
        engine.dispose()


@pytest.fixture
def accounts(session):
    repo = SQLAccountRepository(session)
    seed_chart_of_accounts(repo)
    return repo


def _entry(accounts, number, amount="1000", on=date(2024, 3, 15), **kwargs) -> JournalEntry:
    cash = accounts.find_by_code("1100")
    revenue = accounts.find_by_code("4100")
    return JournalEntry.create(
        [line(cash, "Debit", amount), line(revenue, "Credit", amount)],
        on, kwargs.pop("description", "Cash sale"), "clerk",
        entry_number=number, **kwargs,
    )


class TestAccountRepository:

    def test_seed_is_idempotent(self, accounts):
        before = len(accounts.find_all())
        assert seed_chart_of_accounts(accounts) == []
        assert len(accounts.find_all()) == before

    def test_find_by_code_and_filter(self, accounts):
        cash = accounts.find_by_code("1100")
        assert accounts.find_by_id(cash.id).name == "Cash on Hand"
        assert accounts.find_by_code("9999") is None

        found = accounts.find_all(AccountFilter(search="Bank"))
        assert [account.code for account in found] == ["1110", "6300"]
        revenue = accounts.find_all(AccountFilter(account_type=AccountType.REVENUE, is_detail_account=True))
        assert {account.code for account in revenue} == {"4100", "7100"}

    def test_tree(self, accounts):
        roots = {node.account.code: node for node in accounts.get_account_tree()}
        assert "1100" not in roots
        assert [child.account.code for child in roots["1000"].children] == [
            "1100", "1110", "1200", "1210", "1300",
        ]
        assert roots["1000"].children[0].account.level == 1

    def test_code_exists(self, accounts):
        cash = accounts.find_by_code("1100")
        assert accounts.code_exists("1100")
        assert not accounts.code_exists("1100", exclude_id=cash.id)

    def test_update_round_trip(self, accounts):
        cash = accounts.find_by_code("1100")
        cash.update_name("Petty Cash", updated_by="controller")
        accounts.save(cash)
        assert accounts.find_by_code("1100").name == "Petty Cash"
        assert accounts.find_by_code("1100").updated_by == "controller"


class TestJournalEntryRepository:

    def test_save_and_load_lines(self, accounts, session):
        repo = SQLJournalEntryRepository(session)
        entry = _entry(accounts, "JE-2024-000001")
        repo.save(entry)

        loaded = repo.find_by_entry_number("JE-2024-000001")
        assert loaded.id == entry.id
        assert [ln.line_sequence for ln in loaded.lines] == [1, 2]
        assert loaded.total_debits == loaded.total_credits == Decimal("1000")
        assert accounts.has_transactions(accounts.find_by_code("1100").id)
        assert not accounts.has_transactions(accounts.find_by_code("1110").id)

    def test_status_change_persists(self, accounts, session):
        repo = SQLJournalEntryRepository(session)
        entry = _entry(accounts, "JE-2024-000001")
        repo.save(entry)
        entry.post("approver", FiscalPeriodStatus.OPEN)
        repo.save(entry)

        loaded = repo.find_by_id(entry.id)
        assert loaded.status == JournalEntryStatus.POSTED
        assert loaded.posted_by == "approver"
        assert len(loaded.lines) == 2

    def test_entry_numbers_continue_per_year(self, accounts, session):
        repo = SQLJournalEntryRepository(session)
        assert repo.generate_entry_number(MARCH) == "JE-2024-000001"
        repo.save(_entry(accounts, "JE-2024-000041"))
        repo.save(_entry(accounts, "JE-2023-000900", on=date(2023, 12, 30)))
        assert repo.generate_entry_number(MARCH) == "JE-2024-000042"
        assert repo.generate_entry_number(FiscalPeriod(2025, 1)) == "JE-2025-000001"

    def test_queries(self, accounts, session):
        repo = SQLJournalEntryRepository(session)
        repo.save(_entry(accounts, "JE-2024-000001", on=date(2024, 3, 1)))
        repo.save(_entry(accounts, "JE-2024-000002", on=date(2024, 3, 20), description="Consulting fee"))
        repo.save(_entry(
            accounts, "JE-2024-000003", on=date(2024, 4, 2),
            source_service="sales", source_reference_id="INV-7",
        ))

        march = repo.find_by_fiscal_period(MARCH)
        assert [entry.entry_number for entry in march] == ["JE-2024-000001", "JE-2024-000002"]
        assert repo.find_by_fiscal_period(MARCH, JournalEntryStatus.POSTED) == []
        assert repo.find_by_source_reference("sales", "INV-7").entry_number == "JE-2024-000003"
        assert repo.find_by_source_reference("sales", "INV-8") is None

        page = repo.find_all(JournalEntryFilter(search="consulting"), Pagination(page=1, page_size=10))
        assert page.total == 1
        assert page.items[0].entry_number == "JE-2024-000002"

        newest_first = repo.find_all(pagination=Pagination(page=1, page_size=2))
        assert newest_first.total == 3
        assert newest_first.total_pages == 2
        assert newest_first.items[0].entry_number == "JE-2024-000003"

        cash_id = accounts.find_by_code("1100").id
        assert len(repo.find_by_account_id(cash_id)) == 3

    def test_delete_removes_lines(self, accounts, session):
        repo = SQLJournalEntryRepository(session)
        entry = _entry(accounts, "JE-2024-000001")
        repo.save(entry)
        repo.delete(entry.id)
        assert repo.find_by_id(entry.id) is None
        assert not accounts.has_transactions(accounts.find_by_code("1100").id)


class TestFiscalPeriodRepository:

    def test_lookup_and_previous(self, session):
        repo = SQLFiscalPeriodRepository(session)
        for month in (1, 2, 3):
            repo.save(FiscalPeriodEntity.create(2024, month))

        assert repo.find_by_date(date(2024, 2, 29)).fiscal_month == 2
        assert repo.find_previous(MARCH).fiscal_month == 2
        assert repo.find_previous(FiscalPeriod(2024, 1)) is None
        assert repo.period_exists(MARCH)
        assert not repo.period_exists(FiscalPeriod(2024, 4))

    def test_status_filters(self, session):
        repo = SQLFiscalPeriodRepository(session)
        january = FiscalPeriodEntity.create(2024, 1)
        january.close("controller", None)
        repo.save(january)
        repo.save(FiscalPeriodEntity.create(2024, 2))

        assert repo.find_current_open().fiscal_month == 2
        assert [p.fiscal_month for p in repo.find_all(status=FiscalPeriodStatus.CLOSED)] == [1]
        stored = repo.find_by_period(FiscalPeriod(2024, 1))
        assert stored.closed_by == "controller"
        assert stored.is_closed


class TestAccountBalanceRepository:

    def test_previous_balance_skips_gaps(self, session):
        repo = SQLAccountBalanceRepository(session)
        january = AccountBalance.create("acc-1", FiscalPeriod(2024, 1))
        january.add_transactions("500", "0", NormalBalance.DEBIT)
        repo.save_many([january, AccountBalance.create("acc-2", FiscalPeriod(2024, 1))])

        previous = repo.find_previous_period_balance("acc-1", MARCH)
        assert previous.closing_balance == Decimal("500")
        assert repo.find_previous_period_balance("acc-1", FiscalPeriod(2024, 1)) is None
        assert len(repo.find_by_period(FiscalPeriod(2024, 1))) == 2

    def test_update_and_delete_by_period(self, session):
        repo = SQLAccountBalanceRepository(session)
        balance = AccountBalance.create("acc-1", MARCH, "100")
        repo.save(balance)
        balance.add_transactions("50", "20", NormalBalance.DEBIT)
        repo.save(balance)

        stored = repo.find_by_account_and_period("acc-1", MARCH)
        assert stored.debit_total == Decimal("50")
        assert stored.closing_balance == Decimal("130")
        assert repo.delete_by_period(MARCH) == 1
        assert repo.find_by_account("acc-1") == []


class TestBankTransactionRepository:

    def _tx(self, on=date(2024, 3, 11), amount="500", reference="TRF-1") -> BankTransaction:
        return BankTransaction.create(
            "ba-1", on, "Transfer in", amount, BankTransactionType.CREDIT,
            bank_statement_id="bs-1", reference=reference,
        )

    def test_fingerprint_lookup(self, session):
        repo = SQLBankTransactionRepository(session)
        tx = self._tx()
        repo.save(tx)
        assert repo.fingerprint_exists(tx.fingerprint)
        assert repo.find_by_fingerprint(tx.fingerprint).id == tx.id

    def test_duplicate_fingerprint_rejected(self, session):
        repo = SQLBankTransactionRepository(session)
        repo.save(self._tx())
        with pytest.raises(IntegrityError):
            repo.save(self._tx())

    def test_match_state_and_ranges(self, session):
        repo = SQLBankTransactionRepository(session)
        first = self._tx()
        second = self._tx(on=date(2024, 3, 20), amount="75", reference="CHQ-9")
        repo.save_many([first, second])
        first.match("jl-1", "clerk")
        repo.save(first)

        assert [tx.id for tx in repo.find_unmatched("ba-1")] == [second.id]
        assert repo.find_by_id(first.id).matched_journal_line_id == "jl-1"
        assert [tx.id for tx in repo.find_all(MatchStatus.MATCHED)] == [first.id]
        in_range = repo.find_by_bank_account_id("ba-1", date(2024, 3, 15), date(2024, 3, 31))
        assert [tx.id for tx in in_range] == [second.id]
        assert len(repo.find_by_statement_id("bs-1")) == 2


class TestFixedAssetRepository:

    def _asset(self, repo) -> FixedAsset:
        return FixedAsset.create(
            repo.generate_asset_number("IT"), "Laptop", "ac-1", date(2024, 1, 1),
            acquisition_cost="12000", useful_life_months=12,
        )

    def test_asset_numbers(self, session):
        repo = SQLFixedAssetRepository(session)
        asset = self._asset(repo)
        assert asset.asset_number == "FA-IT-00001"
        repo.save(asset)
        assert repo.generate_asset_number("IT") == "FA-IT-00002"
        assert repo.generate_asset_number("VH") == "FA-VH-00001"

    def test_versioned_update(self, session):
        repo = SQLFixedAssetRepository(session)
        asset = self._asset(repo)
        repo.save(asset)

        asset.activate()
        repo.save(asset, expected_version=1)

        stored = repo.find_by_id(asset.id)
        assert stored.status == AssetStatus.ACTIVE
        assert stored.version == 2
        assert [a.id for a in repo.find_depreciable(date(2024, 1, 31))] == [asset.id]

    def test_stale_version_conflicts(self, session):
        repo = SQLFixedAssetRepository(session)
        asset = self._asset(repo)
        repo.save(asset)
        stale = repo.find_by_id(asset.id)

        asset.transfer("admin", location="Branch 2")
        repo.save(asset, expected_version=1)

        stale.transfer("admin", location="Branch 3")
        with pytest.raises(ConcurrencyConflictError):
            repo.save(stale, expected_version=1)
        assert repo.find_by_id(asset.id).location == "Branch 2"
