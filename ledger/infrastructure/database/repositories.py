"""
SQL adapters for the ledger repository ports.

Adapters flush but never commit; the caller owns the transaction.
"""

import logging
from collections.abc import Sequence
from datetime import date

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ledger.domain.entities import (
    Account,
    AccountBalance,
    BankTransaction,
    FiscalPeriodEntity,
    FixedAsset,
    JournalEntry,
    JournalLine,
    format_entry_number,
    parse_entry_number,
)
from ledger.domain.exceptions import ConcurrencyConflictError
from ledger.domain.repositories import (
    AccountFilter,
    AccountTreeNode,
    IAccountBalanceRepository,
    IAccountRepository,
    IBankTransactionRepository,
    IFiscalPeriodRepository,
    IFixedAssetRepository,
    IJournalEntryRepository,
    JournalEntryFilter,
    PaginatedResult,
    Pagination,
)
from ledger.domain.value_objects import (
    AccountCategory,
    AccountStatus,
    AccountType,
    AcquisitionMethod,
    AssetStatus,
    BankTransactionType,
    DepreciationMethod,
    Direction,
    DisposalMethod,
    FinancialStatementType,
    FiscalPeriod,
    FiscalPeriodStatus,
    JournalEntryStatus,
    JournalEntryType,
    MatchStatus,
    NormalBalance,
)
from ledger.infrastructure.database import models

logger = logging.getLogger(__name__)


def _before(year_col, month_col, period: FiscalPeriod):
    return or_(year_col < period.year, and_(year_col == period.year, month_col < period.month))


# -- accounts ---------------------------------------------------------------

def _account_to_domain(row: models.Account) -> Account:
    return Account.from_persistence(
        id=row.id,
        code=row.code,
        name=row.name,
        name_en=row.name_en,
        description=row.description,
        account_type=AccountType(row.account_type),
        normal_balance=NormalBalance(row.normal_balance),
        account_category=AccountCategory(row.account_category),
        financial_statement_type=FinancialStatementType(row.financial_statement_type),
        parent_account_id=row.parent_account_id,
        level=row.level,
        is_detail_account=row.is_detail_account,
        is_system_account=row.is_system_account,
        status=AccountStatus(row.status),
        has_transactions=row.has_transactions,
        created_by=row.created_by,
        updated_by=row.updated_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _account_to_row(account: Account) -> models.Account:
    return models.Account(
        id=account.id,
        code=account.code,
        name=account.name,
        name_en=account.name_en,
        description=account.description,
        account_type=account.account_type.value,
        normal_balance=account.normal_balance.value,
        account_category=account.account_category.value,
        financial_statement_type=account.financial_statement_type.value,
        parent_account_id=account.parent_account_id,
        level=account.level,
        is_detail_account=account.is_detail_account,
        is_system_account=account.is_system_account,
        status=account.status.value,
        has_transactions=account.has_transactions,
        created_by=account.created_by,
        updated_by=account.updated_by,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


class SQLAccountRepository(IAccountRepository):

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, account_id: str) -> Account | None:
        row = self.session.get(models.Account, account_id)
        return _account_to_domain(row) if row else None

    def find_by_code(self, code: str) -> Account | None:
        row = self.session.query(models.Account).filter(models.Account.code == code).first()
        return _account_to_domain(row) if row else None

    def find_all(self, filter: AccountFilter | None = None) -> list[Account]:
        query = self.session.query(models.Account)
        if filter is not None:
            if filter.account_type is not None:
                query = query.filter(models.Account.account_type == filter.account_type.value)
            if filter.status is not None:
                query = query.filter(models.Account.status == filter.status.value)
            if filter.is_detail_account is not None:
                query = query.filter(models.Account.is_detail_account == filter.is_detail_account)
            if filter.parent_account_id is not None:
                query = query.filter(models.Account.parent_account_id == filter.parent_account_id)
            if filter.search:
                pattern = f"%{filter.search}%"
                query = query.filter(or_(models.Account.code.like(pattern), models.Account.name.ilike(pattern)))
        return [_account_to_domain(row) for row in query.order_by(models.Account.code).all()]

    def find_by_parent_id(self, parent_account_id: str) -> list[Account]:
        return self.find_all(AccountFilter(parent_account_id=parent_account_id))

    def get_account_tree(self) -> list[AccountTreeNode]:
        nodes = {account.id: AccountTreeNode(account) for account in self.find_all()}
        roots: list[AccountTreeNode] = []
        for node in nodes.values():
            parent = nodes.get(node.account.parent_account_id) if node.account.parent_account_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    def save(self, account: Account) -> None:
        self.session.merge(_account_to_row(account))
        self.session.flush()

    def delete(self, account_id: str) -> None:
        self.session.query(models.Account).filter(models.Account.id == account_id).delete()
        self.session.flush()

    def has_transactions(self, account_id: str) -> bool:
        query = self.session.query(models.JournalEntryLine.id).filter(
            models.JournalEntryLine.account_id == account_id
        )
        return self.session.query(query.exists()).scalar()

    def code_exists(self, code: str, exclude_id: str | None = None) -> bool:
        query = self.session.query(models.Account.id).filter(models.Account.code == code)
        if exclude_id is not None:
            query = query.filter(models.Account.id != exclude_id)
        return query.first() is not None


# -- journal entries --------------------------------------------------------

def _line_to_domain(row: models.JournalEntryLine) -> JournalLine:
    return JournalLine(
        id=row.id,
        account_id=row.account_id,
        direction=Direction(row.direction),
        amount=row.amount,
        line_sequence=row.line_sequence,
        memo=row.memo,
        sales_person_id=row.sales_person_id,
        warehouse_id=row.warehouse_id,
        sales_channel=row.sales_channel,
        customer_id=row.customer_id,
        vendor_id=row.vendor_id,
        product_id=row.product_id,
    )


def _line_to_row(entry_id: str, line: JournalLine) -> models.JournalEntryLine:
    return models.JournalEntryLine(
        id=line.id,
        journal_entry_id=entry_id,
        account_id=line.account_id,
        line_sequence=line.line_sequence,
        direction=line.direction.value,
        amount=line.amount,
        memo=line.memo,
        sales_person_id=line.sales_person_id,
        warehouse_id=line.warehouse_id,
        sales_channel=line.sales_channel,
        customer_id=line.customer_id,
        vendor_id=line.vendor_id,
        product_id=line.product_id,
    )


def _entry_to_row(entry: JournalEntry) -> models.JournalEntry:
    return models.JournalEntry(
        id=entry.id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        description=entry.description,
        entry_type=entry.entry_type.value,
        status=entry.status.value,
        reference=entry.reference,
        notes=entry.notes,
        source_service=entry.source_service,
        source_reference_id=entry.source_reference_id,
        created_by=entry.created_by,
        posted_by=entry.posted_by,
        posted_at=entry.posted_at,
        voided_by=entry.voided_by,
        voided_at=entry.voided_at,
        void_reason=entry.void_reason,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


class SQLJournalEntryRepository(IJournalEntryRepository):

    def __init__(self, session: Session):
        self.session = session

    def _to_domain(self, row: models.JournalEntry) -> JournalEntry:
        lines = (
            self.session.query(models.JournalEntryLine)
            .filter(models.JournalEntryLine.journal_entry_id == row.id)
            .order_by(models.JournalEntryLine.line_sequence)
            .all()
        )
        return JournalEntry.from_persistence(
            id=row.id,
            entry_number=row.entry_number,
            entry_date=row.entry_date,
            description=row.description,
            created_by=row.created_by,
            lines=[_line_to_domain(line) for line in lines],
            entry_type=JournalEntryType(row.entry_type),
            status=JournalEntryStatus(row.status),
            reference=row.reference,
            notes=row.notes,
            source_service=row.source_service,
            source_reference_id=row.source_reference_id,
            posted_by=row.posted_by,
            posted_at=row.posted_at,
            voided_by=row.voided_by,
            voided_at=row.voided_at,
            void_reason=row.void_reason,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def find_by_id(self, entry_id: str) -> JournalEntry | None:
        row = self.session.get(models.JournalEntry, entry_id)
        return self._to_domain(row) if row else None

    def find_by_entry_number(self, entry_number: str) -> JournalEntry | None:
        row = (
            self.session.query(models.JournalEntry)
            .filter(models.JournalEntry.entry_number == entry_number)
            .first()
        )
        return self._to_domain(row) if row else None

    def find_all(
        self,
        filter: JournalEntryFilter | None = None,
        pagination: Pagination | None = None,
    ) -> PaginatedResult[JournalEntry]:
        pagination = pagination or Pagination()
        query = self.session.query(models.JournalEntry)
        if filter is not None:
            if filter.status is not None:
                query = query.filter(models.JournalEntry.status == filter.status.value)
            if filter.entry_type is not None:
                query = query.filter(models.JournalEntry.entry_type == filter.entry_type.value)
            if filter.date_from is not None:
                query = query.filter(models.JournalEntry.entry_date >= filter.date_from)
            if filter.date_to is not None:
                query = query.filter(models.JournalEntry.entry_date <= filter.date_to)
            if filter.account_id is not None:
                query = query.filter(models.JournalEntry.id.in_(
                    select(models.JournalEntryLine.journal_entry_id)
                    .where(models.JournalEntryLine.account_id == filter.account_id)
                ))
            if filter.search:
                pattern = f"%{filter.search}%"
                query = query.filter(or_(
                    models.JournalEntry.entry_number.like(pattern),
                    models.JournalEntry.description.ilike(pattern),
                    models.JournalEntry.reference.ilike(pattern),
                ))
        total = query.count()
        rows = (
            query.order_by(models.JournalEntry.entry_date.desc(), models.JournalEntry.entry_number.desc())
            .offset(pagination.offset)
            .limit(pagination.page_size)
            .all()
        )
        return PaginatedResult(
            items=[self._to_domain(row) for row in rows],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    def find_by_account_id(self, account_id: str) -> list[JournalEntry]:
        rows = (
            self.session.query(models.JournalEntry)
            .filter(models.JournalEntry.id.in_(
                select(models.JournalEntryLine.journal_entry_id)
                .where(models.JournalEntryLine.account_id == account_id)
            ))
            .order_by(models.JournalEntry.entry_date, models.JournalEntry.entry_number)
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def find_by_source_reference(self, source_service: str, source_reference_id: str) -> JournalEntry | None:
        row = (
            self.session.query(models.JournalEntry)
            .filter(
                models.JournalEntry.source_service == source_service,
                models.JournalEntry.source_reference_id == source_reference_id,
            )
            .first()
        )
        return self._to_domain(row) if row else None

    def find_by_fiscal_period(
        self,
        period: FiscalPeriod,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntry]:
        query = self.session.query(models.JournalEntry).filter(
            models.JournalEntry.entry_date >= period.start_date,
            models.JournalEntry.entry_date <= period.end_date,
        )
        if status is not None:
            query = query.filter(models.JournalEntry.status == status.value)
        rows = query.order_by(models.JournalEntry.entry_date, models.JournalEntry.entry_number).all()
        return [self._to_domain(row) for row in rows]

    def generate_entry_number(self, period: FiscalPeriod) -> str:
        latest = (
            self.session.query(func.max(models.JournalEntry.entry_number))
            .filter(models.JournalEntry.entry_number.like(f"JE-{period.year:04d}-%"))
            .scalar()
        )
        sequence = parse_entry_number(latest)[1] + 1 if latest else 1
        return format_entry_number(period.year, sequence)

    def save(self, entry: JournalEntry) -> None:
        self.session.merge(_entry_to_row(entry))
        keep = [line.id for line in entry.lines]
        self.session.query(models.JournalEntryLine).filter(
            models.JournalEntryLine.journal_entry_id == entry.id,
            models.JournalEntryLine.id.not_in(keep),
        ).delete(synchronize_session=False)
        for line in entry.lines:
            self.session.merge(_line_to_row(entry.id, line))
        self.session.flush()

    def delete(self, entry_id: str) -> None:
        self.session.query(models.JournalEntryLine).filter(
            models.JournalEntryLine.journal_entry_id == entry_id
        ).delete(synchronize_session=False)
        self.session.query(models.JournalEntry).filter(models.JournalEntry.id == entry_id).delete()
        self.session.flush()


# -- fiscal periods ---------------------------------------------------------

def _period_to_domain(row: models.FiscalPeriod) -> FiscalPeriodEntity:
    return FiscalPeriodEntity.from_persistence(
        id=row.id,
        fiscal_year=row.fiscal_year,
        fiscal_month=row.fiscal_month,
        status=FiscalPeriodStatus(row.status),
        closed_at=row.closed_at,
        closed_by=row.closed_by,
        reopened_at=row.reopened_at,
        reopened_by=row.reopened_by,
        reopen_reason=row.reopen_reason,
        locked_at=row.locked_at,
        locked_by=row.locked_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _period_to_row(period: FiscalPeriodEntity) -> models.FiscalPeriod:
    return models.FiscalPeriod(
        id=period.id,
        fiscal_year=period.fiscal_year,
        fiscal_month=period.fiscal_month,
        status=period.status.value,
        closed_at=period.closed_at,
        closed_by=period.closed_by,
        reopened_at=period.reopened_at,
        reopened_by=period.reopened_by,
        reopen_reason=period.reopen_reason,
        locked_at=period.locked_at,
        locked_by=period.locked_by,
        created_at=period.created_at,
        updated_at=period.updated_at,
    )


class SQLFiscalPeriodRepository(IFiscalPeriodRepository):

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return self.session.query(models.FiscalPeriod)

    def find_by_id(self, period_id: str) -> FiscalPeriodEntity | None:
        row = self.session.get(models.FiscalPeriod, period_id)
        return _period_to_domain(row) if row else None

    def find_by_period(self, period: FiscalPeriod) -> FiscalPeriodEntity | None:
        row = self._query().filter(
            models.FiscalPeriod.fiscal_year == period.year,
            models.FiscalPeriod.fiscal_month == period.month,
        ).first()
        return _period_to_domain(row) if row else None

    def find_by_date(self, on: date) -> FiscalPeriodEntity | None:
        return self.find_by_period(FiscalPeriod.from_date(on))

    def find_all(
        self,
        fiscal_year: int | None = None,
        status: FiscalPeriodStatus | None = None,
    ) -> list[FiscalPeriodEntity]:
        query = self._query()
        if fiscal_year is not None:
            query = query.filter(models.FiscalPeriod.fiscal_year == fiscal_year)
        if status is not None:
            query = query.filter(models.FiscalPeriod.status == status.value)
        rows = query.order_by(models.FiscalPeriod.fiscal_year, models.FiscalPeriod.fiscal_month).all()
        return [_period_to_domain(row) for row in rows]

    def find_previous(self, period: FiscalPeriod) -> FiscalPeriodEntity | None:
        row = (
            self._query()
            .filter(_before(models.FiscalPeriod.fiscal_year, models.FiscalPeriod.fiscal_month, period))
            .order_by(models.FiscalPeriod.fiscal_year.desc(), models.FiscalPeriod.fiscal_month.desc())
            .first()
        )
        return _period_to_domain(row) if row else None

    def find_open(self) -> list[FiscalPeriodEntity]:
        return self.find_all(status=FiscalPeriodStatus.OPEN)

    def find_current_open(self) -> FiscalPeriodEntity | None:
        open_periods = self.find_open()
        return open_periods[0] if open_periods else None

    def period_exists(self, period: FiscalPeriod) -> bool:
        return self.find_by_period(period) is not None

    def save(self, period: FiscalPeriodEntity) -> None:
        self.session.merge(_period_to_row(period))
        self.session.flush()

    def delete(self, period_id: str) -> None:
        self._query().filter(models.FiscalPeriod.id == period_id).delete()
        self.session.flush()


# -- account balances -------------------------------------------------------

def _balance_to_domain(row: models.AccountBalance) -> AccountBalance:
    return AccountBalance.from_persistence(
        id=row.id,
        account_id=row.account_id,
        fiscal_year=row.fiscal_year,
        fiscal_month=row.fiscal_month,
        opening_balance=row.opening_balance,
        debit_total=row.debit_total,
        credit_total=row.credit_total,
        closing_balance=row.closing_balance,
        last_updated_at=row.last_updated_at,
    )


def _balance_to_row(balance: AccountBalance) -> models.AccountBalance:
    return models.AccountBalance(
        id=balance.id,
        account_id=balance.account_id,
        fiscal_year=balance.fiscal_year,
        fiscal_month=balance.fiscal_month,
        opening_balance=balance.opening_balance,
        debit_total=balance.debit_total,
        credit_total=balance.credit_total,
        closing_balance=balance.closing_balance,
        last_updated_at=balance.last_updated_at,
    )


class SQLAccountBalanceRepository(IAccountBalanceRepository):

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return self.session.query(models.AccountBalance)

    def find_by_id(self, balance_id: str) -> AccountBalance | None:
        row = self.session.get(models.AccountBalance, balance_id)
        return _balance_to_domain(row) if row else None

    def find_by_account_and_period(self, account_id: str, period: FiscalPeriod) -> AccountBalance | None:
        row = self._query().filter(
            models.AccountBalance.account_id == account_id,
            models.AccountBalance.fiscal_year == period.year,
            models.AccountBalance.fiscal_month == period.month,
        ).first()
        return _balance_to_domain(row) if row else None

    def find_by_period(self, period: FiscalPeriod) -> list[AccountBalance]:
        rows = self._query().filter(
            models.AccountBalance.fiscal_year == period.year,
            models.AccountBalance.fiscal_month == period.month,
        ).order_by(models.AccountBalance.account_id).all()
        return [_balance_to_domain(row) for row in rows]

    def find_by_account(self, account_id: str, fiscal_year: int | None = None) -> list[AccountBalance]:
        query = self._query().filter(models.AccountBalance.account_id == account_id)
        if fiscal_year is not None:
            query = query.filter(models.AccountBalance.fiscal_year == fiscal_year)
        rows = query.order_by(models.AccountBalance.fiscal_year, models.AccountBalance.fiscal_month).all()
        return [_balance_to_domain(row) for row in rows]

    def find_previous_period_balance(self, account_id: str, period: FiscalPeriod) -> AccountBalance | None:
        row = (
            self._query()
            .filter(
                models.AccountBalance.account_id == account_id,
                _before(models.AccountBalance.fiscal_year, models.AccountBalance.fiscal_month, period),
            )
            .order_by(models.AccountBalance.fiscal_year.desc(), models.AccountBalance.fiscal_month.desc())
            .first()
        )
        return _balance_to_domain(row) if row else None

    def save(self, balance: AccountBalance) -> None:
        self.session.merge(_balance_to_row(balance))
        self.session.flush()

    def save_many(self, balances: Sequence[AccountBalance]) -> None:
        for balance in balances:
            self.session.merge(_balance_to_row(balance))
        self.session.flush()

    def delete(self, balance_id: str) -> None:
        self._query().filter(models.AccountBalance.id == balance_id).delete()
        self.session.flush()

    def delete_by_period(self, period: FiscalPeriod) -> int:
        count = self._query().filter(
            models.AccountBalance.fiscal_year == period.year,
            models.AccountBalance.fiscal_month == period.month,
        ).delete()
        self.session.flush()
        return count


# -- bank transactions ------------------------------------------------------

def _transaction_to_domain(row: models.BankTransaction) -> BankTransaction:
    return BankTransaction.from_persistence(
        id=row.id,
        bank_account_id=row.bank_account_id,
        bank_statement_id=row.bank_statement_id,
        transaction_date=row.transaction_date,
        post_date=row.post_date,
        description=row.description,
        amount=row.amount,
        transaction_type=BankTransactionType(row.transaction_type),
        reference=row.reference,
        running_balance=row.running_balance,
        fingerprint=row.fingerprint,
        match_status=MatchStatus(row.match_status),
        matched_journal_line_id=row.matched_journal_line_id,
        matched_at=row.matched_at,
        matched_by=row.matched_by,
        created_at=row.created_at,
    )


def _transaction_to_row(transaction: BankTransaction) -> models.BankTransaction:
    return models.BankTransaction(
        id=transaction.id,
        bank_account_id=transaction.bank_account_id,
        bank_statement_id=transaction.bank_statement_id,
        transaction_date=transaction.transaction_date,
        post_date=transaction.post_date,
        description=transaction.description,
        amount=transaction.amount,
        transaction_type=transaction.transaction_type.value,
        reference=transaction.reference,
        running_balance=transaction.running_balance,
        fingerprint=transaction.fingerprint,
        match_status=transaction.match_status.value,
        matched_journal_line_id=transaction.matched_journal_line_id,
        matched_at=transaction.matched_at,
        matched_by=transaction.matched_by,
        created_at=transaction.created_at,
    )


class SQLBankTransactionRepository(IBankTransactionRepository):
    """Bank transactions; the fingerprint column is unique, so a duplicate insert fails."""

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return self.session.query(models.BankTransaction)

    def find_by_id(self, transaction_id: str) -> BankTransaction | None:
        row = self.session.get(models.BankTransaction, transaction_id)
        return _transaction_to_domain(row) if row else None

    def find_by_fingerprint(self, fingerprint: str) -> BankTransaction | None:
        row = self._query().filter(models.BankTransaction.fingerprint == fingerprint).first()
        return _transaction_to_domain(row) if row else None

    def find_by_statement_id(self, statement_id: str) -> list[BankTransaction]:
        rows = (
            self._query()
            .filter(models.BankTransaction.bank_statement_id == statement_id)
            .order_by(models.BankTransaction.transaction_date, models.BankTransaction.id)
            .all()
        )
        return [_transaction_to_domain(row) for row in rows]

    def find_by_bank_account_id(
        self,
        bank_account_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[BankTransaction]:
        query = self._query().filter(models.BankTransaction.bank_account_id == bank_account_id)
        if start is not None:
            query = query.filter(models.BankTransaction.transaction_date >= start)
        if end is not None:
            query = query.filter(models.BankTransaction.transaction_date <= end)
        rows = query.order_by(models.BankTransaction.transaction_date, models.BankTransaction.id).all()
        return [_transaction_to_domain(row) for row in rows]

    def find_unmatched(self, bank_account_id: str) -> list[BankTransaction]:
        rows = (
            self._query()
            .filter(
                models.BankTransaction.bank_account_id == bank_account_id,
                models.BankTransaction.match_status == MatchStatus.UNMATCHED.value,
            )
            .order_by(models.BankTransaction.transaction_date, models.BankTransaction.id)
            .all()
        )
        return [_transaction_to_domain(row) for row in rows]

    def find_all(self, match_status: MatchStatus | None = None) -> list[BankTransaction]:
        query = self._query()
        if match_status is not None:
            query = query.filter(models.BankTransaction.match_status == match_status.value)
        rows = query.order_by(models.BankTransaction.transaction_date, models.BankTransaction.id).all()
        return [_transaction_to_domain(row) for row in rows]

    def fingerprint_exists(self, fingerprint: str) -> bool:
        query = self.session.query(models.BankTransaction.id).filter(
            models.BankTransaction.fingerprint == fingerprint
        )
        return query.first() is not None

    def save(self, transaction: BankTransaction) -> None:
        self.session.merge(_transaction_to_row(transaction))
        self.session.flush()

    def save_many(self, transactions: Sequence[BankTransaction]) -> None:
        for transaction in transactions:
            self.session.merge(_transaction_to_row(transaction))
        self.session.flush()

    def delete(self, transaction_id: str) -> None:
        self._query().filter(models.BankTransaction.id == transaction_id).delete()
        self.session.flush()


# -- fixed assets -----------------------------------------------------------

def _optional_enum(enum_type, value):
    return enum_type(value) if value is not None else None


def _asset_to_domain(row: models.FixedAsset) -> FixedAsset:
    return FixedAsset.from_persistence(
        id=row.id,
        asset_number=row.asset_number,
        name=row.name,
        category_id=row.category_id,
        description=row.description,
        serial_number=row.serial_number,
        location=row.location,
        department=row.department,
        acquisition_date=row.acquisition_date,
        acquisition_method=AcquisitionMethod(row.acquisition_method),
        acquisition_cost=row.acquisition_cost,
        vendor_id=row.vendor_id,
        invoice_number=row.invoice_number,
        useful_life_months=row.useful_life_months,
        depreciation_method=DepreciationMethod(row.depreciation_method),
        depreciation_start_date=row.depreciation_start_date,
        salvage_value=row.salvage_value,
        total_units=row.total_units,
        units_consumed=row.units_consumed,
        accumulated_depreciation=row.accumulated_depreciation,
        book_value=row.book_value,
        last_depreciation_date=row.last_depreciation_date,
        status=AssetStatus(row.status),
        disposal_date=row.disposal_date,
        disposal_method=_optional_enum(DisposalMethod, row.disposal_method),
        disposal_value=row.disposal_value,
        disposal_reason=row.disposal_reason,
        disposed_by=row.disposed_by,
        gain_loss_on_disposal=row.gain_loss_on_disposal,
        last_verified_at=row.last_verified_at,
        last_verified_by=row.last_verified_by,
        version=row.version,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _asset_values(asset: FixedAsset) -> dict:
    return {
        "asset_number": asset.asset_number,
        "name": asset.name,
        "category_id": asset.category_id,
        "description": asset.description,
        "serial_number": asset.serial_number,
        "location": asset.location,
        "department": asset.department,
        "acquisition_date": asset.acquisition_date,
        "acquisition_method": asset.acquisition_method.value,
        "acquisition_cost": asset.acquisition_cost,
        "vendor_id": asset.vendor_id,
        "invoice_number": asset.invoice_number,
        "useful_life_months": asset.useful_life_months,
        "depreciation_method": asset.depreciation_method.value,
        "depreciation_start_date": asset.depreciation_start_date,
        "salvage_value": asset.salvage_value,
        "total_units": asset.total_units,
        "units_consumed": asset.units_consumed,
        "accumulated_depreciation": asset.accumulated_depreciation,
        "book_value": asset.book_value,
        "last_depreciation_date": asset.last_depreciation_date,
        "status": asset.status.value,
        "disposal_date": asset.disposal_date,
        "disposal_method": asset.disposal_method.value if asset.disposal_method else None,
        "disposal_value": asset.disposal_value,
        "disposal_reason": asset.disposal_reason,
        "disposed_by": asset.disposed_by,
        "gain_loss_on_disposal": asset.gain_loss_on_disposal,
        "last_verified_at": asset.last_verified_at,
        "last_verified_by": asset.last_verified_by,
        "version": asset.version,
        "created_by": asset.created_by,
        "created_at": asset.created_at,
        "updated_at": asset.updated_at,
    }


class SQLFixedAssetRepository(IFixedAssetRepository):
    """Fixed assets with compare-and-swap on ``version``."""

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return self.session.query(models.FixedAsset)

    def find_by_id(self, asset_id: str) -> FixedAsset | None:
        row = self.session.get(models.FixedAsset, asset_id)
        return _asset_to_domain(row) if row else None

    def find_by_asset_number(self, asset_number: str) -> FixedAsset | None:
        row = self._query().filter(models.FixedAsset.asset_number == asset_number).first()
        return _asset_to_domain(row) if row else None

    def find_all(
        self,
        status: AssetStatus | None = None,
        category_id: str | None = None,
    ) -> list[FixedAsset]:
        query = self._query()
        if status is not None:
            query = query.filter(models.FixedAsset.status == status.value)
        if category_id is not None:
            query = query.filter(models.FixedAsset.category_id == category_id)
        return [_asset_to_domain(row) for row in query.order_by(models.FixedAsset.asset_number).all()]

    def find_depreciable(self, as_of: date) -> list[FixedAsset]:
        rows = (
            self._query()
            .filter(
                models.FixedAsset.status == AssetStatus.ACTIVE.value,
                models.FixedAsset.depreciation_start_date <= as_of,
                models.FixedAsset.book_value > models.FixedAsset.salvage_value,
            )
            .order_by(models.FixedAsset.asset_number)
            .all()
        )
        return [_asset_to_domain(row) for row in rows]

    def save(self, asset: FixedAsset, expected_version: int | None = None) -> None:
        values = _asset_values(asset)
        if expected_version is None:
            self.session.add(models.FixedAsset(id=asset.id, **values))
            self.session.flush()
            return

        updated = (
            self._query()
            .filter(models.FixedAsset.id == asset.id, models.FixedAsset.version == expected_version)
            .update(values, synchronize_session="fetch")
        )
        if updated == 0:
            logger.warning(
                "Version conflict on asset %s, expected version %s", asset.asset_number, expected_version,
                extra={"asset_id": asset.id, "error_code": "VERSION_CONFLICT"},
            )
            raise ConcurrencyConflictError("FixedAsset", asset.id, expected_version)
        self.session.flush()

    def delete(self, asset_id: str) -> None:
        self._query().filter(models.FixedAsset.id == asset_id).delete()
        self.session.flush()

    def generate_asset_number(self, category_code: str) -> str:
        prefix = f"FA-{category_code}-"
        latest = (
            self.session.query(func.max(models.FixedAsset.asset_number))
            .filter(models.FixedAsset.asset_number.like(f"{prefix}%"))
            .scalar()
        )
        sequence = int(latest[len(prefix):]) + 1 if latest else 1
        return f"{prefix}{sequence:05d}"
