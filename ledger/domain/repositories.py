"""
Repository ports - persistence interfaces consumed by the ledger core.
Adapters implement these; the domain never reaches across them itself.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Generic, TypeVar

from .entities import (
    Account,
    AccountBalance,
    AssetCategory,
    AuditLog,
    BankAccount,
    BankReconciliation,
    BankStatement,
    BankTransaction,
    Budget,
    DepreciationRun,
    DepreciationSchedule,
    ExchangeRate,
    FiscalPeriodEntity,
    FixedAsset,
    JournalEntry,
    ReconcilingItem,
)
from .value_objects import (
    AccountStatus,
    AccountType,
    AssetStatus,
    AuditAction,
    FiscalPeriod,
    FiscalPeriodStatus,
    JournalEntryStatus,
    JournalEntryType,
    MatchStatus,
    ReconciliationStatus,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int = 1
    page_size: int = 50

    def __post_init__(self) -> None:
        if self.page < 1 or self.page_size < 1:
            raise ValueError("page and page_size must be positive")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class PaginatedResult(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True, slots=True)
class AccountFilter:
    account_type: AccountType | None = None
    status: AccountStatus | None = None
    is_detail_account: bool | None = None
    parent_account_id: str | None = None
    search: str | None = None


@dataclass(frozen=True, slots=True)
class JournalEntryFilter:
    status: JournalEntryStatus | None = None
    entry_type: JournalEntryType | None = None
    date_from: date | None = None
    date_to: date | None = None
    account_id: str | None = None
    search: str | None = None


@dataclass
class AccountTreeNode:
    account: Account
    children: list["AccountTreeNode"] = field(default_factory=list)


class IAccountRepository(ABC):

    @abstractmethod
    def find_by_id(self, account_id: str) -> Account | None:
        ...

    @abstractmethod
    def find_by_code(self, code: str) -> Account | None:
        ...

    @abstractmethod
    def find_all(self, filter: AccountFilter | None = None) -> list[Account]:
        ...

    @abstractmethod
    def find_by_parent_id(self, parent_account_id: str) -> list[Account]:
        ...

    @abstractmethod
    def get_account_tree(self) -> list[AccountTreeNode]:
        ...

    @abstractmethod
    def save(self, account: Account) -> None:
        ...

    @abstractmethod
    def delete(self, account_id: str) -> None:
        ...

    @abstractmethod
    def has_transactions(self, account_id: str) -> bool:
        ...

    @abstractmethod
    def code_exists(self, code: str, exclude_id: str | None = None) -> bool:
        ...


class IJournalEntryRepository(ABC):

    @abstractmethod
    def find_by_id(self, entry_id: str) -> JournalEntry | None:
        ...

    @abstractmethod
    def find_by_entry_number(self, entry_number: str) -> JournalEntry | None:
        ...

    @abstractmethod
    def find_all(
        self,
        filter: JournalEntryFilter | None = None,
        pagination: Pagination | None = None,
    ) -> PaginatedResult[JournalEntry]:
        ...

    @abstractmethod
    def find_by_account_id(self, account_id: str) -> list[JournalEntry]:
        ...

    @abstractmethod
    def find_by_source_reference(self, source_service: str, source_reference_id: str) -> JournalEntry | None:
        ...

    @abstractmethod
    def find_by_fiscal_period(
        self,
        period: FiscalPeriod,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntry]:
        ...

    @abstractmethod
    def generate_entry_number(self, period: FiscalPeriod) -> str:
        """Next free ``JE-YYYY-NNNNNN`` number for the period's year."""
        ...

    @abstractmethod
    def save(self, entry: JournalEntry) -> None:
        ...

    @abstractmethod
    def delete(self, entry_id: str) -> None:
        ...


class IFiscalPeriodRepository(ABC):

    @abstractmethod
    def find_by_id(self, period_id: str) -> FiscalPeriodEntity | None:
        ...

    @abstractmethod
    def find_by_period(self, period: FiscalPeriod) -> FiscalPeriodEntity | None:
        ...

    @abstractmethod
    def find_by_date(self, on: date) -> FiscalPeriodEntity | None:
        ...

    @abstractmethod
    def find_all(
        self,
        fiscal_year: int | None = None,
        status: FiscalPeriodStatus | None = None,
    ) -> list[FiscalPeriodEntity]:
        ...

    @abstractmethod
    def find_previous(self, period: FiscalPeriod) -> FiscalPeriodEntity | None:
        ...

    @abstractmethod
    def find_open(self) -> list[FiscalPeriodEntity]:
        ...

    @abstractmethod
    def find_current_open(self) -> FiscalPeriodEntity | None:
        """Earliest open period."""
        ...

    @abstractmethod
    def period_exists(self, period: FiscalPeriod) -> bool:
        ...

    @abstractmethod
    def save(self, period: FiscalPeriodEntity) -> None:
        ...

    @abstractmethod
    def delete(self, period_id: str) -> None:
        ...


class IAccountBalanceRepository(ABC):

    @abstractmethod
    def find_by_id(self, balance_id: str) -> AccountBalance | None:
        ...

    @abstractmethod
    def find_by_account_and_period(self, account_id: str, period: FiscalPeriod) -> AccountBalance | None:
        ...

    @abstractmethod
    def find_by_period(self, period: FiscalPeriod) -> list[AccountBalance]:
        ...

    @abstractmethod
    def find_by_account(self, account_id: str, fiscal_year: int | None = None) -> list[AccountBalance]:
        ...

    @abstractmethod
    def find_previous_period_balance(self, account_id: str, period: FiscalPeriod) -> AccountBalance | None:
        ...

    @abstractmethod
    def save(self, balance: AccountBalance) -> None:
        ...

    @abstractmethod
    def save_many(self, balances: Sequence[AccountBalance]) -> None:
        ...

    @abstractmethod
    def delete(self, balance_id: str) -> None:
        ...

    @abstractmethod
    def delete_by_period(self, period: FiscalPeriod) -> int:
        ...


class IBankAccountRepository(ABC):

    @abstractmethod
    def find_by_id(self, bank_account_id: str) -> BankAccount | None:
        ...

    @abstractmethod
    def find_by_account_id(self, account_id: str) -> BankAccount | None:
        ...

    @abstractmethod
    def find_by_account_number(self, account_number: str) -> BankAccount | None:
        ...

    @abstractmethod
    def find_all(self) -> list[BankAccount]:
        ...

    @abstractmethod
    def find_active(self) -> list[BankAccount]:
        ...

    @abstractmethod
    def find_needing_reconciliation(self, period: FiscalPeriod) -> list[BankAccount]:
        ...

    @abstractmethod
    def account_number_exists(self, account_number: str, exclude_id: str | None = None) -> bool:
        ...

    @abstractmethod
    def save(self, bank_account: BankAccount) -> None:
        ...

    @abstractmethod
    def delete(self, bank_account_id: str) -> None:
        ...


class IBankStatementRepository(ABC):

    @abstractmethod
    def find_by_id(self, statement_id: str) -> BankStatement | None:
        ...

    @abstractmethod
    def find_by_bank_account_id(self, bank_account_id: str) -> list[BankStatement]:
        ...

    @abstractmethod
    def find_by_period(self, bank_account_id: str, start: date, end: date) -> list[BankStatement]:
        ...

    @abstractmethod
    def find_all(self) -> list[BankStatement]:
        ...

    @abstractmethod
    def save(self, statement: BankStatement) -> None:
        ...

    @abstractmethod
    def delete(self, statement_id: str) -> None:
        ...


class IBankTransactionRepository(ABC):

    @abstractmethod
    def find_by_id(self, transaction_id: str) -> BankTransaction | None:
        ...

    @abstractmethod
    def find_by_fingerprint(self, fingerprint: str) -> BankTransaction | None:
        ...

    @abstractmethod
    def find_by_statement_id(self, statement_id: str) -> list[BankTransaction]:
        ...

    @abstractmethod
    def find_by_bank_account_id(
        self,
        bank_account_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[BankTransaction]:
        ...

    @abstractmethod
    def find_unmatched(self, bank_account_id: str) -> list[BankTransaction]:
        ...

    @abstractmethod
    def find_all(self, match_status: MatchStatus | None = None) -> list[BankTransaction]:
        ...

    @abstractmethod
    def fingerprint_exists(self, fingerprint: str) -> bool:
        ...

    @abstractmethod
    def save(self, transaction: BankTransaction) -> None:
        ...

    @abstractmethod
    def save_many(self, transactions: Sequence[BankTransaction]) -> None:
        ...

    @abstractmethod
    def delete(self, transaction_id: str) -> None:
        ...


class IBankReconciliationRepository(ABC):

    @abstractmethod
    def find_by_id(self, reconciliation_id: str) -> BankReconciliation | None:
        ...

    @abstractmethod
    def find_by_account_and_period(
        self,
        bank_account_id: str,
        period: FiscalPeriod,
    ) -> BankReconciliation | None:
        ...

    @abstractmethod
    def find_by_bank_account_id(self, bank_account_id: str) -> list[BankReconciliation]:
        ...

    @abstractmethod
    def find_by_period(self, period: FiscalPeriod) -> list[BankReconciliation]:
        ...

    @abstractmethod
    def find_all(self, status: ReconciliationStatus | None = None) -> list[BankReconciliation]:
        ...

    @abstractmethod
    def find_incomplete(self) -> list[BankReconciliation]:
        ...

    @abstractmethod
    def save(self, reconciliation: BankReconciliation) -> None:
        ...

    @abstractmethod
    def save_item(self, item: ReconcilingItem) -> None:
        ...

    @abstractmethod
    def delete(self, reconciliation_id: str) -> None:
        ...


class IFixedAssetRepository(ABC):

    @abstractmethod
    def find_by_id(self, asset_id: str) -> FixedAsset | None:
        ...

    @abstractmethod
    def find_by_asset_number(self, asset_number: str) -> FixedAsset | None:
        ...

    @abstractmethod
    def find_all(
        self,
        status: AssetStatus | None = None,
        category_id: str | None = None,
    ) -> list[FixedAsset]:
        ...

    @abstractmethod
    def find_depreciable(self, as_of: date) -> list[FixedAsset]:
        ...

    @abstractmethod
    def save(self, asset: FixedAsset, expected_version: int | None = None) -> None:
        """
        Insert when ``expected_version`` is None, otherwise compare-and-swap:
        the stored version must equal ``expected_version`` or
        ConcurrencyConflictError is raised.
        """
        ...

    @abstractmethod
    def delete(self, asset_id: str) -> None:
        ...

    @abstractmethod
    def generate_asset_number(self, category_code: str) -> str:
        ...


class IAssetCategoryRepository(ABC):

    @abstractmethod
    def find_by_id(self, category_id: str) -> AssetCategory | None:
        ...

    @abstractmethod
    def find_by_code(self, code: str) -> AssetCategory | None:
        ...

    @abstractmethod
    def find_all(self, active_only: bool = False) -> list[AssetCategory]:
        ...

    @abstractmethod
    def save(self, category: AssetCategory) -> None:
        ...

    @abstractmethod
    def delete(self, category_id: str) -> None:
        ...


class IDepreciationScheduleRepository(ABC):

    @abstractmethod
    def find_by_id(self, schedule_id: str) -> DepreciationSchedule | None:
        ...

    @abstractmethod
    def find_by_asset_id(self, asset_id: str) -> list[DepreciationSchedule]:
        ...

    @abstractmethod
    def find_by_asset_and_period(self, asset_id: str, period: FiscalPeriod) -> DepreciationSchedule | None:
        ...

    @abstractmethod
    def find_by_period(self, period: FiscalPeriod) -> list[DepreciationSchedule]:
        ...

    @abstractmethod
    def find_by_run_id(self, run_id: str) -> list[DepreciationSchedule]:
        ...

    @abstractmethod
    def save(self, schedule: DepreciationSchedule) -> None:
        ...

    @abstractmethod
    def save_many(self, schedules: Sequence[DepreciationSchedule]) -> None:
        ...


class IDepreciationRunRepository(ABC):

    @abstractmethod
    def find_by_id(self, run_id: str) -> DepreciationRun | None:
        ...

    @abstractmethod
    def find_by_period(self, period: FiscalPeriod) -> DepreciationRun | None:
        ...

    @abstractmethod
    def find_all(self) -> list[DepreciationRun]:
        ...

    @abstractmethod
    def save(self, run: DepreciationRun) -> None:
        ...


class IBudgetRepository(ABC):

    @abstractmethod
    def find_by_id(self, budget_id: str) -> Budget | None:
        ...

    @abstractmethod
    def find_by_year(self, fiscal_year: int) -> list[Budget]:
        ...

    @abstractmethod
    def save(self, budget: Budget) -> None:
        ...


class IExchangeRateRepository(ABC):

    @abstractmethod
    def find_rate(self, from_currency: str, to_currency: str, on: date) -> ExchangeRate | None:
        """Rate effective exactly on the date."""
        ...

    @abstractmethod
    def find_latest_rate(self, from_currency: str, to_currency: str, on_or_before: date) -> ExchangeRate | None:
        ...

    @abstractmethod
    def save(self, rate: ExchangeRate) -> None:
        ...


class IAuditLogRepository(ABC):

    @abstractmethod
    def save(self, log: AuditLog) -> None:
        ...

    @abstractmethod
    def find_by_entity(self, entity_type: str, entity_id: str) -> list[AuditLog]:
        ...

    @abstractmethod
    def find_by_user(self, user_id: str, limit: int = 100) -> list[AuditLog]:
        ...

    @abstractmethod
    def find_by_action(self, action: AuditAction, limit: int = 100) -> list[AuditLog]:
        ...

    @abstractmethod
    def find_recent(self, limit: int = 100) -> list[AuditLog]:
        ...
