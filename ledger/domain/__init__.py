"""Domain layer - pure Python ledger rules; no I/O, no logging."""

from ledger.domain.entities import (
    Account,
    AccountBalance,
    BankAccount,
    BankReconciliation,
    BankStatement,
    BankTransaction,
    FiscalPeriodEntity,
    FixedAsset,
    JournalEntry,
    JournalLine,
    JournalLineInput,
)
from ledger.domain.exceptions import (
    BusinessRuleError,
    ConcurrencyConflictError,
    ErrorCategory,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from ledger.domain.services import (
    AccountHierarchyService,
    BalanceCalculationService,
    ExchangeRateService,
    PeriodCloseService,
    ReconciliationService,
)
from ledger.domain.value_objects import (
    AccountCode,
    AccountType,
    Direction,
    FiscalPeriod,
    Money,
    NormalBalance,
)
