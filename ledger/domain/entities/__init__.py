"""Domain entities and aggregates."""

from ledger.domain.entities.accounts import Account
from ledger.domain.entities.assets import (
    AssetCategory,
    DepreciationRun,
    DepreciationSchedule,
    DisposalResult,
    FixedAsset,
)
from ledger.domain.entities.audit import AuditLog
from ledger.domain.entities.balances import AccountBalance, compute_closing_balance
from ledger.domain.entities.banking import (
    BankAccount,
    BankReconciliation,
    BankStatement,
    BankTransaction,
    ReconcilingItem,
    apply_reconciling_item,
    generate_fingerprint,
)
from ledger.domain.entities.budget import Budget, BudgetLine, BudgetRevision
from ledger.domain.entities.currency import Currency, ExchangeRate
from ledger.domain.entities.journal import (
    JournalEntry,
    JournalLine,
    JournalLineInput,
    format_entry_number,
    parse_entry_number,
)
from ledger.domain.entities.periods import FiscalPeriodEntity
from ledger.domain.entities.tax import TAX_RATES, TaxSummary
