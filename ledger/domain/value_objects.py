"""
Value Objects - immutable building blocks of the ledger domain.
Account codes, money, fiscal periods and the closed enums used by every aggregate.
"""

import calendar
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from .exceptions import ValidationError

AmountLike = Decimal | int | str | float

AMOUNT_TOLERANCE = Decimal("0.01")
CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: AmountLike, field: str = "amount") -> Decimal:
    """Convert a numeric input to Decimal; floats go through ``str``."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric", field=field)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field) from exc


def round_money(value: Decimal, places: int = 2) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountType(str, Enum):
    """Account classification derived from the code range."""
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    COGS = "COGS"
    EXPENSE = "Expense"


class Direction(str, Enum):
    """Side of a journal line."""
    DEBIT = "Debit"
    CREDIT = "Credit"

    def opposite(self) -> "Direction":
        return Direction.CREDIT if self is Direction.DEBIT else Direction.DEBIT


# An account's normal balance is the side that increases it.
NormalBalance = Direction


class AccountCategory(str, Enum):
    CURRENT_ASSET = "CURRENT_ASSET"
    FIXED_ASSET = "FIXED_ASSET"
    OTHER_NON_CURRENT_ASSET = "OTHER_NON_CURRENT_ASSET"
    CURRENT_LIABILITY = "CURRENT_LIABILITY"
    LONG_TERM_LIABILITY = "LONG_TERM_LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    COGS = "COGS"
    OPERATING_EXPENSE = "OPERATING_EXPENSE"
    OTHER_INCOME_EXPENSE = "OTHER_INCOME_EXPENSE"
    TAX = "TAX"


class FinancialStatementType(str, Enum):
    BALANCE_SHEET = "BALANCE_SHEET"
    INCOME_STATEMENT = "INCOME_STATEMENT"


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    ARCHIVED = "Archived"


class JournalEntryStatus(str, Enum):
    DRAFT = "Draft"
    POSTED = "Posted"
    VOIDED = "Voided"


class JournalEntryType(str, Enum):
    MANUAL = "Manual"
    SYSTEM = "System"
    RECURRING = "Recurring"
    ADJUSTING = "Adjusting"
    CLOSING = "Closing"


class FiscalPeriodStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    LOCKED = "Locked"


class BankAccountType(str, Enum):
    OPERATING = "OPERATING"
    PAYROLL = "PAYROLL"
    SAVINGS = "SAVINGS"
    FOREIGN_CURRENCY = "FOREIGN_CURRENCY"


class BankAccountStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    CLOSED = "Closed"


class BankTransactionType(str, Enum):
    DEBIT = "DEBIT"    # money out of the bank account
    CREDIT = "CREDIT"  # money into the bank account


class MatchStatus(str, Enum):
    UNMATCHED = "UNMATCHED"
    MATCHED = "MATCHED"
    EXCLUDED = "EXCLUDED"


class ReconciliationStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"


class ReconcilingItemType(str, Enum):
    OUTSTANDING_CHECK = "OUTSTANDING_CHECK"
    DEPOSIT_IN_TRANSIT = "DEPOSIT_IN_TRANSIT"
    BANK_FEE = "BANK_FEE"
    BANK_INTEREST = "BANK_INTEREST"
    NSF_CHECK = "NSF_CHECK"
    ADJUSTMENT = "ADJUSTMENT"


class ReconcilingItemStatus(str, Enum):
    PENDING = "PENDING"
    CLEARED = "CLEARED"
    VOIDED = "VOIDED"


class AssetStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    FULLY_DEPRECIATED = "FULLY_DEPRECIATED"
    DISPOSED = "DISPOSED"
    WRITTEN_OFF = "WRITTEN_OFF"
    SUSPENDED = "SUSPENDED"


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    SUM_OF_YEARS_DIGITS = "SUM_OF_YEARS_DIGITS"
    UNITS_OF_PRODUCTION = "UNITS_OF_PRODUCTION"


class AcquisitionMethod(str, Enum):
    PURCHASE = "PURCHASE"
    LEASE = "LEASE"
    DONATION = "DONATION"
    TRANSFER = "TRANSFER"
    CONSTRUCTION = "CONSTRUCTION"


class DisposalMethod(str, Enum):
    SALE = "SALE"
    SCRAP = "SCRAP"
    DONATION = "DONATION"
    TRADE_IN = "TRADE_IN"
    THEFT = "THEFT"
    DESTRUCTION = "DESTRUCTION"


class DepreciationScheduleStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CALCULATED = "CALCULATED"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class DepreciationRunStatus(str, Enum):
    CALCULATED = "CALCULATED"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class BudgetStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    LOCKED = "locked"


class ExchangeRateSource(str, Enum):
    MANUAL = "manual"
    API = "api"
    BANK = "bank"


class TaxType(str, Enum):
    PPN = "PPN"          # VAT
    PPH21 = "PPH21"      # employee income tax, progressive
    PPH23 = "PPH23"      # withholding on services
    PPH4_2 = "PPH4_2"    # final tax


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VOID = "VOID"
    APPROVE = "APPROVE"
    POST = "POST"
    CLOSE = "CLOSE"
    REOPEN = "REOPEN"
    LOCK = "LOCK"


_ACCOUNT_CODE_RE = re.compile(r"\d{4}", re.ASCII)

# (low, high, category), inclusive bounds
_CATEGORY_RANGES: tuple[tuple[int, int, AccountCategory], ...] = (
    (1000, 1399, AccountCategory.CURRENT_ASSET),
    (1400, 1499, AccountCategory.FIXED_ASSET),
    (1500, 1999, AccountCategory.OTHER_NON_CURRENT_ASSET),
    (2000, 2399, AccountCategory.CURRENT_LIABILITY),
    (2400, 2999, AccountCategory.LONG_TERM_LIABILITY),
    (3000, 3999, AccountCategory.EQUITY),
    (4000, 4299, AccountCategory.REVENUE),
    (5000, 5399, AccountCategory.COGS),
    (6000, 6999, AccountCategory.OPERATING_EXPENSE),
    (7000, 7199, AccountCategory.OTHER_INCOME_EXPENSE),
    (8000, 8999, AccountCategory.TAX),
)

_FALLBACK_CATEGORY: dict[AccountType, AccountCategory] = {
    AccountType.ASSET: AccountCategory.CURRENT_ASSET,
    AccountType.LIABILITY: AccountCategory.CURRENT_LIABILITY,
    AccountType.EQUITY: AccountCategory.EQUITY,
    AccountType.REVENUE: AccountCategory.REVENUE,
    AccountType.COGS: AccountCategory.COGS,
    AccountType.EXPENSE: AccountCategory.OPERATING_EXPENSE,
}

_DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.COGS, AccountType.EXPENSE})


@dataclass(frozen=True, slots=True)
class AccountCode:
    """
    Value Object - four digit chart-of-accounts code.
    Classification is derived purely from the numeric value.
    """
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not _ACCOUNT_CODE_RE.fullmatch(self.value):
            raise ValidationError(
                f"Account code must be exactly 4 digits, got {self.value!r}",
                field="code",
            )

    def __str__(self) -> str:
        return self.value

    @property
    def numeric(self) -> int:
        return int(self.value)

    @property
    def account_type(self) -> AccountType:
        n = self.numeric
        if n < 2000:
            return AccountType.ASSET
        if n < 3000:
            return AccountType.LIABILITY
        if n < 4000:
            return AccountType.EQUITY
        if n < 5000:
            return AccountType.REVENUE
        if n < 6000:
            return AccountType.COGS
        return AccountType.EXPENSE

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)

    @property
    def account_category(self) -> AccountCategory:
        n = self.numeric
        for low, high, category in _CATEGORY_RANGES:
            if low <= n <= high:
                return category
        return _FALLBACK_CATEGORY[self.account_type]

    @property
    def financial_statement_type(self) -> FinancialStatementType:
        if self.numeric < 4000:
            return FinancialStatementType.BALANCE_SHEET
        return FinancialStatementType.INCOME_STATEMENT


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    if account_type in _DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


@dataclass(frozen=True, slots=True)
class Money:
    """Value Object - amount in a currency."""
    amount: Decimal
    currency: str = "IDR"

    def __post_init__(self) -> None:
        # negative amounts are allowed for balances and differences
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = "IDR") -> "Money":
        return cls(ZERO, currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> "Money":
        return Money(amount=-self.amount, currency=self.currency)

    def multiply(self, factor: AmountLike) -> "Money":
        return Money(amount=self.amount * to_decimal(factor, "factor"), currency=self.currency)

    def round(self, places: int = 2) -> "Money":
        return Money(amount=round_money(self.amount, places), currency=self.currency)

    def is_zero(self) -> bool:
        return self.amount == ZERO

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValidationError(
                f"Cannot combine {self.currency} with {other.currency}",
                field="currency",
            )


_PERIOD_RE = re.compile(r"(\d{4})-(\d{2})", re.ASCII)


@dataclass(frozen=True, slots=True, order=True)
class FiscalPeriod:
    """
    Value Object - accounting month identified by (year, month).
    Serialized as ``YYYY-MM``.
    """
    year: int
    month: int

    def __post_init__(self) -> None:
        if not isinstance(self.year, int) or self.year < 1900:
            raise ValidationError(f"Invalid fiscal year: {self.year}", field="year")
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise ValidationError(f"Invalid fiscal month: {self.month}", field="month")

    @classmethod
    def from_date(cls, value: date) -> "FiscalPeriod":
        return cls(value.year, value.month)

    @classmethod
    def current(cls) -> "FiscalPeriod":
        return cls.from_date(utc_now().date())

    @classmethod
    def from_string(cls, value: str) -> "FiscalPeriod":
        match = _PERIOD_RE.fullmatch(value or "")
        if not match:
            raise ValidationError(f"Invalid period format, expected YYYY-MM: {value!r}", field="period")
        return cls(int(match.group(1)), int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def display_name(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def next(self) -> "FiscalPeriod":
        if self.month == 12:
            return FiscalPeriod(self.year + 1, 1)
        return FiscalPeriod(self.year, self.month + 1)

    def previous(self) -> "FiscalPeriod | None":
        """Previous month, or None before January 1900."""
        if self.month == 1:
            if self.year == 1900:
                return None
            return FiscalPeriod(self.year - 1, 12)
        return FiscalPeriod(self.year, self.month - 1)

    def is_before(self, other: "FiscalPeriod") -> bool:
        return self < other

    def is_after(self, other: "FiscalPeriod") -> bool:
        return self > other

    @property
    def start_date(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end_date(self) -> date:
        return date(self.year, self.month, self.days_in_period)

    @property
    def days_in_period(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def contains_date(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month
