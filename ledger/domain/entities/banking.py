"""
Banking entities - bank accounts, imported statements and transactions, and
period reconciliations proving adjusted bank and book balances agree.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from ..exceptions import BusinessRuleError, NotFoundError, ValidationError
from ..value_objects import (
    AMOUNT_TOLERANCE,
    ZERO,
    AmountLike,
    BankAccountStatus,
    BankAccountType,
    BankTransactionType,
    FiscalPeriod,
    MatchStatus,
    ReconciliationStatus,
    ReconcilingItemStatus,
    ReconcilingItemType,
    new_id,
    to_decimal,
    utc_now,
)

FINGERPRINT_LENGTH = 32


def _canonical_amount(amount: Decimal) -> str:
    # 100, 100.0 and 100.00 hash alike
    normalized = amount.normalize()
    if normalized == ZERO:
        return "0"
    return format(normalized, "f")


def generate_fingerprint(
    bank_account_id: str,
    transaction_date: date,
    amount: AmountLike,
    reference: str | None = None,
) -> str:
    """
    Deterministic dedup key for a bank transaction: the first 32 hex characters
    of SHA-256 over ``bankAccountId|YYYY-MM-DD|amount|reference``.
    """
    data = "|".join((
        bank_account_id,
        transaction_date.isoformat(),
        _canonical_amount(to_decimal(amount)),
        reference or "",
    ))
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _required(value: str | None, name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{name} is required", field=name)
    return value.strip()


@dataclass
class BankAccount:
    """Entity - bank account linked to one GL cash account."""
    account_id: str
    bank_name: str
    account_number: str
    id: str = field(default_factory=lambda: new_id("ba"))
    account_name: str | None = None
    account_type: BankAccountType = BankAccountType.OPERATING
    currency: str = "IDR"
    status: BankAccountStatus = BankAccountStatus.ACTIVE
    last_reconciled_date: date | None = None
    last_reconciled_balance: Decimal | None = None
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        account_id: str,
        bank_name: str,
        account_number: str,
        *,
        account_name: str | None = None,
        account_type: BankAccountType = BankAccountType.OPERATING,
        currency: str = "IDR",
        created_by: str | None = None,
    ) -> "BankAccount":
        currency = (currency or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("Currency must be a 3-letter ISO code", field="currency")
        return cls(
            account_id=_required(account_id, "account_id"),
            bank_name=_required(bank_name, "bank_name"),
            account_number=_required(account_number, "account_number"),
            account_name=account_name,
            account_type=account_type,
            currency=currency,
            created_by=created_by,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "BankAccount":
        return cls(**fields)

    @property
    def is_active(self) -> bool:
        return self.status == BankAccountStatus.ACTIVE

    def update(
        self,
        *,
        bank_name: str | None = None,
        account_name: str | None = None,
        account_type: BankAccountType | None = None,
    ) -> None:
        self._ensure_not_closed("update")
        new_bank_name = _required(bank_name, "bank_name") if bank_name is not None else self.bank_name

        self.bank_name = new_bank_name
        if account_name is not None:
            self.account_name = account_name
        if account_type is not None:
            self.account_type = account_type
        self.updated_at = utc_now()

    def record_reconciliation(self, reconciled_date: date, balance: AmountLike) -> None:
        self._ensure_not_closed("reconcile")
        self.last_reconciled_balance = to_decimal(balance, "balance")
        self.last_reconciled_date = reconciled_date
        self.updated_at = utc_now()

    def deactivate(self) -> None:
        self._ensure_not_closed("deactivate")
        self.status = BankAccountStatus.INACTIVE
        self.updated_at = utc_now()

    def reactivate(self) -> None:
        self._ensure_not_closed("reactivate")
        self.status = BankAccountStatus.ACTIVE
        self.updated_at = utc_now()

    def close(self) -> None:
        self._ensure_not_closed("close")
        self.status = BankAccountStatus.CLOSED
        self.updated_at = utc_now()

    def needs_reconciliation(self, year: int, month: int) -> bool:
        """True unless the account was reconciled through the end of the month."""
        if self.status == BankAccountStatus.CLOSED:
            return False
        if self.last_reconciled_date is None:
            return True
        return self.last_reconciled_date < FiscalPeriod(year, month).end_date

    def _ensure_not_closed(self, action: str) -> None:
        if self.status == BankAccountStatus.CLOSED:
            raise BusinessRuleError(f"Cannot {action} closed bank account {self.account_number}")


@dataclass
class BankStatement:
    """Entity - imported statement header."""
    bank_account_id: str
    statement_date: date
    period_start: date
    period_end: date
    opening_balance: Decimal
    closing_balance: Decimal
    id: str = field(default_factory=lambda: new_id("bs"))
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    transaction_count: int = 0
    import_source: str | None = None
    imported_by: str | None = None
    imported_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        bank_account_id: str,
        statement_date: date,
        period_start: date,
        period_end: date,
        opening_balance: AmountLike,
        closing_balance: AmountLike,
        *,
        import_source: str | None = None,
        imported_by: str | None = None,
    ) -> "BankStatement":
        if period_end < period_start:
            raise ValidationError("Statement period end is before its start", field="period_end")
        return cls(
            bank_account_id=_required(bank_account_id, "bank_account_id"),
            statement_date=statement_date,
            period_start=period_start,
            period_end=period_end,
            opening_balance=to_decimal(opening_balance, "opening_balance"),
            closing_balance=to_decimal(closing_balance, "closing_balance"),
            import_source=import_source,
            imported_by=imported_by,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "BankStatement":
        return cls(**fields)

    @property
    def expected_closing_balance(self) -> Decimal:
        return self.opening_balance + self.total_credits - self.total_debits

    def update_counts(
        self,
        total_debits: AmountLike,
        total_credits: AmountLike,
        transaction_count: int,
    ) -> None:
        debits = to_decimal(total_debits, "total_debits")
        credits = to_decimal(total_credits, "total_credits")
        if debits < ZERO or credits < ZERO or transaction_count < 0:
            raise ValidationError("Statement totals cannot be negative")
        self.total_debits = debits
        self.total_credits = credits
        self.transaction_count = transaction_count

    def validate_totals(self) -> bool:
        """opening + credits - debits must equal the closing balance."""
        return abs(self.expected_closing_balance - self.closing_balance) < AMOUNT_TOLERANCE


@dataclass
class BankTransaction:
    """Entity - one statement line, deduplicated by fingerprint."""
    bank_account_id: str
    transaction_date: date
    description: str
    amount: Decimal
    transaction_type: BankTransactionType
    fingerprint: str
    id: str = field(default_factory=lambda: new_id("bt"))
    bank_statement_id: str | None = None
    post_date: date | None = None
    reference: str | None = None
    running_balance: Decimal | None = None
    match_status: MatchStatus = MatchStatus.UNMATCHED
    matched_journal_line_id: str | None = None
    matched_at: datetime | None = None
    matched_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        bank_account_id: str,
        transaction_date: date,
        description: str,
        amount: AmountLike,
        transaction_type: BankTransactionType,
        *,
        bank_statement_id: str | None = None,
        post_date: date | None = None,
        reference: str | None = None,
        running_balance: AmountLike | None = None,
    ) -> "BankTransaction":
        bank_account_id = _required(bank_account_id, "bank_account_id")
        value = to_decimal(amount)
        if value == ZERO:
            raise ValidationError("Transaction amount cannot be zero", field="amount")
        return cls(
            bank_account_id=bank_account_id,
            transaction_date=transaction_date,
            description=_required(description, "description"),
            amount=value,
            transaction_type=transaction_type,
            fingerprint=generate_fingerprint(bank_account_id, transaction_date, value, reference),
            bank_statement_id=bank_statement_id,
            post_date=post_date,
            reference=reference,
            running_balance=to_decimal(running_balance, "running_balance")
            if running_balance is not None else None,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "BankTransaction":
        return cls(**fields)

    @property
    def is_debit(self) -> bool:
        return self.transaction_type == BankTransactionType.DEBIT

    @property
    def is_credit(self) -> bool:
        return self.transaction_type == BankTransactionType.CREDIT

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    def match(self, journal_line_id: str, matched_by: str) -> None:
        if self.match_status == MatchStatus.MATCHED:
            raise BusinessRuleError("Transaction is already matched", code="ALREADY_MATCHED")
        if self.match_status == MatchStatus.EXCLUDED:
            raise BusinessRuleError(
                "Excluded transaction must be included before matching",
                code="TRANSACTION_EXCLUDED",
            )
        journal_line_id = _required(journal_line_id, "journal_line_id")

        self.match_status = MatchStatus.MATCHED
        self.matched_journal_line_id = journal_line_id
        self.matched_by = matched_by
        self.matched_at = utc_now()

    def unmatch(self) -> None:
        if self.match_status != MatchStatus.MATCHED:
            raise BusinessRuleError("Transaction is not matched")
        self.match_status = MatchStatus.UNMATCHED
        self.matched_journal_line_id = None
        self.matched_by = None
        self.matched_at = None

    def exclude(self) -> None:
        if self.match_status == MatchStatus.MATCHED:
            raise BusinessRuleError("Matched transaction cannot be excluded, unmatch it first")
        self.match_status = MatchStatus.EXCLUDED

    def include(self) -> None:
        if self.match_status != MatchStatus.EXCLUDED:
            raise BusinessRuleError("Transaction is not excluded")
        self.match_status = MatchStatus.UNMATCHED


_BANK_SIDE_ITEMS = frozenset({
    ReconcilingItemType.OUTSTANDING_CHECK,
    ReconcilingItemType.DEPOSIT_IN_TRANSIT,
})


@dataclass
class ReconcilingItem:
    """
    Entity - difference between bank and book explained during reconciliation.
    Amounts are positive; adjustments carry their own sign.
    """
    reconciliation_id: str
    item_type: ReconcilingItemType
    description: str
    amount: Decimal
    id: str = field(default_factory=lambda: new_id("ri"))
    transaction_date: date | None = None
    reference: str | None = None
    status: ReconcilingItemStatus = ReconcilingItemStatus.PENDING
    requires_journal_entry: bool = False
    journal_entry_id: str | None = None
    cleared_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        reconciliation_id: str,
        item_type: ReconcilingItemType,
        description: str,
        amount: AmountLike,
        *,
        transaction_date: date | None = None,
        reference: str | None = None,
        requires_journal_entry: bool | None = None,
        created_by: str | None = None,
    ) -> "ReconcilingItem":
        value = to_decimal(amount)
        if item_type == ReconcilingItemType.ADJUSTMENT:
            if value == ZERO:
                raise ValidationError("Adjustment amount cannot be zero", field="amount")
        elif value <= ZERO:
            raise ValidationError(f"{item_type.value} amount must be positive", field="amount")
        if requires_journal_entry is None:
            # book-side items are not yet in the ledger
            requires_journal_entry = item_type not in _BANK_SIDE_ITEMS
        return cls(
            reconciliation_id=reconciliation_id,
            item_type=item_type,
            description=_required(description, "description"),
            amount=value,
            transaction_date=transaction_date,
            reference=reference,
            requires_journal_entry=requires_journal_entry,
            created_by=created_by,
        )

    @property
    def is_bank_side(self) -> bool:
        return self.item_type in _BANK_SIDE_ITEMS

    @property
    def is_voided(self) -> bool:
        return self.status == ReconcilingItemStatus.VOIDED

    def clear(self) -> None:
        if self.status != ReconcilingItemStatus.PENDING:
            raise BusinessRuleError(f"Only pending items can be cleared, item is {self.status.value}")
        self.status = ReconcilingItemStatus.CLEARED
        self.cleared_at = utc_now()

    def void(self) -> None:
        if self.status == ReconcilingItemStatus.VOIDED:
            raise BusinessRuleError("Item is already voided")
        self.status = ReconcilingItemStatus.VOIDED

    def link_journal_entry(self, journal_entry_id: str) -> None:
        if self.is_voided:
            raise BusinessRuleError("Cannot link a journal entry to a voided item")
        self.journal_entry_id = _required(journal_entry_id, "journal_entry_id")


def apply_reconciling_item(
    bank: Decimal,
    book: Decimal,
    item: ReconcilingItem,
) -> tuple[Decimal, Decimal]:
    """Return (bank, book) after applying one item's sign rule."""
    kind = item.item_type
    if kind == ReconcilingItemType.OUTSTANDING_CHECK:
        return bank - item.amount, book
    elif kind == ReconcilingItemType.DEPOSIT_IN_TRANSIT:
        return bank + item.amount, book
    elif kind == ReconcilingItemType.BANK_FEE:
        return bank, book - item.amount
    elif kind == ReconcilingItemType.NSF_CHECK:
        return bank, book - item.amount
    elif kind == ReconcilingItemType.BANK_INTEREST:
        return bank, book + item.amount
    elif kind == ReconcilingItemType.ADJUSTMENT:
        return bank, book + item.amount
    raise ValueError(f"Unknown reconciling item type: {kind}")


@dataclass
class BankReconciliation:
    """
    Aggregate root - reconciliation of one bank account for one month.
    DRAFT -> IN_PROGRESS -> COMPLETED -> APPROVED; completion requires the
    adjusted balances to agree within 0.01.
    """
    bank_account_id: str
    fiscal_year: int
    fiscal_month: int
    statement_ending_balance: Decimal
    book_ending_balance: Decimal
    id: str = field(default_factory=lambda: new_id("br"))
    statement_id: str | None = None
    status: ReconciliationStatus = ReconciliationStatus.DRAFT
    items: list[ReconcilingItem] = field(default_factory=list)
    adjusted_bank_balance: Decimal | None = None
    adjusted_book_balance: Decimal | None = None
    total_transactions: int = 0
    matched_transactions: int = 0
    unmatched_transactions: int = 0
    notes: str | None = None
    created_by: str | None = None
    started_at: datetime | None = None
    started_by: str | None = None
    completed_at: datetime | None = None
    completed_by: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        bank_account_id: str,
        fiscal_year: int,
        fiscal_month: int,
        statement_ending_balance: AmountLike,
        book_ending_balance: AmountLike,
        *,
        statement_id: str | None = None,
        created_by: str | None = None,
        notes: str | None = None,
    ) -> "BankReconciliation":
        if not 2000 <= fiscal_year <= 2100:
            raise ValidationError(f"Invalid fiscal year: {fiscal_year}", field="fiscal_year")
        if not 1 <= fiscal_month <= 12:
            raise ValidationError(f"Invalid fiscal month: {fiscal_month}", field="fiscal_month")
        return cls(
            bank_account_id=_required(bank_account_id, "bank_account_id"),
            fiscal_year=fiscal_year,
            fiscal_month=fiscal_month,
            statement_ending_balance=to_decimal(statement_ending_balance, "statement_ending_balance"),
            book_ending_balance=to_decimal(book_ending_balance, "book_ending_balance"),
            statement_id=statement_id,
            created_by=created_by,
            notes=notes,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "BankReconciliation":
        return cls(**fields)

    @property
    def period(self) -> FiscalPeriod:
        return FiscalPeriod(self.fiscal_year, self.fiscal_month)

    def start(self, started_by: str) -> None:
        if self.status != ReconciliationStatus.DRAFT:
            raise BusinessRuleError(
                f"Only draft reconciliations can be started, reconciliation is {self.status.value}"
            )
        now = utc_now()
        self.status = ReconciliationStatus.IN_PROGRESS
        self.started_by = started_by
        self.started_at = now
        self.updated_at = now

    def update_balances(
        self,
        *,
        statement_ending_balance: AmountLike | None = None,
        book_ending_balance: AmountLike | None = None,
    ) -> None:
        if self.status not in (ReconciliationStatus.DRAFT, ReconciliationStatus.IN_PROGRESS):
            raise BusinessRuleError("Balances of a completed reconciliation cannot change")
        statement = (
            to_decimal(statement_ending_balance, "statement_ending_balance")
            if statement_ending_balance is not None else self.statement_ending_balance
        )
        book = (
            to_decimal(book_ending_balance, "book_ending_balance")
            if book_ending_balance is not None else self.book_ending_balance
        )
        self.statement_ending_balance = statement
        self.book_ending_balance = book
        self.adjusted_bank_balance = None
        self.adjusted_book_balance = None
        self.updated_at = utc_now()

    def update_transaction_counts(self, total: int, matched: int, unmatched: int) -> None:
        if min(total, matched, unmatched) < 0 or matched + unmatched > total:
            raise ValidationError("Inconsistent transaction counts")
        self.total_transactions = total
        self.matched_transactions = matched
        self.unmatched_transactions = unmatched
        self.updated_at = utc_now()

    def add_reconciling_item(
        self,
        item_type: ReconcilingItemType,
        amount: AmountLike,
        description: str,
        *,
        transaction_date: date | None = None,
        reference: str | None = None,
        requires_journal_entry: bool | None = None,
        created_by: str | None = None,
    ) -> ReconcilingItem:
        self._ensure_in_progress("add items to")
        item = ReconcilingItem.create(
            reconciliation_id=self.id,
            item_type=item_type,
            description=description,
            amount=amount,
            transaction_date=transaction_date,
            reference=reference,
            requires_journal_entry=requires_journal_entry,
            created_by=created_by,
        )
        self.items.append(item)
        self.adjusted_bank_balance = None
        self.adjusted_book_balance = None
        self.updated_at = utc_now()
        return item

    def void_item(self, item_id: str) -> None:
        self._ensure_in_progress("void items of")
        self._get_item(item_id).void()
        self.adjusted_bank_balance = None
        self.adjusted_book_balance = None
        self.updated_at = utc_now()

    def clear_item(self, item_id: str) -> None:
        self._ensure_in_progress("clear items of")
        self._get_item(item_id).clear()
        self.updated_at = utc_now()

    def link_journal_entry(self, item_id: str, journal_entry_id: str) -> None:
        if self.status == ReconciliationStatus.APPROVED:
            raise BusinessRuleError("Approved reconciliation cannot be changed")
        self._get_item(item_id).link_journal_entry(journal_entry_id)
        self.updated_at = utc_now()

    def compute_adjusted_balances(self) -> tuple[Decimal, Decimal]:
        """(adjusted bank, adjusted book) from non-voided items; does not store them."""
        bank = self.statement_ending_balance
        book = self.book_ending_balance
        for item in self.items:
            if item.is_voided:
                continue
            bank, book = apply_reconciling_item(bank, book, item)
        return bank, book

    def calculate_adjusted_balances(self) -> tuple[Decimal, Decimal]:
        bank, book = self.compute_adjusted_balances()
        self.adjusted_bank_balance = bank
        self.adjusted_book_balance = book
        return bank, book

    def is_balanced(self) -> bool:
        if self.adjusted_bank_balance is None or self.adjusted_book_balance is None:
            return False
        return abs(self.adjusted_bank_balance - self.adjusted_book_balance) < AMOUNT_TOLERANCE

    def balance_difference(self) -> Decimal:
        bank, book = self.compute_adjusted_balances()
        return bank - book

    def complete(self, completed_by: str) -> None:
        self._ensure_in_progress("complete")
        bank, book = self.compute_adjusted_balances()
        if abs(bank - book) >= AMOUNT_TOLERANCE:
            raise BusinessRuleError(
                f"Reconciliation is not balanced: adjusted bank {bank} != adjusted book {book}",
                code="RECONCILIATION_UNBALANCED",
            )

        now = utc_now()
        self.adjusted_bank_balance = bank
        self.adjusted_book_balance = book
        self.status = ReconciliationStatus.COMPLETED
        self.completed_by = completed_by
        self.completed_at = now
        self.updated_at = now

    def approve(self, approved_by: str) -> None:
        if self.status != ReconciliationStatus.COMPLETED:
            raise BusinessRuleError(
                f"Only completed reconciliations can be approved, reconciliation is {self.status.value}"
            )
        now = utc_now()
        self.status = ReconciliationStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = now
        self.updated_at = now

    def outstanding_items(self) -> list[ReconcilingItem]:
        return [
            item for item in self.items
            if item.is_bank_side and item.status == ReconcilingItemStatus.PENDING
        ]

    def items_requiring_journal_entries(self) -> list[ReconcilingItem]:
        return [
            item for item in self.items
            if not item.is_voided and item.requires_journal_entry and item.journal_entry_id is None
        ]

    def _get_item(self, item_id: str) -> ReconcilingItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError("ReconcilingItem", item_id)

    def _ensure_in_progress(self, action: str) -> None:
        if self.status != ReconciliationStatus.IN_PROGRESS:
            raise BusinessRuleError(
                f"Cannot {action} a reconciliation in {self.status.value} status"
            )
