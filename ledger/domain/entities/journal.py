"""
Journal Entry aggregate - balanced double-entry transaction.
Draft entries are mutable, Posted entries are final, Voided entries are terminal.
"""

import re
import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from ..exceptions import BusinessRuleError, LedgerError, ValidationError
from ..value_objects import (
    AMOUNT_TOLERANCE,
    ZERO,
    AmountLike,
    Direction,
    FiscalPeriod,
    FiscalPeriodStatus,
    JournalEntryStatus,
    JournalEntryType,
    new_id,
    to_decimal,
    utc_now,
)
from .accounts import Account

MIN_VOID_REASON_LENGTH = 3

_ENTRY_NUMBER_RE = re.compile(r"JE-(\d{4})-(\d{6})", re.ASCII)


def format_entry_number(year: int, sequence: int) -> str:
    """Entry number in the ``JE-YYYY-NNNNNN`` form."""
    if not 1 <= sequence <= 999_999:
        raise ValidationError(f"Entry sequence out of range: {sequence}", field="entry_number")
    return f"JE-{year:04d}-{sequence:06d}"


def parse_entry_number(entry_number: str) -> tuple[int, int]:
    """Return (year, sequence) from an entry number."""
    match = _ENTRY_NUMBER_RE.fullmatch(entry_number or "")
    if not match:
        raise ValidationError(
            f"Entry number must match JE-YYYY-NNNNNN, got {entry_number!r}",
            field="entry_number",
        )
    return int(match.group(1)), int(match.group(2))


@dataclass(frozen=True, slots=True)
class JournalLineInput:
    """Line data supplied by callers when creating or editing an entry."""
    account_id: str
    direction: Direction
    amount: AmountLike
    memo: str | None = None
    sales_person_id: str | None = None
    warehouse_id: str | None = None
    sales_channel: str | None = None
    customer_id: str | None = None
    vendor_id: str | None = None
    product_id: str | None = None


@dataclass
class JournalLine:
    """Entity - one debit or credit line; amount is always positive."""
    account_id: str
    direction: Direction
    amount: Decimal
    line_sequence: int
    id: str = field(default_factory=lambda: new_id("jel"))
    memo: str | None = None
    sales_person_id: str | None = None
    warehouse_id: str | None = None
    sales_channel: str | None = None
    customer_id: str | None = None
    vendor_id: str | None = None
    product_id: str | None = None

    @property
    def is_debit(self) -> bool:
        return self.direction == Direction.DEBIT

    @property
    def is_credit(self) -> bool:
        return self.direction == Direction.CREDIT

    def to_input(self) -> JournalLineInput:
        return JournalLineInput(
            account_id=self.account_id,
            direction=self.direction,
            amount=self.amount,
            memo=self.memo,
            sales_person_id=self.sales_person_id,
            warehouse_id=self.warehouse_id,
            sales_channel=self.sales_channel,
            customer_id=self.customer_id,
            vendor_id=self.vendor_id,
            product_id=self.product_id,
        )


def build_lines(lines: Sequence[JournalLineInput]) -> list[JournalLine]:
    """
    Validate line inputs against the double-entry rules and number them.
    Raises ValidationError on the first rule broken.
    """
    if len(lines) < 2:
        raise ValidationError("Journal entry must have at least 2 lines", field="lines")

    built: list[JournalLine] = []
    for seq, line in enumerate(lines, start=1):
        if not line.account_id:
            raise ValidationError(f"Line {seq}: account is required", field="lines")
        try:
            direction = Direction(line.direction)
        except ValueError as exc:
            raise ValidationError(
                f"Line {seq}: invalid direction {line.direction!r}", field="lines"
            ) from exc
        amount = to_decimal(line.amount, "amount")
        if amount <= ZERO:
            raise ValidationError(f"Line {seq}: amount must be positive", field="lines")
        built.append(JournalLine(
            account_id=line.account_id,
            direction=direction,
            amount=amount,
            line_sequence=seq,
            memo=line.memo,
            sales_person_id=line.sales_person_id,
            warehouse_id=line.warehouse_id,
            sales_channel=line.sales_channel,
            customer_id=line.customer_id,
            vendor_id=line.vendor_id,
            product_id=line.product_id,
        ))

    _check_balanced(built, ValidationError)
    return built


def _check_balanced(lines: Sequence[JournalLine], error: type[LedgerError] = BusinessRuleError) -> None:
    if not any(line.is_debit for line in lines):
        raise ValidationError("Journal entry must have at least one debit line", field="lines")
    if not any(line.is_credit for line in lines):
        raise ValidationError("Journal entry must have at least one credit line", field="lines")
    debits = sum((line.amount for line in lines if line.is_debit), ZERO)
    credits = sum((line.amount for line in lines if line.is_credit), ZERO)
    if abs(debits - credits) > AMOUNT_TOLERANCE:
        raise error(
            f"Journal entry is not balanced: debits {debits} != credits {credits}",
            code="UNBALANCED_ENTRY",
        )


def _clean_description(description: str) -> str:
    if not description or not description.strip():
        raise ValidationError("Description is required", field="description")
    return description.strip()


@dataclass
class JournalEntry:
    """
    Aggregate root - journal entry.
    Sum of debit amounts equals sum of credit amounts within 0.01.
    """
    entry_number: str
    entry_date: date
    description: str
    created_by: str
    lines: list[JournalLine]
    id: str = field(default_factory=lambda: new_id("je"))
    entry_type: JournalEntryType = JournalEntryType.MANUAL
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    reference: str | None = None
    notes: str | None = None
    source_service: str | None = None
    source_reference_id: str | None = None
    posted_by: str | None = None
    posted_at: datetime | None = None
    voided_by: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        lines: Sequence[JournalLineInput],
        entry_date: date,
        description: str,
        created_by: str,
        *,
        entry_number: str | None = None,
        entry_type: JournalEntryType = JournalEntryType.MANUAL,
        reference: str | None = None,
        notes: str | None = None,
        source_service: str | None = None,
        source_reference_id: str | None = None,
    ) -> "JournalEntry":
        description = _clean_description(description)
        if not created_by:
            raise ValidationError("created_by is required", field="created_by")
        if entry_number is None:
            entry_number = format_entry_number(entry_date.year, secrets.randbelow(999_999) + 1)
        else:
            parse_entry_number(entry_number)
        if bool(source_service) != bool(source_reference_id):
            raise ValidationError(
                "source_service and source_reference_id must be given together",
                field="source_reference_id",
            )
        built = build_lines(lines)
        return cls(
            entry_number=entry_number,
            entry_date=entry_date,
            description=description,
            created_by=created_by,
            lines=built,
            entry_type=entry_type,
            reference=reference,
            notes=notes,
            source_service=source_service,
            source_reference_id=source_reference_id,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "JournalEntry":
        """Rehydrate a stored entry without re-validating it."""
        return cls(**fields)

    @property
    def fiscal_period(self) -> FiscalPeriod:
        return FiscalPeriod.from_date(self.entry_date)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.is_debit), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.is_credit), ZERO)

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debits - self.total_credits) <= AMOUNT_TOLERANCE

    @property
    def account_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for line in self.lines:
            seen.setdefault(line.account_id, None)
        return list(seen)

    def can_edit(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    def can_delete(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    def can_post(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    def can_void(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    def post(
        self,
        posted_by: str,
        period_status: FiscalPeriodStatus,
        accounts: Mapping[str, Account] | None = None,
    ) -> None:
        """
        Draft -> Posted. The fiscal period of the entry date must be Open. When an
        account snapshot is given, every line account must exist and accept postings.
        """
        if self.status != JournalEntryStatus.DRAFT:
            raise BusinessRuleError(
                f"Only draft entries can be posted, entry {self.entry_number} is {self.status.value}",
                code="ENTRY_NOT_DRAFT",
            )
        if not posted_by:
            raise ValidationError("posted_by is required", field="posted_by")
        if period_status != FiscalPeriodStatus.OPEN:
            raise BusinessRuleError(
                f"Cannot post to period {self.fiscal_period}: period is {period_status.value}",
                code="PERIOD_NOT_OPEN",
            )
        if accounts is not None:
            for line in self.lines:
                account = accounts.get(line.account_id)
                if account is None:
                    raise BusinessRuleError(f"Account {line.account_id} does not exist")
                if not account.can_post():
                    raise BusinessRuleError(
                        f"Account {account.code} does not accept postings",
                        code="ACCOUNT_NOT_POSTABLE",
                    )
        _check_balanced(self.lines)

        now = utc_now()
        self.status = JournalEntryStatus.POSTED
        self.posted_by = posted_by
        self.posted_at = now
        self.updated_at = now

    def void(self, voided_by: str, reason: str) -> None:
        """Posted -> Voided. Lines are kept as they are."""
        if self.status != JournalEntryStatus.POSTED:
            raise BusinessRuleError(
                f"Only posted entries can be voided, entry {self.entry_number} is {self.status.value}",
                code="ENTRY_NOT_POSTED",
            )
        if not voided_by:
            raise ValidationError("voided_by is required", field="voided_by")
        reason = (reason or "").strip()
        if len(reason) < MIN_VOID_REASON_LENGTH:
            raise ValidationError(
                f"Void reason must be at least {MIN_VOID_REASON_LENGTH} characters",
                field="reason",
            )

        now = utc_now()
        self.status = JournalEntryStatus.VOIDED
        self.voided_by = voided_by
        self.voided_at = now
        self.void_reason = reason
        self.updated_at = now

    def update(
        self,
        *,
        description: str | None = None,
        entry_date: date | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> None:
        """Change header fields of a draft; arguments left as None are kept."""
        self._ensure_editable()
        new_description = _clean_description(description) if description is not None else self.description

        if entry_date is not None:
            number_year = parse_entry_number(self.entry_number)[0]
            if entry_date.year != number_year:
                raise ValidationError(
                    f"Entry {self.entry_number} is numbered in {number_year}; "
                    f"create a new entry to book it in {entry_date.year}",
                    field="entry_date",
                )

        self.description = new_description
        if entry_date is not None:
            self.entry_date = entry_date
        if reference is not None:
            self.reference = reference
        if notes is not None:
            self.notes = notes
        self.updated_at = utc_now()

    def update_lines(self, lines: Sequence[JournalLineInput]) -> None:
        self._ensure_editable()
        self.lines = build_lines(lines)
        self.updated_at = utc_now()

    def reversal_lines(self) -> list[JournalLineInput]:
        """Lines of a compensating entry: same accounts and amounts, sides swapped."""
        return [
            replace(line.to_input(), direction=line.direction.opposite())
            for line in self.lines
        ]

    def totals_by_account(self) -> dict[str, tuple[Decimal, Decimal]]:
        """(debit, credit) per account id."""
        totals: dict[str, tuple[Decimal, Decimal]] = {}
        for line in self.lines:
            debit, credit = totals.get(line.account_id, (ZERO, ZERO))
            if line.is_debit:
                debit += line.amount
            else:
                credit += line.amount
            totals[line.account_id] = (debit, credit)
        return totals

    def _ensure_editable(self) -> None:
        if self.status != JournalEntryStatus.DRAFT:
            raise BusinessRuleError(
                f"Only draft entries can be edited, entry {self.entry_number} is {self.status.value}",
                code="ENTRY_NOT_DRAFT",
            )
