"""
Domain Services - ledger rules that span more than one aggregate.
Services read snapshots handed in by the caller or go through repository ports;
they never commit anything themselves.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .entities import (
    Account,
    AccountBalance,
    BankReconciliation,
    BankTransaction,
    ExchangeRate,
    FiscalPeriodEntity,
    JournalEntry,
    JournalLineInput,
    ReconcilingItem,
)
from .exceptions import BusinessRuleError, NotFoundError, ValidationError
from .repositories import IAccountRepository, IExchangeRateRepository
from .value_objects import (
    AMOUNT_TOLERANCE,
    ZERO,
    AmountLike,
    Direction,
    FiscalPeriod,
    FiscalPeriodStatus,
    JournalEntryStatus,
    MatchStatus,
    Money,
    NormalBalance,
    ReconcilingItemType,
    to_decimal,
)


@dataclass(frozen=True, slots=True)
class TrialBalance:
    period: FiscalPeriod
    total_debits: Decimal
    total_credits: Decimal
    account_count: int

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) <= AMOUNT_TOLERANCE


class BalanceCalculationService:
    """
    Service - period balance rollup.
    Opening balances come from the previous period's closing balances, period
    totals from posted entries only.
    """

    def calculate_period_balances(
        self,
        period: FiscalPeriod,
        accounts: Mapping[str, Account],
        entries: Iterable[JournalEntry],
        previous_balances: Mapping[str, AccountBalance] | None = None,
    ) -> dict[str, AccountBalance]:
        """
        Recompute every balance of the period from scratch. Voided entries still
        count: voiding flags an entry, the correction is a separate entry.
        """
        previous_balances = previous_balances or {}
        totals: dict[str, tuple[Decimal, Decimal]] = {}
        for entry in entries:
            if entry.posted_at is None or entry.fiscal_period != period:
                continue
            for account_id, (debit, credit) in entry.totals_by_account().items():
                prev_debit, prev_credit = totals.get(account_id, (ZERO, ZERO))
                totals[account_id] = (prev_debit + debit, prev_credit + credit)

        balances: dict[str, AccountBalance] = {}
        for account_id in sorted(totals.keys() | previous_balances.keys()):
            account = self._account(accounts, account_id)
            previous = previous_balances.get(account_id)
            opening = previous.closing_balance if previous else ZERO
            balance = AccountBalance.create(account_id, period, opening_balance=opening)
            debit, credit = totals.get(account_id, (ZERO, ZERO))
            balance.update_from_transactions(debit, credit, account.normal_balance)
            balances[account_id] = balance
        return balances

    def apply_entry(
        self,
        entry: JournalEntry,
        accounts: Mapping[str, Account],
        current: Mapping[str, AccountBalance],
        previous: Mapping[str, AccountBalance] | None = None,
    ) -> list[AccountBalance]:
        """
        Roll a newly posted entry into its period's balances. Balances missing
        from ``current`` are created with the previous closing as opening.
        """
        if entry.status != JournalEntryStatus.POSTED:
            raise BusinessRuleError(f"Entry {entry.entry_number} is not posted")
        previous = previous or {}
        period = entry.fiscal_period

        touched: list[AccountBalance] = []
        for account_id, (debit, credit) in entry.totals_by_account().items():
            account = self._account(accounts, account_id)
            balance = current.get(account_id)
            if balance is None:
                prior = previous.get(account_id)
                balance = AccountBalance.create(
                    account_id, period, opening_balance=prior.closing_balance if prior else ZERO
                )
            balance.add_transactions(debit, credit, account.normal_balance)
            touched.append(balance)
        return touched

    def trial_balance(
        self,
        period: FiscalPeriod,
        balances: Iterable[AccountBalance],
        accounts: Mapping[str, Account],
    ) -> TrialBalance:
        """
        Place each closing balance in the debit or credit column by the
        account's normal side; a negative balance moves to the other column.
        """
        debits = credits = ZERO
        count = 0
        for balance in balances:
            account = self._account(accounts, balance.account_id)
            amount = balance.closing_balance
            on_debit_side = account.normal_balance == NormalBalance.DEBIT
            if amount < ZERO:
                on_debit_side = not on_debit_side
                amount = -amount
            if on_debit_side:
                debits += amount
            else:
                credits += amount
            count += 1
        return TrialBalance(period=period, total_debits=debits, total_credits=credits, account_count=count)

    def validate_trial_balance(
        self,
        period: FiscalPeriod,
        balances: Iterable[AccountBalance],
        accounts: Mapping[str, Account],
    ) -> tuple[bool, list[str]]:
        result = self.trial_balance(period, balances, accounts)
        if result.is_balanced:
            return True, []
        return False, [
            f"Trial balance for {period} is out by {result.difference}: "
            f"debits {result.total_debits} != credits {result.total_credits}"
        ]

    @staticmethod
    def _account(accounts: Mapping[str, Account], account_id: str) -> Account:
        account = accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account


@dataclass
class CloseChecklist:
    period: FiscalPeriod
    previous_period_closed: bool
    no_draft_entries: bool
    trial_balance_balanced: bool
    blockers: list[str] = field(default_factory=list)

    @property
    def can_close(self) -> bool:
        return not self.blockers


class PeriodCloseService:
    """Service - month-end close checks and opening balance carry forward."""

    def build_checklist(
        self,
        period: FiscalPeriodEntity,
        previous: FiscalPeriodEntity | None,
        draft_entry_count: int,
        trial_balance: TrialBalance | None = None,
    ) -> CloseChecklist:
        blockers: list[str] = []
        if not period.can_close():
            blockers.append(f"Period {period.period} is {period.status.value}")

        previous_closed = previous is None or previous.status != FiscalPeriodStatus.OPEN
        if not previous_closed:
            blockers.append(f"Previous period {previous.period} is still open")

        no_drafts = draft_entry_count == 0
        if not no_drafts:
            blockers.append(f"{draft_entry_count} draft entries remain in {period.period}")

        balanced = trial_balance is None or trial_balance.is_balanced
        if not balanced:
            blockers.append(f"Trial balance is out by {trial_balance.difference}")

        return CloseChecklist(
            period=period.period,
            previous_period_closed=previous_closed,
            no_draft_entries=no_drafts,
            trial_balance_balanced=balanced,
            blockers=blockers,
        )

    def carry_forward(
        self,
        closing_balances: Iterable[AccountBalance],
        next_balances: Mapping[str, AccountBalance],
        accounts: Mapping[str, Account],
        next_period: FiscalPeriod,
    ) -> list[AccountBalance]:
        """
        Set each next-period opening balance to this period's closing balance.
        Running it twice with the same inputs gives the same balances.
        """
        carried: list[AccountBalance] = []
        for closing in closing_balances:
            account = accounts.get(closing.account_id)
            if account is None:
                raise NotFoundError("Account", closing.account_id)
            target = next_balances.get(closing.account_id)
            if target is None:
                target = AccountBalance.create(closing.account_id, next_period)
            target.set_opening_balance(closing.closing_balance, account.normal_balance)
            carried.append(target)
        return carried


@dataclass(frozen=True, slots=True)
class BookLine:
    """Posted journal line on the bank's GL account, as seen by matching."""
    journal_line_id: str
    journal_entry_id: str
    entry_date: date
    direction: Direction
    amount: Decimal


def book_lines_for_account(entries: Iterable[JournalEntry], account_id: str) -> list[BookLine]:
    lines: list[BookLine] = []
    for entry in entries:
        if entry.status != JournalEntryStatus.POSTED:
            continue
        for line in entry.lines:
            if line.account_id == account_id:
                lines.append(BookLine(
                    journal_line_id=line.id,
                    journal_entry_id=entry.id,
                    entry_date=entry.entry_date,
                    direction=line.direction,
                    amount=line.amount,
                ))
    return lines


@dataclass(frozen=True, slots=True)
class AdjustmentAccounts:
    """GL accounts used by adjusting entries for book-side reconciling items."""
    bank_fee_expense_account_id: str
    interest_income_account_id: str
    nsf_receivable_account_id: str
    adjustment_account_id: str


class ReconciliationService:
    """
    Service - bank transaction matching and reconciliation checks.
    A deposit (CREDIT on the statement) pairs with a debit to the bank's GL
    account, a withdrawal with a credit.
    """

    def __init__(
        self,
        date_tolerance_days: int = 3,
        amount_tolerance: AmountLike = ZERO,
    ):
        if date_tolerance_days < 0:
            raise ValidationError("date_tolerance_days cannot be negative", field="date_tolerance_days")
        self.date_tolerance_days = date_tolerance_days
        self.amount_tolerance = to_decimal(amount_tolerance, "amount_tolerance")

    def is_match(self, transaction: BankTransaction, line: BookLine) -> bool:
        expected = Direction.DEBIT if transaction.is_credit else Direction.CREDIT
        if line.direction != expected:
            return False
        if abs(transaction.absolute_amount - line.amount) > self.amount_tolerance:
            return False
        return abs((transaction.transaction_date - line.entry_date).days) <= self.date_tolerance_days

    def find_candidates(self, transaction: BankTransaction, lines: Iterable[BookLine]) -> list[BookLine]:
        """Matching lines, closest amount then closest date first."""
        candidates = [line for line in lines if self.is_match(transaction, line)]
        candidates.sort(key=lambda line: (
            abs(transaction.absolute_amount - line.amount),
            abs((transaction.transaction_date - line.entry_date).days),
            line.journal_line_id,
        ))
        return candidates

    def auto_match(
        self,
        transactions: Sequence[BankTransaction],
        lines: Sequence[BookLine],
        matched_by: str,
        already_matched_line_ids: Iterable[str] = (),
    ) -> list[tuple[BankTransaction, BookLine]]:
        """
        Pair unmatched transactions with book lines one to one, earliest
        transaction first. Matched transactions are updated in place.
        """
        used = set(already_matched_line_ids)
        pairs: list[tuple[BankTransaction, BookLine]] = []
        pending = sorted(
            (tx for tx in transactions if tx.match_status == MatchStatus.UNMATCHED),
            key=lambda tx: (tx.transaction_date, tx.id),
        )
        for transaction in pending:
            available = (line for line in lines if line.journal_line_id not in used)
            candidates = self.find_candidates(transaction, available)
            if not candidates:
                continue
            line = candidates[0]
            transaction.match(line.journal_line_id, matched_by)
            used.add(line.journal_line_id)
            pairs.append((transaction, line))
        return pairs

    def validate(
        self,
        reconciliation: BankReconciliation,
        transactions: Iterable[BankTransaction] = (),
    ) -> tuple[bool, list[str]]:
        errors: list[str] = []
        difference = reconciliation.balance_difference()
        if abs(difference) >= AMOUNT_TOLERANCE:
            errors.append(f"Adjusted balances differ by {difference}")
        unmatched = sum(1 for tx in transactions if tx.match_status == MatchStatus.UNMATCHED)
        if unmatched:
            errors.append(f"{unmatched} bank transactions are unmatched")
        missing = reconciliation.items_requiring_journal_entries()
        if missing:
            errors.append(f"{len(missing)} reconciling items still need a journal entry")
        return len(errors) == 0, errors

    def adjusting_lines(
        self,
        item: ReconcilingItem,
        bank_gl_account_id: str,
        accounts: AdjustmentAccounts,
    ) -> list[JournalLineInput]:
        """Lines of the book entry that records a bank-reported item."""
        kind = item.item_type
        amount = abs(item.amount)
        if kind == ReconcilingItemType.BANK_FEE:
            debit, credit = accounts.bank_fee_expense_account_id, bank_gl_account_id
        elif kind == ReconcilingItemType.BANK_INTEREST:
            debit, credit = bank_gl_account_id, accounts.interest_income_account_id
        elif kind == ReconcilingItemType.NSF_CHECK:
            debit, credit = accounts.nsf_receivable_account_id, bank_gl_account_id
        elif kind == ReconcilingItemType.ADJUSTMENT:
            if item.amount > ZERO:
                debit, credit = bank_gl_account_id, accounts.adjustment_account_id
            else:
                debit, credit = accounts.adjustment_account_id, bank_gl_account_id
        else:
            raise BusinessRuleError(
                f"{kind.value} items are timing differences and need no journal entry"
            )
        memo = item.description
        return [
            JournalLineInput(account_id=debit, direction=Direction.DEBIT, amount=amount, memo=memo),
            JournalLineInput(account_id=credit, direction=Direction.CREDIT, amount=amount, memo=memo),
        ]


class ExchangeRateService:
    """Service - rate lookup and currency conversion."""

    def __init__(self, rate_repo: IExchangeRateRepository):
        self.rate_repo = rate_repo

    def get_rate(self, from_currency: str, to_currency: str, on: date) -> ExchangeRate:
        """
        Rate effective on the date, else the latest earlier one, else the
        inverse of the opposite pair.
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        rate = (
            self.rate_repo.find_rate(from_currency, to_currency, on)
            or self.rate_repo.find_latest_rate(from_currency, to_currency, on)
        )
        if rate is not None:
            return rate
        opposite = self.rate_repo.find_latest_rate(to_currency, from_currency, on)
        if opposite is not None:
            return opposite.inverse()
        raise NotFoundError("ExchangeRate", f"{from_currency}/{to_currency} on {on.isoformat()}")

    def convert(self, amount: AmountLike, from_currency: str, to_currency: str, on: date) -> Money:
        if from_currency.upper() == to_currency.upper():
            return Money(to_decimal(amount), to_currency.upper())
        return self.get_rate(from_currency, to_currency, on).convert(amount)

    def convert_money(self, money: Money, to_currency: str, on: date) -> Money:
        return self.convert(money.amount, money.currency, to_currency, on)


class AccountHierarchyService:
    """Service - parent/child links of the chart of accounts."""

    def __init__(self, account_repo: IAccountRepository):
        self.account_repo = account_repo

    def would_create_cycle(self, account_id: str, parent_account_id: str | None) -> bool:
        """True if ``account_id`` is the proposed parent or one of its ancestors."""
        seen: set[str] = set()
        current = parent_account_id
        while current is not None:
            if current == account_id:
                return True
            if current in seen:
                # stored hierarchy already loops
                return True
            seen.add(current)
            parent = self.account_repo.find_by_id(current)
            current = parent.parent_account_id if parent else None
        return False

    def assign_parent(
        self,
        account: Account,
        parent_account_id: str | None,
        updated_by: str | None = None,
    ) -> None:
        if parent_account_id is None:
            account.set_parent_account(None, 0, updated_by)
            return
        parent = self.account_repo.find_by_id(parent_account_id)
        if parent is None:
            raise NotFoundError("Account", parent_account_id)
        if parent.is_detail_account:
            raise BusinessRuleError(
                f"Account {parent.code} is a detail account and cannot have children",
                code="PARENT_IS_DETAIL",
            )
        if self.would_create_cycle(account.id, parent_account_id):
            raise BusinessRuleError(
                f"Making {parent.code} the parent of {account.code} creates a cycle",
                code="HIERARCHY_CYCLE",
            )
        account.set_parent_account(parent_account_id, parent.level + 1, updated_by)
