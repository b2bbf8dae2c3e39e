"""
Account Balance - per account and period rollup of posted lines.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..exceptions import ValidationError
from ..value_objects import (
    ZERO,
    AmountLike,
    FiscalPeriod,
    NormalBalance,
    new_id,
    to_decimal,
    utc_now,
)


def compute_closing_balance(
    opening: Decimal,
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    if normal_balance == NormalBalance.DEBIT:
        return opening + debit_total - credit_total
    return opening + credit_total - debit_total


def _non_negative(value: AmountLike, name: str) -> Decimal:
    amount = to_decimal(value, name)
    if amount < ZERO:
        raise ValidationError(f"{name} cannot be negative", field=name)
    return amount


@dataclass
class AccountBalance:
    """
    Entity - balance of one account in one fiscal period.
    closing = opening + debit - credit for debit-normal accounts,
    closing = opening + credit - debit otherwise.
    """
    account_id: str
    fiscal_year: int
    fiscal_month: int
    id: str = field(default_factory=lambda: new_id("ab"))
    opening_balance: Decimal = ZERO
    debit_total: Decimal = ZERO
    credit_total: Decimal = ZERO
    closing_balance: Decimal = ZERO
    last_updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        account_id: str,
        period: FiscalPeriod,
        opening_balance: AmountLike = ZERO,
    ) -> "AccountBalance":
        if not account_id:
            raise ValidationError("account_id is required", field="account_id")
        opening = to_decimal(opening_balance, "opening_balance")
        return cls(
            account_id=account_id,
            fiscal_year=period.year,
            fiscal_month=period.month,
            opening_balance=opening,
            closing_balance=opening,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "AccountBalance":
        return cls(**fields)

    @property
    def period(self) -> FiscalPeriod:
        return FiscalPeriod(self.fiscal_year, self.fiscal_month)

    @property
    def period_string(self) -> str:
        return str(self.period)

    @property
    def net_change(self) -> Decimal:
        return self.closing_balance - self.opening_balance

    def calculate_closing_balance(self, normal_balance: NormalBalance) -> Decimal:
        return compute_closing_balance(
            self.opening_balance, self.debit_total, self.credit_total, normal_balance
        )

    def update_from_transactions(
        self,
        debit_total: AmountLike,
        credit_total: AmountLike,
        normal_balance: NormalBalance,
    ) -> None:
        """Replace the period totals and recompute the closing balance."""
        debit = _non_negative(debit_total, "debit_total")
        credit = _non_negative(credit_total, "credit_total")

        self.debit_total = debit
        self.credit_total = credit
        self.closing_balance = self.calculate_closing_balance(normal_balance)
        self.last_updated_at = utc_now()

    def add_transactions(
        self,
        debit_amount: AmountLike,
        credit_amount: AmountLike,
        normal_balance: NormalBalance,
    ) -> None:
        """Add newly posted amounts to the period totals."""
        debit = _non_negative(debit_amount, "debit_amount")
        credit = _non_negative(credit_amount, "credit_amount")
        self.update_from_transactions(
            self.debit_total + debit, self.credit_total + credit, normal_balance
        )

    def set_opening_balance(self, opening_balance: AmountLike, normal_balance: NormalBalance) -> None:
        """Carry the previous period's closing balance forward; idempotent."""
        self.opening_balance = to_decimal(opening_balance, "opening_balance")
        self.closing_balance = self.calculate_closing_balance(normal_balance)
        self.last_updated_at = utc_now()
