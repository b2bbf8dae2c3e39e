"""
Budget entity - yearly budget with monthly lines per account.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..exceptions import BusinessRuleError, ValidationError
from ..value_objects import ZERO, AmountLike, BudgetStatus, new_id, to_decimal, utc_now


@dataclass
class BudgetLine:
    account_id: str
    fiscal_month: int
    amount: Decimal
    id: str = field(default_factory=lambda: new_id("bl"))
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class BudgetRevision:
    """Change of one budget line amount."""
    budget_id: str
    account_id: str
    fiscal_month: int
    previous_amount: Decimal
    new_amount: Decimal
    revised_by: str
    reason: str | None
    revised_at: datetime

    @property
    def change(self) -> Decimal:
        return self.new_amount - self.previous_amount


@dataclass
class Budget:
    """
    Entity - budget for one fiscal year.
    draft -> approved -> locked; locked budgets can be reopened to approved.
    """
    name: str
    fiscal_year: int
    id: str = field(default_factory=lambda: new_id("bud"))
    status: BudgetStatus = BudgetStatus.DRAFT
    lines: list[BudgetLine] = field(default_factory=list)
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    locked_by: str | None = None
    locked_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, name: str, fiscal_year: int, created_by: str | None = None) -> "Budget":
        if not name or not name.strip():
            raise ValidationError("Budget name is required", field="name")
        if not 2000 <= fiscal_year <= 2100:
            raise ValidationError(f"Invalid fiscal year: {fiscal_year}", field="fiscal_year")
        return cls(name=name.strip(), fiscal_year=fiscal_year, created_by=created_by)

    @classmethod
    def from_persistence(cls, **fields) -> "Budget":
        return cls(**fields)

    def set_line(
        self,
        account_id: str,
        fiscal_month: int,
        amount: AmountLike,
        revised_by: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> BudgetRevision | None:
        """Add or change a line. Returns a revision when an existing amount changes."""
        if self.status == BudgetStatus.LOCKED:
            raise BusinessRuleError("Locked budget cannot be changed")
        if not account_id:
            raise ValidationError("account_id is required", field="account_id")
        if not 1 <= fiscal_month <= 12:
            raise ValidationError(f"Invalid fiscal month: {fiscal_month}", field="fiscal_month")
        value = to_decimal(amount)
        if value < ZERO:
            raise ValidationError("Budget amount cannot be negative", field="amount")

        existing = self.get_line(account_id, fiscal_month)
        self.updated_at = utc_now()
        if existing is None:
            self.lines.append(BudgetLine(account_id=account_id, fiscal_month=fiscal_month, amount=value, notes=notes))
            return None
        if existing.amount == value:
            return None
        revision = BudgetRevision(
            budget_id=self.id,
            account_id=account_id,
            fiscal_month=fiscal_month,
            previous_amount=existing.amount,
            new_amount=value,
            revised_by=revised_by,
            reason=reason,
            revised_at=self.updated_at,
        )
        existing.amount = value
        if notes is not None:
            existing.notes = notes
        return revision

    def get_line(self, account_id: str, fiscal_month: int) -> BudgetLine | None:
        for line in self.lines:
            if line.account_id == account_id and line.fiscal_month == fiscal_month:
                return line
        return None

    def approve(self, approved_by: str) -> None:
        if self.status != BudgetStatus.DRAFT:
            raise BusinessRuleError(f"Only draft budgets can be approved, budget is {self.status.value}")
        if not self.lines:
            raise BusinessRuleError("Cannot approve a budget without lines")
        self.status = BudgetStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = utc_now()
        self.updated_at = self.approved_at

    def lock(self, locked_by: str) -> None:
        if self.status != BudgetStatus.APPROVED:
            raise BusinessRuleError(f"Only approved budgets can be locked, budget is {self.status.value}")
        self.status = BudgetStatus.LOCKED
        self.locked_by = locked_by
        self.locked_at = utc_now()
        self.updated_at = self.locked_at

    def reopen(self) -> None:
        if self.status != BudgetStatus.LOCKED:
            raise BusinessRuleError("Only locked budgets can be reopened")
        self.status = BudgetStatus.APPROVED
        self.locked_by = None
        self.locked_at = None
        self.updated_at = utc_now()

    def total_for_month(self, fiscal_month: int) -> Decimal:
        return sum((line.amount for line in self.lines if line.fiscal_month == fiscal_month), ZERO)

    def total_for_account(self, account_id: str) -> Decimal:
        return sum((line.amount for line in self.lines if line.account_id == account_id), ZERO)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)
