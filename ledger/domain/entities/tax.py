"""
Tax Summary entity - monthly totals per Indonesian tax type.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..exceptions import ValidationError
from ..value_objects import ZERO, AmountLike, FiscalPeriod, TaxType, new_id, round_money, to_decimal, utc_now

TAX_RATES: dict[TaxType, Decimal] = {
    TaxType.PPN: Decimal("0.11"),
    TaxType.PPH21: Decimal("0"),     # progressive brackets, no flat rate
    TaxType.PPH23: Decimal("0.02"),
    TaxType.PPH4_2: Decimal("0.10"),
}

TAX_TYPE_DESCRIPTIONS: dict[TaxType, str] = {
    TaxType.PPN: "Value added tax (PPN) 11%",
    TaxType.PPH21: "Employee income tax (PPh 21)",
    TaxType.PPH23: "Service withholding tax (PPh 23) 2%",
    TaxType.PPH4_2: "Final income tax (PPh 4(2))",
}


@dataclass
class TaxSummary:
    """Entity - gross, tax and net amounts for one tax type in one month."""
    fiscal_year: int
    fiscal_month: int
    tax_type: TaxType
    id: str = field(default_factory=lambda: new_id("tax"))
    gross_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    net_amount: Decimal = ZERO
    transaction_count: int = 0
    calculated_at: datetime = field(default_factory=utc_now)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        period: FiscalPeriod,
        tax_type: TaxType,
        gross_amount: AmountLike = ZERO,
        tax_amount: AmountLike = ZERO,
        transaction_count: int = 0,
    ) -> "TaxSummary":
        summary = cls(fiscal_year=period.year, fiscal_month=period.month, tax_type=tax_type)
        summary.recalculate(gross_amount, tax_amount, transaction_count)
        return summary

    @classmethod
    def from_persistence(cls, **fields) -> "TaxSummary":
        return cls(**fields)

    @property
    def standard_rate(self) -> Decimal:
        return TAX_RATES[self.tax_type]

    @property
    def description(self) -> str:
        return TAX_TYPE_DESCRIPTIONS[self.tax_type]

    @property
    def effective_rate(self) -> Decimal:
        if self.gross_amount == ZERO:
            return ZERO
        return self.tax_amount / self.gross_amount

    @property
    def period_string(self) -> str:
        return str(FiscalPeriod(self.fiscal_year, self.fiscal_month))

    def expected_tax(self) -> Decimal:
        return round_money(self.gross_amount * self.standard_rate)

    def recalculate(self, gross_amount: AmountLike, tax_amount: AmountLike, transaction_count: int) -> None:
        gross = to_decimal(gross_amount, "gross_amount")
        tax = to_decimal(tax_amount, "tax_amount")
        if transaction_count < 0:
            raise ValidationError("Transaction count cannot be negative", field="transaction_count")

        self.gross_amount = gross
        self.tax_amount = tax
        self.net_amount = gross - tax
        self.transaction_count = transaction_count
        self.calculated_at = utc_now()
        self.updated_at = self.calculated_at

    def add_transaction(self, gross_amount: AmountLike, tax_amount: AmountLike) -> None:
        self.recalculate(
            self.gross_amount + to_decimal(gross_amount, "gross_amount"),
            self.tax_amount + to_decimal(tax_amount, "tax_amount"),
            self.transaction_count + 1,
        )
