"""
Currency and exchange rate entities.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from ..exceptions import BusinessRuleError, ValidationError
from ..value_objects import (
    ZERO,
    AmountLike,
    ExchangeRateSource,
    Money,
    new_id,
    round_money,
    to_decimal,
    utc_now,
)


def _iso_code(code: str, name: str = "code") -> str:
    code = (code or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Currency code must be 3 letters, got {code!r}", field=name)
    return code


@dataclass
class Currency:
    """Entity - ISO 4217 currency."""
    code: str
    name: str
    symbol: str
    decimal_places: int = 2
    id: str = field(default_factory=lambda: new_id("cur"))
    is_base_currency: bool = False
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        code: str,
        name: str,
        symbol: str,
        decimal_places: int = 2,
        is_base_currency: bool = False,
    ) -> "Currency":
        if not name or not name.strip():
            raise ValidationError("Currency name is required", field="name")
        if not 0 <= decimal_places <= 4:
            raise ValidationError("Decimal places must be between 0 and 4", field="decimal_places")
        return cls(
            code=_iso_code(code),
            name=name.strip(),
            symbol=symbol,
            decimal_places=decimal_places,
            is_base_currency=is_base_currency,
        )

    def activate(self) -> None:
        self.is_active = True
        self.updated_at = utc_now()

    def deactivate(self) -> None:
        if self.is_base_currency:
            raise BusinessRuleError("Base currency cannot be deactivated")
        self.is_active = False
        self.updated_at = utc_now()

    def set_as_base(self) -> None:
        if not self.is_active:
            raise BusinessRuleError("Inactive currency cannot be the base currency")
        self.is_base_currency = True
        self.updated_at = utc_now()

    def unset_as_base(self) -> None:
        self.is_base_currency = False
        self.updated_at = utc_now()

    def round(self, amount: AmountLike) -> Decimal:
        return round_money(to_decimal(amount), self.decimal_places)

    def format(self, amount: AmountLike) -> str:
        return f"{self.symbol} {self.round(amount):,.{self.decimal_places}f}"


@dataclass
class ExchangeRate:
    """Entity - rate converting one unit of ``from_currency`` into ``to_currency``."""
    from_currency: str
    to_currency: str
    rate: Decimal
    effective_date: date
    id: str = field(default_factory=lambda: new_id("fx"))
    source: ExchangeRateSource = ExchangeRateSource.MANUAL
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        from_currency: str,
        to_currency: str,
        rate: AmountLike,
        effective_date: date,
        source: ExchangeRateSource = ExchangeRateSource.MANUAL,
        created_by: str | None = None,
    ) -> "ExchangeRate":
        from_code = _iso_code(from_currency, "from_currency")
        to_code = _iso_code(to_currency, "to_currency")
        if from_code == to_code:
            raise ValidationError("Exchange rate currencies must differ", field="to_currency")
        value = to_decimal(rate, "rate")
        if value <= ZERO:
            raise ValidationError("Exchange rate must be positive", field="rate")
        return cls(
            from_currency=from_code,
            to_currency=to_code,
            rate=value,
            effective_date=effective_date,
            source=source,
            created_by=created_by,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "ExchangeRate":
        return cls(**fields)

    def convert(self, amount: AmountLike) -> Money:
        return Money(to_decimal(amount) * self.rate, self.to_currency)

    def reverse_convert(self, amount: AmountLike) -> Money:
        return Money(to_decimal(amount) / self.rate, self.from_currency)

    def inverse(self) -> "ExchangeRate":
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal(1) / self.rate,
            effective_date=self.effective_date,
            source=self.source,
            created_by=self.created_by,
        )

    def is_effective_on(self, on: date) -> bool:
        return self.effective_date <= on

    def is_same_pair(self, from_currency: str, to_currency: str) -> bool:
        return self.from_currency == from_currency.upper() and self.to_currency == to_currency.upper()
