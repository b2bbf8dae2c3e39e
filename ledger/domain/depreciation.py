"""
Depreciation calculators - one formula per depreciation method.

Every calculator caps the result at ``book_value - salvage_value`` so an asset is
never depreciated below its salvage value, and rounds to cents.
"""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from .exceptions import ValidationError
from .value_objects import ZERO, DepreciationMethod, round_money

TWELVE = Decimal(12)
DEFAULT_DECLINING_FACTOR = Decimal(2)


@dataclass(frozen=True, slots=True)
class DepreciationInput:
    """Snapshot of an asset's depreciation state."""
    acquisition_cost: Decimal
    salvage_value: Decimal
    useful_life_months: int
    book_value: Decimal
    accumulated_depreciation: Decimal = ZERO
    period_months: int = 1
    total_units: Decimal | None = None
    units_produced: Decimal | None = None

    def __post_init__(self) -> None:
        if self.salvage_value > self.acquisition_cost:
            raise ValidationError("Salvage value cannot exceed acquisition cost", field="salvage_value")
        if self.useful_life_months <= 0:
            raise ValidationError("Useful life must be positive", field="useful_life_months")
        if self.period_months <= 0:
            raise ValidationError("Period months must be positive", field="period_months")

    @property
    def depreciable_amount(self) -> Decimal:
        return self.acquisition_cost - self.salvage_value

    @property
    def remaining_depreciable(self) -> Decimal:
        return max(ZERO, self.book_value - self.salvage_value)


def _cap(amount: Decimal, data: DepreciationInput) -> Decimal:
    return min(round_money(amount), data.remaining_depreciable)


def straight_line(data: DepreciationInput) -> Decimal:
    """(cost - salvage) / life per month."""
    monthly = data.depreciable_amount / data.useful_life_months
    return _cap(monthly * data.period_months, data)


def declining_balance(data: DepreciationInput, factor: Decimal = DEFAULT_DECLINING_FACTOR) -> Decimal:
    """Book value times factor times the straight-line annual rate, per month."""
    annual_rate = TWELVE / data.useful_life_months * factor
    monthly = data.book_value * annual_rate / TWELVE
    return _cap(monthly * data.period_months, data)


def sum_of_years_digits(data: DepreciationInput) -> Decimal:
    """
    Depreciable amount times remaining years over the sum of the years' digits.
    The current year is inferred from accumulated depreciation.
    """
    depreciable = data.depreciable_amount
    if depreciable <= ZERO:
        return ZERO
    life_years = Decimal(data.useful_life_months) / TWELVE
    sum_of_years = life_years * (life_years + 1) / 2

    monthly_avg = depreciable / data.useful_life_months
    elapsed_months = (data.accumulated_depreciation / monthly_avg).quantize(Decimal("0.000001"))
    current_year = (elapsed_months / TWELVE).to_integral_value(rounding=ROUND_FLOOR) + 1
    remaining_years = life_years - current_year + 1
    if remaining_years <= ZERO:
        return ZERO

    yearly = depreciable * remaining_years / sum_of_years
    return _cap(yearly / TWELVE * data.period_months, data)


def units_of_production(data: DepreciationInput) -> Decimal:
    """Depreciable amount per unit times units produced in the period."""
    if data.total_units is None or data.total_units <= ZERO:
        raise ValidationError(
            "Units of production requires a positive total_units", field="total_units"
        )
    if data.units_produced is None or data.units_produced < ZERO:
        raise ValidationError(
            "Units of production requires non-negative units_produced", field="units_produced"
        )
    per_unit = data.depreciable_amount / data.total_units
    return _cap(per_unit * data.units_produced, data)


Calculator = Callable[[DepreciationInput], Decimal]


def get_calculator(
    method: DepreciationMethod,
    declining_factor: Decimal = DEFAULT_DECLINING_FACTOR,
) -> Calculator:
    if method == DepreciationMethod.STRAIGHT_LINE:
        return straight_line
    elif method == DepreciationMethod.DECLINING_BALANCE:
        return lambda data: declining_balance(data, declining_factor)
    elif method == DepreciationMethod.SUM_OF_YEARS_DIGITS:
        return sum_of_years_digits
    elif method == DepreciationMethod.UNITS_OF_PRODUCTION:
        return units_of_production
    raise ValidationError(f"Unsupported depreciation method: {method}", field="depreciation_method")


def calculate_depreciation(
    method: DepreciationMethod,
    data: DepreciationInput,
    declining_factor: Decimal = DEFAULT_DECLINING_FACTOR,
) -> Decimal:
    return get_calculator(method, declining_factor)(data)
