"""
Fixed Asset entities - asset register, categories, and depreciation records.
Every mutation of a FixedAsset bumps its version for optimistic concurrency.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from ..depreciation import DEFAULT_DECLINING_FACTOR, DepreciationInput, calculate_depreciation
from ..exceptions import BusinessRuleError, ValidationError
from ..value_objects import (
    ZERO,
    AcquisitionMethod,
    AmountLike,
    AssetStatus,
    DepreciationMethod,
    DepreciationRunStatus,
    DepreciationScheduleStatus,
    DisposalMethod,
    FiscalPeriod,
    new_id,
    round_money,
    to_decimal,
    utc_now,
)

_TERMINAL_STATUSES = frozenset({AssetStatus.DISPOSED, AssetStatus.WRITTEN_OFF})


def _required(value: str | None, name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{name} is required", field=name)
    return value.strip()


def _check_percent(value: Decimal) -> Decimal:
    if not ZERO <= value <= Decimal(100):
        raise ValidationError("Salvage percent must be between 0 and 100", field="default_salvage_percent")
    return value


@dataclass
class AssetCategory:
    """Entity - asset class with default depreciation policy and GL accounts."""
    code: str
    name: str
    default_useful_life_months: int
    default_depreciation_method: DepreciationMethod
    id: str = field(default_factory=lambda: new_id("ac"))
    description: str | None = None
    default_salvage_percent: Decimal = ZERO
    asset_account_id: str | None = None
    accumulated_depreciation_account_id: str | None = None
    depreciation_expense_account_id: str | None = None
    gain_loss_account_id: str | None = None
    tax_asset_group: str | None = None
    tax_useful_life_months: int | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        code: str,
        name: str,
        default_useful_life_months: int,
        default_depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        *,
        default_salvage_percent: AmountLike = ZERO,
        description: str | None = None,
        asset_account_id: str | None = None,
        accumulated_depreciation_account_id: str | None = None,
        depreciation_expense_account_id: str | None = None,
        gain_loss_account_id: str | None = None,
        tax_asset_group: str | None = None,
        tax_useful_life_months: int | None = None,
    ) -> "AssetCategory":
        if default_useful_life_months <= 0:
            raise ValidationError("Useful life must be positive", field="default_useful_life_months")
        return cls(
            code=_required(code, "code"),
            name=_required(name, "name"),
            default_useful_life_months=default_useful_life_months,
            default_depreciation_method=default_depreciation_method,
            default_salvage_percent=_check_percent(to_decimal(default_salvage_percent, "default_salvage_percent")),
            description=description,
            asset_account_id=asset_account_id,
            accumulated_depreciation_account_id=accumulated_depreciation_account_id,
            depreciation_expense_account_id=depreciation_expense_account_id,
            gain_loss_account_id=gain_loss_account_id,
            tax_asset_group=tax_asset_group,
            tax_useful_life_months=tax_useful_life_months,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "AssetCategory":
        return cls(**fields)

    def update(
        self,
        *,
        name: str | None = None,
        description: str | None = None,
        default_useful_life_months: int | None = None,
        default_depreciation_method: DepreciationMethod | None = None,
        default_salvage_percent: AmountLike | None = None,
    ) -> None:
        new_name = _required(name, "name") if name is not None else self.name
        if default_useful_life_months is not None and default_useful_life_months <= 0:
            raise ValidationError("Useful life must be positive", field="default_useful_life_months")
        new_percent = (
            _check_percent(to_decimal(default_salvage_percent, "default_salvage_percent"))
            if default_salvage_percent is not None else self.default_salvage_percent
        )

        self.name = new_name
        self.default_salvage_percent = new_percent
        if description is not None:
            self.description = description
        if default_useful_life_months is not None:
            self.default_useful_life_months = default_useful_life_months
        if default_depreciation_method is not None:
            self.default_depreciation_method = default_depreciation_method
        self.updated_at = utc_now()

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = utc_now()

    def reactivate(self) -> None:
        self.is_active = True
        self.updated_at = utc_now()

    def calculate_salvage_value(self, acquisition_cost: AmountLike) -> Decimal:
        cost = to_decimal(acquisition_cost, "acquisition_cost")
        return round_money(cost * self.default_salvage_percent / Decimal(100))


@dataclass(frozen=True, slots=True)
class DisposalResult:
    book_value_at_disposal: Decimal
    disposal_value: Decimal
    gain_loss: Decimal

    @property
    def is_gain(self) -> bool:
        return self.gain_loss > ZERO


@dataclass
class FixedAsset:
    """
    Aggregate root - fixed asset.
    book_value = acquisition_cost - accumulated_depreciation, never below salvage.

    DRAFT -> ACTIVE -> FULLY_DEPRECIATED, with SUSPENDED as a pause and DISPOSED
    or WRITTEN_OFF as terminal states.
    """
    asset_number: str
    name: str
    category_id: str
    acquisition_date: date
    acquisition_cost: Decimal
    useful_life_months: int
    depreciation_method: DepreciationMethod
    depreciation_start_date: date
    id: str = field(default_factory=lambda: new_id("fa"))
    description: str | None = None
    serial_number: str | None = None
    location: str | None = None
    department: str | None = None
    acquisition_method: AcquisitionMethod = AcquisitionMethod.PURCHASE
    vendor_id: str | None = None
    invoice_number: str | None = None
    salvage_value: Decimal = ZERO
    total_units: Decimal | None = None
    units_consumed: Decimal = ZERO
    accumulated_depreciation: Decimal = ZERO
    book_value: Decimal = ZERO
    last_depreciation_date: date | None = None
    status: AssetStatus = AssetStatus.DRAFT
    disposal_date: date | None = None
    disposal_method: DisposalMethod | None = None
    disposal_value: Decimal | None = None
    disposal_reason: str | None = None
    disposed_by: str | None = None
    gain_loss_on_disposal: Decimal | None = None
    last_verified_at: datetime | None = None
    last_verified_by: str | None = None
    version: int = 1
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        asset_number: str,
        name: str,
        category_id: str,
        acquisition_date: date,
        acquisition_cost: AmountLike,
        useful_life_months: int,
        *,
        depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        depreciation_start_date: date | None = None,
        salvage_value: AmountLike = ZERO,
        total_units: AmountLike | None = None,
        acquisition_method: AcquisitionMethod = AcquisitionMethod.PURCHASE,
        description: str | None = None,
        serial_number: str | None = None,
        location: str | None = None,
        department: str | None = None,
        vendor_id: str | None = None,
        invoice_number: str | None = None,
        created_by: str | None = None,
    ) -> "FixedAsset":
        cost = to_decimal(acquisition_cost, "acquisition_cost")
        salvage = to_decimal(salvage_value, "salvage_value")
        if cost <= ZERO:
            raise ValidationError("Acquisition cost must be positive", field="acquisition_cost")
        if salvage < ZERO:
            raise ValidationError("Salvage value cannot be negative", field="salvage_value")
        if salvage > cost:
            raise ValidationError("Salvage value cannot exceed acquisition cost", field="salvage_value")
        if useful_life_months <= 0:
            raise ValidationError("Useful life must be positive", field="useful_life_months")
        units = to_decimal(total_units, "total_units") if total_units is not None else None
        if depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION and (units is None or units <= ZERO):
            raise ValidationError(
                "Units of production assets need a positive total_units", field="total_units"
            )
        start = depreciation_start_date or acquisition_date
        if start < acquisition_date:
            raise ValidationError(
                "Depreciation cannot start before acquisition", field="depreciation_start_date"
            )
        return cls(
            asset_number=_required(asset_number, "asset_number"),
            name=_required(name, "name"),
            category_id=_required(category_id, "category_id"),
            acquisition_date=acquisition_date,
            acquisition_cost=cost,
            useful_life_months=useful_life_months,
            depreciation_method=depreciation_method,
            depreciation_start_date=start,
            salvage_value=salvage,
            total_units=units,
            book_value=cost,
            acquisition_method=acquisition_method,
            description=description,
            serial_number=serial_number,
            location=location,
            department=department,
            vendor_id=vendor_id,
            invoice_number=invoice_number,
            created_by=created_by,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "FixedAsset":
        return cls(**fields)

    @property
    def is_disposed(self) -> bool:
        return self.status in _TERMINAL_STATUSES

    @property
    def remaining_depreciable(self) -> Decimal:
        return max(ZERO, self.book_value - self.salvage_value)

    def is_depreciable(self, as_of: date) -> bool:
        return (
            self.status == AssetStatus.ACTIVE
            and self.depreciation_start_date <= as_of
            and self.book_value > self.salvage_value
        )

    def calculate_depreciation(
        self,
        period_months: int = 1,
        units_produced: AmountLike | None = None,
        declining_factor: Decimal = DEFAULT_DECLINING_FACTOR,
    ) -> Decimal:
        data = DepreciationInput(
            acquisition_cost=self.acquisition_cost,
            salvage_value=self.salvage_value,
            useful_life_months=self.useful_life_months,
            book_value=self.book_value,
            accumulated_depreciation=self.accumulated_depreciation,
            period_months=period_months,
            total_units=self.total_units,
            units_produced=to_decimal(units_produced, "units_produced") if units_produced is not None else None,
        )
        return calculate_depreciation(self.depreciation_method, data, declining_factor)

    def calculate_monthly_depreciation(self) -> Decimal:
        return self.calculate_depreciation(period_months=1)

    def activate(self) -> None:
        if self.status != AssetStatus.DRAFT:
            raise BusinessRuleError(f"Only draft assets can be activated, asset is {self.status.value}")
        self.status = AssetStatus.ACTIVE
        self._bump()

    def apply_depreciation(
        self,
        amount: AmountLike,
        period: FiscalPeriod,
        units_produced: AmountLike | None = None,
    ) -> Decimal:
        """
        Add depreciation for a period and return the amount actually applied,
        which is capped at book value minus salvage value.
        """
        if self.status != AssetStatus.ACTIVE:
            raise BusinessRuleError(
                f"Cannot depreciate asset {self.asset_number} in {self.status.value} status",
                code="ASSET_NOT_ACTIVE",
            )
        if self.depreciation_start_date > period.end_date:
            raise BusinessRuleError(
                f"Depreciation of asset {self.asset_number} starts after {period}",
                code="DEPRECIATION_NOT_STARTED",
            )
        value = to_decimal(amount)
        if value < ZERO:
            raise ValidationError("Depreciation amount cannot be negative", field="amount")
        units = to_decimal(units_produced, "units_produced") if units_produced is not None else ZERO
        if units < ZERO:
            raise ValidationError("Units produced cannot be negative", field="units_produced")

        applied = min(value, self.remaining_depreciable)
        self.accumulated_depreciation += applied
        self.book_value = self.acquisition_cost - self.accumulated_depreciation
        self.units_consumed += units
        self.last_depreciation_date = period.end_date
        if self.book_value <= self.salvage_value:
            self.status = AssetStatus.FULLY_DEPRECIATED
        self._bump()
        return applied

    def dispose(
        self,
        method: DisposalMethod,
        disposal_value: AmountLike,
        reason: str,
        disposed_by: str,
        disposal_date: date | None = None,
    ) -> DisposalResult:
        self._ensure_not_disposed()
        value = to_decimal(disposal_value, "disposal_value")
        if value < ZERO:
            raise ValidationError("Disposal value cannot be negative", field="disposal_value")
        reason = _required(reason, "reason")
        disposed_by = _required(disposed_by, "disposed_by")

        result = DisposalResult(
            book_value_at_disposal=self.book_value,
            disposal_value=value,
            gain_loss=value - self.book_value,
        )
        self.status = AssetStatus.DISPOSED
        self.disposal_date = disposal_date or utc_now().date()
        self.disposal_method = method
        self.disposal_value = value
        self.disposal_reason = reason
        self.disposed_by = disposed_by
        self.gain_loss_on_disposal = result.gain_loss
        self._bump()
        return result

    def write_off(
        self,
        reason: str,
        written_off_by: str,
        write_off_date: date | None = None,
    ) -> DisposalResult:
        """Remove the asset with no proceeds; the whole book value is a loss."""
        self._ensure_not_disposed()
        reason = _required(reason, "reason")
        written_off_by = _required(written_off_by, "written_off_by")

        result = DisposalResult(
            book_value_at_disposal=self.book_value,
            disposal_value=ZERO,
            gain_loss=-self.book_value,
        )
        self.status = AssetStatus.WRITTEN_OFF
        self.disposal_date = write_off_date or utc_now().date()
        self.disposal_value = ZERO
        self.disposal_reason = reason
        self.disposed_by = written_off_by
        self.gain_loss_on_disposal = result.gain_loss
        self._bump()
        return result

    def suspend(self) -> None:
        if self.status != AssetStatus.ACTIVE:
            raise BusinessRuleError(f"Only active assets can be suspended, asset is {self.status.value}")
        self.status = AssetStatus.SUSPENDED
        self._bump()

    def resume(self) -> None:
        if self.status != AssetStatus.SUSPENDED:
            raise BusinessRuleError(f"Only suspended assets can resume, asset is {self.status.value}")
        self.status = AssetStatus.ACTIVE
        self._bump()

    def transfer(
        self,
        transferred_by: str,
        *,
        location: str | None = None,
        department: str | None = None,
    ) -> None:
        self._ensure_not_disposed()
        if location is None and department is None:
            raise ValidationError("Transfer needs a new location or department")
        _required(transferred_by, "transferred_by")

        if location is not None:
            self.location = location
        if department is not None:
            self.department = department
        self._bump()

    def verify(self, verified_by: str) -> None:
        self._ensure_not_disposed()
        self.last_verified_by = _required(verified_by, "verified_by")
        self.last_verified_at = utc_now()
        self._bump()

    def _ensure_not_disposed(self) -> None:
        if self.status in _TERMINAL_STATUSES:
            raise BusinessRuleError(
                f"Asset {self.asset_number} is already {self.status.value}",
                code="ASSET_DISPOSED",
            )

    def _bump(self) -> None:
        self.version += 1
        self.updated_at = utc_now()


@dataclass
class DepreciationSchedule:
    """Entity - depreciation of one asset for one month."""
    asset_id: str
    fiscal_year: int
    fiscal_month: int
    depreciation_amount: Decimal
    accumulated_depreciation: Decimal
    book_value: Decimal
    id: str = field(default_factory=lambda: new_id("ds"))
    status: DepreciationScheduleStatus = DepreciationScheduleStatus.CALCULATED
    run_id: str | None = None
    journal_entry_id: str | None = None
    posted_at: datetime | None = None
    reversed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def period(self) -> FiscalPeriod:
        return FiscalPeriod(self.fiscal_year, self.fiscal_month)

    def mark_posted(self, journal_entry_id: str) -> None:
        if self.status not in (DepreciationScheduleStatus.SCHEDULED, DepreciationScheduleStatus.CALCULATED):
            raise BusinessRuleError(f"Schedule in {self.status.value} status cannot be posted")
        self.journal_entry_id = _required(journal_entry_id, "journal_entry_id")
        self.status = DepreciationScheduleStatus.POSTED
        self.posted_at = utc_now()

    def reverse(self) -> None:
        if self.status != DepreciationScheduleStatus.POSTED:
            raise BusinessRuleError("Only posted schedules can be reversed")
        self.status = DepreciationScheduleStatus.REVERSED
        self.reversed_at = utc_now()


@dataclass
class DepreciationRun:
    """Entity - monthly batch of depreciation schedules."""
    fiscal_year: int
    fiscal_month: int
    id: str = field(default_factory=lambda: new_id("dr"))
    status: DepreciationRunStatus = DepreciationRunStatus.CALCULATED
    total_depreciation: Decimal = ZERO
    asset_count: int = 0
    journal_entry_id: str | None = None
    calculated_by: str | None = None
    calculated_at: datetime = field(default_factory=utc_now)
    posted_by: str | None = None
    posted_at: datetime | None = None
    reversed_by: str | None = None
    reversed_at: datetime | None = None

    @property
    def period(self) -> FiscalPeriod:
        return FiscalPeriod(self.fiscal_year, self.fiscal_month)

    def add_schedule(self, schedule: DepreciationSchedule) -> None:
        if self.status != DepreciationRunStatus.CALCULATED:
            raise BusinessRuleError("Schedules can only be added to a calculated run")
        schedule.run_id = self.id
        self.total_depreciation += schedule.depreciation_amount
        self.asset_count += 1

    def post(self, journal_entry_id: str, posted_by: str) -> None:
        if self.status != DepreciationRunStatus.CALCULATED:
            raise BusinessRuleError(f"Run in {self.status.value} status cannot be posted")
        self.journal_entry_id = _required(journal_entry_id, "journal_entry_id")
        self.status = DepreciationRunStatus.POSTED
        self.posted_by = posted_by
        self.posted_at = utc_now()

    def reverse(self, reversed_by: str) -> None:
        if self.status != DepreciationRunStatus.POSTED:
            raise BusinessRuleError("Only posted runs can be reversed")
        self.status = DepreciationRunStatus.REVERSED
        self.reversed_by = reversed_by
        self.reversed_at = utc_now()
