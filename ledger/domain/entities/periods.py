"""
Fiscal Period entity - Open/Closed/Locked state machine gating postings.
The period knows nothing of its siblings; callers pass the previous period's status.
"""

from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import BusinessRuleError, ValidationError
from ..value_objects import FiscalPeriod, FiscalPeriodStatus, new_id, utc_now

MIN_REOPEN_REASON_LENGTH = 10


@dataclass
class FiscalPeriodEntity:
    """
    Entity - accounting month with a lifecycle.

    Open -> Closed     previous period must be Closed or Locked
    Closed -> Open     reason of at least 10 characters
    Closed -> Locked   terminal
    """
    fiscal_year: int
    fiscal_month: int
    id: str = field(default_factory=lambda: new_id("fp"))
    status: FiscalPeriodStatus = FiscalPeriodStatus.OPEN
    closed_at: datetime | None = None
    closed_by: str | None = None
    reopened_at: datetime | None = None
    reopened_by: str | None = None
    reopen_reason: str | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, fiscal_year: int, fiscal_month: int) -> "FiscalPeriodEntity":
        period = FiscalPeriod(fiscal_year, fiscal_month)
        return cls(fiscal_year=period.year, fiscal_month=period.month)

    @classmethod
    def from_persistence(cls, **fields) -> "FiscalPeriodEntity":
        return cls(**fields)

    @property
    def period(self) -> FiscalPeriod:
        return FiscalPeriod(self.fiscal_year, self.fiscal_month)

    @property
    def previous_period(self) -> FiscalPeriod | None:
        return self.period.previous()

    @property
    def next_period(self) -> FiscalPeriod:
        return self.period.next()

    @property
    def is_open(self) -> bool:
        return self.status == FiscalPeriodStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == FiscalPeriodStatus.CLOSED

    @property
    def is_locked(self) -> bool:
        return self.status == FiscalPeriodStatus.LOCKED

    def can_post_entries(self) -> bool:
        return self.status == FiscalPeriodStatus.OPEN

    def can_close(self) -> bool:
        return self.status == FiscalPeriodStatus.OPEN

    def can_reopen(self) -> bool:
        return self.status == FiscalPeriodStatus.CLOSED

    def can_lock(self) -> bool:
        return self.status == FiscalPeriodStatus.CLOSED

    def close(self, closed_by: str, previous_period_status: FiscalPeriodStatus | None) -> None:
        """
        Open -> Closed. ``previous_period_status`` is the status of the period
        immediately before this one, or None when no such period exists.
        """
        if self.status != FiscalPeriodStatus.OPEN:
            raise BusinessRuleError(
                f"Cannot close period {self.period}: period is {self.status.value}",
                code="PERIOD_NOT_OPEN",
            )
        if not closed_by:
            raise ValidationError("closed_by is required", field="closed_by")
        if previous_period_status == FiscalPeriodStatus.OPEN:
            raise BusinessRuleError(
                f"Cannot close period {self.period}: previous period "
                f"{self.previous_period} is still open",
                code="PREVIOUS_PERIOD_OPEN",
            )

        now = utc_now()
        self.status = FiscalPeriodStatus.CLOSED
        self.closed_by = closed_by
        self.closed_at = now
        self.updated_at = now

    def reopen(self, reopened_by: str, reason: str) -> None:
        if self.status == FiscalPeriodStatus.OPEN:
            raise BusinessRuleError(f"Period {self.period} is already open")
        if self.status == FiscalPeriodStatus.LOCKED:
            raise BusinessRuleError(
                f"Period {self.period} is locked and cannot be reopened",
                code="PERIOD_LOCKED",
            )
        if not reopened_by:
            raise ValidationError("reopened_by is required", field="reopened_by")
        reason = (reason or "").strip()
        if len(reason) < MIN_REOPEN_REASON_LENGTH:
            raise ValidationError(
                f"Reopen reason must be at least {MIN_REOPEN_REASON_LENGTH} characters",
                field="reason",
            )

        now = utc_now()
        self.status = FiscalPeriodStatus.OPEN
        self.reopened_by = reopened_by
        self.reopened_at = now
        self.reopen_reason = reason
        self.closed_by = None
        self.closed_at = None
        self.updated_at = now

    def lock(self, locked_by: str) -> None:
        if self.status == FiscalPeriodStatus.OPEN:
            raise BusinessRuleError(f"Period {self.period} is open, close it first")
        if self.status == FiscalPeriodStatus.LOCKED:
            raise BusinessRuleError(f"Period {self.period} is already locked", code="PERIOD_LOCKED")
        if not locked_by:
            raise ValidationError("locked_by is required", field="locked_by")

        now = utc_now()
        self.status = FiscalPeriodStatus.LOCKED
        self.locked_by = locked_by
        self.locked_at = now
        self.updated_at = now
