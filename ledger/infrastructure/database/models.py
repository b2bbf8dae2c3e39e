"""
Infrastructure - SQLModel table models for the persisted ledger aggregates.
Enum columns hold the enum value as a plain string.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

MONEY_DIGITS = 18
MONEY_PLACES = 2


def money(default: Decimal | None = Decimal("0"), **kwargs):
    return Field(default=default, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, **kwargs)


class Account(SQLModel, table=True):
    """Chart of accounts."""

    id: str = Field(primary_key=True)
    code: str = Field(unique=True, index=True)
    name: str
    name_en: str | None = None
    description: str | None = None
    account_type: str
    normal_balance: str
    account_category: str
    financial_statement_type: str
    parent_account_id: str | None = Field(default=None, index=True)
    level: int = 0
    is_detail_account: bool = True
    is_system_account: bool = False
    status: str = Field(default="Active", index=True)
    has_transactions: bool = False
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class JournalEntry(SQLModel, table=True):
    """Journal entry header."""

    id: str = Field(primary_key=True)
    entry_number: str = Field(unique=True, index=True)
    entry_date: date = Field(index=True)
    description: str
    entry_type: str
    status: str = Field(index=True)
    reference: str | None = None
    notes: str | None = None
    source_service: str | None = Field(default=None, index=True)
    source_reference_id: str | None = Field(default=None, index=True)
    created_by: str
    posted_by: str | None = None
    posted_at: datetime | None = None
    voided_by: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class JournalEntryLine(SQLModel, table=True):
    """Journal entry line; amount is always positive, direction gives the side."""

    id: str = Field(primary_key=True)
    journal_entry_id: str = Field(foreign_key="journalentry.id", index=True)
    account_id: str = Field(index=True)
    line_sequence: int
    direction: str
    amount: Decimal = money()
    memo: str | None = None
    sales_person_id: str | None = None
    warehouse_id: str | None = None
    sales_channel: str | None = None
    customer_id: str | None = None
    vendor_id: str | None = None
    product_id: str | None = None


class FiscalPeriod(SQLModel, table=True):
    """Accounting month."""

    __table_args__ = (UniqueConstraint("fiscal_year", "fiscal_month"),)

    id: str = Field(primary_key=True)
    fiscal_year: int = Field(index=True)
    fiscal_month: int
    status: str = Field(default="Open", index=True)
    closed_at: datetime | None = None
    closed_by: str | None = None
    reopened_at: datetime | None = None
    reopened_by: str | None = None
    reopen_reason: str | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime
    updated_at: datetime


class AccountBalance(SQLModel, table=True):
    """Balance of one account in one fiscal period."""

    __table_args__ = (UniqueConstraint("account_id", "fiscal_year", "fiscal_month"),)

    id: str = Field(primary_key=True)
    account_id: str = Field(index=True)
    fiscal_year: int
    fiscal_month: int
    opening_balance: Decimal = money()
    debit_total: Decimal = money()
    credit_total: Decimal = money()
    closing_balance: Decimal = money()
    last_updated_at: datetime


class BankTransaction(SQLModel, table=True):
    """Imported bank statement line."""

    id: str = Field(primary_key=True)
    bank_account_id: str = Field(index=True)
    bank_statement_id: str | None = Field(default=None, index=True)
    transaction_date: date = Field(index=True)
    post_date: date | None = None
    description: str
    amount: Decimal = money()
    transaction_type: str
    reference: str | None = None
    running_balance: Decimal | None = money(default=None)
    fingerprint: str = Field(unique=True, index=True)
    match_status: str = Field(default="UNMATCHED", index=True)
    matched_journal_line_id: str | None = None
    matched_at: datetime | None = None
    matched_by: str | None = None
    created_at: datetime


class FixedAsset(SQLModel, table=True):
    """Fixed asset register; ``version`` guards concurrent updates."""

    id: str = Field(primary_key=True)
    asset_number: str = Field(unique=True, index=True)
    name: str
    category_id: str = Field(index=True)
    description: str | None = None
    serial_number: str | None = None
    location: str | None = None
    department: str | None = None
    acquisition_date: date
    acquisition_method: str
    acquisition_cost: Decimal = money()
    vendor_id: str | None = None
    invoice_number: str | None = None
    useful_life_months: int
    depreciation_method: str
    depreciation_start_date: date
    salvage_value: Decimal = money()
    total_units: Decimal | None = Field(default=None, max_digits=MONEY_DIGITS, decimal_places=4)
    units_consumed: Decimal = Field(default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=4)
    accumulated_depreciation: Decimal = money()
    book_value: Decimal = money()
    last_depreciation_date: date | None = None
    status: str = Field(index=True)
    disposal_date: date | None = None
    disposal_method: str | None = None
    disposal_value: Decimal | None = money(default=None)
    disposal_reason: str | None = None
    disposed_by: str | None = None
    gain_loss_on_disposal: Decimal | None = money(default=None)
    last_verified_at: datetime | None = None
    last_verified_by: str | None = None
    version: int = 1
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime
