"""
Ledger DTOs - Data Transfer Objects consumed and produced by the application services.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger.domain.value_objects import (
    AccountType,
    AssetStatus,
    BankTransactionType,
    DepreciationMethod,
    Direction,
    FiscalPeriodStatus,
    JournalEntryStatus,
    JournalEntryType,
    MatchStatus,
    NormalBalance,
    ReconciliationStatus,
    ReconcilingItemStatus,
    ReconcilingItemType,
)


class JournalLineCreateDTO(BaseModel):
    """DTO - journal line input."""
    account_id: str = Field(..., min_length=1, description="Ledger account id")
    direction: Direction = Field(..., description="Debit or Credit")
    amount: Decimal = Field(..., gt=0, description="Line amount, always positive")
    memo: str | None = Field(None, max_length=500, description="Line memo")
    sales_person_id: str | None = Field(None, description="Sales person dimension")
    warehouse_id: str | None = Field(None, description="Warehouse dimension")
    sales_channel: str | None = Field(None, description="Sales channel dimension")
    customer_id: str | None = Field(None, description="Customer dimension")
    vendor_id: str | None = Field(None, description="Vendor dimension")
    product_id: str | None = Field(None, description="Product dimension")


class JournalEntryCreateDTO(BaseModel):
    """DTO - create a draft journal entry."""
    entry_date: date = Field(..., description="Transaction date, decides the fiscal period")
    description: str = Field(..., min_length=1, max_length=500, description="Entry description")
    lines: list[JournalLineCreateDTO] = Field(..., min_length=2, description="Debit and credit lines")
    entry_type: JournalEntryType = Field(JournalEntryType.MANUAL, description="Entry origin")
    reference: str | None = Field(None, max_length=100, description="External document reference")
    notes: str | None = Field(None, description="Free-form notes")
    source_service: str | None = Field(None, description="Originating bounded context")
    source_reference_id: str | None = Field(None, description="Event id in the originating context")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "entry_date": "2025-01-15",
            "description": "Cash sale",
            "reference": "INV-0001",
            "lines": [
                {"account_id": "acc-cash", "direction": "Debit", "amount": "100.00"},
                {"account_id": "acc-revenue", "direction": "Credit", "amount": "100.00"},
            ],
        }
    })

    @model_validator(mode="after")
    def check_source_pair(self) -> "JournalEntryCreateDTO":
        if bool(self.source_service) != bool(self.source_reference_id):
            raise ValueError("source_service and source_reference_id must be given together")
        return self


class JournalLineResponseDTO(BaseModel):
    id: str
    line_sequence: int
    account_id: str
    direction: Direction
    amount: Decimal
    memo: str | None

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponseDTO(BaseModel):
    """DTO - journal entry with its lines."""
    id: str
    entry_number: str
    entry_date: date
    description: str
    entry_type: JournalEntryType
    status: JournalEntryStatus
    reference: str | None
    source_service: str | None
    source_reference_id: str | None
    total_debits: Decimal
    total_credits: Decimal
    lines: list[JournalLineResponseDTO]
    created_by: str
    created_at: datetime
    posted_by: str | None
    posted_at: datetime | None
    voided_by: str | None
    voided_at: datetime | None
    void_reason: str | None

    model_config = ConfigDict(from_attributes=True)


class AccountResponseDTO(BaseModel):
    id: str
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    parent_account_id: str | None
    level: int
    is_detail_account: bool
    is_system_account: bool

    model_config = ConfigDict(from_attributes=True)


class AccountBalanceResponseDTO(BaseModel):
    account_id: str
    fiscal_year: int
    fiscal_month: int
    opening_balance: Decimal
    debit_total: Decimal
    credit_total: Decimal
    closing_balance: Decimal
    net_change: Decimal

    model_config = ConfigDict(from_attributes=True)


class FiscalPeriodResponseDTO(BaseModel):
    id: str
    fiscal_year: int
    fiscal_month: int
    status: FiscalPeriodStatus
    closed_by: str | None
    closed_at: datetime | None
    reopen_reason: str | None
    locked_by: str | None
    locked_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class CloseChecklistDTO(BaseModel):
    """DTO - month-end close readiness."""
    period: str = Field(..., description="YYYY-MM")
    previous_period_closed: bool
    no_draft_entries: bool
    trial_balance_balanced: bool
    blockers: list[str]
    can_close: bool


class TrialBalanceDTO(BaseModel):
    period: str
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
    account_count: int


class BankTransactionImportDTO(BaseModel):
    """DTO - one statement line."""
    transaction_date: date
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., description="Non-zero; the sign is ignored, the type decides the side")
    transaction_type: BankTransactionType
    reference: str | None = None
    post_date: date | None = None
    running_balance: Decimal | None = None

    @model_validator(mode="after")
    def check_amount(self) -> "BankTransactionImportDTO":
        if self.amount == 0:
            raise ValueError("amount cannot be zero")
        return self


class BankStatementImportDTO(BaseModel):
    """DTO - statement header with its lines."""
    bank_account_id: str
    statement_date: date
    period_start: date
    period_end: date
    opening_balance: Decimal
    closing_balance: Decimal
    import_source: str | None = Field(None, description="File name or feed id")
    transactions: list[BankTransactionImportDTO] = Field(default_factory=list)


class ImportResultDTO(BaseModel):
    statement_id: str | None
    imported_count: int
    duplicate_count: int
    duplicate_fingerprints: list[str]
    totals_valid: bool


class ReconciliationStartDTO(BaseModel):
    bank_account_id: str
    fiscal_year: int = Field(..., ge=2000, le=2100)
    fiscal_month: int = Field(..., ge=1, le=12)
    statement_ending_balance: Decimal
    book_ending_balance: Decimal | None = Field(
        None, description="Defaults to the GL closing balance of the bank's account"
    )
    statement_id: str | None = None
    notes: str | None = None


class ReconcilingItemCreateDTO(BaseModel):
    item_type: ReconcilingItemType
    amount: Decimal
    description: str = Field(..., min_length=1)
    transaction_date: date | None = None
    reference: str | None = None
    requires_journal_entry: bool | None = None


class ReconcilingItemResponseDTO(BaseModel):
    id: str
    item_type: ReconcilingItemType
    amount: Decimal
    description: str
    status: ReconcilingItemStatus
    requires_journal_entry: bool
    journal_entry_id: str | None

    model_config = ConfigDict(from_attributes=True)


class ReconciliationResponseDTO(BaseModel):
    id: str
    bank_account_id: str
    fiscal_year: int
    fiscal_month: int
    status: ReconciliationStatus
    statement_ending_balance: Decimal
    book_ending_balance: Decimal
    adjusted_bank_balance: Decimal | None
    adjusted_book_balance: Decimal | None
    total_transactions: int
    matched_transactions: int
    unmatched_transactions: int
    items: list[ReconcilingItemResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class MatchPairDTO(BaseModel):
    transaction_id: str
    journal_line_id: str
    journal_entry_id: str


class AutoMatchResultDTO(BaseModel):
    matched_count: int
    unmatched_count: int
    pairs: list[MatchPairDTO]


class BankTransactionResponseDTO(BaseModel):
    id: str
    transaction_date: date
    description: str
    amount: Decimal
    transaction_type: BankTransactionType
    fingerprint: str
    match_status: MatchStatus
    matched_journal_line_id: str | None

    model_config = ConfigDict(from_attributes=True)


class FixedAssetResponseDTO(BaseModel):
    id: str
    asset_number: str
    name: str
    category_id: str
    acquisition_cost: Decimal
    salvage_value: Decimal
    depreciation_method: DepreciationMethod
    accumulated_depreciation: Decimal
    book_value: Decimal
    status: AssetStatus
    version: int

    model_config = ConfigDict(from_attributes=True)


class DepreciationRunResultDTO(BaseModel):
    """DTO - outcome of a monthly depreciation run."""
    run_id: str
    period: str
    asset_count: int
    total_depreciation: Decimal
    journal_entry_id: str | None
    skipped_asset_ids: list[str]
