"""Application layer - Use cases and DTOs."""

from ledger.application.dto.ledger_dto import (
    AutoMatchResultDTO,
    BankStatementImportDTO,
    CloseChecklistDTO,
    DepreciationRunResultDTO,
    ImportResultDTO,
    JournalEntryCreateDTO,
    JournalEntryResponseDTO,
    JournalLineCreateDTO,
    ReconciliationStartDTO,
    ReconcilingItemCreateDTO,
)
from ledger.application.services import (
    AuditService,
    BankReconciliationService,
    BankStatementImportService,
    DepreciationService,
    FiscalPeriodService,
    FixedAssetService,
    JournalEntryService,
)
