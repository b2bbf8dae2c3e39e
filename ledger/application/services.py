"""
Application Services - ledger use cases orchestrated over repository ports.

Each public method is one unit of work. The caller owns the storage transaction:
it commits after a method returns and rolls back when one raises.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from ledger.application.dto.ledger_dto import (
    AutoMatchResultDTO,
    BankStatementImportDTO,
    CloseChecklistDTO,
    DepreciationRunResultDTO,
    ImportResultDTO,
    JournalEntryCreateDTO,
    JournalLineCreateDTO,
    MatchPairDTO,
    ReconciliationStartDTO,
    ReconcilingItemCreateDTO,
    TrialBalanceDTO,
)
from ledger.core.config import LedgerSettings, get_settings
from ledger.domain.entities import (
    Account,
    AccountBalance,
    AuditLog,
    BankReconciliation,
    BankStatement,
    BankTransaction,
    DepreciationRun,
    DepreciationSchedule,
    DisposalResult,
    FiscalPeriodEntity,
    FixedAsset,
    JournalEntry,
    JournalLineInput,
    ReconcilingItem,
)
from ledger.domain.exceptions import BusinessRuleError, NotFoundError
from ledger.domain.repositories import (
    IAccountBalanceRepository,
    IAccountRepository,
    IAssetCategoryRepository,
    IAuditLogRepository,
    IBankAccountRepository,
    IBankReconciliationRepository,
    IBankStatementRepository,
    IBankTransactionRepository,
    IDepreciationRunRepository,
    IDepreciationScheduleRepository,
    IFiscalPeriodRepository,
    IFixedAssetRepository,
    IJournalEntryRepository,
)
from ledger.domain.services import (
    AdjustmentAccounts,
    BalanceCalculationService,
    CloseChecklist,
    PeriodCloseService,
    ReconciliationService,
    book_lines_for_account,
)
from ledger.domain.value_objects import (
    ZERO,
    AmountLike,
    AuditAction,
    DepreciationMethod,
    DepreciationRunStatus,
    DepreciationScheduleStatus,
    Direction,
    DisposalMethod,
    FiscalPeriod,
    JournalEntryStatus,
    JournalEntryType,
    MatchStatus,
    ReconciliationStatus,
)

logger = logging.getLogger(__name__)

REVERSAL_SOURCE = "ledger.reversal"
RECONCILIATION_SOURCE = "bank_reconciliation"
DEPRECIATION_SOURCE = "depreciation"


class AuditService:
    """Append audit records when an audit repository is configured."""

    def __init__(self, audit_repo: IAuditLogRepository | None = None):
        self.audit_repo = audit_repo

    def record(
        self,
        user_id: str,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        *,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> AuditLog | None:
        if self.audit_repo is None:
            return None
        log = AuditLog.create(
            user_id,
            action,
            entity_type,
            entity_id,
            old_values=old_values,
            new_values=new_values,
            description=description,
        )
        self.audit_repo.save(log)
        return log


def _entry_snapshot(entry: JournalEntry) -> dict[str, Any]:
    return {
        "entry_number": entry.entry_number,
        "status": entry.status.value,
        "entry_date": entry.entry_date.isoformat(),
        "total_debits": str(entry.total_debits),
        "total_credits": str(entry.total_credits),
    }


def _load_accounts(account_repo: IAccountRepository, account_ids: Iterable[str]) -> dict[str, Account]:
    accounts: dict[str, Account] = {}
    for account_id in account_ids:
        account = account_repo.find_by_id(account_id)
        if account is not None:
            accounts[account_id] = account
    return accounts


class JournalEntryService:
    """Use cases - create, post, void and reverse journal entries."""

    def __init__(
        self,
        entry_repo: IJournalEntryRepository,
        account_repo: IAccountRepository,
        period_repo: IFiscalPeriodRepository,
        balance_repo: IAccountBalanceRepository,
        audit: AuditService | None = None,
    ):
        self.entry_repo = entry_repo
        self.account_repo = account_repo
        self.period_repo = period_repo
        self.balance_repo = balance_repo
        self.audit = audit or AuditService()
        self.balances = BalanceCalculationService()

    def get_entry(self, entry_id: str) -> JournalEntry:
        entry = self.entry_repo.find_by_id(entry_id)
        if entry is None:
            raise NotFoundError("JournalEntry", entry_id)
        return entry

    def create_entry(self, dto: JournalEntryCreateDTO, created_by: str) -> JournalEntry:
        """
        Create a draft entry. An entry already recorded for the same
        source_service/source_reference_id is returned instead of a duplicate.
        """
        if dto.source_service and dto.source_reference_id:
            existing = self.entry_repo.find_by_source_reference(dto.source_service, dto.source_reference_id)
            if existing is not None:
                logger.info(
                    "Source event %s/%s already recorded as %s",
                    dto.source_service, dto.source_reference_id, existing.entry_number,
                    extra={"entry_id": existing.id, "entry_number": existing.entry_number},
                )
                return existing

        for line in dto.lines:
            if self.account_repo.find_by_id(line.account_id) is None:
                raise NotFoundError("Account", line.account_id)

        period = FiscalPeriod.from_date(dto.entry_date)
        entry = JournalEntry.create(
            [JournalLineInput(**line.model_dump()) for line in dto.lines],
            dto.entry_date,
            dto.description,
            created_by,
            entry_number=self.entry_repo.generate_entry_number(period),
            entry_type=dto.entry_type,
            reference=dto.reference,
            notes=dto.notes,
            source_service=dto.source_service,
            source_reference_id=dto.source_reference_id,
        )
        self.entry_repo.save(entry)
        self.audit.record(
            created_by, AuditAction.CREATE, "JournalEntry", entry.id,
            new_values=_entry_snapshot(entry),
        )
        logger.info(
            "Created journal entry %s", entry.entry_number,
            extra={"entry_id": entry.id, "entry_number": entry.entry_number, "period": str(period)},
        )
        return entry

    def post_entry(self, entry_id: str, posted_by: str) -> JournalEntry:
        """Post a draft and roll its lines into the period balances."""
        entry = self.get_entry(entry_id)
        period = entry.fiscal_period
        period_entity = self.period_repo.find_by_period(period)
        if period_entity is None:
            raise NotFoundError("FiscalPeriod", str(period))

        accounts = _load_accounts(self.account_repo, entry.account_ids)
        old_values = _entry_snapshot(entry)
        entry.post(posted_by, period_entity.status, accounts)

        current: dict[str, AccountBalance] = {}
        previous: dict[str, AccountBalance] = {}
        for account_id in entry.account_ids:
            balance = self.balance_repo.find_by_account_and_period(account_id, period)
            if balance is not None:
                current[account_id] = balance
                continue
            prior = self.balance_repo.find_previous_period_balance(account_id, period)
            if prior is not None:
                previous[account_id] = prior
        touched = self.balances.apply_entry(entry, accounts, current, previous)
        self.balance_repo.save_many(touched)

        for account in accounts.values():
            if not account.has_transactions:
                account.mark_has_transactions()
                self.account_repo.save(account)

        self.entry_repo.save(entry)
        self.audit.record(
            posted_by, AuditAction.POST, "JournalEntry", entry.id,
            old_values=old_values, new_values=_entry_snapshot(entry),
        )
        logger.info(
            "Posted journal entry %s", entry.entry_number,
            extra={"entry_id": entry.id, "entry_number": entry.entry_number, "period": str(period)},
        )
        return entry

    def void_entry(self, entry_id: str, voided_by: str, reason: str) -> JournalEntry:
        """Flag a posted entry as void. Balances are left alone; see create_reversal."""
        entry = self.get_entry(entry_id)
        old_values = _entry_snapshot(entry)
        entry.void(voided_by, reason)
        self.entry_repo.save(entry)
        self.audit.record(
            voided_by, AuditAction.VOID, "JournalEntry", entry.id,
            old_values=old_values, new_values=_entry_snapshot(entry), description=entry.void_reason,
        )
        logger.info(
            "Voided journal entry %s", entry.entry_number,
            extra={"entry_id": entry.id, "entry_number": entry.entry_number},
        )
        return entry

    def create_reversal(
        self,
        entry_id: str,
        created_by: str,
        entry_date: date | None = None,
    ) -> JournalEntry:
        """Draft Manual entry with the original's lines on opposite sides."""
        original = self.get_entry(entry_id)
        if original.posted_at is None:
            raise BusinessRuleError(f"Entry {original.entry_number} was never posted and needs no reversal")
        dto = JournalEntryCreateDTO(
            entry_date=entry_date or original.entry_date,
            description=f"Reversal of {original.entry_number}",
            lines=[JournalLineCreateDTO(**asdict(line)) for line in original.reversal_lines()],
            entry_type=JournalEntryType.MANUAL,
            reference=original.entry_number,
            source_service=REVERSAL_SOURCE,
            source_reference_id=original.id,
        )
        return self.create_entry(dto, created_by)


class FiscalPeriodService:
    """Use cases - period lifecycle with sequential close and balance carry forward."""

    def __init__(
        self,
        period_repo: IFiscalPeriodRepository,
        balance_repo: IAccountBalanceRepository,
        account_repo: IAccountRepository,
        entry_repo: IJournalEntryRepository,
        audit: AuditService | None = None,
    ):
        self.period_repo = period_repo
        self.balance_repo = balance_repo
        self.account_repo = account_repo
        self.entry_repo = entry_repo
        self.audit = audit or AuditService()
        self.balances = BalanceCalculationService()
        self.closer = PeriodCloseService()

    def get_period(self, fiscal_year: int, fiscal_month: int) -> FiscalPeriodEntity:
        period = FiscalPeriod(fiscal_year, fiscal_month)
        entity = self.period_repo.find_by_period(period)
        if entity is None:
            raise NotFoundError("FiscalPeriod", str(period))
        return entity

    def open_period(self, fiscal_year: int, fiscal_month: int, opened_by: str) -> FiscalPeriodEntity:
        entity = FiscalPeriodEntity.create(fiscal_year, fiscal_month)
        if self.period_repo.period_exists(entity.period):
            raise BusinessRuleError(f"Fiscal period {entity.period} already exists", code="PERIOD_EXISTS")
        self.period_repo.save(entity)
        self.audit.record(opened_by, AuditAction.CREATE, "FiscalPeriod", entity.id,
                          new_values={"period": str(entity.period), "status": entity.status.value})
        logger.info("Opened fiscal period %s", entity.period, extra={"period": str(entity.period)})
        return entity

    def trial_balance(self, fiscal_year: int, fiscal_month: int) -> TrialBalanceDTO:
        period = FiscalPeriod(fiscal_year, fiscal_month)
        balances = self.balance_repo.find_by_period(period)
        accounts = _load_accounts(self.account_repo, (b.account_id for b in balances))
        result = self.balances.trial_balance(period, balances, accounts)
        return TrialBalanceDTO(
            period=str(period),
            total_debits=result.total_debits,
            total_credits=result.total_credits,
            difference=result.difference,
            is_balanced=result.is_balanced,
            account_count=result.account_count,
        )

    def get_close_checklist(self, fiscal_year: int, fiscal_month: int) -> CloseChecklistDTO:
        entity = self.get_period(fiscal_year, fiscal_month)
        checklist = self._checklist(entity)
        return CloseChecklistDTO(
            period=str(checklist.period),
            previous_period_closed=checklist.previous_period_closed,
            no_draft_entries=checklist.no_draft_entries,
            trial_balance_balanced=checklist.trial_balance_balanced,
            blockers=checklist.blockers,
            can_close=checklist.can_close,
        )

    def close_period(self, fiscal_year: int, fiscal_month: int, closed_by: str) -> FiscalPeriodEntity:
        """
        Close the period and carry its closing balances into the next period's
        opening balances, then on through later periods that already hold
        balances. The previous period must already be closed.
        """
        entity = self.get_period(fiscal_year, fiscal_month)
        previous = self._previous(entity)
        checklist = self._checklist(entity, previous)
        if not checklist.no_draft_entries or not checklist.trial_balance_balanced:
            raise BusinessRuleError(
                f"Period {entity.period} cannot be closed: " + "; ".join(checklist.blockers),
                code="PERIOD_CLOSE_BLOCKED",
            )

        entity.close(closed_by, previous.status if previous else None)

        next_period = entity.next_period
        carried = self._carry_into_next(entity.period)
        # later periods already holding balances chain their openings off this close
        period = next_period
        while self.balance_repo.find_by_period(period.next()):
            self._carry_into_next(period)
            period = period.next()

        self.period_repo.save(entity)
        self.audit.record(closed_by, AuditAction.CLOSE, "FiscalPeriod", entity.id,
                          new_values={"period": str(entity.period), "status": entity.status.value})
        logger.info(
            "Closed fiscal period %s, carried %d balances to %s",
            entity.period, len(carried), next_period,
            extra={"period": str(entity.period)},
        )
        return entity

    def reopen_period(self, fiscal_year: int, fiscal_month: int, reopened_by: str, reason: str) -> FiscalPeriodEntity:
        entity = self.get_period(fiscal_year, fiscal_month)
        entity.reopen(reopened_by, reason)
        self.period_repo.save(entity)
        self.audit.record(reopened_by, AuditAction.REOPEN, "FiscalPeriod", entity.id,
                          new_values={"status": entity.status.value}, description=entity.reopen_reason)
        logger.warning("Reopened fiscal period %s: %s", entity.period, entity.reopen_reason,
                       extra={"period": str(entity.period)})
        return entity

    def lock_period(self, fiscal_year: int, fiscal_month: int, locked_by: str) -> FiscalPeriodEntity:
        entity = self.get_period(fiscal_year, fiscal_month)
        entity.lock(locked_by)
        self.period_repo.save(entity)
        self.audit.record(locked_by, AuditAction.LOCK, "FiscalPeriod", entity.id,
                          new_values={"status": entity.status.value})
        logger.info("Locked fiscal period %s", entity.period, extra={"period": str(entity.period)})
        return entity

    def _carry_into_next(self, period: FiscalPeriod) -> list[AccountBalance]:
        next_period = period.next()
        closing = self.balance_repo.find_by_period(period)
        accounts = _load_accounts(self.account_repo, (b.account_id for b in closing))
        next_balances = {b.account_id: b for b in self.balance_repo.find_by_period(next_period)}
        carried = self.closer.carry_forward(closing, next_balances, accounts, next_period)
        self.balance_repo.save_many(carried)
        return carried

    def _previous(self, entity: FiscalPeriodEntity) -> FiscalPeriodEntity | None:
        previous_period = entity.previous_period
        if previous_period is None:
            return None
        return self.period_repo.find_by_period(previous_period)

    def _checklist(self, entity: FiscalPeriodEntity, previous: FiscalPeriodEntity | None = None) -> CloseChecklist:
        if previous is None:
            previous = self._previous(entity)
        drafts = self.entry_repo.find_by_fiscal_period(entity.period, JournalEntryStatus.DRAFT)
        balances = self.balance_repo.find_by_period(entity.period)
        accounts = _load_accounts(self.account_repo, (b.account_id for b in balances))
        trial = self.balances.trial_balance(entity.period, balances, accounts)
        return self.closer.build_checklist(entity, previous, len(drafts), trial)


class BankStatementImportService:
    """Use case - import a bank statement, skipping transactions seen before."""

    def __init__(
        self,
        bank_account_repo: IBankAccountRepository,
        statement_repo: IBankStatementRepository,
        transaction_repo: IBankTransactionRepository,
    ):
        self.bank_account_repo = bank_account_repo
        self.statement_repo = statement_repo
        self.transaction_repo = transaction_repo

    def import_statement(self, dto: BankStatementImportDTO, imported_by: str) -> ImportResultDTO:
        """
        Duplicates are detected by fingerprint, within the batch and against
        stored transactions. A statement whose lines are all duplicates is not
        stored again.
        """
        bank_account = self.bank_account_repo.find_by_id(dto.bank_account_id)
        if bank_account is None:
            raise NotFoundError("BankAccount", dto.bank_account_id)
        if not bank_account.is_active:
            raise BusinessRuleError(
                f"Bank account {bank_account.account_number} is {bank_account.status.value}",
                code="BANK_ACCOUNT_INACTIVE",
            )

        statement = BankStatement.create(
            bank_account.id,
            dto.statement_date,
            dto.period_start,
            dto.period_end,
            dto.opening_balance,
            dto.closing_balance,
            import_source=dto.import_source,
            imported_by=imported_by,
        )

        fresh: list[BankTransaction] = []
        duplicates: list[str] = []
        seen: set[str] = set()
        debits = credits = ZERO
        for line in dto.transactions:
            transaction = BankTransaction.create(
                bank_account.id,
                line.transaction_date,
                line.description,
                abs(line.amount),
                line.transaction_type,
                bank_statement_id=statement.id,
                post_date=line.post_date,
                reference=line.reference,
                running_balance=line.running_balance,
            )
            if transaction.is_debit:
                debits += transaction.absolute_amount
            else:
                credits += transaction.absolute_amount
            if transaction.fingerprint in seen or self.transaction_repo.fingerprint_exists(transaction.fingerprint):
                duplicates.append(transaction.fingerprint)
                continue
            seen.add(transaction.fingerprint)
            fresh.append(transaction)

        statement.update_counts(debits, credits, len(dto.transactions))
        totals_valid = statement.validate_totals()
        if not totals_valid:
            logger.warning(
                "Statement totals do not reconcile: expected closing %s, stated %s",
                statement.expected_closing_balance, statement.closing_balance,
                extra={"bank_account_id": bank_account.id},
            )

        if dto.transactions and not fresh:
            logger.info(
                "Statement already imported, %d duplicate transactions skipped", len(duplicates),
                extra={"bank_account_id": bank_account.id},
            )
            return ImportResultDTO(
                statement_id=None,
                imported_count=0,
                duplicate_count=len(duplicates),
                duplicate_fingerprints=duplicates,
                totals_valid=totals_valid,
            )

        self.statement_repo.save(statement)
        self.transaction_repo.save_many(fresh)
        logger.info(
            "Imported %d bank transactions, skipped %d duplicates", len(fresh), len(duplicates),
            extra={"bank_account_id": bank_account.id},
        )
        return ImportResultDTO(
            statement_id=statement.id,
            imported_count=len(fresh),
            duplicate_count=len(duplicates),
            duplicate_fingerprints=duplicates,
            totals_valid=totals_valid,
        )


class BankReconciliationService:
    """Use cases - monthly bank reconciliation from start to approval."""

    def __init__(
        self,
        reconciliation_repo: IBankReconciliationRepository,
        bank_account_repo: IBankAccountRepository,
        transaction_repo: IBankTransactionRepository,
        entry_repo: IJournalEntryRepository,
        balance_repo: IAccountBalanceRepository,
        journal_service: JournalEntryService | None = None,
        settings: LedgerSettings | None = None,
        audit: AuditService | None = None,
    ):
        self.reconciliation_repo = reconciliation_repo
        self.bank_account_repo = bank_account_repo
        self.transaction_repo = transaction_repo
        self.entry_repo = entry_repo
        self.balance_repo = balance_repo
        self.journal_service = journal_service
        self.settings = settings or get_settings()
        self.audit = audit or AuditService()
        self.matcher = ReconciliationService(
            date_tolerance_days=self.settings.match_date_tolerance_days,
            amount_tolerance=self.settings.match_amount_tolerance,
        )

    def get_reconciliation(self, reconciliation_id: str) -> BankReconciliation:
        reconciliation = self.reconciliation_repo.find_by_id(reconciliation_id)
        if reconciliation is None:
            raise NotFoundError("BankReconciliation", reconciliation_id)
        return reconciliation

    def start_reconciliation(self, dto: ReconciliationStartDTO, started_by: str) -> BankReconciliation:
        bank_account = self.bank_account_repo.find_by_id(dto.bank_account_id)
        if bank_account is None:
            raise NotFoundError("BankAccount", dto.bank_account_id)
        period = FiscalPeriod(dto.fiscal_year, dto.fiscal_month)
        if self.reconciliation_repo.find_by_account_and_period(bank_account.id, period) is not None:
            raise BusinessRuleError(
                f"Bank account {bank_account.account_number} already has a reconciliation for {period}",
                code="RECONCILIATION_EXISTS",
            )

        book_balance = dto.book_ending_balance
        if book_balance is None:
            balance = self.balance_repo.find_by_account_and_period(bank_account.account_id, period)
            if balance is None:
                balance = self.balance_repo.find_previous_period_balance(bank_account.account_id, period)
            book_balance = balance.closing_balance if balance else ZERO

        reconciliation = BankReconciliation.create(
            bank_account.id,
            dto.fiscal_year,
            dto.fiscal_month,
            dto.statement_ending_balance,
            book_balance,
            statement_id=dto.statement_id,
            created_by=started_by,
            notes=dto.notes,
        )
        reconciliation.start(started_by)
        self.reconciliation_repo.save(reconciliation)
        logger.info("Started reconciliation for %s", period,
                    extra={"bank_account_id": bank_account.id, "period": str(period)})
        return reconciliation

    def add_item(self, reconciliation_id: str, dto: ReconcilingItemCreateDTO, created_by: str) -> ReconcilingItem:
        reconciliation = self.get_reconciliation(reconciliation_id)
        item = reconciliation.add_reconciling_item(
            dto.item_type,
            dto.amount,
            dto.description,
            transaction_date=dto.transaction_date,
            reference=dto.reference,
            requires_journal_entry=dto.requires_journal_entry,
            created_by=created_by,
        )
        self.reconciliation_repo.save(reconciliation)
        return item

    def auto_match(self, reconciliation_id: str, matched_by: str) -> AutoMatchResultDTO:
        """Match the period's bank transactions to posted lines on the bank's GL account."""
        reconciliation = self.get_reconciliation(reconciliation_id)
        if reconciliation.status != ReconciliationStatus.IN_PROGRESS:
            raise BusinessRuleError(
                f"Cannot match transactions of a reconciliation in {reconciliation.status.value} status"
            )
        bank_account = self.bank_account_repo.find_by_id(reconciliation.bank_account_id)
        if bank_account is None:
            raise NotFoundError("BankAccount", reconciliation.bank_account_id)

        period = reconciliation.period
        transactions = self.transaction_repo.find_by_bank_account_id(
            bank_account.id, period.start_date, period.end_date
        )
        already_matched = {
            tx.matched_journal_line_id
            for tx in self.transaction_repo.find_by_bank_account_id(bank_account.id)
            if tx.match_status == MatchStatus.MATCHED and tx.matched_journal_line_id
        }
        slack = timedelta(days=self.matcher.date_tolerance_days)
        lines = [
            line
            for line in book_lines_for_account(self.entry_repo.find_by_account_id(bank_account.account_id),
                                               bank_account.account_id)
            if period.start_date - slack <= line.entry_date <= period.end_date + slack
        ]

        pairs = self.matcher.auto_match(transactions, lines, matched_by, already_matched)
        self.transaction_repo.save_many([tx for tx, _ in pairs])

        matched = sum(1 for tx in transactions if tx.match_status == MatchStatus.MATCHED)
        unmatched = sum(1 for tx in transactions if tx.match_status == MatchStatus.UNMATCHED)
        reconciliation.update_transaction_counts(len(transactions), matched, unmatched)
        self.reconciliation_repo.save(reconciliation)

        logger.info(
            "Auto-matched %d of %d bank transactions", len(pairs), len(transactions),
            extra={"bank_account_id": bank_account.id, "period": str(period)},
        )
        return AutoMatchResultDTO(
            matched_count=len(pairs),
            unmatched_count=unmatched,
            pairs=[
                MatchPairDTO(
                    transaction_id=tx.id,
                    journal_line_id=line.journal_line_id,
                    journal_entry_id=line.journal_entry_id,
                )
                for tx, line in pairs
            ],
        )

    def create_adjusting_entries(
        self,
        reconciliation_id: str,
        accounts: AdjustmentAccounts,
        created_by: str,
    ) -> list[JournalEntry]:
        """Draft an Adjusting entry for every book-side item and link it to the item."""
        if self.journal_service is None:
            raise BusinessRuleError("No journal service configured for adjusting entries")
        reconciliation = self.get_reconciliation(reconciliation_id)
        bank_account = self.bank_account_repo.find_by_id(reconciliation.bank_account_id)
        if bank_account is None:
            raise NotFoundError("BankAccount", reconciliation.bank_account_id)

        entries: list[JournalEntry] = []
        for item in reconciliation.items_requiring_journal_entries():
            lines = self.matcher.adjusting_lines(item, bank_account.account_id, accounts)
            dto = JournalEntryCreateDTO(
                entry_date=reconciliation.period.end_date,
                description=f"Bank reconciliation {reconciliation.period}: {item.description}",
                lines=[JournalLineCreateDTO(**asdict(line)) for line in lines],
                entry_type=JournalEntryType.ADJUSTING,
                reference=item.reference,
                source_service=RECONCILIATION_SOURCE,
                source_reference_id=item.id,
            )
            entry = self.journal_service.create_entry(dto, created_by)
            reconciliation.link_journal_entry(item.id, entry.id)
            entries.append(entry)
        self.reconciliation_repo.save(reconciliation)
        return entries

    def complete(self, reconciliation_id: str, completed_by: str) -> BankReconciliation:
        reconciliation = self.get_reconciliation(reconciliation_id)
        bank_account = self.bank_account_repo.find_by_id(reconciliation.bank_account_id)
        if bank_account is None:
            raise NotFoundError("BankAccount", reconciliation.bank_account_id)

        reconciliation.complete(completed_by)
        bank_account.record_reconciliation(
            reconciliation.period.end_date, reconciliation.statement_ending_balance
        )
        self.bank_account_repo.save(bank_account)
        self.reconciliation_repo.save(reconciliation)
        self.audit.record(completed_by, AuditAction.UPDATE, "BankReconciliation", reconciliation.id,
                          new_values={"status": reconciliation.status.value})
        logger.info("Completed reconciliation for %s", reconciliation.period,
                    extra={"bank_account_id": bank_account.id, "period": str(reconciliation.period)})
        return reconciliation

    def approve(self, reconciliation_id: str, approved_by: str) -> BankReconciliation:
        reconciliation = self.get_reconciliation(reconciliation_id)
        reconciliation.approve(approved_by)
        self.reconciliation_repo.save(reconciliation)
        self.audit.record(approved_by, AuditAction.APPROVE, "BankReconciliation", reconciliation.id,
                          new_values={"status": reconciliation.status.value})
        return reconciliation


class FixedAssetService:
    """Use cases - asset lifecycle changes saved with a version check."""

    def __init__(
        self,
        asset_repo: IFixedAssetRepository,
        category_repo: IAssetCategoryRepository,
        audit: AuditService | None = None,
    ):
        self.asset_repo = asset_repo
        self.category_repo = category_repo
        self.audit = audit or AuditService()

    def get_asset(self, asset_id: str) -> FixedAsset:
        asset = self.asset_repo.find_by_id(asset_id)
        if asset is None:
            raise NotFoundError("FixedAsset", asset_id)
        return asset

    def register_asset(
        self,
        name: str,
        category_id: str,
        acquisition_date: date,
        acquisition_cost: AmountLike,
        created_by: str,
        *,
        useful_life_months: int | None = None,
        depreciation_method: DepreciationMethod | None = None,
        salvage_value: AmountLike | None = None,
        total_units: AmountLike | None = None,
        depreciation_start_date: date | None = None,
        activate: bool = True,
    ) -> FixedAsset:
        """Register an asset; unset policy fields fall back to the category defaults."""
        category = self.category_repo.find_by_id(category_id)
        if category is None:
            raise NotFoundError("AssetCategory", category_id)
        if not category.is_active:
            raise BusinessRuleError(f"Asset category {category.code} is inactive")

        asset = FixedAsset.create(
            self.asset_repo.generate_asset_number(category.code),
            name,
            category.id,
            acquisition_date,
            acquisition_cost,
            useful_life_months or category.default_useful_life_months,
            depreciation_method=depreciation_method or category.default_depreciation_method,
            depreciation_start_date=depreciation_start_date,
            salvage_value=salvage_value if salvage_value is not None
            else category.calculate_salvage_value(acquisition_cost),
            total_units=total_units,
            created_by=created_by,
        )
        if activate:
            asset.activate()
        self.asset_repo.save(asset)
        self.audit.record(created_by, AuditAction.CREATE, "FixedAsset", asset.id,
                          new_values={"asset_number": asset.asset_number, "cost": str(asset.acquisition_cost)})
        logger.info("Registered asset %s", asset.asset_number, extra={"asset_id": asset.id})
        return asset

    def dispose_asset(
        self,
        asset_id: str,
        method: DisposalMethod,
        disposal_value: AmountLike,
        reason: str,
        disposed_by: str,
        expected_version: int,
    ) -> DisposalResult:
        """Dispose an asset read at ``expected_version``; a newer stored version is a conflict."""
        asset = self.get_asset(asset_id)
        result = asset.dispose(method, disposal_value, reason, disposed_by)
        self.asset_repo.save(asset, expected_version=expected_version)
        self.audit.record(disposed_by, AuditAction.UPDATE, "FixedAsset", asset.id,
                          new_values={"status": asset.status.value, "gain_loss": str(result.gain_loss)})
        logger.info("Disposed asset %s, gain/loss %s", asset.asset_number, result.gain_loss,
                    extra={"asset_id": asset.id})
        return result

    def write_off_asset(self, asset_id: str, reason: str, written_off_by: str, expected_version: int) -> DisposalResult:
        asset = self.get_asset(asset_id)
        result = asset.write_off(reason, written_off_by)
        self.asset_repo.save(asset, expected_version=expected_version)
        logger.info("Wrote off asset %s", asset.asset_number, extra={"asset_id": asset.id})
        return result


class DepreciationService:
    """Use case - monthly depreciation run posted as one System journal entry."""

    def __init__(
        self,
        asset_repo: IFixedAssetRepository,
        category_repo: IAssetCategoryRepository,
        schedule_repo: IDepreciationScheduleRepository,
        run_repo: IDepreciationRunRepository,
        journal_service: JournalEntryService,
        settings: LedgerSettings | None = None,
    ):
        self.asset_repo = asset_repo
        self.category_repo = category_repo
        self.schedule_repo = schedule_repo
        self.run_repo = run_repo
        self.journal_service = journal_service
        self.settings = settings or get_settings()

    def run_monthly(
        self,
        fiscal_year: int,
        fiscal_month: int,
        run_by: str,
        units_produced: Mapping[str, AmountLike] | None = None,
    ) -> DepreciationRunResultDTO:
        """
        Depreciate every depreciable asset for the month, record a schedule per
        asset, and post expense against accumulated depreciation by category.
        """
        period = FiscalPeriod(fiscal_year, fiscal_month)
        existing = self.run_repo.find_by_period(period)
        if existing is not None and existing.status != DepreciationRunStatus.REVERSED:
            raise BusinessRuleError(
                f"Depreciation for {period} has already been run", code="DEPRECIATION_RUN_EXISTS"
            )
        units_produced = units_produced or {}

        run = DepreciationRun(fiscal_year=period.year, fiscal_month=period.month, calculated_by=run_by)
        schedules: list[DepreciationSchedule] = []
        skipped: list[str] = []
        totals: dict[tuple[str, str], Decimal] = {}

        for asset in self.asset_repo.find_depreciable(period.end_date):
            posted = self.schedule_repo.find_by_asset_and_period(asset.id, period)
            if posted is not None and posted.status == DepreciationScheduleStatus.POSTED:
                continue
            category = self.category_repo.find_by_id(asset.category_id)
            if (
                category is None
                or not category.depreciation_expense_account_id
                or not category.accumulated_depreciation_account_id
            ):
                logger.warning("Asset %s has no depreciation accounts, skipped", asset.asset_number,
                               extra={"asset_id": asset.id})
                skipped.append(asset.id)
                continue
            units = units_produced.get(asset.id)
            if asset.depreciation_method == DepreciationMethod.UNITS_OF_PRODUCTION and units is None:
                skipped.append(asset.id)
                continue

            version = asset.version
            amount = asset.calculate_depreciation(
                period_months=1,
                units_produced=units,
                declining_factor=self.settings.declining_balance_factor,
            )
            if amount <= ZERO:
                skipped.append(asset.id)
                continue
            applied = asset.apply_depreciation(amount, period, units)
            self.asset_repo.save(asset, expected_version=version)

            schedule = DepreciationSchedule(
                asset_id=asset.id,
                fiscal_year=period.year,
                fiscal_month=period.month,
                depreciation_amount=applied,
                accumulated_depreciation=asset.accumulated_depreciation,
                book_value=asset.book_value,
            )
            run.add_schedule(schedule)
            schedules.append(schedule)
            key = (category.depreciation_expense_account_id, category.accumulated_depreciation_account_id)
            totals[key] = totals.get(key, ZERO) + applied

        entry_id = None
        if schedules:
            entry = self.journal_service.create_entry(self._entry_dto(period, run, totals), run_by)
            self.journal_service.post_entry(entry.id, run_by)
            run.post(entry.id, run_by)
            for schedule in schedules:
                schedule.mark_posted(entry.id)
            entry_id = entry.id

        self.schedule_repo.save_many(schedules)
        self.run_repo.save(run)
        logger.info(
            "Depreciation run %s: %d assets, total %s", period, run.asset_count, run.total_depreciation,
            extra={"period": str(period), "entry_id": entry_id},
        )
        return DepreciationRunResultDTO(
            run_id=run.id,
            period=str(period),
            asset_count=run.asset_count,
            total_depreciation=run.total_depreciation,
            journal_entry_id=entry_id,
            skipped_asset_ids=skipped,
        )

    @staticmethod
    def _entry_dto(
        period: FiscalPeriod,
        run: DepreciationRun,
        totals: Mapping[tuple[str, str], Decimal],
    ) -> JournalEntryCreateDTO:
        lines: list[JournalLineCreateDTO] = []
        for (expense_id, accumulated_id), amount in sorted(totals.items()):
            memo = f"Depreciation {period}"
            lines.append(JournalLineCreateDTO(account_id=expense_id, direction=Direction.DEBIT, amount=amount, memo=memo))
            lines.append(JournalLineCreateDTO(account_id=accumulated_id, direction=Direction.CREDIT, amount=amount, memo=memo))
        return JournalEntryCreateDTO(
            entry_date=period.end_date,
            description=f"Depreciation for {period}",
            lines=lines,
            entry_type=JournalEntryType.SYSTEM,
            source_service=DEPRECIATION_SOURCE,
            source_reference_id=run.id,
        )
