"""
Unit tests - fiscal period lifecycle, account balances, trial balance and
period close checks.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.domain.entities import AccountBalance, FiscalPeriodEntity, JournalEntry, compute_closing_balance
from ledger.domain.exceptions import BusinessRuleError, NotFoundError, ValidationError
from ledger.domain.services import BalanceCalculationService, PeriodCloseService
from ledger.domain.value_objects import FiscalPeriod, FiscalPeriodStatus, NormalBalance
from tests.fakes import line


class TestFiscalPeriodLifecycle:

    def test_close_reopen_lock(self):
        period = FiscalPeriodEntity.create(2024, 3)
        assert period.is_open and period.can_post_entries()

        period.close("controller", FiscalPeriodStatus.CLOSED)
        assert period.is_closed and period.closed_by == "controller"

        period.reopen("controller", "Late supplier invoice")
        assert period.is_open
        assert period.closed_at is None
        assert period.reopen_reason == "Late supplier invoice"

        period.close("controller", None)
        period.lock("auditor")
        assert period.is_locked

    def test_close_blocked_by_open_previous_period(self):
        period = FiscalPeriodEntity.create(2024, 3)
        with pytest.raises(BusinessRuleError, match="still open") as exc:
            period.close("controller", FiscalPeriodStatus.OPEN)
        assert exc.value.code == "PREVIOUS_PERIOD_OPEN"
        assert period.is_open

    def test_reopen_reason_minimum_length(self):
        period = FiscalPeriodEntity.create(2024, 3)
        period.close("controller", None)
        with pytest.raises(ValidationError, match="at least 10"):
            period.reopen("controller", "fix")
        assert period.is_closed

    def test_locked_period_cannot_reopen(self):
        period = FiscalPeriodEntity.create(2024, 3)
        period.close("controller", None)
        period.lock("auditor")
        with pytest.raises(BusinessRuleError, match="locked") as exc:
            period.reopen("controller", "Need to fix an entry")
        assert exc.value.code == "PERIOD_LOCKED"

    def test_lock_requires_closed(self):
        period = FiscalPeriodEntity.create(2024, 3)
        with pytest.raises(BusinessRuleError, match="close it first"):
            period.lock("auditor")

    def test_january_previous_period(self):
        period = FiscalPeriodEntity.create(2024, 1)
        assert period.previous_period == FiscalPeriod(2023, 12)
        assert period.next_period == FiscalPeriod(2024, 2)


class TestAccountBalance:

    def test_closing_by_normal_side(self):
        assert compute_closing_balance(Decimal("100"), Decimal("50"), Decimal("20"), NormalBalance.DEBIT) == Decimal("130")
        assert compute_closing_balance(Decimal("100"), Decimal("50"), Decimal("20"), NormalBalance.CREDIT) == Decimal("70")

    def test_add_transactions_accumulates(self):
        balance = AccountBalance.create("acc-1", FiscalPeriod(2024, 3), opening_balance="500")
        balance.add_transactions("200", "50", NormalBalance.DEBIT)
        balance.add_transactions("0", "100", NormalBalance.DEBIT)
        assert balance.debit_total == Decimal("200")
        assert balance.credit_total == Decimal("150")
        assert balance.closing_balance == Decimal("550")
        assert balance.net_change == Decimal("50")

    def test_negative_totals_rejected(self):
        balance = AccountBalance.create("acc-1", FiscalPeriod(2024, 3))
        with pytest.raises(ValidationError, match="negative"):
            balance.update_from_transactions("-1", "0", NormalBalance.DEBIT)

    def test_set_opening_is_idempotent(self):
        balance = AccountBalance.create("acc-1", FiscalPeriod(2024, 4))
        balance.add_transactions("10", "0", NormalBalance.DEBIT)
        balance.set_opening_balance("90", NormalBalance.DEBIT)
        balance.set_opening_balance("90", NormalBalance.DEBIT)
        assert balance.opening_balance == Decimal("90")
        assert balance.closing_balance == Decimal("100")


def _posted(entry: JournalEntry) -> JournalEntry:
    entry.post("approver", FiscalPeriodStatus.OPEN)
    return entry


class TestBalanceCalculation:

    def test_period_balances_from_posted_entries(self, chart, cash_account, revenue_account):
        accounts = {a.id: a for a in chart.values()}
        march = FiscalPeriod(2024, 3)
        posted = _posted(JournalEntry.create(
            [line(cash_account, "Debit", "1000"), line(revenue_account, "Credit", "1000")],
            date(2024, 3, 5), "Sale", "tester",
        ))
        draft = JournalEntry.create(
            [line(cash_account, "Debit", "300"), line(revenue_account, "Credit", "300")],
            date(2024, 3, 6), "Draft sale", "tester",
        )
        other_month = _posted(JournalEntry.create(
            [line(cash_account, "Debit", "70"), line(revenue_account, "Credit", "70")],
            date(2024, 4, 1), "April sale", "tester",
        ))
        previous = {cash_account.id: AccountBalance(cash_account.id, 2024, 2, closing_balance=Decimal("250"))}

        balances = BalanceCalculationService().calculate_period_balances(
            march, accounts, [posted, draft, other_month], previous
        )

        assert balances[cash_account.id].opening_balance == Decimal("250")
        assert balances[cash_account.id].closing_balance == Decimal("1250")
        assert balances[revenue_account.id].closing_balance == Decimal("1000")

    def test_voided_entries_still_count(self, chart, cash_account, revenue_account):
        """Voiding flags an entry; the correction is a separate reversal."""
        accounts = {a.id: a for a in chart.values()}
        entry = _posted(JournalEntry.create(
            [line(cash_account, "Debit", "80"), line(revenue_account, "Credit", "80")],
            date(2024, 3, 5), "Sale", "tester",
        ))
        entry.void("controller", "wrong customer")
        balances = BalanceCalculationService().calculate_period_balances(FiscalPeriod(2024, 3), accounts, [entry])
        assert balances[cash_account.id].closing_balance == Decimal("80")

    def test_apply_entry_creates_missing_balance_from_previous(self, chart, cash_account, revenue_account):
        accounts = {a.id: a for a in chart.values()}
        entry = _posted(JournalEntry.create(
            [line(cash_account, "Debit", "40"), line(revenue_account, "Credit", "40")],
            date(2024, 3, 5), "Sale", "tester",
        ))
        current = {revenue_account.id: AccountBalance.create(revenue_account.id, FiscalPeriod(2024, 3), "100")}
        previous = {cash_account.id: AccountBalance(cash_account.id, 2024, 2, closing_balance=Decimal("60"))}

        touched = {b.account_id: b for b in BalanceCalculationService().apply_entry(entry, accounts, current, previous)}

        assert touched[cash_account.id].opening_balance == Decimal("60")
        assert touched[cash_account.id].closing_balance == Decimal("100")
        assert touched[revenue_account.id].closing_balance == Decimal("140")

    def test_apply_entry_requires_posted(self, chart, sale_entry):
        with pytest.raises(BusinessRuleError, match="not posted"):
            BalanceCalculationService().apply_entry(sale_entry, {a.id: a for a in chart.values()}, {})

    def test_unknown_account(self, sale_entry):
        _posted(sale_entry)
        with pytest.raises(NotFoundError):
            BalanceCalculationService().apply_entry(sale_entry, {}, {})


class TestTrialBalance:

    def test_balanced_after_posting(self, chart, cash_account, revenue_account):
        accounts = {a.id: a for a in chart.values()}
        march = FiscalPeriod(2024, 3)
        entry = _posted(JournalEntry.create(
            [line(cash_account, "Debit", "1000"), line(revenue_account, "Credit", "1000")],
            date(2024, 3, 5), "Sale", "tester",
        ))
        service = BalanceCalculationService()
        balances = service.calculate_period_balances(march, accounts, [entry])
        result = service.trial_balance(march, balances.values(), accounts)
        assert result.total_debits == result.total_credits == Decimal("1000")
        assert result.is_balanced
        assert service.validate_trial_balance(march, balances.values(), accounts) == (True, [])

    def test_negative_balance_moves_column(self, chart, cash_account, revenue_account):
        accounts = {a.id: a for a in chart.values()}
        march = FiscalPeriod(2024, 3)
        overdrawn = AccountBalance(cash_account.id, 2024, 3, closing_balance=Decimal("-200"))
        revenue = AccountBalance(revenue_account.id, 2024, 3, closing_balance=Decimal("-200"))
        result = BalanceCalculationService().trial_balance(march, [overdrawn, revenue], accounts)
        assert result.total_debits == Decimal("200")
        assert result.total_credits == Decimal("200")

    def test_out_of_balance_reported(self, chart, cash_account):
        accounts = {a.id: a for a in chart.values()}
        march = FiscalPeriod(2024, 3)
        balance = AccountBalance(cash_account.id, 2024, 3, closing_balance=Decimal("5"))
        ok, errors = BalanceCalculationService().validate_trial_balance(march, [balance], accounts)
        assert not ok
        assert "out by 5" in errors[0]


class TestPeriodClose:

    def test_checklist_passes(self):
        march = FiscalPeriodEntity.create(2024, 3)
        february = FiscalPeriodEntity.create(2024, 2)
        february.close("controller", None)
        checklist = PeriodCloseService().build_checklist(march, february, 0)
        assert checklist.can_close
        assert checklist.blockers == []

    def test_checklist_collects_every_blocker(self):
        from ledger.domain.services import TrialBalance

        march = FiscalPeriodEntity.create(2024, 3)
        february = FiscalPeriodEntity.create(2024, 2)
        trial = TrialBalance(FiscalPeriod(2024, 3), Decimal("10"), Decimal("9"), 2)
        checklist = PeriodCloseService().build_checklist(march, february, 2, trial)
        assert not checklist.can_close
        assert not checklist.previous_period_closed
        assert not checklist.no_draft_entries
        assert not checklist.trial_balance_balanced
        assert len(checklist.blockers) == 3

    def test_carry_forward_is_idempotent(self, chart, cash_account):
        accounts = {a.id: a for a in chart.values()}
        april = FiscalPeriod(2024, 4)
        closing = [AccountBalance(cash_account.id, 2024, 3, closing_balance=Decimal("1250"))]
        next_balances = {cash_account.id: AccountBalance.create(cash_account.id, april)}
        next_balances[cash_account.id].add_transactions("50", "0", NormalBalance.DEBIT)

        service = PeriodCloseService()
        service.carry_forward(closing, next_balances, accounts, april)
        carried = service.carry_forward(closing, next_balances, accounts, april)

        assert carried[0].opening_balance == Decimal("1250")
        assert carried[0].closing_balance == Decimal("1300")

    def test_carry_forward_creates_missing_balances(self, chart, cash_account):
        accounts = {a.id: a for a in chart.values()}
        closing = [AccountBalance(cash_account.id, 2024, 3, closing_balance=Decimal("75"))]
        carried = PeriodCloseService().carry_forward(closing, {}, accounts, FiscalPeriod(2024, 4))
        assert carried[0].period == FiscalPeriod(2024, 4)
        assert carried[0].closing_balance == Decimal("75")
