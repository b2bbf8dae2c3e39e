"""
Unit tests - budgets, currencies and exchange rates, tax summaries and audit logs.
"""

import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from ledger.domain.entities import AuditLog, Budget, Currency, ExchangeRate, TaxSummary
from ledger.domain.exceptions import BusinessRuleError, NotFoundError, ValidationError
from ledger.domain.services import ExchangeRateService
from ledger.domain.value_objects import AuditAction, BudgetStatus, FiscalPeriod, Money, TaxType


class TestBudget:

    def test_lines_and_totals(self):
        budget = Budget.create(" Operating 2024 ", 2024, created_by="planner")
        assert budget.set_line("acc-rent", 1, "1000", "planner") is None
        budget.set_line("acc-rent", 2, "1000", "planner")
        budget.set_line("acc-power", 1, "250", "planner")
        assert budget.name == "Operating 2024"
        assert budget.total_for_month(1) == Decimal("1250")
        assert budget.total_for_account("acc-rent") == Decimal("2000")
        assert budget.total == Decimal("2250")

    def test_changing_a_line_returns_revision(self):
        budget = Budget.create("Operating", 2024)
        budget.set_line("acc-rent", 1, "1000", "planner")
        revision = budget.set_line("acc-rent", 1, "1200", "controller", reason="Rent increase")
        assert revision.previous_amount == Decimal("1000")
        assert revision.change == Decimal("200")
        assert revision.revised_by == "controller"
        assert budget.set_line("acc-rent", 1, "1200", "controller") is None

    def test_status_flow(self):
        budget = Budget.create("Operating", 2024)
        with pytest.raises(BusinessRuleError, match="without lines"):
            budget.approve("controller")
        budget.set_line("acc-rent", 1, "1000", "planner")
        budget.approve("controller")
        budget.lock("controller")
        assert budget.status == BudgetStatus.LOCKED
        with pytest.raises(BusinessRuleError, match="Locked"):
            budget.set_line("acc-rent", 1, "5", "planner")
        budget.reopen()
        assert budget.status == BudgetStatus.APPROVED
        assert budget.locked_by is None

    def test_validation(self):
        budget = Budget.create("Operating", 2024)
        with pytest.raises(ValidationError, match="fiscal month"):
            budget.set_line("acc-rent", 13, "1", "planner")
        with pytest.raises(ValidationError, match="negative"):
            budget.set_line("acc-rent", 1, "-1", "planner")
        with pytest.raises(ValidationError, match="fiscal year"):
            Budget.create("Old", 1999)


class TestCurrency:

    def test_create_and_format(self):
        rupiah = Currency.create("idr", "Indonesian Rupiah", "Rp", is_base_currency=True)
        assert rupiah.code == "IDR"
        assert rupiah.format("1234.5") == "Rp 1,234.50"

    def test_base_currency_cannot_be_deactivated(self):
        rupiah = Currency.create("IDR", "Indonesian Rupiah", "Rp", is_base_currency=True)
        with pytest.raises(BusinessRuleError, match="Base currency"):
            rupiah.deactivate()

    def test_rounding_follows_decimal_places(self):
        yen = Currency.create("JPY", "Japanese Yen", "¥", decimal_places=0)
        assert yen.round("1234.5") == Decimal("1235")

    def test_bad_code(self):
        with pytest.raises(ValidationError, match="3 letters"):
            Currency.create("RP", "Rupiah", "Rp")


class TestExchangeRate:

    def test_convert(self):
        rate = ExchangeRate.create("usd", "idr", "15500", date(2024, 3, 1))
        assert rate.convert("2") == Money(Decimal("31000"), "IDR")
        assert rate.reverse_convert("31000") == Money(Decimal("2"), "USD")

    def test_pair_must_differ(self):
        with pytest.raises(ValidationError, match="must differ"):
            ExchangeRate.create("USD", "usd", "1", date(2024, 3, 1))

    def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError, match="positive"):
            ExchangeRate.create("USD", "IDR", "0", date(2024, 3, 1))


class TestExchangeRateService:

    @pytest.fixture
    def service(self, repos):
        repos.rates.save(ExchangeRate.create("USD", "IDR", "15000", date(2024, 3, 1)))
        repos.rates.save(ExchangeRate.create("USD", "IDR", "15500", date(2024, 3, 15)))
        return ExchangeRateService(repos.rates)

    def test_exact_date(self, service):
        assert service.get_rate("usd", "idr", date(2024, 3, 15)).rate == Decimal("15500")

    def test_falls_back_to_latest_earlier_rate(self, service):
        assert service.get_rate("USD", "IDR", date(2024, 3, 10)).rate == Decimal("15000")

    def test_inverse_of_opposite_pair(self, service):
        converted = service.convert("31000", "IDR", "USD", date(2024, 3, 20)).round()
        assert converted == Money(Decimal("2.00"), "USD")

    def test_same_currency_is_identity(self, service):
        assert service.convert("10", "IDR", "idr", date(2024, 3, 1)) == Money(Decimal("10"), "IDR")

    def test_missing_rate(self, service):
        with pytest.raises(NotFoundError):
            service.get_rate("USD", "IDR", date(2024, 2, 28))
        with pytest.raises(NotFoundError):
            service.convert_money(Money(Decimal("1"), "EUR"), "IDR", date(2024, 3, 20))


class TestTaxSummary:

    def test_vat_summary(self):
        summary = TaxSummary.create(FiscalPeriod(2024, 3), TaxType.PPN, "1000000", "110000", 3)
        assert summary.net_amount == Decimal("890000")
        assert summary.expected_tax() == Decimal("110000.00")
        assert summary.effective_rate == Decimal("0.11")
        assert summary.period_string == "2024-03"

    def test_add_transaction(self):
        summary = TaxSummary.create(FiscalPeriod(2024, 3), TaxType.PPH23)
        assert summary.effective_rate == Decimal("0")
        summary.add_transaction("500000", "10000")
        summary.add_transaction("250000", "5000")
        assert summary.transaction_count == 2
        assert summary.gross_amount == Decimal("750000")
        assert summary.expected_tax() == Decimal("15000.00")


class TestAuditLog:

    def test_changed_fields(self):
        log = AuditLog.create(
            "controller", AuditAction.UPDATE, "Account", "acc-1",
            old_values={"name": "Cash", "status": "Active"},
            new_values={"name": "Cash on Hand", "status": "Active", "notes": "renamed"},
        )
        assert log.changed_fields() == ["name", "notes"]

    def test_is_immutable(self):
        log = AuditLog.create("controller", AuditAction.CREATE, "Account", "acc-1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            log.description = "edited"

    def test_requires_user(self):
        with pytest.raises(ValidationError, match="user_id"):
            AuditLog.create("", AuditAction.CREATE, "Account", "acc-1")
