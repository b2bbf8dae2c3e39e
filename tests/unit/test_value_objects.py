"""
Unit tests - value objects: account codes, money and fiscal periods.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.domain.exceptions import ValidationError
from ledger.domain.value_objects import (
    AccountCategory,
    AccountCode,
    AccountType,
    FinancialStatementType,
    FiscalPeriod,
    Money,
    NormalBalance,
    round_money,
    to_decimal,
)


class TestAccountCode:
    """Classification is derived from the numeric range of the code."""

    @pytest.mark.parametrize("code,account_type,normal", [
        ("1100", AccountType.ASSET, NormalBalance.DEBIT),
        ("2100", AccountType.LIABILITY, NormalBalance.CREDIT),
        ("3100", AccountType.EQUITY, NormalBalance.CREDIT),
        ("4100", AccountType.REVENUE, NormalBalance.CREDIT),
        ("5100", AccountType.COGS, NormalBalance.DEBIT),
        ("6100", AccountType.EXPENSE, NormalBalance.DEBIT),
        ("9999", AccountType.EXPENSE, NormalBalance.DEBIT),
    ])
    def test_type_and_normal_balance(self, code, account_type, normal):
        account_code = AccountCode(code)
        assert account_code.account_type == account_type
        assert account_code.normal_balance == normal

    def test_categories(self):
        """Sub-ranges pick the category; gaps fall back by type."""
        assert AccountCode("1450").account_category == AccountCategory.FIXED_ASSET
        assert AccountCode("2500").account_category == AccountCategory.LONG_TERM_LIABILITY
        assert AccountCode("7100").account_category == AccountCategory.OTHER_INCOME_EXPENSE
        assert AccountCode("4500").account_category == AccountCategory.REVENUE

    def test_statement_type(self):
        assert AccountCode("3999").financial_statement_type == FinancialStatementType.BALANCE_SHEET
        assert AccountCode("4000").financial_statement_type == FinancialStatementType.INCOME_STATEMENT

    @pytest.mark.parametrize("bad", ["110", "11000", "11a0", "", " 110"])
    def test_rejects_non_four_digit_codes(self, bad):
        with pytest.raises(ValidationError, match="4 digits"):
            AccountCode(bad)


class TestMoney:

    def test_add_and_subtract_same_currency(self):
        total = Money(Decimal("10.50"), "idr") + Money(Decimal("4.50"), "IDR")
        assert total == Money(Decimal("15.00"), "IDR")
        assert (total - Money(Decimal("20"), "IDR")).amount == Decimal("-5.00")

    def test_currency_mismatch_rejected(self):
        with pytest.raises(ValidationError, match="Cannot combine"):
            Money(Decimal("1"), "IDR") + Money(Decimal("1"), "USD")

    def test_float_input_goes_through_str(self):
        assert Money(0.1).amount == Decimal("0.1")

    def test_multiply_and_round(self):
        assert Money(Decimal("10")).multiply("0.333").round().amount == Decimal("3.33")

    def test_helpers(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        with pytest.raises(ValidationError):
            to_decimal("abc")
        with pytest.raises(ValidationError):
            to_decimal(True)


class TestFiscalPeriod:

    def test_string_round_trip(self):
        assert str(FiscalPeriod(2024, 3)) == "2024-03"
        assert FiscalPeriod.from_string("2024-03") == FiscalPeriod(2024, 3)

    @pytest.mark.parametrize("bad", ["2024-3", "24-03", "2024/03", "2024-13"])
    def test_from_string_rejects_malformed(self, bad):
        with pytest.raises(ValidationError):
            FiscalPeriod.from_string(bad)

    def test_month_bounds(self):
        with pytest.raises(ValidationError):
            FiscalPeriod(2024, 0)
        with pytest.raises(ValidationError):
            FiscalPeriod(1899, 12)

    def test_next_and_previous_wrap_years(self):
        assert FiscalPeriod(2024, 12).next() == FiscalPeriod(2025, 1)
        assert FiscalPeriod(2024, 1).previous() == FiscalPeriod(2023, 12)
        assert FiscalPeriod(1900, 1).previous() is None

    def test_leap_year_end_date(self):
        assert FiscalPeriod(2024, 2).end_date == date(2024, 2, 29)
        assert FiscalPeriod(2023, 2).end_date == date(2023, 2, 28)
        assert FiscalPeriod(2024, 2).days_in_period == 29

    def test_ordering_and_containment(self):
        march = FiscalPeriod(2024, 3)
        assert march.is_before(FiscalPeriod(2024, 4))
        assert march.is_after(FiscalPeriod(2023, 12))
        assert march.contains_date(date(2024, 3, 31))
        assert not march.contains_date(date(2024, 4, 1))
        assert FiscalPeriod.from_date(date(2024, 3, 9)) == march
        assert march.display_name == "March 2024"
