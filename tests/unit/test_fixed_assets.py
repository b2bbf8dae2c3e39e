"""
Unit tests - depreciation calculators and the fixed asset lifecycle.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.domain.depreciation import (
    DepreciationInput,
    calculate_depreciation,
    declining_balance,
    straight_line,
    sum_of_years_digits,
    units_of_production,
)
from ledger.domain.entities import AssetCategory, DepreciationRun, DepreciationSchedule, FixedAsset
from ledger.domain.exceptions import BusinessRuleError, ValidationError
from ledger.domain.value_objects import (
    AssetStatus,
    DepreciationMethod,
    DepreciationRunStatus,
    DepreciationScheduleStatus,
    DisposalMethod,
    FiscalPeriod,
)


def _input(cost="12000", salvage="0", life=12, book=None, accumulated="0", **kwargs) -> DepreciationInput:
    return DepreciationInput(
        acquisition_cost=Decimal(cost),
        salvage_value=Decimal(salvage),
        useful_life_months=life,
        book_value=Decimal(book if book is not None else cost),
        accumulated_depreciation=Decimal(accumulated),
        **kwargs,
    )


def _asset(**kwargs) -> FixedAsset:
    params = dict(
        acquisition_cost="12000",
        useful_life_months=12,
        depreciation_start_date=date(2024, 1, 1),
    )
    params.update(kwargs)
    return FixedAsset.create("FA-IT-00001", "Laptop", "ac-1", date(2024, 1, 1), **params)


class TestCalculators:

    def test_straight_line(self):
        assert straight_line(_input()) == Decimal("1000.00")
        assert straight_line(_input(salvage="2000", life=60)) == Decimal("166.67")
        assert straight_line(_input(period_months=3)) == Decimal("3000.00")

    def test_declining_balance(self):
        # 2 x (12 / 60) = 40% a year on book value
        assert declining_balance(_input(life=60)) == Decimal("400.00")
        assert declining_balance(_input(life=60, book="6000", accumulated="6000")) == Decimal("200.00")
        assert declining_balance(_input(life=60), factor=Decimal("1.5")) == Decimal("300.00")

    def test_sum_of_years_digits(self):
        """Three-year life: 3/6 of the base in year one, 2/6 in year two."""
        assert sum_of_years_digits(_input(cost="36000", life=36)) == Decimal("1500.00")
        assert sum_of_years_digits(
            _input(cost="36000", life=36, book="18000", accumulated="18000")
        ) == Decimal("1000.00")

    def test_units_of_production(self):
        data = _input(cost="10000", total_units=Decimal("1000"), units_produced=Decimal("50"))
        assert units_of_production(data) == Decimal("500.00")

    def test_units_of_production_needs_totals(self):
        with pytest.raises(ValidationError, match="total_units"):
            units_of_production(_input(units_produced=Decimal("5")))

    @pytest.mark.parametrize("method", list(DepreciationMethod))
    def test_never_below_salvage(self, method):
        data = _input(
            cost="12000", salvage="1000", book="1100", accumulated="10900",
            total_units=Decimal("10"), units_produced=Decimal("10"),
        )
        assert calculate_depreciation(method, data) <= Decimal("100")

    def test_invalid_input(self):
        with pytest.raises(ValidationError, match="exceed"):
            _input(cost="100", salvage="200")
        with pytest.raises(ValidationError, match="Useful life"):
            _input(life=0)


class TestFixedAssetCreate:

    def test_book_value_starts_at_cost(self):
        asset = _asset()
        assert asset.status == AssetStatus.DRAFT
        assert asset.book_value == Decimal("12000")
        assert asset.version == 1

    @pytest.mark.parametrize("kwargs,message", [
        ({"acquisition_cost": "0"}, "must be positive"),
        ({"salvage_value": "-1"}, "cannot be negative"),
        ({"salvage_value": "20000"}, "cannot exceed"),
        ({"useful_life_months": 0}, "Useful life"),
        ({"depreciation_method": DepreciationMethod.UNITS_OF_PRODUCTION}, "total_units"),
        ({"depreciation_start_date": date(2023, 12, 1)}, "before acquisition"),
    ])
    def test_validation(self, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            _asset(**kwargs)

    def test_category_salvage_default(self):
        category = AssetCategory.create("IT", "Computers", 48, default_salvage_percent="10")
        assert category.calculate_salvage_value("12000") == Decimal("1200.00")
        with pytest.raises(ValidationError, match="between 0 and 100"):
            AssetCategory.create("IT", "Computers", 48, default_salvage_percent="101")


class TestDepreciationLifecycle:

    def test_apply_depreciation(self):
        asset = _asset()
        asset.activate()
        applied = asset.apply_depreciation(asset.calculate_monthly_depreciation(), FiscalPeriod(2024, 1))
        assert applied == Decimal("1000.00")
        assert asset.accumulated_depreciation == Decimal("1000.00")
        assert asset.book_value == Decimal("11000.00")
        assert asset.last_depreciation_date == date(2024, 1, 31)
        assert asset.version == 3

    def test_last_period_is_capped(self):
        asset = _asset(salvage_value="500")
        asset.activate()
        asset.apply_depreciation("11000", FiscalPeriod(2024, 1))
        applied = asset.apply_depreciation("1000", FiscalPeriod(2024, 2))
        assert applied == Decimal("500")
        assert asset.book_value == Decimal("500")
        assert asset.status == AssetStatus.FULLY_DEPRECIATED
        assert not asset.is_depreciable(date(2024, 3, 31))

    def test_draft_asset_cannot_depreciate(self):
        with pytest.raises(BusinessRuleError) as exc:
            _asset().apply_depreciation("10", FiscalPeriod(2024, 1))
        assert exc.value.code == "ASSET_NOT_ACTIVE"

    def test_not_before_start_date(self):
        asset = _asset(depreciation_start_date=date(2024, 3, 1))
        asset.activate()
        with pytest.raises(BusinessRuleError) as exc:
            asset.apply_depreciation("10", FiscalPeriod(2024, 2))
        assert exc.value.code == "DEPRECIATION_NOT_STARTED"

    def test_suspend_and_resume(self):
        asset = _asset()
        asset.activate()
        asset.suspend()
        assert not asset.is_depreciable(date(2024, 1, 31))
        asset.resume()
        assert asset.is_depreciable(date(2024, 1, 31))
        assert asset.version == 4


class TestDisposal:

    def test_sale_above_book_value_is_gain(self):
        asset = _asset()
        asset.activate()
        asset.apply_depreciation("3000", FiscalPeriod(2024, 1))
        result = asset.dispose(DisposalMethod.SALE, "10000", "Upgrade", "admin", date(2024, 2, 15))
        assert result.book_value_at_disposal == Decimal("9000")
        assert result.gain_loss == Decimal("1000")
        assert result.is_gain
        assert asset.status == AssetStatus.DISPOSED
        assert asset.is_disposed

    def test_disposal_is_terminal(self):
        asset = _asset()
        asset.dispose(DisposalMethod.SCRAP, "0", "Broken", "admin")
        for action in (
            lambda: asset.dispose(DisposalMethod.SALE, "1", "again", "admin"),
            lambda: asset.write_off("again", "admin"),
            lambda: asset.transfer("admin", location="HQ"),
        ):
            with pytest.raises(BusinessRuleError) as exc:
                action()
            assert exc.value.code == "ASSET_DISPOSED"

    def test_write_off_loses_book_value(self):
        asset = _asset()
        result = asset.write_off("Stolen", "admin")
        assert result.gain_loss == Decimal("-12000")
        assert not result.is_gain
        assert asset.status == AssetStatus.WRITTEN_OFF

    def test_transfer_and_verify_bump_version(self):
        asset = _asset()
        asset.transfer("admin", location="Branch 2")
        asset.verify("auditor")
        assert asset.location == "Branch 2"
        assert asset.last_verified_by == "auditor"
        assert asset.version == 3
        with pytest.raises(ValidationError, match="location or department"):
            asset.transfer("admin")


class TestDepreciationRun:

    def test_run_totals_and_posting(self):
        run = DepreciationRun(2024, 1)
        for amount in ("1000", "250.50"):
            run.add_schedule(DepreciationSchedule("fa-1", 2024, 1, Decimal(amount), Decimal(amount), Decimal("0")))
        assert run.total_depreciation == Decimal("1250.50")
        assert run.asset_count == 2

        run.post("je-1", "accountant")
        assert run.status == DepreciationRunStatus.POSTED
        with pytest.raises(BusinessRuleError, match="calculated run"):
            run.add_schedule(DepreciationSchedule("fa-2", 2024, 1, Decimal("1"), Decimal("1"), Decimal("0")))

        run.reverse("accountant")
        assert run.status == DepreciationRunStatus.REVERSED
        with pytest.raises(BusinessRuleError, match="Only posted"):
            run.reverse("accountant")

    def test_schedule_posting(self):
        schedule = DepreciationSchedule("fa-1", 2024, 1, Decimal("10"), Decimal("10"), Decimal("90"))
        schedule.mark_posted("je-1")
        assert schedule.status == DepreciationScheduleStatus.POSTED
        with pytest.raises(BusinessRuleError):
            schedule.mark_posted("je-2")
        schedule.reverse()
        assert schedule.status == DepreciationScheduleStatus.REVERSED
