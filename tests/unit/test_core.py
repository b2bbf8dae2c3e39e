"""
Unit tests - settings, logging setup and the error hierarchy.
"""

import json
import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from ledger.core.config import LedgerSettings
from ledger.core.logging import JSONFormatter, setup_logging
from ledger.domain.exceptions import (
    BusinessRuleError,
    ConcurrencyConflictError,
    ErrorCategory,
    LedgerError,
    NotFoundError,
    ValidationError,
)


class TestSettings:

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_MATCH_DATE_TOLERANCE_DAYS", "5")
        monkeypatch.setenv("LEDGER_DECLINING_BALANCE_FACTOR", "1.5")
        settings = LedgerSettings(_env_file=None)
        assert settings.match_date_tolerance_days == 5
        assert settings.declining_balance_factor == Decimal("1.5")

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_DATABASE_URL", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.database_url.startswith("sqlite")
        assert settings.match_amount_tolerance == Decimal("0")
        assert settings.log_format == "text"

    @pytest.mark.parametrize("kwargs", [
        {"log_format": "xml"},
        {"match_date_tolerance_days": -1},
        {"declining_balance_factor": Decimal("0")},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(PydanticValidationError):
            LedgerSettings(_env_file=None, **kwargs)


class TestLogging:

    def test_json_formatter_keeps_context(self):
        record = logging.LogRecord("ledger.test", logging.INFO, __file__, 1, "Posted %s", ("JE-2024-000001",), None)
        record.entry_id = "je-1"
        record.error_code = None
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "Posted JE-2024-000001"
        assert payload["level"] == "INFO"
        assert payload["entry_id"] == "je-1"
        assert "error_code" not in payload

    def test_setup_replaces_own_handler(self):
        root = logging.getLogger()
        level = root.level
        try:
            first = setup_logging("DEBUG", "json")
            second = setup_logging("WARNING", "text")
            assert first not in root.handlers
            assert second in root.handlers
            assert root.level == logging.WARNING
            assert not isinstance(second.formatter, JSONFormatter)
        finally:
            root.removeHandler(second)
            root.setLevel(level)


class TestErrors:

    def test_categories(self):
        assert ValidationError("bad", field="amount").category == ErrorCategory.VALIDATION
        assert BusinessRuleError("no").category == ErrorCategory.BUSINESS_RULE
        assert NotFoundError("Account", "1100").category == ErrorCategory.RESOURCE_NOT_FOUND
        assert ConcurrencyConflictError("FixedAsset", "fa-1", 2).category == ErrorCategory.CONFLICT

    def test_standard_library_bases(self):
        assert isinstance(ValidationError("bad"), ValueError)
        assert isinstance(BusinessRuleError("no"), ValueError)
        assert isinstance(NotFoundError("Account", "1100"), LookupError)
        assert not isinstance(ConcurrencyConflictError("FixedAsset", "fa-1", 2), ValueError)

    def test_codes_and_dict(self):
        error = NotFoundError("Account", "1100")
        assert str(error) == "Account not found: 1100"
        assert error.code == "ACCOUNT_NOT_FOUND"
        assert BusinessRuleError("closed", code="PERIOD_NOT_OPEN").to_dict() == {
            "code": "PERIOD_NOT_OPEN",
            "message": "closed",
            "category": "business_rule",
        }
        assert isinstance(error, LedgerError)
