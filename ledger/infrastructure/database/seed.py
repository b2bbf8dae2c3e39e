"""
Default chart of accounts.

Codes follow the four digit ranges used for classification; header accounts
carry the round codes and detail accounts hang below them.
"""

import logging

from ledger.domain.entities import Account
from ledger.domain.repositories import IAccountRepository
from ledger.domain.value_objects import AccountType, NormalBalance

logger = logging.getLogger(__name__)

# (code, name, parent code, is_detail, account_type override, normal balance override)
DEFAULT_CHART: tuple[tuple[str, str, str | None, bool, AccountType | None, NormalBalance | None], ...] = (
    ("1000", "Current Assets", None, False, None, None),
    ("1100", "Cash on Hand", "1000", True, None, None),
    ("1110", "Bank - Operating", "1000", True, None, None),
    ("1200", "Accounts Receivable", "1000", True, None, None),
    ("1210", "Returned Checks Receivable", "1000", True, None, None),
    ("1300", "Inventory", "1000", True, None, None),
    ("1400", "Fixed Assets", None, False, None, None),
    ("1410", "Equipment", "1400", True, None, None),
    ("1420", "Vehicles", "1400", True, None, None),
    ("1490", "Accumulated Depreciation", "1400", True, None, NormalBalance.CREDIT),
    ("2000", "Current Liabilities", None, False, None, None),
    ("2100", "Accounts Payable", "2000", True, None, None),
    ("2200", "VAT Output", "2000", True, None, None),
    ("2210", "Withholding Tax Payable", "2000", True, None, None),
    ("2500", "Long-term Loans", None, True, None, None),
    ("3000", "Equity", None, False, None, None),
    ("3100", "Paid-in Capital", "3000", True, None, None),
    ("3200", "Retained Earnings", "3000", True, None, None),
    ("4000", "Revenue", None, False, None, None),
    ("4100", "Sales Revenue", "4000", True, None, None),
    ("5000", "Cost of Goods Sold", None, True, None, None),
    ("6000", "Operating Expenses", None, False, None, None),
    ("6100", "Salaries Expense", "6000", True, None, None),
    ("6200", "Depreciation Expense", "6000", True, None, None),
    ("6300", "Bank Charges", "6000", True, None, None),
    ("6900", "Reconciliation Differences", "6000", True, None, None),
    ("7000", "Other Income and Expense", None, False, None, None),
    ("7100", "Interest Income", "7000", True, AccountType.REVENUE, NormalBalance.CREDIT),
    ("7200", "Gain or Loss on Asset Disposal", "7000", True, None, None),
)


def seed_chart_of_accounts(account_repo: IAccountRepository, created_by: str = "system") -> list[Account]:
    """Insert missing default accounts; existing codes are left untouched."""
    created: list[Account] = []
    ids_by_code: dict[str, str] = {}
    levels_by_code: dict[str, int] = {}

    for code, name, parent_code, is_detail, account_type, normal_balance in DEFAULT_CHART:
        existing = account_repo.find_by_code(code)
        if existing is not None:
            ids_by_code[code] = existing.id
            levels_by_code[code] = existing.level
            continue

        parent_id = ids_by_code.get(parent_code) if parent_code else None
        level = levels_by_code[parent_code] + 1 if parent_code else 0
        account = Account.create(
            code,
            name,
            account_type,
            normal_balance,
            parent_account_id=parent_id,
            level=level,
            is_detail_account=is_detail,
            is_system_account=True,
            created_by=created_by,
        )
        account_repo.save(account)
        ids_by_code[code] = account.id
        levels_by_code[code] = level
        created.append(account)

    logger.info("Seeded %d default accounts", len(created))
    return created
