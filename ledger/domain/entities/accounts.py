"""
Account entity - chart of accounts node.
Type, normal balance, category and statement type are derived from the code.
"""

from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import BusinessRuleError, ValidationError
from ..value_objects import (
    AccountCategory,
    AccountCode,
    AccountStatus,
    AccountType,
    FinancialStatementType,
    NormalBalance,
    new_id,
    utc_now,
)

MAX_NAME_LENGTH = 255


def _clean_name(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("Account name is required", field="name")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Account name must not exceed {MAX_NAME_LENGTH} characters", field="name"
        )
    return name


@dataclass
class Account:
    """
    Entity - ledger account.
    Only detail accounts in Active status accept postings; system accounts keep
    their code and cannot be deactivated or deleted.
    """
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    account_category: AccountCategory
    financial_statement_type: FinancialStatementType
    id: str = field(default_factory=lambda: new_id("acc"))
    name_en: str | None = None
    description: str | None = None
    parent_account_id: str | None = None
    level: int = 0
    is_detail_account: bool = True
    is_system_account: bool = False
    status: AccountStatus = AccountStatus.ACTIVE
    has_transactions: bool = False
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        code: str,
        name: str,
        account_type: AccountType | None = None,
        normal_balance: NormalBalance | None = None,
        *,
        name_en: str | None = None,
        description: str | None = None,
        parent_account_id: str | None = None,
        level: int = 0,
        is_detail_account: bool = True,
        is_system_account: bool = False,
        created_by: str | None = None,
    ) -> "Account":
        account_code = AccountCode(code)
        name = _clean_name(name)
        if level < 0:
            raise ValidationError("Account level cannot be negative", field="level")
        return cls(
            code=account_code.value,
            name=name,
            account_type=account_type or account_code.account_type,
            normal_balance=normal_balance or account_code.normal_balance,
            account_category=account_code.account_category,
            financial_statement_type=account_code.financial_statement_type,
            name_en=name_en,
            description=description,
            parent_account_id=parent_account_id,
            level=level,
            is_detail_account=is_detail_account,
            is_system_account=is_system_account,
            created_by=created_by,
            updated_by=created_by,
        )

    @classmethod
    def from_persistence(cls, **fields) -> "Account":
        """Rehydrate a stored account without re-validating it."""
        return cls(**fields)

    @property
    def account_code(self) -> AccountCode:
        return AccountCode(self.code)

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def can_post(self) -> bool:
        return self.is_detail_account and self.status == AccountStatus.ACTIVE

    def can_delete(self) -> bool:
        return not self.is_system_account and not self.has_transactions

    def ensure_can_delete(self) -> None:
        if self.is_system_account:
            raise BusinessRuleError(f"System account {self.code} cannot be deleted")
        if self.has_transactions:
            raise BusinessRuleError(f"Account {self.code} has transactions and cannot be deleted")

    def mark_has_transactions(self) -> None:
        if not self.has_transactions:
            self.has_transactions = True
            self._touch()

    def activate(self, updated_by: str | None = None) -> None:
        if self.status == AccountStatus.ARCHIVED:
            raise BusinessRuleError("Cannot activate an archived account")
        self.status = AccountStatus.ACTIVE
        self._touch(updated_by)

    def deactivate(self, updated_by: str | None = None) -> None:
        if self.is_system_account:
            raise BusinessRuleError(f"System account {self.code} cannot be deactivated")
        self.status = AccountStatus.INACTIVE
        self._touch(updated_by)

    def archive(self, updated_by: str | None = None) -> None:
        if self.status != AccountStatus.INACTIVE:
            raise BusinessRuleError("Only inactive accounts can be archived")
        self.status = AccountStatus.ARCHIVED
        self._touch(updated_by)

    def update_name(self, name: str, updated_by: str | None = None) -> None:
        self.name = _clean_name(name)
        self._touch(updated_by)

    def update_name_en(self, name_en: str | None, updated_by: str | None = None) -> None:
        self.name_en = name_en.strip() if name_en else None
        self._touch(updated_by)

    def update_description(self, description: str | None, updated_by: str | None = None) -> None:
        self.description = description
        self._touch(updated_by)

    def update_code(self, code: str, updated_by: str | None = None) -> None:
        if self.is_system_account:
            raise BusinessRuleError(f"System account {self.code} cannot change its code")
        new_code = AccountCode(code)
        self.code = new_code.value
        self.account_type = new_code.account_type
        self.normal_balance = new_code.normal_balance
        self.account_category = new_code.account_category
        self.financial_statement_type = new_code.financial_statement_type
        self._touch(updated_by)

    def set_parent_account(
        self,
        parent_account_id: str | None,
        level: int,
        updated_by: str | None = None,
    ) -> None:
        """
        Store the parent link. Ancestor-cycle detection is the caller's job,
        see AccountHierarchyService.
        """
        if parent_account_id is not None and parent_account_id == self.id:
            raise BusinessRuleError("Account cannot be its own parent")
        if level < 0:
            raise ValidationError("Account level cannot be negative", field="level")
        self.parent_account_id = parent_account_id
        self.level = level
        self._touch(updated_by)

    def _touch(self, updated_by: str | None = None) -> None:
        self.updated_at = utc_now()
        if updated_by:
            self.updated_by = updated_by
