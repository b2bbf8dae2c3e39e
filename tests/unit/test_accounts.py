"""
Unit tests - chart of accounts entity and hierarchy rules.
"""

import pytest

from ledger.domain.entities import Account
from ledger.domain.exceptions import BusinessRuleError, NotFoundError, ValidationError
from ledger.domain.services import AccountHierarchyService
from ledger.domain.value_objects import AccountStatus, AccountType, NormalBalance


class TestAccountCreate:

    def test_derives_classification_from_code(self):
        account = Account.create("2100", "  Accounts Payable ")
        assert account.name == "Accounts Payable"
        assert account.account_type == AccountType.LIABILITY
        assert account.normal_balance == NormalBalance.CREDIT
        assert account.status == AccountStatus.ACTIVE
        assert account.id.startswith("acc-")

    def test_explicit_type_overrides_code(self):
        account = Account.create("7100", "Interest Income", AccountType.REVENUE, NormalBalance.CREDIT)
        assert account.account_type == AccountType.REVENUE
        assert account.normal_balance == NormalBalance.CREDIT

    def test_name_required(self):
        with pytest.raises(ValidationError, match="name is required"):
            Account.create("1100", "   ")

    def test_name_length_limit(self):
        with pytest.raises(ValidationError, match="255"):
            Account.create("1100", "x" * 256)


class TestAccountLifecycle:

    def test_only_active_detail_accounts_accept_postings(self):
        header = Account.create("1000", "Current Assets", is_detail_account=False)
        detail = Account.create("1100", "Cash")
        assert not header.can_post()
        assert detail.can_post()
        detail.deactivate("admin")
        assert not detail.can_post()

    def test_archive_requires_inactive(self):
        account = Account.create("1100", "Cash")
        with pytest.raises(BusinessRuleError, match="inactive"):
            account.archive()
        account.deactivate()
        account.archive()
        assert account.status == AccountStatus.ARCHIVED
        with pytest.raises(BusinessRuleError, match="archived"):
            account.activate()

    def test_system_account_protection(self):
        account = Account.create("1100", "Cash", is_system_account=True)
        with pytest.raises(BusinessRuleError):
            account.deactivate()
        with pytest.raises(BusinessRuleError):
            account.update_code("1101")
        with pytest.raises(BusinessRuleError, match="System account"):
            account.ensure_can_delete()

    def test_account_with_transactions_cannot_be_deleted(self):
        account = Account.create("1100", "Cash")
        account.mark_has_transactions()
        assert not account.can_delete()
        with pytest.raises(BusinessRuleError, match="has transactions"):
            account.ensure_can_delete()

    def test_update_code_reclassifies(self):
        account = Account.create("1100", "Misc")
        account.update_code("6100", "admin")
        assert account.account_type == AccountType.EXPENSE
        assert account.updated_by == "admin"

    def test_cannot_be_own_parent(self):
        account = Account.create("1100", "Cash")
        with pytest.raises(BusinessRuleError, match="own parent"):
            account.set_parent_account(account.id, 1)


class TestAccountHierarchy:

    def test_assign_parent_sets_level(self, repos, chart):
        service = AccountHierarchyService(repos.accounts)
        account = Account.create("1150", "Petty Cash")
        service.assign_parent(account, chart["1000"].id, "admin")
        assert account.parent_account_id == chart["1000"].id
        assert account.level == chart["1000"].level + 1

    def test_detail_parent_rejected(self, repos, chart):
        service = AccountHierarchyService(repos.accounts)
        account = Account.create("1150", "Petty Cash")
        with pytest.raises(BusinessRuleError, match="detail account") as exc:
            service.assign_parent(account, chart["1100"].id)
        assert exc.value.code == "PARENT_IS_DETAIL"

    def test_cycle_rejected(self, repos, chart):
        """A header cannot move under one of its own descendants."""
        service = AccountHierarchyService(repos.accounts)
        sub_header = Account.create("1050", "Cash and Banks", is_detail_account=False)
        service.assign_parent(sub_header, chart["1000"].id)
        repos.accounts.save(sub_header)

        top = repos.accounts.find_by_code("1000")
        with pytest.raises(BusinessRuleError, match="cycle") as exc:
            service.assign_parent(top, sub_header.id)
        assert exc.value.code == "HIERARCHY_CYCLE"

    def test_missing_parent(self, repos, chart):
        service = AccountHierarchyService(repos.accounts)
        with pytest.raises(NotFoundError):
            service.assign_parent(Account.create("1150", "Petty Cash"), "acc-missing")

    def test_clear_parent(self, repos, chart):
        service = AccountHierarchyService(repos.accounts)
        account = repos.accounts.find_by_code("1100")
        service.assign_parent(account, None)
        assert account.parent_account_id is None
        assert account.level == 0

    def test_seeded_tree(self, repos, chart):
        roots = {node.account.code: node for node in repos.accounts.get_account_tree()}
        assert "1000" in roots
        assert {child.account.code for child in roots["1400"].children} == {"1410", "1420", "1490"}
        assert chart["1490"].normal_balance == NormalBalance.CREDIT
