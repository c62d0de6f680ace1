"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only access to the chart of accounts: lookups, filtered
    listings and hierarchy queries (ancestors, descendants, path, tree).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Hierarchy queries load every account once into an id-keyed arena and
      traverse it in memory (domain/account_tree.py); no per-level queries.
    - Listings and tree children are ordered by account code.
"""

from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain import account_tree
from ledger_kernel.domain.dtos import AccountInfo, AccountNode
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.selectors.base import BaseSelector


def account_to_dto(account: Account) -> AccountInfo:
    return AccountInfo(
        id=account.id,
        code=account.code,
        name=account.name,
        account_type=AccountType(account.account_type),
        normal_balance=NormalBalance(account.normal_balance),
        parent_id=account.parent_id,
        level=account.level,
        is_header=account.is_header,
        is_system=account.is_system,
        is_active=account.is_active,
        is_bank_account=account.is_bank_account,
        is_contra=account.is_contra,
        description=account.description,
        currency=account.currency,
    )


class AccountSelector(BaseSelector[Account]):
    """Queries over the chart of accounts."""

    def get_by_code(self, code: str) -> AccountInfo | None:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        return account_to_dto(account) if account else None

    def get_by_id(self, account_id: UUID) -> AccountInfo | None:
        account = self.session.get(Account, account_id)
        return account_to_dto(account) if account else None

    def list_accounts(
        self,
        active_only: bool = False,
        postable_only: bool = False,
        account_type: AccountType | None = None,
    ) -> list[AccountInfo]:
        stmt = select(Account).order_by(Account.code)
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        if postable_only:
            stmt = stmt.where(Account.is_header.is_(False), Account.is_active.is_(True))
        if account_type is not None:
            stmt = stmt.where(Account.account_type == AccountType(account_type).value)
        return [account_to_dto(a) for a in self.session.execute(stmt).scalars()]

    def bank_accounts(self) -> list[AccountInfo]:
        stmt = (
            select(Account)
            .where(Account.is_bank_account.is_(True), Account.is_active.is_(True))
            .order_by(Account.code)
        )
        return [account_to_dto(a) for a in self.session.execute(stmt).scalars()]

    def line_count(self, account_id: UUID) -> int:
        """Number of journal lines (any entry status) referencing the account."""
        return self.session.execute(
            select(func.count(JournalLine.id)).where(JournalLine.account_id == account_id)
        ).scalar_one()

    def child_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Account.id)).where(Account.parent_id == account_id)
        ).scalar_one()

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def arena(self) -> account_tree.Arena:
        """Every account keyed by id."""
        return {a.id: account_to_dto(a) for a in self.session.execute(select(Account)).scalars()}

    def _resolve(self, arena: account_tree.Arena, code: str) -> AccountInfo:
        for account in arena.values():
            if account.code == code:
                return account
        raise AccountNotFoundError(code)

    def ancestors(self, code: str) -> list[AccountInfo]:
        """Ancestors of ``code``, root first."""
        arena = self.arena()
        return account_tree.ancestors(arena, self._resolve(arena, code).id)

    def descendants(self, code: str) -> set[str]:
        """Codes of every account below ``code``."""
        arena = self.arena()
        ids = account_tree.descendants(arena, self._resolve(arena, code).id)
        return {arena[i].code for i in ids}

    def tree_path(self, code: str, separator: str = " > ") -> str:
        """e.g. ``"Assets > Current Assets > Cash"``."""
        arena = self.arena()
        return account_tree.tree_path(arena, self._resolve(arena, code).id, separator)

    def build_tree(self, root_code: str | None = None) -> list[AccountNode]:
        arena = self.arena()
        root_id = self._resolve(arena, root_code).id if root_code is not None else None
        return account_tree.build_tree(arena, root_id)
