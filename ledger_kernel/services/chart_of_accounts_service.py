"""
ChartOfAccountsService -- maintains the account hierarchy.

Responsibility:
    Creates, edits, moves, (de)activates and deletes accounts while keeping
    the hierarchy well-formed and protecting accounts that journal lines
    already reference.

Architecture position:
    Kernel > Services -- imperative shell.  Reads the hierarchy through
    AccountSelector; writes Account rows.

Invariants enforced:
    - Codes are unique.
    - A parent is always a header account; level = parent level + 1.
    - normal_balance matches the account type's natural side, or its
      opposite when is_contra is explicitly set.
    - account_type / normal_balance never change once a journal line
      references the account.
    - Moving an account never makes it its own ancestor.
    - Only non-system accounts without children and without lines are
      deletable; everything else is deactivated instead.

Failure modes:
    - DuplicateAccountCodeError, InvalidParentAccountError,
      InconsistentNormalBalanceError, AccountHierarchyCycleError
      (validation, nothing written).
    - AccountReferencedError, AccountNotDeletableError (state conflicts).
    - AccountNotFoundError for an unknown code.

Audit relevance:
    Every mutation stamps updated_by_id and logs the account code.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain import account_tree
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    AccountHierarchyCycleError,
    AccountNotDeletableError,
    AccountNotFoundError,
    AccountReferencedError,
    DuplicateAccountCodeError,
    InconsistentNormalBalanceError,
    InvalidParentAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chart_of_accounts")


def expected_normal_balance(account_type: AccountType, is_contra: bool) -> NormalBalance:
    natural = AccountType(account_type).natural_balance
    return natural.opposite if is_contra else natural


class ChartOfAccountsService(BaseService[Account]):
    """
    Write side of the chart of accounts.

    Contract:
        All methods identify accounts by code.  Changes are flushed, never
        committed.

    Non-goals:
        - Listing and tree building live in AccountSelector.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = AccountSelector(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _find(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get(self, code: str) -> Account:
        account = self._find(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def _validate_parent(self, code: str, parent_code: str) -> Account:
        parent = self._find(parent_code)
        if parent is None:
            raise InvalidParentAccountError(code, parent_code, "parent account not found")
        if not parent.is_header:
            raise InvalidParentAccountError(code, parent_code, "parent is not a header account")
        return parent

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        *,
        normal_balance: NormalBalance | str | None = None,
        parent_code: str | None = None,
        is_header: bool = False,
        is_system: bool = False,
        is_bank_account: bool = False,
        is_contra: bool = False,
        description: str | None = None,
        currency: str | None = None,
    ) -> Account:
        """
        Create an account.

        Preconditions: ``code`` is unused; ``parent_code`` (if given) names a
            header account.
        Postconditions: Account flushed with level = parent level + 1.

        ``normal_balance`` defaults to the type's natural side (the opposite
        for a contra account).

        Raises:
            DuplicateAccountCodeError, InvalidParentAccountError,
            InconsistentNormalBalanceError, InvalidCurrencyError.
        """
        code = code.strip()
        account_type = AccountType(account_type)
        expected = expected_normal_balance(account_type, is_contra)
        normal_balance = NormalBalance(normal_balance) if normal_balance is not None else expected

        if self._find(code) is not None:
            raise DuplicateAccountCodeError(code)
        if normal_balance != expected:
            raise InconsistentNormalBalanceError(code, account_type.value, normal_balance.value)

        parent = self._validate_parent(code, parent_code) if parent_code else None

        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            normal_balance=normal_balance.value,
            parent_id=parent.id if parent else None,
            level=parent.level + 1 if parent else 1,
            is_header=is_header,
            is_system=is_system,
            is_active=True,
            is_bank_account=is_bank_account,
            is_contra=is_contra,
            description=description,
            currency=validate_currency(currency) if currency else None,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_code": code,
                "account_type": account_type.value,
                "parent_code": parent_code,
                "is_header": is_header,
            },
        )
        return account

    def update_account(
        self,
        code: str,
        actor_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        account_type: AccountType | str | None = None,
        normal_balance: NormalBalance | str | None = None,
        is_bank_account: bool | None = None,
    ) -> Account:
        """
        Update descriptive fields, or structural ones while unreferenced.

        Raises:
            AccountReferencedError: Type or normal balance change on an account
                referenced by any journal line.
            InconsistentNormalBalanceError: Resulting type/side pair invalid.
        """
        account = self.get(code)

        new_type = AccountType(account_type) if account_type is not None else AccountType(account.account_type)
        new_side = (
            NormalBalance(normal_balance) if normal_balance is not None else NormalBalance(account.normal_balance)
        )
        structural = new_type != account.account_type or new_side != account.normal_balance

        if structural:
            line_count = self._selector.line_count(account.id)
            if line_count:
                raise AccountReferencedError(code, line_count)
            if new_side != expected_normal_balance(new_type, account.is_contra):
                raise InconsistentNormalBalanceError(code, new_type.value, new_side.value)
            account.account_type = new_type.value
            account.normal_balance = new_side.value

        if name is not None:
            account.name = name
        if description is not None:
            account.description = description
        if is_bank_account is not None:
            account.is_bank_account = is_bank_account
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={"account_code": code, "structural_change": structural},
        )
        return account

    def reparent_account(self, code: str, new_parent_code: str | None, actor_id: UUID) -> Account:
        """
        Move an account (and its subtree) under another header, or to the root.

        Postconditions: levels of the account and all descendants recomputed.

        Raises:
            AccountHierarchyCycleError: The new parent is the account itself
                or one of its descendants.
            InvalidParentAccountError: New parent missing or not a header.
        """
        account = self.get(code)
        parent = None
        if new_parent_code is not None:
            parent = self._find(new_parent_code)
            if parent is None:
                raise InvalidParentAccountError(code, new_parent_code, "parent account not found")

        arena = self._selector.arena()
        if parent is not None and account_tree.would_create_cycle(arena, account.id, parent.id):
            raise AccountHierarchyCycleError(code, new_parent_code)
        if parent is not None and not parent.is_header:
            raise InvalidParentAccountError(code, new_parent_code, "parent is not a header account")

        account.parent_id = parent.id if parent else None
        account.level = parent.level + 1 if parent else 1
        account.updated_by_id = actor_id

        # breadth-first so every parent's level is final before its children
        index = account_tree.children_index(arena)
        queue = [(account.id, account.level)]
        moved = 0
        while queue:
            current_id, current_level = queue.pop(0)
            for child_id in index.get(current_id, ()):
                child = self.session.get(Account, child_id)
                child.level = current_level + 1
                child.updated_by_id = actor_id
                queue.append((child_id, child.level))
                moved += 1
        self.session.flush()

        logger.info(
            "account_reparented",
            extra={"account_code": code, "parent_code": new_parent_code, "descendants_moved": moved},
        )
        return account

    # ------------------------------------------------------------------
    # Activation / deletion
    # ------------------------------------------------------------------

    def deactivate_account(self, code: str, actor_id: UUID) -> Account:
        account = self.get(code)
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_code": code})
        return account

    def activate_account(self, code: str, actor_id: UUID) -> Account:
        account = self.get(code)
        account.is_active = True
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_activated", extra={"account_code": code})
        return account

    def _delete_blocker(self, account: Account) -> str | None:
        if account.is_system:
            return "system account"
        if self._selector.child_count(account.id):
            return "has child accounts"
        if self._selector.line_count(account.id):
            return "referenced by journal lines"
        return None

    def can_delete(self, code: str) -> bool:
        return self._delete_blocker(self.get(code)) is None

    def delete_account(self, code: str) -> None:
        """
        Physically delete an unused account.

        Raises:
            AccountNotDeletableError: System account, has children, or has lines.
        """
        account = self.get(code)
        reason = self._delete_blocker(account)
        if reason is not None:
            logger.warning("account_delete_rejected", extra={"account_code": code, "reason": reason})
            raise AccountNotDeletableError(code, reason)
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"account_code": code})
