"""
BalanceService -- maintains per-(account, period) balance aggregates.

Responsibility:
    Applies signed debit/credit deltas for posted and voided journal entries
    and carries closing balances forward into the opening columns of a
    later period.

Architecture position:
    Kernel > Services -- called only by JournalService.post()/void() and by
    period-end tooling (carry_forward).  Reads for reporting go through
    BalanceSelector.

Invariants enforced:
    - One row per (account, period); created lazily on first delta.
    - The row is locked (SELECT ... FOR UPDATE) before it is incremented.
    - closing = opening + period per side; net = closing_debit - closing_credit.
    - carry_forward overwrites the target opening, so re-running it is a
      no-op.

Failure modes:
    - IntegrityError on a concurrent lazy create is absorbed by rolling back
      a savepoint and locking the row the other transaction created.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain import amounts
from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account_balance import AccountBalance
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balance")


class BalanceService(BaseService[AccountBalance]):
    """
    Write side of the balance aggregator.

    Non-goals:
        - Never reads journal lines; callers supply the deltas.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def _locked_row(self, account_id: UUID, period_id: UUID) -> AccountBalance | None:
        return self.session.execute(
            select(AccountBalance)
            .where(
                AccountBalance.account_id == account_id,
                AccountBalance.fiscal_period_id == period_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _zero_row(self, account_id: UUID, period_id: UUID, actor_id: UUID) -> AccountBalance:
        zero = amounts.ZERO
        return AccountBalance(
            account_id=account_id,
            fiscal_period_id=period_id,
            opening_debit=zero,
            opening_credit=zero,
            period_debit=zero,
            period_credit=zero,
            closing_debit=zero,
            closing_credit=zero,
            net_balance=zero,
            created_by_id=actor_id,
        )

    def get_or_create_locked(self, account_id: UUID, period_id: UUID, actor_id: UUID) -> AccountBalance:
        """
        Return the balance row locked for update, creating a zero row first
        if none exists.
        """
        row = self._locked_row(account_id, period_id)
        if row is not None:
            return row

        savepoint = self.session.begin_nested()
        try:
            row = self._zero_row(account_id, period_id, actor_id)
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "balance_row_race_retry",
                extra={"account_id": account_id, "fiscal_period_id": period_id},
            )
            row = self._locked_row(account_id, period_id)
            if row is None:
                raise
            return row

        # lock the row we just inserted so the contract holds either way
        return self._locked_row(account_id, period_id)

    def apply_delta(
        self,
        account_id: UUID,
        period_id: UUID,
        debit_delta: Decimal,
        credit_delta: Decimal,
        actor_id: UUID,
    ) -> AccountBalance:
        """
        Add signed deltas to the period columns of one balance row.

        Postconditions: closing and net recomputed on the locked row.
        """
        row = self.get_or_create_locked(account_id, period_id, actor_id)
        row.apply(amounts.money(debit_delta), amounts.money(credit_delta))
        row.updated_by_id = actor_id
        self.session.flush()
        logger.debug(
            "balance_delta_applied",
            extra={
                "account_id": account_id,
                "fiscal_period_id": period_id,
                "debit_delta": debit_delta,
                "credit_delta": credit_delta,
                "net_balance": row.net_balance,
            },
        )
        return row

    def carry_forward(self, from_period_id: UUID, to_period_id: UUID, actor_id: UUID) -> int:
        """
        Copy closing balances of ``from_period_id`` into the opening columns
        of ``to_period_id`` for every account with a source row.

        Postconditions: Target opening == source closing for each such
            account; closing/net recomputed.  Repeated calls produce the same
            state.

        Returns:
            Number of accounts carried.
        """
        sources = self.session.execute(
            select(AccountBalance)
            .where(AccountBalance.fiscal_period_id == from_period_id)
            .order_by(AccountBalance.account_id)
        ).scalars().all()

        for source in sources:
            target = self.get_or_create_locked(source.account_id, to_period_id, actor_id)
            target.set_opening(source.closing_debit, source.closing_credit)
            target.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balances_carried_forward",
            extra={
                "from_period_id": from_period_id,
                "to_period_id": to_period_id,
                "account_count": len(sources),
            },
        )
        return len(sources)
