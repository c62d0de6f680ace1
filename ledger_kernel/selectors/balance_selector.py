"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Read-only balance reporting: trial balance, single-account
    balances, balance as of a date, and drift detection between the stored
    aggregates and the posted journal lines.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Trial balance rows are ordered by account code and include every
      non-header account, with zeros where no balance row exists.
    - Sums are computed with ledger_kernel.domain.amounts at money scale,
      never in SQL floating point.

Failure modes:
    - AccountNotFoundError for an unknown account code.

Audit relevance:
    verify_period() is the reconciliation check for the aggregate cache:
    every discrepancy it reports means a balance row no longer matches the
    posted lines it was derived from.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain import amounts
from ledger_kernel.domain.dtos import (
    AccountBalanceInfo,
    BalanceDiscrepancy,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.account_balance import AccountBalance
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector[AccountBalance]):
    """Balance queries over the aggregate table and the posted lines."""

    def _account(self, account_code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.code == account_code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_code)
        return account

    def _rows_by_account(self, fiscal_period_id: UUID) -> dict[UUID, AccountBalance]:
        rows = self.session.execute(
            select(AccountBalance).where(AccountBalance.fiscal_period_id == fiscal_period_id)
        ).scalars()
        return {row.account_id: row for row in rows}

    def trial_balance(self, fiscal_period_id: UUID) -> TrialBalance:
        """
        Closing balances of every non-header account for one period.

        For any period whose entries were all posted through JournalService,
        total_debit == total_credit.
        """
        balances = self._rows_by_account(fiscal_period_id)
        accounts = self.session.execute(
            select(Account).where(Account.is_header.is_(False)).order_by(Account.code)
        ).scalars()

        rows = []
        for account in accounts:
            row = balances.get(account.id)
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=AccountType(account.account_type),
                    normal_balance=NormalBalance(account.normal_balance),
                    closing_debit=row.closing_debit if row else amounts.ZERO,
                    closing_credit=row.closing_credit if row else amounts.ZERO,
                    net_balance=row.net_balance if row else amounts.ZERO,
                )
            )

        return TrialBalance(
            fiscal_period_id=fiscal_period_id,
            rows=tuple(rows),
            total_debit=amounts.total(r.closing_debit for r in rows),
            total_credit=amounts.total(r.closing_credit for r in rows),
        )

    def account_balance(self, account_code: str, fiscal_period_id: UUID) -> AccountBalanceInfo:
        """Balance row of one account in one period; zeros when none exists."""
        account = self._account(account_code)
        row = self.session.execute(
            select(AccountBalance).where(
                AccountBalance.account_id == account.id,
                AccountBalance.fiscal_period_id == fiscal_period_id,
            )
        ).scalar_one_or_none()
        zero = amounts.ZERO
        if row is None:
            return AccountBalanceInfo(
                account.id, account.code, fiscal_period_id, zero, zero, zero, zero, zero, zero, zero
            )
        return AccountBalanceInfo(
            account_id=account.id,
            account_code=account.code,
            fiscal_period_id=fiscal_period_id,
            opening_debit=row.opening_debit,
            opening_credit=row.opening_credit,
            period_debit=row.period_debit,
            period_credit=row.period_credit,
            closing_debit=row.closing_debit,
            closing_credit=row.closing_credit,
            net_balance=row.net_balance,
        )

    def balance_as_of(self, account_code: str, as_of: date) -> Decimal:
        """
        Net base-currency balance (debits - credits) of posted lines dated
        on or before ``as_of``.
        """
        account = self._account(account_code)
        lines = self.session.execute(
            select(JournalLine.debit_amount_base, JournalLine.credit_amount_base)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account.id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalEntry.entry_date <= as_of,
            )
        ).all()
        debit = amounts.total(d for d, _ in lines)
        credit = amounts.total(c for _, c in lines)
        return amounts.subtract(debit, credit)

    def verify_period(self, fiscal_period_id: UUID) -> list[BalanceDiscrepancy]:
        """
        Compare stored period_debit/period_credit with the sums of posted
        lines in the period.  Returns one discrepancy per disagreeing
        account, ordered by account code; empty when consistent.
        """
        computed: dict[UUID, list[Decimal]] = defaultdict(lambda: [amounts.ZERO, amounts.ZERO])
        lines = self.session.execute(
            select(JournalLine.account_id, JournalLine.debit_amount_base, JournalLine.credit_amount_base)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.fiscal_period_id == fiscal_period_id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
            )
        ).all()
        for account_id, debit, credit in lines:
            computed[account_id][0] = amounts.add(computed[account_id][0], debit)
            computed[account_id][1] = amounts.add(computed[account_id][1], credit)

        stored = self._rows_by_account(fiscal_period_id)
        account_ids = set(computed) | set(stored)
        if not account_ids:
            return []
        codes = dict(
            self.session.execute(
                select(Account.id, Account.code).where(Account.id.in_(account_ids))
            ).all()
        )

        discrepancies = []
        for account_id in sorted(account_ids, key=lambda i: codes.get(i, "")):
            computed_debit, computed_credit = computed.get(account_id, (amounts.ZERO, amounts.ZERO))
            row = stored.get(account_id)
            stored_debit = row.period_debit if row else amounts.ZERO
            stored_credit = row.period_credit if row else amounts.ZERO
            if stored_debit != computed_debit or stored_credit != computed_credit:
                discrepancies.append(
                    BalanceDiscrepancy(
                        account_id=account_id,
                        account_code=codes.get(account_id, ""),
                        stored_debit=stored_debit,
                        stored_credit=stored_credit,
                        computed_debit=computed_debit,
                        computed_credit=computed_credit,
                    )
                )
        return discrepancies
