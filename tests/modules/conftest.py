"""
Fixtures for document module tests.

Every module service shares the suite's SettingsService so that switches
flipped through ``enable_auto_journal`` are seen immediately.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.models.inventory import MovementType
from ledger_modules.expense import ExpenseJournalService
from ledger_modules.journal_bridge import AutoJournalService
from ledger_modules.payments import PaymentService
from ledger_modules.purchasing import PurchasingService
from ledger_modules.sales import SalesService


@pytest.fixture
def auto_journal(session, deterministic_clock, journal_service, settings_service):
    return AutoJournalService(session, deterministic_clock, journal_service, settings_service)


@pytest.fixture
def expense_service(session, deterministic_clock, journal_service, settings_service):
    return ExpenseJournalService(session, deterministic_clock, journal_service, settings_service)


@pytest.fixture
def sales_service(session, deterministic_clock, journal_service, settings_service, inventory_service):
    return SalesService(session, deterministic_clock, journal_service, settings_service, inventory_service)


@pytest.fixture
def purchasing_service(session, deterministic_clock, journal_service, settings_service, inventory_service):
    return PurchasingService(session, deterministic_clock, journal_service, settings_service, inventory_service)


@pytest.fixture
def payment_service(session, deterministic_clock, journal_service, settings_service):
    return PaymentService(session, deterministic_clock, journal_service, settings_service)


@pytest.fixture
def entry_lines(journal_selector):
    """Factory fixture: ``[(account_code, debit, credit), ...]`` of an entry, in line order."""

    def _lines(entry_id):
        info = journal_selector.get(entry_id)
        return [(line.account_code, line.debit_amount, line.credit_amount) for line in info.lines]

    return _lines


@pytest.fixture
def stocked_product(inventory_service, test_actor_id):
    """Factory fixture: a new product with opening stock."""

    def _stock(quantity="100", unit_cost="10.00"):
        product_id = uuid4()
        inventory_service.record(
            product_id,
            MovementType.OPENING_STOCK,
            Decimal(quantity),
            test_actor_id,
            unit_cost=Decimal(unit_cost),
            movement_date=date(2026, 1, 1),
        )
        return product_id

    return _stock
