"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell "you sent bad input" from "not allowed right now"
from "try again" without parsing message strings.  Every exception here:

  1. Belongs to exactly one of four categories (catch by category or by type)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries its context as attributes, not only inside the message

Example:
    try:
        journal_service.post(entry_id, actor_id)
    except ClosedPeriodError as e:
        notify(f"Period {e.period_name} does not accept postings")
    except StateConflictError as e:
        respond(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError                 malformed input, raised before any write
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- InvalidCurrencyError
    |   +-- InvalidJournalLineError
    |   +-- UnbalancedEntryError
    |   +-- DuplicateAccountCodeError
    |   +-- InvalidParentAccountError
    |   +-- InconsistentNormalBalanceError
    |   +-- AccountHierarchyCycleError
    |   +-- FiscalYearOverlapError
    |   +-- InvalidPeriodBoundariesError
    |   +-- EntryDateOutsidePeriodError
    |   +-- VoidReasonRequiredError
    |   +-- InvalidSettingValueError
    |
    +-- StateConflictError              not permitted in the current state
    |   +-- EntryNotDraftError
    |   +-- EntryNotPostableError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |   +-- ReversalEntryError
    |   +-- ClosedPeriodError
    |   +-- PeriodsAlreadyExistError
    |   +-- AccountReferencedError
    |   +-- AccountNotDeletableError
    |   +-- InsufficientStockError
    |   +-- SystemSettingError
    |   +-- ImmutabilityViolationError
    |   +-- DocumentStateError
    |
    +-- ConcurrencyError                lock / serialization contention
    |   +-- LockConflictError
    |   +-- RetryExhaustedError
    |
    +-- ReferenceIntegrityError         referenced entity missing or inactive
        +-- AccountNotFoundError
        +-- AccountInactiveError
        +-- HeaderAccountError
        +-- FiscalYearNotFoundError
        +-- FiscalPeriodNotFoundError
        +-- JournalEntryNotFoundError

ReferenceIntegrityError is deliberately not called IntegrityError so it never
shadows sqlalchemy.exc.IntegrityError in modules that handle both.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-----------------------------------------
Validation   | INVALID_AMOUNT              | Float, negative, or non-numeric amount
             | INVALID_QUANTITY            | Zero/negative inventory quantity
             | INVALID_CURRENCY            | Not an ISO 4217 code
             | INVALID_JOURNAL_LINE        | Both sides / neither side populated
             | UNBALANCED_ENTRY            | Debits != credits where required
             | DUPLICATE_ACCOUNT_CODE      | Account code already exists
             | INVALID_PARENT_ACCOUNT      | Parent missing or not a header
             | INCONSISTENT_NORMAL_BALANCE | Type/normal balance mismatch
             | ACCOUNT_HIERARCHY_CYCLE     | Account would become its own ancestor
             | FISCAL_YEAR_OVERLAP         | Year date range overlaps another year
             | INVALID_PERIOD_BOUNDARIES   | Custom periods not contiguous/covering
             | ENTRY_DATE_OUTSIDE_PERIOD   | Entry date not inside target period
             | VOID_REASON_REQUIRED        | Void without a reason
             | INVALID_SETTING_VALUE       | Setting value cannot be cast to type
-------------|-----------------------------|-----------------------------------------
State        | ENTRY_NOT_DRAFT             | Edit/post of a non-draft entry
             | ENTRY_NOT_POSTABLE          | Unbalanced, <2 lines, or period closed
             | ENTRY_NOT_POSTED            | Void/reverse of a non-posted entry
             | ENTRY_ALREADY_REVERSED      | Entry already has a reversal
             | REVERSAL_ENTRY              | Void/reverse of a reversal entry
             | CLOSED_PERIOD               | Period not open or adjusting
             | PERIODS_ALREADY_EXIST       | Year already partitioned
             | ACCOUNT_REFERENCED          | Structural change of a used account
             | ACCOUNT_NOT_DELETABLE       | System / has children / has lines
             | INSUFFICIENT_STOCK          | Reserve or issue beyond stock
             | SYSTEM_SETTING              | Write to a system setting
             | IMMUTABILITY_VIOLATION      | Update/delete of a posted or append-only row
             | DOCUMENT_STATE              | Document action illegal in its status
-------------|-----------------------------|-----------------------------------------
Concurrency  | LOCK_CONFLICT               | Deadlock / lock timeout / serialization
             | RETRY_EXHAUSTED             | Retries used up, resubmission may work
-------------|-----------------------------|-----------------------------------------
Reference    | ACCOUNT_NOT_FOUND           | Account code/id doesn't exist
             | ACCOUNT_INACTIVE            | Account deactivated
             | HEADER_ACCOUNT              | Posting to a header account
             | FISCAL_YEAR_NOT_FOUND       | Year doesn't exist
             | FISCAL_PERIOD_NOT_FOUND     | No period for id or date
             | JOURNAL_ENTRY_NOT_FOUND     | Entry doesn't exist
===============================================================================
"""


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "LEDGER_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerError):
    """Malformed input.  Always raised before anything is written."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is not an exact decimal or is out of range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid amount {self.value}: {reason}")


class InvalidQuantityError(ValidationError):
    """Inventory quantity must be strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: str):
        self.quantity = quantity
        super().__init__(f"Quantity must be positive, got {quantity}")


class InvalidCurrencyError(ValidationError):
    """Currency is not a recognized ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class InvalidJournalLineError(ValidationError):
    """A journal line must carry exactly one positive side."""

    code: str = "INVALID_JOURNAL_LINE"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Journal line {line_number} is invalid: {reason}")


class UnbalancedEntryError(ValidationError):
    """Debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced lines: debits={debits}, credits={credits}")


class DuplicateAccountCodeError(ValidationError):
    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code {account_code} already exists")


class InvalidParentAccountError(ValidationError):
    """Parent account is missing or is a postable (non-header) account."""

    code: str = "INVALID_PARENT_ACCOUNT"

    def __init__(self, account_code: str, parent_code: str, reason: str):
        self.account_code = account_code
        self.parent_code = parent_code
        self.reason = reason
        super().__init__(
            f"Account {account_code} cannot be placed under {parent_code}: {reason}"
        )


class InconsistentNormalBalanceError(ValidationError):
    """Normal balance contradicts the account type without an explicit contra flag."""

    code: str = "INCONSISTENT_NORMAL_BALANCE"

    def __init__(self, account_code: str, account_type: str, normal_balance: str):
        self.account_code = account_code
        self.account_type = account_type
        self.normal_balance = normal_balance
        super().__init__(
            f"Account {account_code}: {account_type} account with {normal_balance} "
            "normal balance must be flagged as a contra account"
        )


class AccountHierarchyCycleError(ValidationError):
    code: str = "ACCOUNT_HIERARCHY_CYCLE"

    def __init__(self, account_code: str, parent_code: str):
        self.account_code = account_code
        self.parent_code = parent_code
        super().__init__(
            f"Moving {account_code} under {parent_code} would make it its own ancestor"
        )


class FiscalYearOverlapError(ValidationError):
    code: str = "FISCAL_YEAR_OVERLAP"

    def __init__(self, new_year_name: str, existing_year_name: str):
        self.new_year_name = new_year_name
        self.existing_year_name = existing_year_name
        super().__init__(
            f"Fiscal year {new_year_name} overlaps existing year {existing_year_name}"
        )


class InvalidPeriodBoundariesError(ValidationError):
    code: str = "INVALID_PERIOD_BOUNDARIES"

    def __init__(self, fiscal_year_name: str, reason: str):
        self.fiscal_year_name = fiscal_year_name
        self.reason = reason
        super().__init__(f"Invalid periods for {fiscal_year_name}: {reason}")


class EntryDateOutsidePeriodError(ValidationError):
    code: str = "ENTRY_DATE_OUTSIDE_PERIOD"

    def __init__(self, entry_date: str, period_name: str):
        self.entry_date = entry_date
        self.period_name = period_name
        super().__init__(f"Entry date {entry_date} is outside period {period_name}")


class VoidReasonRequiredError(ValidationError):
    code: str = "VOID_REASON_REQUIRED"

    def __init__(self, entry_number: str):
        self.entry_number = entry_number
        super().__init__(f"A reason is required to void {entry_number}")


class InvalidSettingValueError(ValidationError):
    code: str = "INVALID_SETTING_VALUE"

    def __init__(self, key: str, value_type: str, value: str):
        self.key = key
        self.value_type = value_type
        self.value = value
        super().__init__(f"Setting {key}: cannot read {value!r} as {value_type}")


# =============================================================================
# State conflicts
# =============================================================================


class StateConflictError(LedgerError):
    """Operation not permitted in the current state.  Nothing was changed."""

    code: str = "STATE_CONFLICT"


class EntryNotDraftError(StateConflictError):
    code: str = "ENTRY_NOT_DRAFT"

    def __init__(self, entry_number: str, status: str):
        self.entry_number = entry_number
        self.status = status
        super().__init__(f"Journal entry {entry_number} is {status}, not draft")


class EntryNotPostableError(StateConflictError):
    """Entry fails the posting preconditions."""

    code: str = "ENTRY_NOT_POSTABLE"

    def __init__(self, entry_number: str, reason: str):
        self.entry_number = entry_number
        self.reason = reason
        super().__init__(f"Journal entry {entry_number} cannot be posted: {reason}")


class EntryNotPostedError(StateConflictError):
    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_number: str, status: str):
        self.entry_number = entry_number
        self.status = status
        super().__init__(f"Journal entry {entry_number} is {status}, not posted")


class EntryAlreadyReversedError(StateConflictError):
    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_number: str, reversed_by_id: str):
        self.entry_number = entry_number
        self.reversed_by_id = reversed_by_id
        super().__init__(
            f"Journal entry {entry_number} was already reversed by {reversed_by_id}"
        )


class ReversalEntryError(StateConflictError):
    """Reversal entries are final once posted."""

    code: str = "REVERSAL_ENTRY"

    def __init__(self, entry_number: str, reverses_id: str):
        self.entry_number = entry_number
        self.reverses_id = reverses_id
        super().__init__(
            f"Journal entry {entry_number} reverses {reverses_id} and cannot be voided or reversed"
        )


class ClosedPeriodError(StateConflictError):
    """Fiscal period does not accept postings."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_name: str, status: str):
        self.period_name = period_name
        self.status = status
        super().__init__(f"Fiscal period {period_name} is {status}")


class PeriodsAlreadyExistError(StateConflictError):
    code: str = "PERIODS_ALREADY_EXIST"

    def __init__(self, fiscal_year_name: str, count: int):
        self.fiscal_year_name = fiscal_year_name
        self.count = count
        super().__init__(f"Fiscal year {fiscal_year_name} already has {count} periods")


class AccountReferencedError(StateConflictError):
    """Structural fields of an account referenced by journal lines are frozen."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_code: str, line_count: int):
        self.account_code = account_code
        self.line_count = line_count
        super().__init__(
            f"Account {account_code} is referenced by {line_count} journal lines"
        )


class AccountNotDeletableError(StateConflictError):
    code: str = "ACCOUNT_NOT_DELETABLE"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Account {account_code} cannot be deleted: {reason}")


class InsufficientStockError(StateConflictError):
    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: str, available: str):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class SystemSettingError(StateConflictError):
    code: str = "SYSTEM_SETTING"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Setting {key} is a system setting and cannot be changed")


class ImmutabilityViolationError(StateConflictError):
    """Posted journal data and inventory movements are never rewritten."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id}: {reason}")


class DocumentStateError(StateConflictError):
    """A business document (order, receipt, payment, expense) is in the wrong status."""

    code: str = "DOCUMENT_STATE"

    def __init__(self, document: str, status: str, action: str):
        self.document = document
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} {document}: status is {status}")


# =============================================================================
# Concurrency
# =============================================================================


class ConcurrencyError(LedgerError):
    """Contention on a shared row.  Resubmitting the whole operation may succeed."""

    code: str = "CONCURRENCY_ERROR"


class LockConflictError(ConcurrencyError):
    code: str = "LOCK_CONFLICT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Lock conflict during {operation}: {detail}")


class RetryExhaustedError(ConcurrencyError):
    code: str = "RETRY_EXHAUSTED"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} still conflicting after {attempts} attempts")


# =============================================================================
# Reference integrity
# =============================================================================


class ReferenceIntegrityError(LedgerError):
    """A referenced entity is missing or deactivated.  The operation is aborted."""

    code: str = "REFERENCE_INTEGRITY"


class AccountNotFoundError(ReferenceIntegrityError):
    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account {account_ref} not found")


class AccountInactiveError(ReferenceIntegrityError):
    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


class HeaderAccountError(ReferenceIntegrityError):
    code: str = "HEADER_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is a header and cannot be posted to")


class FiscalYearNotFoundError(ReferenceIntegrityError):
    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_ref: str):
        self.fiscal_year_ref = fiscal_year_ref
        super().__init__(f"Fiscal year {fiscal_year_ref} not found")


class FiscalPeriodNotFoundError(ReferenceIntegrityError):
    code: str = "FISCAL_PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"No fiscal period for {period_ref}")


class JournalEntryNotFoundError(ReferenceIntegrityError):
    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_ref: str):
        self.entry_ref = entry_ref
        super().__init__(f"Journal entry {entry_ref} not found")
