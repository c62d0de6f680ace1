"""
SequenceService -- collision-free counters backed by locked rows.

Responsibility:
    Hands out strictly increasing integers per named sequence.  Journal
    entry numbers use one sequence per fiscal year (``journal_entry:2026``);
    inventory movements use one sequence per product, which orders a
    product's movements recorded on the same date.

Architecture position:
    Kernel > Services -- infrastructure used by JournalService and
    InventoryLedgerService.

Invariants enforced:
    - The counter row is read with SELECT ... FOR UPDATE and incremented in
      place.  MAX(number) + 1 is never used.
    - The increment belongs to the caller's transaction; a rollback returns
      the value.
    - A movement counter is only locked while its product's stock row is
      held, so it never extends the lock order beyond that row.

Failure modes:
    - IntegrityError when two transactions create the same counter
      concurrently; handled by rolling back a savepoint and re-reading.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional sequence allocation.

    Guarantees:
        - next_value() returns a value > every value previously returned for
          the same name in committed transactions.

    Non-goals:
        - Does NOT commit.
    """

    JOURNAL_ENTRY = "journal_entry"
    INVENTORY_MOVEMENT = "inventory_movement"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def journal_sequence(cls, year: int) -> str:
        return f"{cls.JOURNAL_ENTRY}:{year}"

    @classmethod
    def movement_sequence(cls, product_id) -> str:
        return f"{cls.INVENTORY_MOVEMENT}:{product_id}"

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row and return its incremented value.

        Preconditions: Caller is inside an active transaction.
        Postconditions: The returned value is > 0 and the row stays locked
            until the caller's transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def format_entry_number(self, year: int, prefix: str = "JE") -> str:
        """Allocate the next number of ``year`` as ``JE-2026-00001``."""
        value = self.next_value(self.journal_sequence(year))
        return f"{prefix}-{year}-{value:05d}"
