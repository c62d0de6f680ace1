"""
DocumentRef -- typed pointer from ledger rows to the business document
that caused them.

Responsibility:
    Journal entries and inventory movements both record "what caused me"
    as a (document_type, document_id) pair.  DocumentRef is that pair as an
    immutable value object with a stable ``type:id`` string form used for
    logging and lookups.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Invariants enforced:
    - document_type is a DocumentType member, never a free-form string.
    - str(ref) and DocumentRef.parse() are inverses.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class DocumentType(str, Enum):
    """Business documents that can originate ledger rows."""

    SALES_ORDER = "sales_order"
    SALES_DELIVERY = "sales_delivery"
    SALES_INVOICE = "sales_invoice"
    SALES_RETURN = "sales_return"
    PURCHASE_ORDER = "purchase_order"
    PURCHASE_RECEIVING = "purchase_receiving"
    PURCHASE_RETURN = "purchase_return"
    CUSTOMER_PAYMENT = "customer_payment"
    SUPPLIER_PAYMENT = "supplier_payment"
    EXPENSE = "expense"
    INVENTORY_ADJUSTMENT = "inventory_adjustment"
    OPENING_BALANCE = "opening_balance"
    JOURNAL_ENTRY = "journal_entry"


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """
    Reference to a business document.

    Guarantees:
        - Hashable and comparable; safe as a dict key for idempotency maps.
    """

    document_type: DocumentType
    document_id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.document_type, DocumentType):
            object.__setattr__(self, "document_type", DocumentType(self.document_type))
        if not isinstance(self.document_id, UUID):
            object.__setattr__(self, "document_id", UUID(str(self.document_id)))

    def __str__(self) -> str:
        return f"{self.document_type.value}:{self.document_id}"

    @classmethod
    def parse(cls, value: str) -> "DocumentRef":
        """
        Parse ``"sales_delivery:<uuid>"``.

        Raises:
            ValueError: If the string is malformed or the type is unknown.
        """
        type_part, sep, id_part = value.partition(":")
        if not sep or not id_part:
            raise ValueError(f"Invalid document reference: {value!r}")
        return cls(DocumentType(type_part), UUID(id_part))

    @classmethod
    def of(cls, document_type: DocumentType | str, document_id: UUID | str) -> "DocumentRef":
        return cls(DocumentType(document_type), UUID(str(document_id)))
