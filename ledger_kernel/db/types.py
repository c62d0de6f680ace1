"""
Module: ledger_kernel.db.types
Responsibility: Annotated column types for ledger persistence and ISO 4217
    currency validation.  Every model uses these aliases so that monetary,
    rate and quantity columns have one scale system-wide.
Architecture position: Kernel > DB.  May be imported by models/, services/
    and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money columns are Numeric(18, 2); rates and conversion factors
      Numeric(18, 6); inventory quantities Numeric(18, 3).  The scales match
      domain/amounts.py, which is the only place values are rounded.
    - validate_currency() rejects anything that is not an ISO 4217 code.

Failure modes:
    - InvalidCurrencyError on an unknown or malformed currency code.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

from ledger_kernel.exceptions import InvalidCurrencyError

Money = Annotated[Decimal, Numeric(18, 2)]

Rate = Annotated[Decimal, Numeric(18, 6)]

Quantity = Annotated[Decimal, Numeric(18, 3)]

Currency = Annotated[str, String(3)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(2000)]


ISO_4217_CURRENCIES: frozenset[str] = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND
    BOB BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF
    DKK DOP DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD
    HNL HTG HUF IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW
    KWD KYD KZT LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR
    MVR MWK MXN MYR MZN NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN
    PYG QAR RON RSD RUB RWF SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN
    SVC SYP SZL THB TJS TMT TND TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES
    VND VUV WST XAF XCD XOF XPF YER ZAR ZMW ZWL
    """.split()
)


def validate_currency(currency: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Postconditions: Returns the uppercase, trimmed code.

    Raises:
        InvalidCurrencyError: If the code is not a known ISO 4217 currency.
    """
    if not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.strip().upper()
    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized


def is_valid_currency(currency: str) -> bool:
    try:
        validate_currency(currency)
    except InvalidCurrencyError:
        return False
    return True
