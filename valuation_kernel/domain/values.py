"""
Values -- Immutable domain value objects for ledger postings.

Responsibility:
    Provides the read-only ``Posting`` value object that every valuation and
    loan computation consumes.  Postings are produced by the storage
    collaborator (see ``valuation_kernel.selectors``) and never mutated.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary amounts are ``Decimal`` (never float) in the ledger's default
      currency.
    - Postings are frozen once constructed.

Failure modes:
    - ValueError on construction with an amount or quantity that cannot be
      represented as a Decimal, or with an empty account name.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation


def _to_decimal(value: Decimal | int | str, field_name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise ValueError(f"{field_name} must not be a float: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid {field_name}: {value!r}") from e


@dataclass(frozen=True, slots=True)
class Posting:
    """
    One dated, signed monetary entry against a ledger account.

    Contract:
        ``amount`` is expressed in the ledger's default currency.
        ``transaction_note`` is the note of the enclosing transaction and
        ``note`` the note attached to this individual posting.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount and quantity are always Decimal
    """

    account: str
    amount: Decimal
    date: date
    quantity: Decimal = Decimal("1")
    note: str = ""
    transaction_note: str = ""
    commodity: str = ""

    def __post_init__(self) -> None:
        if not self.account:
            raise ValueError("Posting account must not be empty")
        object.__setattr__(self, "amount", _to_decimal(self.amount, "amount"))
        object.__setattr__(
            self, "quantity", _to_decimal(self.quantity, "quantity")
        )

    @property
    def is_positive(self) -> bool:
        """True if the posting adds to the account."""
        return self.amount > Decimal("0")
