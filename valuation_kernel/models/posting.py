"""
Module: valuation_kernel.models.posting
Responsibility: ORM persistence for ledger postings, the raw input of every
    valuation and loan computation.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Amounts and quantities are Numeric(38, 9), never float.
    - Selectors hand callers frozen ``Posting`` DTOs, not ORM rows.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from valuation_kernel.db.base import Base
from valuation_kernel.domain.values import Posting


class PostingModel(Base):
    """
    A single posting row.

    Contract:
        ``account`` is the full colon-separated account name; the coarse
        prefix filter of the posting selector runs against it.
    """

    __tablename__ = "postings"

    __table_args__ = (
        Index("idx_posting_account", "account"),
        Index("idx_posting_date", "posting_date"),
    )

    account: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    transaction_note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    commodity: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    def to_dto(self) -> Posting:
        """Convert to the immutable domain value object."""
        return Posting(
            account=self.account,
            amount=Decimal(self.amount),
            quantity=Decimal(self.quantity),
            date=self.posting_date,
            note=self.note or "",
            transaction_note=self.transaction_note or "",
            commodity=self.commodity or "",
        )

    @classmethod
    def from_dto(cls, posting: Posting) -> "PostingModel":
        """Build a row from a domain posting."""
        return cls(
            account=posting.account,
            amount=posting.amount,
            quantity=posting.quantity,
            posting_date=posting.date,
            note=posting.note,
            transaction_note=posting.transaction_note,
            commodity=posting.commodity,
        )

    def __repr__(self) -> str:
        return f"<PostingModel {self.account} {self.amount} {self.posting_date}>"
