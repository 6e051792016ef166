"""
Module: valuation_kernel.selectors.posting_selector
Responsibility: Coarse, storage-level selection of postings for an account
    pattern.  This is the storage half of the two-phase account match: it
    turns the pattern into a SQL ``LIKE`` prefix filter and returns a
    SUPERSET of the postings whose account really matches.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only; returns frozen ``Posting`` DTOs ordered by date.
    - Never narrower than the exact wildcard semantics: callers must apply
      the in-process exact match (``valuation_engines.accounts``) before
      treating a posting as belonging to the pattern.

Failure modes:
    - SQLAlchemy errors propagate to the caller, which owns the session.
"""

from sqlalchemy import select

from valuation_kernel.domain.account_patterns import like_prefix
from valuation_kernel.domain.values import Posting
from valuation_kernel.logging_config import get_logger
from valuation_kernel.models.posting import PostingModel
from valuation_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.posting")


class PostingSelector(BaseSelector[PostingModel]):
    """Read-only access to stored postings."""

    def postings_matching(self, pattern: str) -> list[Posting]:
        """
        Return candidate postings for an account pattern, oldest first.

        Postconditions:
            - Every posting whose account matches ``pattern`` exactly is
              included; others may be included too.
        """
        stmt = (
            select(PostingModel)
            .where(PostingModel.account.like(like_prefix(pattern)))
            .order_by(PostingModel.posting_date, PostingModel.account)
        )
        rows = self.session.scalars(stmt).all()
        logger.debug(
            "postings_selected",
            extra={"pattern": pattern, "candidate_count": len(rows)},
        )
        return [row.to_dto() for row in rows]
