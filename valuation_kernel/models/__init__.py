"""ORM models for the posting store."""

from valuation_kernel.models.posting import PostingModel

__all__ = ["PostingModel"]
