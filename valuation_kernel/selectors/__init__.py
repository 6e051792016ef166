"""Selectors for the valuation kernel (read side)."""

from valuation_kernel.selectors.posting_selector import PostingSelector, like_prefix

__all__ = ["PostingSelector", "like_prefix"]
