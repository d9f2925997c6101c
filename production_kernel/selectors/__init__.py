"""Selectors for the production kernel (read side)."""

from production_kernel.selectors.article_selector import ArticleSelector

__all__ = [
    "ArticleSelector",
]
