"""
Category Suggestion Package

Suggests spending categories for an expense description, using Groq when an
API key is configured and keyword matching otherwise.
"""

from .suggester import CategorySuggester

__all__ = [
    "CategorySuggester",
]
