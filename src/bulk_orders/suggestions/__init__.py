"""Alternative product suggestions."""

from .suggester import AlternativeSuggester, B2BAlternativeSuggester, build_suggester

__all__ = ["AlternativeSuggester", "B2BAlternativeSuggester", "build_suggester"]
