"""Digest content selection."""

from news_digest.selection.models import DigestSelection
from news_digest.selection.selector import SelectionEngine


__all__ = ["DigestSelection", "SelectionEngine"]
