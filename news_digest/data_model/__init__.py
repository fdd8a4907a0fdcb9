"""Shared data model primitives."""

from news_digest.data_model.base import StrictBaseModel


__all__ = ["StrictBaseModel"]
