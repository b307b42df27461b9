"""Voyage AI infrastructure package."""

from .voyage_reranker import VoyageReranker

__all__ = ["VoyageReranker"]
