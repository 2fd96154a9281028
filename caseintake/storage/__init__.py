"""Storage layer for case photos."""

from .image_store import ImageStore, InMemoryImageStore
from .retrieval import ImageRetrievalService

__all__ = ['ImageStore', 'InMemoryImageStore', 'ImageRetrievalService']
