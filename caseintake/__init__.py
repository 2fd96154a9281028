"""Service-case intake: photo compression, storage, retrieval and staff notification."""

__version__ = "0.1.0"
