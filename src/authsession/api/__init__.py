"""Application-facing API client."""

from .client import ApiClient

__all__ = ["ApiClient"]
