"""Adapters for the managed backend (PostgREST rows and storage buckets)."""

from __future__ import annotations

from .errors import raise_for_backend
from .rest import PostgrestRowStore, filter_params
from .storage import StorageBucket

__all__ = ["PostgrestRowStore", "StorageBucket", "filter_params", "raise_for_backend"]
