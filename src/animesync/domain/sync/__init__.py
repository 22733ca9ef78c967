"""Client-side synchronization core."""

from __future__ import annotations

from .cache import LocalCache
from .collection import OrderedById
from .interactions import InteractionStore, next_status
from .mutations import (
    CacheKey,
    CreateComment,
    CreatePost,
    DeleteComment,
    DeletePost,
    EditPost,
    Mutation,
    SetInteraction,
    ToggleBookmark,
    ToggleLike,
    Upvote,
)
from .optimistic import AppliedMutation, OptimisticMutationEngine
from .paginator import CatalogPaginator
from .reconciler import ReconcileStats, Reconciler
from .scope import ScopeClosedError, SyncScope
from .subscriptions import HandleState, SubscriptionHandle, SubscriptionManager

__all__ = [
    "AppliedMutation",
    "CacheKey",
    "CatalogPaginator",
    "CreateComment",
    "CreatePost",
    "DeleteComment",
    "DeletePost",
    "EditPost",
    "HandleState",
    "InteractionStore",
    "LocalCache",
    "Mutation",
    "OptimisticMutationEngine",
    "OrderedById",
    "ReconcileStats",
    "Reconciler",
    "ScopeClosedError",
    "SetInteraction",
    "SubscriptionHandle",
    "SubscriptionManager",
    "SyncScope",
    "ToggleBookmark",
    "ToggleLike",
    "Upvote",
    "next_status",
]
