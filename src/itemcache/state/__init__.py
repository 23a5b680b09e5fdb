"""Cache state: the immutable snapshot and the observable store that owns it."""

from .cache_state import CacheState, CacheStatus
from .store import DEFAULT_STALENESS_THRESHOLD, FetchToken, MutationPolicy, ObservableCache

__all__ = [
    "CacheState",
    "CacheStatus",
    "ObservableCache",
    "MutationPolicy",
    "FetchToken",
    "DEFAULT_STALENESS_THRESHOLD",
]
