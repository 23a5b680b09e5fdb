"""itemcache.

Observable cache for a remote collection of items: fetches and caches the
collection, guards against redundant concurrent fetches, applies confirmed
mutations in place, and notifies observers with immutable snapshots.

This package contains:
- Item model and error taxonomy
- Remote data source contract and implementations
- The observable cache and its snapshot type
- Configuration and logging utilities
"""

# Version information
__version__ = "0.1.0"

__all__ = ["__version__"]

# Use specific imports like: from itemcache.state import ObservableCache
