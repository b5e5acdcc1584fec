"""
Domain utilities for the Proxy Service.
"""

from .refresh_coordinator import RefreshCoordinator

__all__ = [
    "RefreshCoordinator",
]
