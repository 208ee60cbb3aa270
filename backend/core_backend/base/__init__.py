"""
Core backend base components.

Shared view plumbing for the orders, kds and payments APIs so every app reads
the acting identity and idempotency key the same way.
"""

from .viewsets import ActorRequestMixin, ReadOnlyBaseViewSet
from .filters import BaseFilterSet

__all__ = [
    'ActorRequestMixin',
    'ReadOnlyBaseViewSet',
    'BaseFilterSet',
]
