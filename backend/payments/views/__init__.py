"""
POS views package: cashier sessions and settlement transactions.
"""

from .sessions import POSSessionViewSet
from .transactions import POSTransactionViewSet

__all__ = [
    'POSSessionViewSet',
    'POSTransactionViewSet',
]
