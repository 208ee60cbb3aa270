"""
Orders services package - the order state machine split into focused modules:
- OrderService: Core lifecycle (create, confirm, serve, cancel) and transition rules
- OrderItemService: Line management (add, amend, remove)
- OrderDiscountService: Order-level discount
- OrderCalculationService: Totals from the order's live lines
"""

# Core order operations
from .order_service import OrderService, KITCHEN_PHASE

# Item management
from .item_service import OrderItemService

# Discount operations
from .discount_service import OrderDiscountService

# Calculation operations
from .calculation_service import OrderCalculationService

__all__ = [
    # Core
    'OrderService',
    'KITCHEN_PHASE',
    # Items
    'OrderItemService',
    # Discounts
    'OrderDiscountService',
    # Calculations
    'OrderCalculationService',
]
