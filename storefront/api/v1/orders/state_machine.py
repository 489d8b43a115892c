"""
Order state machine for managing order status transitions
"""

from typing import Dict, List, Set
from storefront.models.order import OrderStatus

class OrderStateMachine:
    """
    Manages valid order status transitions.
    Nothing moves back into pending; delivered and cancelled are final.
    """

    def __init__(self):
        self.transitions: Dict[OrderStatus, Set[OrderStatus]] = {
            OrderStatus.PENDING: {
                OrderStatus.PROCESSING,
                OrderStatus.SHIPPED,
                OrderStatus.DELIVERED,
                OrderStatus.CANCELLED
            },
            OrderStatus.PROCESSING: {
                OrderStatus.SHIPPED,
                OrderStatus.DELIVERED,
                OrderStatus.CANCELLED
            },
            OrderStatus.SHIPPED: {
                OrderStatus.DELIVERED,
                OrderStatus.CANCELLED
            },
            OrderStatus.DELIVERED: set(),
            OrderStatus.CANCELLED: set()
        }

    def can_transition(
        self,
        current_status: OrderStatus,
        new_status: OrderStatus
    ) -> bool:
        """
        Check if transition is valid

        Re-submitting the current status is allowed so admins can save
        notes or tracking numbers without moving the order.
        Pending is only ever set by the cart, never by a transition.

        Args:
            current_status: Current order status
            new_status: Desired new status

        Returns:
            True if transition is allowed
        """
        if new_status == OrderStatus.PENDING:
            return False
        if current_status == new_status:
            return True
        return new_status in self.transitions.get(current_status, set())

    def get_valid_transitions(
        self,
        current_status: OrderStatus
    ) -> List[OrderStatus]:
        """Get list of valid next statuses"""
        return sorted(self.transitions.get(current_status, set()), key=lambda s: s.value)

    def is_terminal_state(self, status: OrderStatus) -> bool:
        return len(self.transitions.get(status, set())) == 0
