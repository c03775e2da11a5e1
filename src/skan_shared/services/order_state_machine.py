"""
Order State Machine - status transition rules for orders.

The lifecycle is ``new -> preparing -> ready -> served``. Moves go forward
only; skipping ahead is allowed because staff dashboards may jump straight
to ``served``. Asking for the status the order already has is a successful
no-op, which keeps retried requests and double clicks harmless.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import (
    ORDER_STATUS_SEQUENCE,
    STATUS_TIMESTAMP_FIELDS,
    TERMINAL_STATUSES,
    OrderStatus,
)
from ..errors import InvalidTransitionError


def parse_status(value: str | None) -> OrderStatus:
    """Map a raw status value to OrderStatus or raise InvalidTransitionError."""
    normalized = (value or "").strip().lower()
    try:
        return OrderStatus(normalized)
    except ValueError:
        raise InvalidTransitionError(
            f"Invalid status. Must be one of: {', '.join(OrderStatus.all_values())}"
        )


@dataclass(frozen=True)
class TransitionPlan:
    """What applying ``target`` to an order currently in ``current`` does."""

    current: OrderStatus
    target: OrderStatus
    timestamp_field: str | None

    @property
    def is_noop(self) -> bool:
        return self.current == self.target


class OrderStateMachine:
    """
    Decides whether a status change is allowed.

    Pure rules, no persistence: the order service reads the current status,
    asks for a plan, then applies it with a conditional write.
    """

    def __init__(self, sequence: tuple[OrderStatus, ...] = ORDER_STATUS_SEQUENCE):
        self._rank = {status: index for index, status in enumerate(sequence)}

    def rank(self, status: OrderStatus) -> int:
        return self._rank[status]

    def can_transition(self, current: OrderStatus, target: OrderStatus) -> bool:
        if current == target:
            return True
        if current in TERMINAL_STATUSES:
            return False
        return self.rank(target) > self.rank(current)

    def plan(self, current: OrderStatus | str, target: OrderStatus | str) -> TransitionPlan:
        current_status = parse_status(current) if not isinstance(current, OrderStatus) else current
        target_status = parse_status(target) if not isinstance(target, OrderStatus) else target

        if not self.can_transition(current_status, target_status):
            raise InvalidTransitionError(
                f"Cannot move order from {current_status.value} to {target_status.value}",
                code="BACKWARD_TRANSITION",
            )

        return TransitionPlan(
            current=current_status,
            target=target_status,
            timestamp_field=STATUS_TIMESTAMP_FIELDS.get(target_status),
        )


order_state_machine = OrderStateMachine()
