"""Order status transitions for grocery and restaurant orders."""
import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from app.backends.base import StoreBackend
from app.entities import LineType, OrderRecord, OrderStatus, utcnow
from app.exceptions import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)

ESTIMATED_DELIVERY_WINDOW = timedelta(minutes=45)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Forward path per order kind. Cancellation is allowed from any non-terminal status.
_FORWARD: Dict[LineType, Dict[OrderStatus, OrderStatus]] = {
    LineType.GROCERY: {
        OrderStatus.PENDING: OrderStatus.CONFIRMED,
        OrderStatus.CONFIRMED: OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.OUT_FOR_DELIVERY: OrderStatus.DELIVERED,
    },
    LineType.RESTAURANT: {
        OrderStatus.PENDING: OrderStatus.ACCEPTED,
        OrderStatus.ACCEPTED: OrderStatus.PREPARING,
        OrderStatus.PREPARING: OrderStatus.READY,
        OrderStatus.READY: OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.OUT_FOR_DELIVERY: OrderStatus.DELIVERED,
    },
}


def allowed_transitions(kind: LineType, current: OrderStatus) -> FrozenSet[OrderStatus]:
    if current in TERMINAL_STATUSES:
        return frozenset()
    allowed = {OrderStatus.CANCELLED}
    following = _FORWARD[LineType(kind)].get(current)
    if following is not None:
        allowed.add(following)
    return frozenset(allowed)


def can_transition(kind: LineType, current: str, target: str) -> bool:
    try:
        return OrderStatus(target) in allowed_transitions(kind, OrderStatus(current))
    except ValueError:
        return False


def get_order(backend: StoreBackend, kind: LineType, order_id: str) -> OrderRecord:
    order = backend.get_order(LineType(kind), str(order_id))
    if order is None:
        raise NotFoundError('Order not found')
    return order


def update_status(backend: StoreBackend, kind: LineType, order_id: str, target: str,
                  acting_user_id: Optional[str] = None,
                  delivery_person_id: Optional[str] = None,
                  now: Optional[datetime] = None) -> OrderRecord:
    """
    Move an order to ``target``.

    Handing an order out for delivery assigns the delivery person (the given
    one, or whoever made the change) and sets the estimated delivery time.

    Raises:
        NotFoundError: if the order does not exist
        InvalidTransitionError: if the state machine forbids the change
    """
    kind = LineType(kind)
    order = get_order(backend, kind, order_id)

    if not can_transition(kind, order.status, target):
        logger.info(f"[ORDERS] Rejected {kind.value} order {order_id}: {order.status} -> {target}")
        raise InvalidTransitionError(order.status, target)

    fields = {'status': OrderStatus(target).value}
    if fields['status'] == OrderStatus.OUT_FOR_DELIVERY.value:
        fields['delivery_person_id'] = delivery_person_id or acting_user_id
        fields['estimated_delivery'] = (now or utcnow()) + ESTIMATED_DELIVERY_WINDOW

    backend.update_order(kind, order.id, fields)
    logger.info(f"[ORDERS] {kind.value} order {order_id}: {order.status} -> {fields['status']}")
    return get_order(backend, kind, order.id)
