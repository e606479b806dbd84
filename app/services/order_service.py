"""
Order placement: turns a priced cart into one grocery order and one order
per restaurant.

Each order (row plus its items) is written as an independent step. A
failed step is recorded and the remaining steps still run; nothing already
written is rolled back. The caller decides what to do with the cart from
the aggregate result.
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.backends.base import StoreBackend
from app.entities import (
    CartLine, Coupon, DeliveryAddress, DeliverySettings, LineType, OrderStatus,
)
from app.exceptions import ValidationError, PersistenceFailure
from app.services.cart_service import Cart
from app.services.pricing_service import PricingSummary, calculate_totals, subtotal
from app.utils.money import ZERO

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'^\d{10}$')
PAYMENT_METHODS = ('card', 'cash')

GROCERY_INITIAL_STATUS = OrderStatus.CONFIRMED
RESTAURANT_INITIAL_STATUS = OrderStatus.PENDING

ORDER_FAILED_MESSAGE = 'Order failed. Failed to place order, please try again.'


@dataclass
class GroupOutcome:
    """Result of writing one order (grocery, or one restaurant's share)."""
    kind: LineType
    key: str
    line_count: int
    total_amount: Decimal = ZERO
    order_id: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.order_id is not None and self.error is None and not self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'key': self.key,
            'order_id': self.order_id if self.succeeded else None,
            'total_amount': str(self.total_amount),
            'succeeded': self.succeeded,
            'skipped': self.skipped,
            'error': self.error,
        }


@dataclass
class CouponUsageOutcome:
    """Best-effort coupon redemption count; never affects order outcomes."""
    coupon_code: str
    recorded: bool
    error: Optional[str] = None


@dataclass
class PlacementResult:
    summary: PricingSummary
    grocery: Optional[GroupOutcome] = None
    restaurants: List[GroupOutcome] = field(default_factory=list)
    coupon_usage: Optional[CouponUsageOutcome] = None
    dropped_lines: List[str] = field(default_factory=list)

    @property
    def outcomes(self) -> List[GroupOutcome]:
        return ([self.grocery] if self.grocery else []) + list(self.restaurants)

    @property
    def created(self) -> List[GroupOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[GroupOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def any_created(self) -> bool:
        return bool(self.created)

    @property
    def fully_succeeded(self) -> bool:
        return self.any_created and not self.failed and not self.dropped_lines

    @property
    def primary(self) -> Optional[GroupOutcome]:
        """Order to show on the confirmation page; grocery wins over restaurants."""
        if self.grocery and self.grocery.succeeded:
            return self.grocery
        created = self.created
        return created[0] if created else None

    @property
    def message(self) -> str:
        if not self.any_created:
            return ORDER_FAILED_MESSAGE
        if self.fully_succeeded:
            return 'Your order has been successfully placed!'
        placed, total = len(self.created), len(self.outcomes)
        return (f'{placed} of {total} orders were placed. '
                f'Some items could not be ordered and were not charged.')

    def to_dict(self) -> Dict[str, Any]:
        primary = self.primary
        return {
            'status': 'success' if self.fully_succeeded else ('partial' if self.any_created else 'error'),
            'message': self.message,
            'primary_order': {'kind': primary.kind.value, 'id': primary.order_id} if primary else None,
            'orders': [o.to_dict() for o in self.outcomes],
            'dropped_lines': list(self.dropped_lines),
            'summary': self.summary.to_dict(),
        }


def validate_checkout(cart: Cart, address: DeliveryAddress, payment_method: str = 'card') -> None:
    """
    Reject incomplete checkouts before anything is written.

    Raises:
        ValidationError: with one message per offending field
    """
    errors: Dict[str, str] = {}

    for name in DeliveryAddress.REQUIRED_FIELDS:
        if not getattr(address, name):
            errors[name] = 'This field is required.'

    if address.phone and not PHONE_PATTERN.match(address.phone):
        errors['phone'] = 'Phone number must be exactly 10 digits.'

    if payment_method not in PAYMENT_METHODS:
        errors['payment_method'] = 'Choose a valid payment method.'

    if cart.is_empty:
        errors['cart'] = 'Your cart is empty.'

    if errors:
        raise ValidationError(errors)


def group_restaurant_lines(lines: List[CartLine]):
    """
    Split restaurant lines by restaurant, keeping first-seen order.

    Returns (groups, dropped) where dropped lists the ids of lines that
    carry no restaurant and therefore cannot be billed to anyone.
    """
    groups: 'OrderedDict[str, List[CartLine]]' = OrderedDict()
    dropped = []
    for line in lines:
        if not line.restaurant_id:
            logger.warning(f"[CHECKOUT] Dropping restaurant line {line.id}: no restaurant_id")
            dropped.append(line.id)
            continue
        groups.setdefault(line.restaurant_id, []).append(line)
    return groups, dropped


def compose_delivery_notes(notes: str, address: DeliveryAddress, payment_method: str,
                           summary: PricingSummary) -> str:
    """Pack checkout metadata that has no dedicated column into delivery_notes."""
    parts = []
    if notes and notes.strip():
        parts.append(notes.strip())
    parts.append(f'Phone: {address.phone}')
    if address.alternate_phone:
        parts.append(f'Alt Phone: {address.alternate_phone}')
    parts.append(f'Payment: {payment_method}')
    if summary.coupon_code:
        parts.append(f'Coupon: {summary.coupon_code}')
        parts.append(f'Discount: {summary.discount}')
    parts.append(f'Delivery Fee: {summary.delivery_fee}')
    return ' | '.join(parts)


def _place_grocery_order(backend: StoreBackend, user_id: str, lines: List[CartLine],
                         address: DeliveryAddress, payment_method: str, notes: str,
                         summary: PricingSummary) -> GroupOutcome:
    outcome = GroupOutcome(
        kind=LineType.GROCERY,
        key=LineType.GROCERY.value,
        line_count=len(lines),
        total_amount=summary.grocery_grand_total,
    )
    order_id = None
    try:
        order_id = backend.create_order({
            'user_id': user_id,
            'total_amount': summary.grocery_grand_total,
            'status': GROCERY_INITIAL_STATUS.value,
            'payment_method': payment_method,
            'delivery_address': address.full_address(),
            'delivery_lat': address.lat,
            'delivery_lon': address.lon,
            'delivery_notes': compose_delivery_notes(notes, address, payment_method, summary),
        })
        backend.create_order_items(order_id, [
            {'product_id': line.id, 'quantity': line.quantity, 'price': line.price}
            for line in lines
        ])
        outcome.order_id = order_id
        logger.info(f"[CHECKOUT] Grocery order {order_id} created for user {user_id} "
                    f"({len(lines)} lines, total {summary.grocery_grand_total})")
    except PersistenceFailure as e:
        outcome.error = e.message
        outcome.detail = e.detail
        logger.error(f"[CHECKOUT] Grocery order failed for user {user_id} "
                     f"(order row: {order_id or 'not created'}): {e.message} {e.detail or ''}")
    return outcome


def _place_restaurant_order(backend: StoreBackend, user_id: str, restaurant_id: str,
                            lines: List[CartLine], address: DeliveryAddress,
                            payment_method: str, notes: str) -> GroupOutcome:
    group_total = subtotal(lines)
    outcome = GroupOutcome(
        kind=LineType.RESTAURANT,
        key=restaurant_id,
        line_count=len(lines),
        total_amount=group_total,
    )

    missing = [line.id for line in lines if not line.restaurant_food_id]
    if missing:
        outcome.skipped = True
        outcome.error = 'Some menu items could not be identified'
        logger.warning(f"[CHECKOUT] Skipping restaurant {restaurant_id}: lines without "
                       f"restaurant_food_id {missing}")
        return outcome

    order_id = None
    try:
        order_id = backend.create_restaurant_order({
            'restaurant_id': restaurant_id,
            'user_id': user_id,
            'total_amount': group_total,
            'status': RESTAURANT_INITIAL_STATUS.value,
            'payment_method': payment_method,
            'notes': notes.strip() if notes else None,
            'delivery_address': address.full_address(),
            'delivery_lat': address.lat,
            'delivery_lon': address.lon,
        })
        backend.create_restaurant_order_items(order_id, [
            {'restaurant_food_id': line.restaurant_food_id, 'quantity': line.quantity, 'price': line.price}
            for line in lines
        ])
        outcome.order_id = order_id
        logger.info(f"[CHECKOUT] Restaurant order {order_id} created for restaurant {restaurant_id} "
                    f"({len(lines)} lines, total {group_total})")
    except PersistenceFailure as e:
        outcome.error = e.message
        outcome.detail = e.detail
        logger.error(f"[CHECKOUT] Restaurant order failed for restaurant {restaurant_id} "
                     f"(order row: {order_id or 'not created'}): {e.message} {e.detail or ''}")
    return outcome


def record_coupon_usage(backend: StoreBackend, coupon: Coupon) -> CouponUsageOutcome:
    """Count a redemption. Failures are logged and reported, never raised."""
    try:
        backend.increment_coupon_usage(coupon.id)
        return CouponUsageOutcome(coupon_code=coupon.code, recorded=True)
    except PersistenceFailure as e:
        logger.warning(f"[COUPON] Could not record usage of {coupon.code}: {e.message} {e.detail or ''}")
        return CouponUsageOutcome(coupon_code=coupon.code, recorded=False, error=e.message)


def place_order(backend: StoreBackend, user_id: str, cart: Cart, address: DeliveryAddress,
                payment_method: str = 'card', coupon: Optional[Coupon] = None,
                delivery_settings: Optional[DeliverySettings] = None,
                notes: str = '') -> PlacementResult:
    """
    Place every order the cart implies.

    Validation runs first and raises ValidationError with no backend call.
    After that nothing raises for persistence problems: each order's
    outcome is collected in the returned PlacementResult.
    """
    validate_checkout(cart, address, payment_method)

    grocery_lines = cart.grocery_lines
    groups, dropped = group_restaurant_lines(cart.restaurant_lines)
    billable_restaurant_lines = [line for lines in groups.values() for line in lines]

    summary = calculate_totals(grocery_lines, billable_restaurant_lines, coupon, delivery_settings)
    result = PlacementResult(summary=summary, dropped_lines=dropped)

    if grocery_lines:
        result.grocery = _place_grocery_order(
            backend, user_id, grocery_lines, address, payment_method, notes, summary
        )
        if coupon is not None and result.grocery.succeeded:
            result.coupon_usage = record_coupon_usage(backend, coupon)

    # Sequential on purpose: one restaurant's items are written before the next starts.
    for restaurant_id, lines in groups.items():
        result.restaurants.append(_place_restaurant_order(
            backend, user_id, restaurant_id, lines, address, payment_method, notes
        ))

    if result.any_created and result.failed:
        logger.warning(f"[CHECKOUT] Partial placement for user {user_id}: "
                       f"{len(result.created)} created, {len(result.failed)} failed")
    elif not result.any_created:
        logger.error(f"[CHECKOUT] Order placement failed for user {user_id}: nothing created")

    return result


def list_previous_addresses(backend: StoreBackend, user_id: str, limit: int = 5):
    """Recently used delivery addresses for the address picker; empty on backend failure."""
    try:
        return backend.list_previous_addresses(user_id, limit=limit)
    except PersistenceFailure as e:
        logger.warning(f"[CHECKOUT] Previous addresses unavailable for user {user_id}: {e.message}")
        return []
