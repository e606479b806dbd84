"""Checkout blueprint - pricing summary, coupons, saved addresses and order placement."""
from flask import Blueprint, Response, request, session, jsonify, current_app, g, url_for
from typing import Optional, Tuple

from app.backends import get_backend
from app.blueprints.cart import get_cart, clear_cart
from app.blueprints.metrics import record_placement, record_coupon_rejection
from app.entities import Coupon, DeliveryAddress, LineType
from app.exceptions import CouponError
from app.middleware import require_login
from app.services import coupon_service, delivery_service, order_service
from app.services.pricing_service import calculate_totals, subtotal

checkout_bp = Blueprint('checkout', __name__, url_prefix='/checkout')

COUPON_SESSION_KEY = 'applied_coupon'


def get_applied_coupon() -> Optional[Coupon]:
    data = session.get(COUPON_SESSION_KEY)
    if not data:
        return None
    try:
        return Coupon.from_row(data)
    except (KeyError, TypeError, ValueError) as e:
        current_app.logger.warning(f"[COUPON] Discarding unreadable applied coupon: {e}")
        session.pop(COUPON_SESSION_KEY, None)
        return None


def _remember_coupon(coupon: Coupon) -> None:
    session[COUPON_SESSION_KEY] = coupon.to_dict()
    session.modified = True


def _forget_coupon() -> None:
    session.pop(COUPON_SESSION_KEY, None)
    session.modified = True


def _order_url(kind: LineType, order_id: str) -> str:
    if kind == LineType.GROCERY:
        return url_for('orders.view_order', order_id=order_id)
    return url_for('orders.view_restaurant_order', order_id=order_id)


def _summary_payload() -> dict:
    cart = get_cart()
    coupon = get_applied_coupon()
    settings = delivery_service.get_delivery_policy(get_backend())

    # Only lines that placement would bill are priced.
    groups, dropped = order_service.group_restaurant_lines(cart.restaurant_lines)
    billable_restaurant_lines = [line for lines in groups.values() for line in lines]

    grocery_subtotal = subtotal(cart.grocery_lines)
    priced_coupon = coupon if coupon and coupon.is_applicable(grocery_subtotal) else None
    summary = calculate_totals(cart.grocery_lines, billable_restaurant_lines, priced_coupon, settings)

    payload = summary.to_dict()
    payload['item_count'] = cart.item_count
    payload['coupon'] = coupon.to_dict() if coupon else None
    payload['dropped_lines'] = dropped
    if coupon and not coupon.meets_minimum(grocery_subtotal):
        payload['coupon_warning'] = (
            f"Minimum order amount of {coupon.min_order_amount:.2f} required for this coupon"
        )
    elif coupon and priced_coupon is None:
        payload['coupon_warning'] = f"Coupon {coupon.code} can no longer be applied"
    return payload


@checkout_bp.route('/summary', methods=['GET'])
def summary() -> Response:
    """Price the current cart. Recomputed on every call."""
    return jsonify(_summary_payload())


@checkout_bp.route('/coupon', methods=['POST'])
@require_login
def apply_coupon() -> Response:
    data = request.get_json(silent=True) or {}
    cart = get_cart()

    try:
        coupon = coupon_service.validate_coupon(
            get_backend(), data.get('code'), subtotal(cart.grocery_lines)
        )
    except CouponError as e:
        record_coupon_rejection(e.code)
        raise

    _remember_coupon(coupon)
    current_app.logger.info(f"[COUPON] User {g.user_id} applied {coupon.code}")

    return jsonify({
        'status': 'success',
        'message': coupon_service.success_message(coupon),
        'summary': _summary_payload(),
    })


@checkout_bp.route('/coupon', methods=['DELETE'])
@require_login
def remove_coupon() -> Response:
    _forget_coupon()
    return jsonify({'status': 'success', 'message': 'Coupon removed', 'summary': _summary_payload()})


@checkout_bp.route('/addresses', methods=['GET'])
@require_login
def previous_addresses() -> Response:
    limit = current_app.config.get('PREVIOUS_ADDRESS_LIMIT', 5)
    addresses = order_service.list_previous_addresses(get_backend(), g.user_id, limit=limit)
    return jsonify({'addresses': [a.to_dict() for a in addresses]})


@checkout_bp.route('/place', methods=['POST'])
@require_login
def place() -> Tuple[Response, int]:
    """
    Place the orders for the current cart.

    201 when at least one order was created (the cart and the applied
    coupon are then cleared), 502 when nothing could be created (the cart
    is kept so the customer can retry).
    """
    data = request.get_json(silent=True) or {}
    cart = get_cart()
    address = DeliveryAddress.from_dict(data.get('address') or data)
    payment_method = data.get('payment_method') or 'card'
    notes = data.get('notes') or ''

    order_service.validate_checkout(cart, address, payment_method)

    backend = get_backend()
    coupon = get_applied_coupon()
    if coupon is not None:
        try:
            coupon = coupon_service.validate_coupon(backend, coupon.code, subtotal(cart.grocery_lines))
        except CouponError as e:
            _forget_coupon()
            record_coupon_rejection(e.code)
            current_app.logger.info(f"[CHECKOUT] Applied coupon no longer valid at placement: {e.message}")
            raise

    settings = delivery_service.get_delivery_policy(backend)
    result = order_service.place_order(
        backend, g.user_id, cart, address,
        payment_method=payment_method,
        coupon=coupon,
        delivery_settings=settings,
        notes=notes,
    )
    record_placement(result)

    payload = result.to_dict()
    if not result.any_created:
        return jsonify(payload), 502

    clear_cart()
    _forget_coupon()

    primary = result.primary
    payload['redirect_url'] = _order_url(primary.kind, primary.order_id)
    current_app.logger.info(
        f"[CHECKOUT] User {g.user_id} placed {len(result.created)} order(s), "
        f"primary {primary.kind.value} {primary.order_id}"
    )
    return jsonify(payload), 201
