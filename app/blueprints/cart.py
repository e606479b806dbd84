"""Cart blueprint - routes for the session-held cart."""
from flask import Blueprint, Response, request, session, jsonify, current_app
from typing import Tuple

from app.backends import get_backend
from app.entities import LineType
from app.exceptions import BusinessLogicError
from app.services.cart_service import (
    Cart, parse_quantity, build_grocery_line, build_restaurant_line,
)
from app.services.pricing_service import subtotal

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')

CART_SESSION_KEY = 'cart'


def get_cart() -> Cart:
    """Cart for the current session."""
    return Cart.from_session_data(session.get(CART_SESSION_KEY))


def save_cart(cart: Cart) -> None:
    session[CART_SESSION_KEY] = cart.to_session_data()
    session.modified = True


def clear_cart() -> None:
    session.pop(CART_SESSION_KEY, None)
    session.modified = True


def cart_payload(cart: Cart) -> dict:
    return {
        'lines': [dict(line.to_dict(), line_total=str(line.line_total)) for line in cart],
        'item_count': cart.item_count,
        'grocery_subtotal': str(subtotal(cart.grocery_lines)),
        'restaurant_subtotal': str(subtotal(cart.restaurant_lines)),
    }


@cart_bp.route('', methods=['GET'])
def view_cart() -> Response:
    return jsonify(cart_payload(get_cart()))


@cart_bp.route('/items', methods=['POST'])
def add_item() -> Tuple[Response, int]:
    """
    Add a product or a restaurant menu item.

    Body: {"type": "grocery", "product_id": ...} or
          {"type": "restaurant", "restaurant_food_id": ...}, plus "quantity".
    """
    data = request.get_json(silent=True) or {}
    quantity = parse_quantity(data.get('quantity', 1))
    backend = get_backend()

    line_type = data.get('type', LineType.GROCERY.value)
    if line_type == LineType.GROCERY.value:
        if not data.get('product_id'):
            raise BusinessLogicError('product_id is required')
        line = build_grocery_line(backend, data['product_id'], quantity)
    elif line_type == LineType.RESTAURANT.value:
        if not data.get('restaurant_food_id'):
            raise BusinessLogicError('restaurant_food_id is required')
        line = build_restaurant_line(backend, data['restaurant_food_id'], quantity)
    else:
        raise BusinessLogicError(f"Unknown item type '{line_type}'")

    cart = get_cart()
    line = cart.add(line)
    save_cart(cart)

    current_app.logger.info(f"[CART] Added {quantity} x {line.id} (now {line.quantity})")
    return jsonify(cart_payload(cart)), 201


@cart_bp.route('/items/<path:line_id>', methods=['PATCH'])
def update_item(line_id: str) -> Response:
    data = request.get_json(silent=True) or {}
    quantity = parse_quantity(data.get('quantity'), allow_zero=True)

    cart = get_cart()
    cart.update_quantity(line_id, quantity)
    save_cart(cart)

    current_app.logger.info(f"[CART] Set {line_id} quantity to {quantity}")
    return jsonify(cart_payload(cart))


@cart_bp.route('/items/<path:line_id>', methods=['DELETE'])
def remove_item(line_id: str) -> Response:
    cart = get_cart()
    cart.remove(line_id)
    save_cart(cart)
    return jsonify(cart_payload(cart))


@cart_bp.route('/clear', methods=['POST'])
def clear() -> Response:
    clear_cart()
    return jsonify(cart_payload(Cart()))
