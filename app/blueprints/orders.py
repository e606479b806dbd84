"""Orders blueprint - order confirmation views."""
from flask import Blueprint, Response, jsonify, g

from app.backends import get_backend
from app.entities import LineType, OrderRecord
from app.exceptions import NotFoundError
from app.middleware import require_login
from app.services.order_status_service import get_order

orders_bp = Blueprint('orders', __name__)

STAFF_ROLES = ('admin', 'delivery')


def _visible_order(kind: LineType, order_id: str) -> OrderRecord:
    order = get_order(get_backend(), kind, order_id)
    # Other customers' orders look the same as missing ones.
    if order.user_id != str(g.user_id) and g.get('user_role') not in STAFF_ROLES:
        raise NotFoundError('Order not found')
    return order


@orders_bp.route('/orders/<order_id>', methods=['GET'])
@require_login
def view_order(order_id: str) -> Response:
    return jsonify(_visible_order(LineType.GROCERY, order_id).to_dict())


@orders_bp.route('/restaurant-orders/<order_id>', methods=['GET'])
@require_login
def view_restaurant_order(order_id: str) -> Response:
    return jsonify(_visible_order(LineType.RESTAURANT, order_id).to_dict())
