"""
Admin Blueprint - store back office.

Routes:
- /admin/coupons - List and create coupons
- /admin/coupons/<id> - Edit or delete a coupon
- /admin/coupons/<id>/toggle - Activate or deactivate a coupon
- /admin/delivery-settings - List and create delivery fee policies
- /admin/delivery-settings/<id> - Edit or delete a policy
- /admin/orders/<id>/status - Move a grocery order along its status flow
- /admin/restaurant-orders/<id>/status - Move a restaurant order along its status flow
"""

from flask import Blueprint, request, jsonify, Response, current_app, g
from typing import Tuple

from app.backends import get_backend
from app.entities import LineType, parse_bool
from app.exceptions import ValidationError
from app.forms.admin_forms import CouponForm, DeliverySettingsForm, OrderStatusForm, json_formdata
from app.middleware import require_role
from app.services import coupon_service, delivery_service, order_status_service


admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _bind(form_class, **defaults):
    """Build a form from the JSON body and raise ValidationError if it does not validate."""
    payload = dict(defaults, **(request.get_json(silent=True) or {}))
    form = form_class(formdata=json_formdata(payload))
    if not form.validate():
        raise ValidationError(form.errors)
    return form


# =====================================================
# COUPONS
# =====================================================

@admin_bp.route('/coupons', methods=['GET'])
@require_role('admin')
def coupons_list() -> Response:
    coupons = coupon_service.list_coupons(get_backend())
    return jsonify({'coupons': [c.to_dict() for c in coupons]})


@admin_bp.route('/coupons', methods=['POST'])
@require_role('admin')
def coupons_create() -> Tuple[Response, int]:
    form = _bind(CouponForm)
    coupon = coupon_service.create_coupon(get_backend(), **form.to_values())
    current_app.logger.info(f"[ADMIN] {g.user_id} created coupon {coupon.code}")
    return jsonify(coupon.to_dict()), 201


@admin_bp.route('/coupons/<coupon_id>', methods=['PUT'])
@require_role('admin')
def coupons_update(coupon_id: str) -> Response:
    form = _bind(CouponForm)
    coupon = coupon_service.update_coupon(get_backend(), coupon_id, **form.to_values())
    current_app.logger.info(f"[ADMIN] {g.user_id} updated coupon {coupon.code}")
    return jsonify(coupon.to_dict())


@admin_bp.route('/coupons/<coupon_id>/toggle', methods=['POST'])
@require_role('admin')
def coupons_toggle(coupon_id: str) -> Response:
    data = request.get_json(silent=True) or {}
    if 'is_active' not in data:
        raise ValidationError({'is_active': ['This field is required.']})
    coupon = coupon_service.set_coupon_active(get_backend(), coupon_id, parse_bool(data['is_active']))
    return jsonify(coupon.to_dict())


@admin_bp.route('/coupons/<coupon_id>', methods=['DELETE'])
@require_role('admin')
def coupons_delete(coupon_id: str) -> Response:
    coupon_service.delete_coupon(get_backend(), coupon_id)
    current_app.logger.info(f"[ADMIN] {g.user_id} deleted coupon {coupon_id}")
    return jsonify({'status': 'success'})


# =====================================================
# DELIVERY SETTINGS
# =====================================================

@admin_bp.route('/delivery-settings', methods=['GET'])
@require_role('admin')
def delivery_settings_list() -> Response:
    settings = delivery_service.list_settings(get_backend())
    return jsonify({'settings': [s.to_dict() for s in settings]})


@admin_bp.route('/delivery-settings', methods=['POST'])
@require_role('admin')
def delivery_settings_create() -> Tuple[Response, int]:
    form = _bind(DeliverySettingsForm, is_active=True)
    settings = delivery_service.create_settings(
        get_backend(),
        delivery_fee=form.delivery_fee.data,
        free_delivery_threshold=form.free_delivery_threshold.data,
        is_active=form.is_active.data,
    )
    return jsonify(settings.to_dict()), 201


@admin_bp.route('/delivery-settings/<settings_id>', methods=['PUT'])
@require_role('admin')
def delivery_settings_update(settings_id: str) -> Response:
    form = _bind(DeliverySettingsForm, is_active=True)
    settings = delivery_service.update_settings(
        get_backend(), settings_id,
        delivery_fee=form.delivery_fee.data,
        free_delivery_threshold=form.free_delivery_threshold.data,
        is_active=form.is_active.data,
    )
    return jsonify(settings.to_dict())


@admin_bp.route('/delivery-settings/<settings_id>', methods=['DELETE'])
@require_role('admin')
def delivery_settings_delete(settings_id: str) -> Response:
    delivery_service.delete_settings(get_backend(), settings_id)
    return jsonify({'status': 'success'})


# =====================================================
# ORDER STATUS
# =====================================================

def _update_status(kind: LineType, order_id: str) -> Response:
    form = _bind(OrderStatusForm)
    order = order_status_service.update_status(
        get_backend(), kind, order_id, form.status.data,
        acting_user_id=g.user_id,
        delivery_person_id=form.delivery_person_id.data or None,
    )
    return jsonify(order.to_dict())


@admin_bp.route('/orders/<order_id>/status', methods=['POST'])
@require_role('admin', 'delivery')
def order_status(order_id: str) -> Response:
    return _update_status(LineType.GROCERY, order_id)


@admin_bp.route('/restaurant-orders/<order_id>/status', methods=['POST'])
@require_role('admin', 'delivery')
def restaurant_order_status(order_id: str) -> Response:
    return _update_status(LineType.RESTAURANT, order_id)
