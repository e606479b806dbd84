"""
HTTP-level tests for the admin back office.
"""
import pytest
from decimal import Decimal

from app.models import Coupon as CouponModel, DeliverySettings as DeliverySettingsModel, Order

ADDRESS = {
    'street': '12 MG Road', 'city': 'Pune', 'state': 'MH', 'postal_code': '411001', 'phone': '9876543210',
}


class TestAccess:

    def test_anonymous_gets_401(self, client):
        assert client.get('/admin/coupons').status_code == 401

    def test_customer_gets_403(self, authenticated_client):
        response = authenticated_client.get('/admin/coupons')

        assert response.status_code == 403
        assert response.get_json()['status'] == 'error'


class TestCouponAdmin:

    def test_create_coupon(self, admin_client, session):
        response = admin_client.post('/admin/coupons', json={
            'code': 'welcome50',
            'discount_type': 'fixed',
            'discount_value': '50',
            'min_order_amount': '300',
            'valid_until': '2030-12-31T23:59:59',
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['code'] == 'WELCOME50'
        assert data['used_count'] == 0
        assert data['is_active'] is True
        assert session.query(CouponModel).count() == 1

    def test_create_requires_expiry_and_value(self, admin_client):
        response = admin_client.post('/admin/coupons', json={'code': 'X', 'discount_type': 'fixed'})

        assert response.status_code == 422
        errors = response.get_json()['errors']
        assert 'valid_until' in errors
        assert 'discount_value' in errors

    def test_percentage_over_100_rejected(self, admin_client):
        response = admin_client.post('/admin/coupons', json={
            'code': 'HALF', 'discount_type': 'percentage', 'discount_value': 150,
            'valid_until': '2030-01-01',
        })

        assert response.status_code == 422
        assert 'discount_value' in response.get_json()['errors']

    def test_duplicate_code_rejected(self, admin_client, coupon):
        response = admin_client.post('/admin/coupons', json={
            'code': 'save10', 'discount_type': 'fixed', 'discount_value': 5, 'valid_until': '2030-01-01',
        })

        assert response.status_code == 409

    def test_edit_keeps_used_count(self, admin_client, session, coupon):
        row = session.get(CouponModel, coupon.id)
        row.used_count = 7
        session.commit()

        response = admin_client.put(f'/admin/coupons/{coupon.id}', json={
            'code': 'SAVE10', 'discount_type': 'percentage', 'discount_value': 12,
            'valid_until': '2030-01-01T00:00:00',
        })

        assert response.status_code == 200
        assert response.get_json()['used_count'] == 7
        assert response.get_json()['discount_value'] == '12.00'

    def test_toggle_and_list(self, admin_client, coupon):
        response = admin_client.post(f'/admin/coupons/{coupon.id}/toggle', json={'is_active': False})
        assert response.get_json()['is_active'] is False

        listed = admin_client.get('/admin/coupons').get_json()['coupons']
        assert [c['code'] for c in listed] == ['SAVE10']

    def test_toggle_accepts_string_flags(self, admin_client, coupon):
        response = admin_client.post(f'/admin/coupons/{coupon.id}/toggle', json={'is_active': 'false'})
        assert response.get_json()['is_active'] is False

        response = admin_client.post(f'/admin/coupons/{coupon.id}/toggle', json={'is_active': 'true'})
        assert response.get_json()['is_active'] is True

    def test_deactivated_coupon_cannot_be_applied(self, admin_client, authenticated_client, coupon, product):
        admin_client.post(f'/admin/coupons/{coupon.id}/toggle', json={'is_active': False})

        authenticated_client.post('/cart/items', json={'product_id': product.id, 'quantity': 1})
        response = authenticated_client.post('/checkout/coupon', json={'code': 'SAVE10'})

        assert response.get_json()['code'] == 'invalid_code'

    def test_delete(self, admin_client, session, coupon):
        assert admin_client.delete(f'/admin/coupons/{coupon.id}').status_code == 200
        assert session.query(CouponModel).count() == 0


class TestDeliverySettingsAdmin:

    def test_create_and_use_for_pricing(self, admin_client, product):
        response = admin_client.post('/admin/delivery-settings', json={
            'delivery_fee': '30', 'free_delivery_threshold': '150',
        })
        assert response.status_code == 201
        assert response.get_json()['is_active'] is True

        admin_client.post('/cart/items', json={'product_id': product.id, 'quantity': 1})
        summary = admin_client.get('/checkout/summary').get_json()

        assert summary['delivery_fee'] == '30.00'

    def test_negative_fee_rejected(self, admin_client):
        response = admin_client.post('/admin/delivery-settings', json={
            'delivery_fee': '-5', 'free_delivery_threshold': '100',
        })

        assert response.status_code == 422
        assert 'delivery_fee' in response.get_json()['errors']

    def test_update_and_delete(self, admin_client, session, delivery_settings):
        response = admin_client.put(f'/admin/delivery-settings/{delivery_settings.id}', json={
            'delivery_fee': '45', 'free_delivery_threshold': '1000', 'is_active': False,
        })
        assert response.get_json()['is_active'] is False
        assert response.get_json()['delivery_fee'] == '45.00'

        assert admin_client.delete(f'/admin/delivery-settings/{delivery_settings.id}').status_code == 200
        assert session.query(DeliverySettingsModel).count() == 0


class TestOrderStatusAdmin:

    @pytest.fixture
    def order_id(self, authenticated_client, product):
        authenticated_client.post('/cart/items', json={'product_id': product.id, 'quantity': 1})
        placed = authenticated_client.post('/checkout/place', json={'address': ADDRESS}).get_json()
        return placed['primary_order']['id']

    def test_hand_out_for_delivery(self, admin_client, order_id, session):
        response = admin_client.post(f'/admin/orders/{order_id}/status', json={
            'status': 'out-for-delivery', 'delivery_person_id': 'driver-7',
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'out-for-delivery'
        assert data['delivery_person_id'] == 'driver-7'
        assert data['estimated_delivery'] is not None

    def test_skipping_a_step_is_rejected(self, admin_client, order_id, session):
        response = admin_client.post(f'/admin/orders/{order_id}/status', json={'status': 'pending'})

        assert response.status_code == 409
        assert session.get(Order, order_id).status == 'confirmed'

    def test_unknown_status_is_a_validation_error(self, admin_client, order_id):
        response = admin_client.post(f'/admin/orders/{order_id}/status', json={'status': 'shipped'})

        assert response.status_code == 422

    def test_missing_order(self, admin_client):
        response = admin_client.post('/admin/restaurant-orders/nope/status', json={'status': 'accepted'})

        assert response.status_code == 404
