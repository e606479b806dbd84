"""
Integration tests for order placement against the SQL backend.
"""
import pytest
from dataclasses import replace
from decimal import Decimal

from app.entities import DeliveryAddress, DeliverySettings, LineType
from app.exceptions import PersistenceFailure, ValidationError
from app.models import Order, OrderItem, RestaurantOrder, RestaurantOrderItem, Coupon as CouponModel
from app.services import order_service
from app.services.cart_service import Cart, build_grocery_line, build_restaurant_line

ADDRESS = DeliveryAddress(
    street='12 MG Road', city='Pune', state='MH', postal_code='411001',
    phone='9876543210', alternate_phone='9123456780', landmark='Opp. City Mall',
)
SETTINGS = DeliverySettings(delivery_fee=Decimal('50'), free_delivery_threshold=Decimal('2000'), id='s1')


@pytest.fixture
def mixed_cart(backend, product, food_a, food_b):
    """Two rice bags plus one dish from each of two restaurants."""
    return Cart([
        build_grocery_line(backend, product.id, 2),
        build_restaurant_line(backend, food_a.id, 1),
        build_restaurant_line(backend, food_b.id, 1),
    ])


class TestPlaceOrder:
    """Happy path: one grocery order plus one order per restaurant."""

    def test_mixed_cart_creates_one_order_per_vendor(self, backend, session, mixed_cart, restaurant_a, restaurant_b):
        result = order_service.place_order(
            backend, 'user-1', mixed_cart, ADDRESS, payment_method='cash', delivery_settings=SETTINGS
        )

        assert result.fully_succeeded
        assert session.query(Order).count() == 1
        assert session.query(RestaurantOrder).count() == 2

        order = session.query(Order).one()
        assert order.status == 'confirmed'
        assert order.total_amount == Decimal('275.00')
        assert order.payment_method == 'cash'
        assert order.delivery_address == '12 MG Road, Pune, MH 411001, Landmark: Opp. City Mall'
        assert 'Alt Phone: 9123456780' in order.delivery_notes
        assert 'Delivery Fee: 50.00' in order.delivery_notes

        items = session.query(OrderItem).all()
        assert [(i.quantity, i.price) for i in items] == [(2, Decimal('100.00'))]

        by_restaurant = {o.restaurant_id: o for o in session.query(RestaurantOrder).all()}
        assert by_restaurant[restaurant_a.id].total_amount == Decimal('150.00')
        assert by_restaurant[restaurant_b.id].total_amount == Decimal('80.00')
        assert all(o.status == 'pending' for o in by_restaurant.values())
        assert session.query(RestaurantOrderItem).count() == 2

    def test_grocery_order_is_primary(self, backend, mixed_cart):
        result = order_service.place_order(backend, 'user-1', mixed_cart, ADDRESS, delivery_settings=SETTINGS)

        assert result.primary.kind == LineType.GROCERY
        assert [o.key for o in result.restaurants] == [
            line.restaurant_id for line in mixed_cart.restaurant_lines
        ]

    def test_restaurant_only_cart_points_at_first_restaurant_order(self, backend, session, food_a, food_b):
        cart = Cart([build_restaurant_line(backend, food_b.id, 2), build_restaurant_line(backend, food_a.id, 1)])

        result = order_service.place_order(backend, 'user-1', cart, ADDRESS)

        assert result.grocery is None
        assert session.query(Order).count() == 0
        assert result.primary.kind == LineType.RESTAURANT
        assert result.primary.key == food_b.restaurant_id

    def test_snapshot_price_survives_catalog_change(self, backend, session, product):
        cart = Cart([build_grocery_line(backend, product.id, 1)])
        product.price = Decimal('120.00')
        session.commit()

        order_service.place_order(backend, 'user-1', cart, ADDRESS)

        assert session.query(OrderItem).one().price == Decimal('100.00')

    def test_coupon_usage_is_counted(self, backend, session, product, coupon):
        cart = Cart([build_grocery_line(backend, product.id, 2)])
        applied = backend.get_active_coupon('save10')

        result = order_service.place_order(backend, 'user-1', cart, ADDRESS, coupon=applied)

        assert result.coupon_usage.recorded
        assert session.query(Order).one().total_amount == Decimal('258.50')
        assert session.query(CouponModel).one().used_count == 1
        assert 'Coupon: SAVE10' in session.query(Order).one().delivery_notes


class TestValidation:
    """Invalid checkouts never reach the backend."""

    def test_missing_fields_reported_per_field(self, mocker, backend, product):
        cart = Cart([build_grocery_line(backend, product.id, 1)])
        create_order = mocker.spy(backend, 'create_order')
        address = DeliveryAddress(street='', city='Pune', state='', postal_code='411001', phone='12345')

        with pytest.raises(ValidationError) as exc:
            order_service.place_order(backend, 'user-1', cart, address)

        assert set(exc.value.field_errors) == {'street', 'state', 'phone'}
        create_order.assert_not_called()

    def test_empty_cart(self, backend):
        with pytest.raises(ValidationError) as exc:
            order_service.place_order(backend, 'user-1', Cart(), ADDRESS)

        assert 'cart' in exc.value.field_errors

    def test_unknown_payment_method(self, backend, product):
        cart = Cart([build_grocery_line(backend, product.id, 1)])

        with pytest.raises(ValidationError) as exc:
            order_service.place_order(backend, 'user-1', cart, ADDRESS, payment_method='bitcoin')

        assert 'payment_method' in exc.value.field_errors


class TestPartialFailure:
    """Each order is its own step; failures never undo earlier successes."""

    def test_second_restaurant_fails_others_kept(self, mocker, backend, session, mixed_cart, restaurant_a, restaurant_b):
        real_create = backend.create_restaurant_order

        def flaky(fields):
            if fields['restaurant_id'] == restaurant_b.id:
                raise PersistenceFailure('Backend rejected POST on restaurant_orders', detail='boom')
            return real_create(fields)

        mocker.patch.object(backend, 'create_restaurant_order', side_effect=flaky)

        result = order_service.place_order(backend, 'user-1', mixed_cart, ADDRESS)

        assert result.any_created
        assert not result.fully_succeeded
        assert [o.key for o in result.failed] == [restaurant_b.id]
        assert session.query(Order).count() == 1
        assert session.query(RestaurantOrder).one().restaurant_id == restaurant_a.id
        assert result.to_dict()['status'] == 'partial'

    def test_grocery_failure_still_places_restaurant_orders(self, mocker, backend, session, mixed_cart):
        mocker.patch.object(backend, 'create_order', side_effect=PersistenceFailure('down'))

        result = order_service.place_order(backend, 'user-1', mixed_cart, ADDRESS)

        assert not result.grocery.succeeded
        assert len(result.created) == 2
        assert result.primary.kind == LineType.RESTAURANT

    def test_item_failure_marks_grocery_step_failed(self, mocker, backend, session, product, coupon):
        cart = Cart([build_grocery_line(backend, product.id, 1)])
        mocker.patch.object(backend, 'create_order_items', side_effect=PersistenceFailure('items rejected'))

        result = order_service.place_order(
            backend, 'user-1', cart, ADDRESS, coupon=backend.get_active_coupon('SAVE10')
        )

        assert not result.any_created
        assert result.coupon_usage is None
        assert result.message.startswith('Order failed')

    def test_coupon_increment_failure_does_not_fail_order(self, mocker, backend, session, product, coupon):
        cart = Cart([build_grocery_line(backend, product.id, 2)])
        mocker.patch.object(backend, 'increment_coupon_usage', side_effect=PersistenceFailure('rpc down'))

        result = order_service.place_order(
            backend, 'user-1', cart, ADDRESS, coupon=backend.get_active_coupon('SAVE10')
        )

        assert result.fully_succeeded
        assert not result.coupon_usage.recorded
        assert session.query(Order).count() == 1

    def test_total_failure(self, mocker, backend, mixed_cart):
        mocker.patch.object(backend, 'create_order', side_effect=PersistenceFailure('down'))
        mocker.patch.object(backend, 'create_restaurant_order', side_effect=PersistenceFailure('down'))

        result = order_service.place_order(backend, 'user-1', mixed_cart, ADDRESS)

        assert not result.any_created
        assert result.primary is None
        assert result.to_dict()['status'] == 'error'

    def test_line_without_food_id_skips_its_restaurant(self, backend, session, product, food_a):
        line = build_restaurant_line(backend, food_a.id, 1)
        cart = Cart([build_grocery_line(backend, product.id, 1), replace(line, restaurant_food_id=None)])

        result = order_service.place_order(backend, 'user-1', cart, ADDRESS)

        assert result.restaurants[0].skipped
        assert session.query(RestaurantOrder).count() == 0
        assert session.query(Order).count() == 1

    def test_line_without_restaurant_is_dropped_and_not_billed(self, caplog, backend, session, food_a, food_b):
        orphan = replace(build_restaurant_line(backend, food_b.id, 3), restaurant_id=None)
        cart = Cart([build_restaurant_line(backend, food_a.id, 1), orphan])

        with caplog.at_level('WARNING'):
            result = order_service.place_order(backend, 'user-1', cart, ADDRESS)

        assert result.dropped_lines == [orphan.id]
        assert result.summary.restaurant_subtotal == Decimal('150.00')
        assert [o.key for o in result.restaurants] == [food_a.restaurant_id]
        assert session.query(RestaurantOrder).one().total_amount == Decimal('150.00')
        assert session.query(RestaurantOrderItem).count() == 1
        assert not result.fully_succeeded
        assert result.to_dict()['dropped_lines'] == [orphan.id]
        assert 'no restaurant_id' in caplog.text


class TestPreviousAddresses:

    def test_most_recent_distinct_addresses(self, backend, product):
        for street in ('1 Main St', '2 Hill Rd', '1 Main St'):
            cart = Cart([build_grocery_line(backend, product.id, 1)])
            address = DeliveryAddress(street=street, city='Pune', state='MH', postal_code='411001', phone='9876543210')
            order_service.place_order(backend, 'user-1', cart, address)

        addresses = order_service.list_previous_addresses(backend, 'user-1', limit=5)

        assert [a.address for a in addresses] == [
            '1 Main St, Pune, MH 411001',
            '2 Hill Rd, Pune, MH 411001',
        ]
        assert order_service.list_previous_addresses(backend, 'someone-else') == []

    def test_backend_failure_gives_empty_list(self, mocker, backend):
        mocker.patch.object(backend, 'list_previous_addresses', side_effect=PersistenceFailure('down'))

        assert order_service.list_previous_addresses(backend, 'user-1') == []
