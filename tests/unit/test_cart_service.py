"""
Unit tests for the session cart.
"""
import pytest
from decimal import Decimal

from app.backends.base import StoreBackend
from app.entities import CartLine, LineType, Product, RestaurantFood
from app.exceptions import BusinessLogicError, NotFoundError
from app.services.cart_service import (
    Cart, parse_quantity, build_grocery_line, build_restaurant_line,
)


def line(line_id='p1', quantity=1, price='10.00', line_type=LineType.GROCERY, restaurant_id=None):
    return CartLine(
        id=line_id, type=line_type, price=Decimal(price), quantity=quantity,
        restaurant_id=restaurant_id,
        restaurant_food_id=line_id.split(':')[-1] if line_type == LineType.RESTAURANT else None,
    )


class TestCart:

    def test_add_merges_same_line(self):
        cart = Cart()
        cart.add(line(quantity=1))
        cart.add(line(quantity=2))

        assert len(cart) == 1
        assert cart.get('p1').quantity == 3

    def test_partitions_by_type(self):
        cart = Cart([
            line('p1'),
            line('restaurant-food:f1', line_type=LineType.RESTAURANT, restaurant_id='r1'),
            line('p2'),
        ])

        assert [l.id for l in cart.grocery_lines] == ['p1', 'p2']
        assert [l.id for l in cart.restaurant_lines] == ['restaurant-food:f1']
        assert cart.item_count == 3

    def test_update_quantity_to_zero_removes_line(self):
        cart = Cart([line('p1', quantity=2)])

        assert cart.update_quantity('p1', 0) is None
        assert cart.is_empty

    def test_update_unknown_line(self):
        with pytest.raises(NotFoundError):
            Cart().update_quantity('missing', 1)

    def test_remove_and_clear(self):
        cart = Cart([line('p1'), line('p2')])
        cart.remove('p1')
        assert [l.id for l in cart] == ['p2']

        cart.clear()
        assert cart.is_empty

    def test_session_round_trip_keeps_order_and_prices(self):
        cart = Cart([line('p2', price='0.10'), line('p1', quantity=4, price='99.99')])

        restored = Cart.from_session_data(cart.to_session_data())

        assert [l.id for l in restored] == ['p2', 'p1']
        assert restored.get('p1').price == Decimal('99.99')
        assert restored.get('p1').quantity == 4

    def test_malformed_session_lines_are_dropped(self):
        data = {'lines': [
            {'id': 'p1', 'type': 'grocery', 'price': '10', 'quantity': 1},
            {'id': 'p2', 'type': 'grocery', 'price': 'abc', 'quantity': 1},
            {'id': 'p3', 'type': 'grocery', 'price': '5', 'quantity': 0},
            {'type': 'grocery', 'price': '5', 'quantity': 1},
        ]}

        assert [l.id for l in Cart.from_session_data(data)] == ['p1']

    def test_missing_session_data(self):
        assert Cart.from_session_data(None).is_empty


class TestParseQuantity:

    def test_accepts_numeric_strings(self):
        assert parse_quantity('3') == 3

    @pytest.mark.parametrize('value', ['x', None, -1, 0])
    def test_rejects_invalid(self, value):
        with pytest.raises(BusinessLogicError):
            parse_quantity(value)

    def test_zero_allowed_for_updates(self):
        assert parse_quantity(0, allow_zero=True) == 0


class TestBuildLines:

    @pytest.fixture
    def backend(self, mocker):
        return mocker.Mock(spec=StoreBackend)

    def test_grocery_line_uses_catalog_price(self, backend):
        backend.get_product.return_value = Product(id='p1', name='Rice', price=Decimal('100.00'))

        result = build_grocery_line(backend, 'p1', 2)

        assert result.id == 'p1'
        assert result.type == LineType.GROCERY
        assert result.line_total == Decimal('200.00')

    def test_unknown_product(self, backend):
        backend.get_product.return_value = None

        with pytest.raises(NotFoundError):
            build_grocery_line(backend, 'nope', 1)

    def test_restaurant_line_carries_restaurant(self, backend):
        backend.get_restaurant_food.return_value = RestaurantFood(
            id='f1', restaurant_id='r1', name='Tikka', price=Decimal('150.00')
        )

        result = build_restaurant_line(backend, 'f1', 1)

        assert result.id == 'restaurant-food:f1'
        assert result.restaurant_id == 'r1'
        assert result.restaurant_food_id == 'f1'

    def test_unavailable_food_is_rejected(self, backend):
        backend.get_restaurant_food.return_value = RestaurantFood(
            id='f1', restaurant_id='r1', name='Tikka', price=Decimal('150.00'), is_available=False
        )

        with pytest.raises(BusinessLogicError):
            build_restaurant_line(backend, 'f1', 1)
