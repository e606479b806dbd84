"""
Unit tests for the checkout pricing engine.
"""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.entities import CartLine, Coupon, DeliverySettings, DiscountType, LineType
from app.services.pricing_service import (
    calculate_totals, calculate_discount, calculate_delivery_fee, subtotal
)


def grocery(price, quantity=1, line_id='p1'):
    return CartLine(id=line_id, type=LineType.GROCERY, price=Decimal(price), quantity=quantity)


def restaurant(price, quantity=1, line_id='restaurant-food:f1', restaurant_id='r1'):
    return CartLine(
        id=line_id, type=LineType.RESTAURANT, price=Decimal(price), quantity=quantity,
        restaurant_id=restaurant_id, restaurant_food_id=line_id.split(':')[-1],
    )


def make_coupon(discount_type='percentage', value='10', max_discount=None, min_order=None):
    return Coupon(
        id='c1',
        code='SAVE10',
        discount_type=DiscountType(discount_type),
        discount_value=Decimal(value),
        valid_until=datetime.now(timezone.utc) + timedelta(days=1),
        max_discount_amount=Decimal(max_discount) if max_discount is not None else None,
        min_order_amount=Decimal(min_order) if min_order is not None else None,
    )


SETTINGS = DeliverySettings(delivery_fee=Decimal('50'), free_delivery_threshold=Decimal('2000'), id='s1')


class TestWorkedExamples:
    """The reference carts every change to pricing must keep producing."""

    def test_two_items_below_threshold_no_coupon(self):
        summary = calculate_totals([grocery('100', 2)], [], None, SETTINGS)

        assert summary.grocery_subtotal == Decimal('200.00')
        assert summary.discount == Decimal('0.00')
        assert summary.delivery_fee == Decimal('50.00')
        assert summary.grocery_tax == Decimal('25.00')
        assert summary.grocery_grand_total == Decimal('275.00')
        assert summary.overall_total == Decimal('275.00')

    def test_percentage_coupon_capped_by_max_discount(self):
        coupon = make_coupon('percentage', '10', max_discount='15')

        summary = calculate_totals([grocery('100', 2)], [], coupon, SETTINGS)

        assert summary.discount == Decimal('15.00')
        assert summary.grocery_base_amount == Decimal('185.00')
        assert summary.delivery_fee == Decimal('50.00')
        assert summary.grocery_tax == Decimal('23.50')
        assert summary.grocery_grand_total == Decimal('258.50')
        assert summary.coupon_code == 'SAVE10'

    def test_subtotal_above_threshold_ships_free(self):
        summary = calculate_totals([grocery('2500')], [], None, SETTINGS)

        assert summary.delivery_fee == Decimal('0.00')
        assert summary.grocery_tax == Decimal('250.00')
        assert summary.grocery_grand_total == Decimal('2750.00')

    def test_coupon_does_not_affect_free_delivery_when_base_stays_above(self):
        coupon = make_coupon('fixed', '100')

        summary = calculate_totals([grocery('2500')], [], coupon, SETTINGS)

        assert summary.grocery_base_amount == Decimal('2400.00')
        assert summary.delivery_fee == Decimal('0.00')


class TestDiscount:
    """Discount derivation and its caps."""

    def test_no_coupon_means_no_discount(self):
        assert calculate_discount(Decimal('200'), None) == Decimal('0.00')

    def test_fixed_discount(self):
        assert calculate_discount(Decimal('200'), make_coupon('fixed', '30')) == Decimal('30.00')

    def test_fixed_discount_larger_than_subtotal_is_capped(self):
        assert calculate_discount(Decimal('20'), make_coupon('fixed', '30')) == Decimal('20.00')

    def test_percentage_rounds_half_up_to_cents(self):
        # 10% of 0.25 = 0.025 -> 0.03
        assert calculate_discount(Decimal('0.25'), make_coupon('percentage', '10')) == Decimal('0.03')

    def test_full_discount_base_is_zero_but_fee_still_charged(self):
        summary = calculate_totals([grocery('40')], [], make_coupon('fixed', '100'), SETTINGS)

        assert summary.discount == Decimal('40.00')
        assert summary.grocery_base_amount == Decimal('0.00')
        assert summary.delivery_fee == Decimal('50.00')
        assert summary.grocery_tax == Decimal('5.00')
        assert summary.grocery_grand_total == Decimal('55.00')

    @pytest.mark.parametrize('value,max_discount,amount', [
        ('10', None, '1000'),
        ('50', '100', '1000'),
        ('100', None, '35.55'),
        ('5', '1', '3.33'),
    ])
    def test_discount_bounds(self, value, max_discount, amount):
        amount = Decimal(amount)
        discount = calculate_discount(amount, make_coupon('percentage', value, max_discount=max_discount))

        assert Decimal('0') <= discount <= amount
        if max_discount is not None:
            assert discount <= Decimal(max_discount)


class TestDeliveryFee:
    """Delivery fee against the free-delivery threshold."""

    def test_empty_grocery_cart_has_no_fee(self):
        assert calculate_delivery_fee(Decimal('0'), Decimal('0'), SETTINGS) == Decimal('0.00')

    def test_exactly_at_threshold_is_free(self):
        assert calculate_delivery_fee(Decimal('2000'), Decimal('2000'), SETTINGS) == Decimal('0.00')

    def test_threshold_compares_post_discount_amount(self):
        assert calculate_delivery_fee(Decimal('2050'), Decimal('1990'), SETTINGS) == Decimal('50.00')

    def test_missing_settings_use_fallback_policy(self):
        summary = calculate_totals([grocery('100')], [], None, None)

        assert summary.delivery_fee == Decimal('50.00')
        assert summary.free_delivery_threshold == Decimal('2000.00')

    def test_fee_is_non_increasing_in_base_amount(self):
        fees = [
            calculate_delivery_fee(Decimal('1'), Decimal(base), SETTINGS)
            for base in ('0', '500', '1999.99', '2000', '5000')
        ]
        assert fees == sorted(fees, reverse=True)

    def test_amount_to_free_delivery(self):
        summary = calculate_totals([grocery('100', 2)], [], None, SETTINGS)
        assert summary.amount_to_free_delivery == Decimal('1800.00')

        free = calculate_totals([grocery('2500')], [], None, SETTINGS)
        assert free.amount_to_free_delivery == Decimal('0.00')


class TestRestaurantLines:
    """Restaurant lines are added raw: no discount, fee or tax."""

    def test_restaurant_only_cart(self):
        summary = calculate_totals([], [restaurant('150', 2)], make_coupon(), SETTINGS)

        assert summary.grocery_grand_total == Decimal('0.00')
        assert summary.discount == Decimal('0.00')
        assert summary.delivery_fee == Decimal('0.00')
        assert summary.restaurant_subtotal == Decimal('300.00')
        assert summary.overall_total == Decimal('300.00')

    def test_mixed_cart_overall_total(self):
        summary = calculate_totals(
            [grocery('100', 2)],
            [restaurant('150'), restaurant('80', line_id='restaurant-food:f2', restaurant_id='r2')],
            None, SETTINGS,
        )

        assert summary.grocery_grand_total == Decimal('275.00')
        assert summary.restaurant_subtotal == Decimal('230.00')
        assert summary.overall_total == Decimal('505.00')


class TestProperties:
    """Invariants that hold for any cart."""

    def test_removing_coupon_equals_never_applying(self):
        lines = [grocery('333.33', 3)]
        with_coupon = calculate_totals(lines, [], make_coupon(), SETTINGS)
        assert with_coupon.discount > 0

        assert calculate_totals(lines, [], None, SETTINGS) == calculate_totals(lines, [], None, SETTINGS)
        assert calculate_totals(lines, [], None, SETTINGS).discount == Decimal('0.00')

    def test_same_inputs_same_outputs(self):
        lines = [grocery('19.99', 7), grocery('0.01', 1, line_id='p2')]
        coupon = make_coupon('percentage', '12.5', max_discount='9.99')

        assert calculate_totals(lines, [], coupon, SETTINGS) == calculate_totals(lines, [], coupon, SETTINGS)

    def test_grand_total_zero_only_for_empty_grocery(self):
        assert calculate_totals([], [], None, SETTINGS).grocery_grand_total == Decimal('0.00')
        assert calculate_totals([grocery('0.01')], [], None, SETTINGS).grocery_grand_total > 0

    def test_subtotal_sums_price_times_quantity(self):
        assert subtotal([grocery('1.10', 3), grocery('2.05', 2, line_id='p2')]) == Decimal('7.40')

    def test_to_dict_serializes_strings(self):
        data = calculate_totals([grocery('100', 2)], [], None, SETTINGS).to_dict()

        assert data['grocery_grand_total'] == '275.00'
        assert data['coupon_code'] is None
