"""
Checkout pricing engine.

Turns cart lines, an applied coupon and the delivery-fee policy into the
payable totals. Everything here is a pure function of its arguments:
no backend access, no session, no caching.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Dict, Any

from app.entities import CartLine, Coupon, DeliverySettings, DiscountType
from app.utils.money import money, ZERO

TAX_RATE = Decimal('0.10')


@dataclass(frozen=True)
class PricingSummary:
    grocery_subtotal: Decimal
    restaurant_subtotal: Decimal
    discount: Decimal
    grocery_base_amount: Decimal
    delivery_fee: Decimal
    grocery_tax: Decimal
    grocery_grand_total: Decimal
    overall_total: Decimal
    free_delivery_threshold: Decimal
    coupon_code: Optional[str] = None

    @property
    def amount_to_free_delivery(self) -> Decimal:
        """How much more grocery spend waives the fee (0 once it is waived)."""
        if self.grocery_subtotal == 0 or self.delivery_fee == 0:
            return ZERO
        return money(max(self.free_delivery_threshold - self.grocery_base_amount, ZERO))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'grocery_subtotal': str(self.grocery_subtotal),
            'restaurant_subtotal': str(self.restaurant_subtotal),
            'discount': str(self.discount),
            'grocery_base_amount': str(self.grocery_base_amount),
            'delivery_fee': str(self.delivery_fee),
            'grocery_tax': str(self.grocery_tax),
            'grocery_grand_total': str(self.grocery_grand_total),
            'overall_total': str(self.overall_total),
            'free_delivery_threshold': str(self.free_delivery_threshold),
            'amount_to_free_delivery': str(self.amount_to_free_delivery),
            'coupon_code': self.coupon_code,
        }


def subtotal(lines: Iterable[CartLine]) -> Decimal:
    return money(sum((line.line_total for line in lines), ZERO))


def calculate_discount(grocery_subtotal: Decimal, coupon: Optional[Coupon]) -> Decimal:
    """
    Discount for the grocery subtotal.

    Capped by the coupon's max_discount_amount and by the subtotal itself,
    so it never goes negative nor exceeds what is being discounted.
    """
    if coupon is None or grocery_subtotal <= 0:
        return ZERO

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = grocery_subtotal * coupon.discount_value / Decimal('100')
    else:
        discount = coupon.discount_value

    discount = money(discount)
    if coupon.max_discount_amount is not None:
        discount = min(discount, coupon.max_discount_amount)
    discount = min(discount, grocery_subtotal)
    return money(max(discount, ZERO))


def calculate_delivery_fee(grocery_subtotal: Decimal,
                           grocery_base_amount: Decimal,
                           settings: Optional[DeliverySettings]) -> Decimal:
    """Flat fee below the free-delivery threshold, nothing above it."""
    if grocery_subtotal <= 0:
        return ZERO
    policy = settings or DeliverySettings.fallback()
    if grocery_base_amount >= policy.free_delivery_threshold:
        return ZERO
    return money(policy.delivery_fee)


def calculate_totals(grocery_lines: Iterable[CartLine],
                     restaurant_lines: Iterable[CartLine],
                     coupon: Optional[Coupon] = None,
                     settings: Optional[DeliverySettings] = None) -> PricingSummary:
    """
    Compute the checkout summary.

    Restaurant lines only contribute their raw subtotal to the overall
    total. Tax is charged on the post-discount grocery amount plus the
    delivery fee.
    """
    policy = settings or DeliverySettings.fallback()

    grocery_subtotal = subtotal(grocery_lines)
    restaurant_subtotal = subtotal(restaurant_lines)

    discount = calculate_discount(grocery_subtotal, coupon)
    grocery_base_amount = money(max(grocery_subtotal - discount, ZERO))
    delivery_fee = calculate_delivery_fee(grocery_subtotal, grocery_base_amount, policy)
    grocery_tax = money((grocery_base_amount + delivery_fee) * TAX_RATE)
    grocery_grand_total = money(grocery_base_amount + delivery_fee + grocery_tax)

    return PricingSummary(
        grocery_subtotal=grocery_subtotal,
        restaurant_subtotal=restaurant_subtotal,
        discount=discount,
        grocery_base_amount=grocery_base_amount,
        delivery_fee=delivery_fee,
        grocery_tax=grocery_tax,
        grocery_grand_total=grocery_grand_total,
        overall_total=money(grocery_grand_total + restaurant_subtotal),
        free_delivery_threshold=money(policy.free_delivery_threshold),
        coupon_code=coupon.code if coupon else None,
    )
