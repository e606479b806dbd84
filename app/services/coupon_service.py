"""Coupon validation at checkout and coupon management."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.backends.base import StoreBackend
from app.entities import Coupon, DiscountType, utcnow
from app.exceptions import (
    BusinessLogicError, InvalidCodeError, ExpiredCouponError, UsageLimitReachedError, MinimumNotMetError,
)
from app.utils.money import money, format_money

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or '').strip().upper()


def validate_coupon(backend: StoreBackend, code: Optional[str], grocery_subtotal: Decimal,
                    now: Optional[datetime] = None) -> Coupon:
    """
    Look up a coupon and check it can be applied to this grocery subtotal.

    Checks run in a fixed order and stop at the first failure: blank code,
    unknown or inactive code, expiry, usage limit, minimum order amount.

    Raises:
        InvalidCodeError, ExpiredCouponError, UsageLimitReachedError,
        MinimumNotMetError
        PersistenceFailure: if the lookup itself fails
    """
    normalized = normalize_code(code)
    if not normalized:
        raise InvalidCodeError('Please enter a coupon code')

    coupon = backend.get_active_coupon(normalized)
    if coupon is None or not coupon.is_active:
        logger.info(f"[COUPON] Rejected '{normalized}': not found")
        raise InvalidCodeError()

    if coupon.is_expired(now or utcnow()):
        logger.info(f"[COUPON] Rejected '{normalized}': expired at {coupon.valid_until.isoformat()}")
        raise ExpiredCouponError()

    if coupon.is_exhausted:
        logger.info(f"[COUPON] Rejected '{normalized}': used {coupon.used_count}/{coupon.usage_limit}")
        raise UsageLimitReachedError()

    if not coupon.meets_minimum(grocery_subtotal):
        logger.info(f"[COUPON] Rejected '{normalized}': subtotal {grocery_subtotal} "
                    f"below minimum {coupon.min_order_amount}")
        raise MinimumNotMetError(coupon.min_order_amount)

    return coupon


def success_message(coupon: Coupon) -> str:
    if coupon.description:
        return f"Coupon {coupon.code} applied: {coupon.description}"
    if coupon.discount_type == DiscountType.PERCENTAGE:
        return f"Coupon {coupon.code} applied: {coupon.discount_value.normalize():f}% off"
    return f"Coupon {coupon.code} applied: {format_money(coupon.discount_value)} off"


# =====================================================
# MANAGEMENT
# =====================================================

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coupon_fields(code: str, discount_type: str, discount_value: Decimal, valid_until: datetime,
                   description: Optional[str] = None,
                   min_order_amount: Optional[Decimal] = None,
                   max_discount_amount: Optional[Decimal] = None,
                   usage_limit: Optional[int] = None,
                   valid_from: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        'code': normalize_code(code),
        'description': (description or '').strip(),
        'discount_type': DiscountType(discount_type).value,
        'discount_value': money(discount_value),
        'min_order_amount': money(min_order_amount) if min_order_amount is not None else None,
        'max_discount_amount': money(max_discount_amount) if max_discount_amount is not None else None,
        'usage_limit': usage_limit,
        'valid_from': _as_utc(valid_from) or utcnow(),
        'valid_until': _as_utc(valid_until),
    }


def list_coupons(backend: StoreBackend) -> List[Coupon]:
    return backend.list_coupons()


def _ensure_code_available(backend: StoreBackend, code: str, coupon_id: Optional[str] = None) -> None:
    for existing in backend.list_coupons():
        if existing.code == code and existing.id != coupon_id:
            raise BusinessLogicError(f"A coupon with code {code} already exists", status_code=409)


def create_coupon(backend: StoreBackend, **values) -> Coupon:
    """Create an active coupon with no redemptions yet."""
    fields = _coupon_fields(**values)
    _ensure_code_available(backend, fields['code'])
    fields.update({'is_active': True, 'used_count': 0})
    coupon = backend.create_coupon(fields)
    logger.info(f"[COUPON] Created {coupon.code} ({coupon.id})")
    return coupon


def update_coupon(backend: StoreBackend, coupon_id: str, **values) -> Coupon:
    """Edit a coupon's terms; redemptions and the active flag are left as they are."""
    fields = _coupon_fields(**values)
    _ensure_code_available(backend, fields['code'], coupon_id)
    coupon = backend.update_coupon(coupon_id, fields)
    logger.info(f"[COUPON] Updated {coupon.code} ({coupon_id})")
    return coupon


def set_coupon_active(backend: StoreBackend, coupon_id: str, is_active: bool) -> Coupon:
    coupon = backend.update_coupon(coupon_id, {'is_active': bool(is_active)})
    logger.info(f"[COUPON] {'Activated' if coupon.is_active else 'Deactivated'} {coupon.code}")
    return coupon


def delete_coupon(backend: StoreBackend, coupon_id: str) -> None:
    backend.delete_coupon(coupon_id)
    logger.info(f"[COUPON] Deleted {coupon_id}")
