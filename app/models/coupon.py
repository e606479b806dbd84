"""Coupon model."""
from sqlalchemy import Column, String, Text, Numeric, Integer, Boolean, DateTime, true
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class Coupon(Base):
    """Discount code redeemable on the grocery part of a checkout."""

    __tablename__ = 'coupons'

    id = Column(String(36), primary_key=True, default=new_uuid)
    code = Column(String(64), nullable=False, unique=True)  # stored upper-cased
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0, server_default='0')
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'description': self.description,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'min_order_amount': self.min_order_amount,
            'max_discount_amount': self.max_discount_amount,
            'usage_limit': self.usage_limit,
            'used_count': self.used_count,
            'is_active': self.is_active,
            'valid_from': self.valid_from,
            'valid_until': self.valid_until,
        }

    def __repr__(self):
        return f"<Coupon(id={self.id}, code='{self.code}', used={self.used_count}/{self.usage_limit})>"
