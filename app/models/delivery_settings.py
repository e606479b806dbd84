"""Delivery Settings model."""
from sqlalchemy import Column, String, Numeric, Boolean, DateTime, true
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class DeliverySettings(Base):
    """
    Delivery fee policy.

    Several rows may exist; the most recently created active one is the
    policy in force.
    """

    __tablename__ = 'delivery_settings'

    id = Column(String(36), primary_key=True, default=new_uuid)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=50, server_default='50.00')
    free_delivery_threshold = Column(Numeric(10, 2), nullable=False, default=2000, server_default='2000.00')
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'delivery_fee': self.delivery_fee,
            'free_delivery_threshold': self.free_delivery_threshold,
            'is_active': self.is_active,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<DeliverySettings(id={self.id}, fee={self.delivery_fee}, threshold={self.free_delivery_threshold})>"
