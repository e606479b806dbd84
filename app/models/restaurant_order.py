"""Restaurant Order model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class RestaurantOrder(Base):
    """Order placed with a single restaurant; never shared across restaurants."""

    __tablename__ = 'restaurant_orders'

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), ForeignKey('restaurants.id'), nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(32), nullable=False, default='pending')
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(32), nullable=True)
    notes = Column(Text, nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_lat = Column(Numeric(10, 8), nullable=True)
    delivery_lon = Column(Numeric(11, 8), nullable=True)
    delivery_person_id = Column(String(36), nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    restaurant = relationship('Restaurant')
    items = relationship('RestaurantOrderItem', back_populates='order', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'restaurant_id': self.restaurant_id,
            'user_id': self.user_id,
            'status': self.status,
            'total_amount': self.total_amount,
            'payment_method': self.payment_method,
            'notes': self.notes,
            'delivery_address': self.delivery_address,
            'delivery_person_id': self.delivery_person_id,
            'estimated_delivery': self.estimated_delivery,
            'created_at': self.created_at,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<RestaurantOrder(id={self.id}, restaurant_id={self.restaurant_id}, status='{self.status}')>"
