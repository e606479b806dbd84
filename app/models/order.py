"""Order model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class Order(Base):
    """Grocery order: one per checkout that contained grocery lines."""

    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(32), nullable=False, default='pending')
    payment_method = Column(String(32), nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_lat = Column(Numeric(10, 8), nullable=True)
    delivery_lon = Column(Numeric(11, 8), nullable=True)
    delivery_notes = Column(Text, nullable=True)
    delivery_person_id = Column(String(36), nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'total_amount': self.total_amount,
            'status': self.status,
            'payment_method': self.payment_method,
            'delivery_address': self.delivery_address,
            'delivery_lat': self.delivery_lat,
            'delivery_lon': self.delivery_lon,
            'delivery_notes': self.delivery_notes,
            'delivery_person_id': self.delivery_person_id,
            'estimated_delivery': self.estimated_delivery,
            'created_at': self.created_at,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<Order(id={self.id}, total={self.total_amount}, status='{self.status}')>"
