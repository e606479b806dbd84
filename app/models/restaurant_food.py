"""Restaurant Food model."""
from sqlalchemy import Column, String, Text, Numeric, Boolean, DateTime, ForeignKey, true
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class RestaurantFood(Base):
    """Menu item of a restaurant."""

    __tablename__ = 'restaurant_foods'

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), ForeignKey('restaurants.id'), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(Text, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    restaurant = relationship('Restaurant', back_populates='foods')

    def to_dict(self):
        return {
            'id': self.id,
            'restaurant_id': self.restaurant_id,
            'name': self.name,
            'price': self.price,
            'image_url': self.image_url or (self.restaurant.image_url if self.restaurant else None),
            'is_available': self.is_available and (self.restaurant is None or self.restaurant.is_active),
        }

    def __repr__(self):
        return f"<RestaurantFood(id={self.id}, name='{self.name}', price={self.price})>"
