"""Restaurant Order Item model."""
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base
from app.models._common import new_uuid


class RestaurantOrderItem(Base):
    """Restaurant order line with the food's price at order time."""

    __tablename__ = 'restaurant_order_items'

    id = Column(String(36), primary_key=True, default=new_uuid)
    order_id = Column(String(36), ForeignKey('restaurant_orders.id'), nullable=False)
    restaurant_food_id = Column(String(36), ForeignKey('restaurant_foods.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship('RestaurantOrder', back_populates='items')
    food = relationship('RestaurantFood')

    def to_dict(self):
        return {'restaurant_food_id': self.restaurant_food_id, 'quantity': self.quantity, 'price': self.price}

    def __repr__(self):
        return f"<RestaurantOrderItem(id={self.id}, food_id={self.restaurant_food_id}, quantity={self.quantity})>"
