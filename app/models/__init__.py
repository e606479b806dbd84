"""Models package - exports all SQLAlchemy models."""
# Catalog
from app.models.product import Product
from app.models.restaurant import Restaurant
from app.models.restaurant_food import RestaurantFood

# Pricing configuration
from app.models.coupon import Coupon
from app.models.delivery_settings import DeliverySettings

# Orders
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.restaurant_order import RestaurantOrder
from app.models.restaurant_order_item import RestaurantOrderItem

__all__ = [
    # Catalog
    'Product', 'Restaurant', 'RestaurantFood',
    # Pricing configuration
    'Coupon', 'DeliverySettings',
    # Orders
    'Order', 'OrderItem', 'RestaurantOrder', 'RestaurantOrderItem',
]
