"""Product model."""
from sqlalchemy import Column, String, Text, Numeric, Integer, DateTime
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class Product(Base):
    """Grocery catalog item sold by the store itself."""

    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(100), nullable=False, default='general')
    brand = Column(String(100), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    image = Column(Text, nullable=True)
    unit = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'image': self.image,
            'stock': self.stock,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
