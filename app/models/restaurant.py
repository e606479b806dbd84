"""Restaurant model."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, true
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models._common import new_uuid, utcnow


class Restaurant(Base):
    """Independent restaurant whose menu is sold through the storefront."""

    __tablename__ = 'restaurants'

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    foods = relationship('RestaurantFood', back_populates='restaurant', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name='{self.name}')>"
