"""
SQLAlchemy implementation of the store backend.

Used for self-hosted Postgres deployments of the same schema and for the
test suite (SQLite). Each write commits on its own, mirroring how every
REST call against the managed backend is its own transaction.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.backends.base import StoreBackend, collect_distinct_addresses
from app.entities import (
    Coupon, DeliverySettings, LineType, OrderRecord, PreviousAddress,
    Product, RestaurantFood,
)
from app.exceptions import PersistenceFailure
from app import models

logger = logging.getLogger(__name__)

ORDER_MODELS = {
    LineType.GROCERY: models.Order,
    LineType.RESTAURANT: models.RestaurantOrder,
}


class SqlBackend(StoreBackend):
    """Store backend over a SQLAlchemy session."""

    name = 'sql'

    def __init__(self, session_getter: Callable[[], Any]):
        self._session_getter = session_getter

    @property
    def session(self):
        session = self._session_getter()
        if session is None:
            raise PersistenceFailure("Database session is not initialized")
        return session

    def _read(self, label: str, query: Callable[[Any], Any]) -> Any:
        try:
            return query(self.session)
        except SQLAlchemyError as e:
            logger.error(f"[SQL] {label} failed: {e}")
            raise PersistenceFailure(f"Database read failed: {label}", detail=str(e))

    def _write(self, label: str, action: Callable[[Any], Any]) -> Any:
        session = self.session
        try:
            result = action(session)
            session.commit()
            return result
        except PersistenceFailure:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[SQL] {label} failed: {e}")
            raise PersistenceFailure(f"Database write failed: {label}", detail=str(e))

    @staticmethod
    def _parse(parser, row, what: str):
        try:
            return parser(row)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Malformed {what} row in database", detail=str(e))

    @staticmethod
    def _assign(instance, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if not hasattr(type(instance), key):
                raise PersistenceFailure(f"Unknown column '{key}' for {type(instance).__tablename__}")
            setattr(instance, key, value)

    def _get_or_fail(self, session, model, row_id: str):
        instance = session.get(model, row_id)
        if instance is None:
            raise PersistenceFailure(f"{model.__tablename__} row {row_id} not found")
        return instance

    # ------------------------------------------------------------------
    # Checkout reads
    # ------------------------------------------------------------------

    def get_active_coupon(self, code: str) -> Optional[Coupon]:
        row = self._read('get_active_coupon', lambda s: s.query(models.Coupon).filter(
            func.upper(models.Coupon.code) == code.strip().upper(),
            models.Coupon.is_active.is_(True)
        ).first())
        return self._parse(Coupon.from_row, row.to_dict(), 'coupon') if row else None

    def get_active_delivery_settings(self) -> Optional[DeliverySettings]:
        row = self._read('get_active_delivery_settings', lambda s: s.query(models.DeliverySettings).filter(
            models.DeliverySettings.is_active.is_(True)
        ).order_by(models.DeliverySettings.created_at.desc()).first())
        return self._parse(DeliverySettings.from_row, row.to_dict(), 'delivery settings') if row else None

    def list_previous_addresses(self, user_id: str, limit: int = 5) -> List[PreviousAddress]:
        rows = self._read('list_previous_addresses', lambda s: s.query(
            models.Order.delivery_address,
            models.Order.delivery_lat,
            models.Order.delivery_lon,
            models.Order.created_at
        ).filter(
            models.Order.user_id == user_id,
            models.Order.delivery_address.isnot(None)
        ).order_by(models.Order.created_at.desc()).limit(limit * 10).all())
        return collect_distinct_addresses((row._asdict() for row in rows), limit)

    def get_product(self, product_id: str) -> Optional[Product]:
        row = self._read('get_product', lambda s: s.get(models.Product, product_id))
        return self._parse(Product.from_row, row.to_dict(), 'product') if row else None

    def get_restaurant_food(self, food_id: str) -> Optional[RestaurantFood]:
        row = self._read('get_restaurant_food', lambda s: s.get(models.RestaurantFood, food_id))
        return self._parse(RestaurantFood.from_row, row.to_dict(), 'restaurant food') if row else None

    # ------------------------------------------------------------------
    # Order writes
    # ------------------------------------------------------------------

    def create_order(self, fields: Dict[str, Any]) -> str:
        def action(session):
            order = models.Order()
            self._assign(order, fields)
            session.add(order)
            session.flush()
            return order.id
        return self._write('create_order', action)

    def create_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        def action(session):
            for item in items:
                line = models.OrderItem(order_id=order_id)
                self._assign(line, item)
                session.add(line)
        self._write('create_order_items', action)

    def create_restaurant_order(self, fields: Dict[str, Any]) -> str:
        def action(session):
            order = models.RestaurantOrder()
            self._assign(order, fields)
            session.add(order)
            session.flush()
            return order.id
        return self._write('create_restaurant_order', action)

    def create_restaurant_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        def action(session):
            for item in items:
                line = models.RestaurantOrderItem(order_id=order_id)
                self._assign(line, item)
                session.add(line)
        self._write('create_restaurant_order_items', action)

    def increment_coupon_usage(self, coupon_id: str) -> None:
        def action(session):
            updated = session.query(models.Coupon).filter(
                models.Coupon.id == coupon_id
            ).update(
                {models.Coupon.used_count: models.Coupon.used_count + 1},
                synchronize_session='fetch'
            )
            if not updated:
                raise PersistenceFailure(f"Coupon {coupon_id} not found for usage update")
        self._write('increment_coupon_usage', action)

    # ------------------------------------------------------------------
    # Order views and status updates
    # ------------------------------------------------------------------

    def get_order(self, kind: LineType, order_id: str) -> Optional[OrderRecord]:
        model = ORDER_MODELS[LineType(kind)]
        row = self._read('get_order', lambda s: s.get(model, order_id))
        if row is None:
            return None
        return self._parse(lambda data: OrderRecord.from_row(kind, data), row.to_dict(), model.__tablename__)

    def update_order(self, kind: LineType, order_id: str, fields: Dict[str, Any]) -> None:
        model = ORDER_MODELS[LineType(kind)]

        def action(session):
            self._assign(self._get_or_fail(session, model, order_id), fields)
        self._write('update_order', action)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_coupons(self) -> List[Coupon]:
        rows = self._read('list_coupons', lambda s: s.query(models.Coupon).order_by(
            models.Coupon.created_at.desc()
        ).all())
        return [self._parse(Coupon.from_row, row.to_dict(), 'coupon') for row in rows]

    def create_coupon(self, fields: Dict[str, Any]) -> Coupon:
        def action(session):
            coupon = models.Coupon()
            self._assign(coupon, fields)
            session.add(coupon)
            session.flush()
            return coupon.to_dict()
        return self._parse(Coupon.from_row, self._write('create_coupon', action), 'coupon')

    def update_coupon(self, coupon_id: str, fields: Dict[str, Any]) -> Coupon:
        def action(session):
            coupon = self._get_or_fail(session, models.Coupon, coupon_id)
            self._assign(coupon, fields)
            session.flush()
            return coupon.to_dict()
        return self._parse(Coupon.from_row, self._write('update_coupon', action), 'coupon')

    def delete_coupon(self, coupon_id: str) -> None:
        def action(session):
            session.delete(self._get_or_fail(session, models.Coupon, coupon_id))
        self._write('delete_coupon', action)

    def list_delivery_settings(self) -> List[DeliverySettings]:
        rows = self._read('list_delivery_settings', lambda s: s.query(models.DeliverySettings).order_by(
            models.DeliverySettings.created_at.desc()
        ).all())
        return [self._parse(DeliverySettings.from_row, row.to_dict(), 'delivery settings') for row in rows]

    def create_delivery_settings(self, fields: Dict[str, Any]) -> DeliverySettings:
        def action(session):
            settings = models.DeliverySettings()
            self._assign(settings, fields)
            session.add(settings)
            session.flush()
            return settings.to_dict()
        return self._parse(DeliverySettings.from_row, self._write('create_delivery_settings', action),
                           'delivery settings')

    def update_delivery_settings(self, settings_id: str, fields: Dict[str, Any]) -> DeliverySettings:
        def action(session):
            settings = self._get_or_fail(session, models.DeliverySettings, settings_id)
            self._assign(settings, fields)
            session.flush()
            return settings.to_dict()
        return self._parse(DeliverySettings.from_row, self._write('update_delivery_settings', action),
                           'delivery settings')

    def delete_delivery_settings(self, settings_id: str) -> None:
        def action(session):
            session.delete(self._get_or_fail(session, models.DeliverySettings, settings_id))
        self._write('delete_delivery_settings', action)
