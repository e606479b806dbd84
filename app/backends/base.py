"""Collaborator interface to the persistence backend."""
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.entities import (
    Coupon, DeliverySettings, LineType, OrderRecord, PreviousAddress,
    Product, RestaurantFood,
)


def collect_distinct_addresses(rows: Iterable[Mapping[str, Any]], limit: int) -> List[PreviousAddress]:
    """
    Keep the first occurrence of each delivery address.

    Rows must already be ordered newest first. Addresses are compared
    case- and whitespace-insensitively.
    """
    seen = set()
    addresses = []
    for row in rows:
        if not row.get('delivery_address'):
            continue
        address = PreviousAddress.from_row(row)
        key = ' '.join(address.address.lower().split())
        if not key or key in seen:
            continue
        seen.add(key)
        addresses.append(address)
        if len(addresses) >= limit:
            break
    return addresses


class StoreBackend:
    """
    Operations the storefront needs from the backend.

    Implementations return the typed records from ``app.entities`` and raise
    ``PersistenceFailure`` for any transport error or rejected call.
    """

    name = 'base'

    # Checkout reads
    def get_active_coupon(self, code: str) -> Optional[Coupon]:
        raise NotImplementedError

    def get_active_delivery_settings(self) -> Optional[DeliverySettings]:
        raise NotImplementedError

    def list_previous_addresses(self, user_id: str, limit: int = 5) -> List[PreviousAddress]:
        raise NotImplementedError

    def get_product(self, product_id: str) -> Optional[Product]:
        raise NotImplementedError

    def get_restaurant_food(self, food_id: str) -> Optional[RestaurantFood]:
        raise NotImplementedError

    # Order writes
    def create_order(self, fields: Dict[str, Any]) -> str:
        raise NotImplementedError

    def create_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def create_restaurant_order(self, fields: Dict[str, Any]) -> str:
        raise NotImplementedError

    def create_restaurant_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def increment_coupon_usage(self, coupon_id: str) -> None:
        raise NotImplementedError

    # Order views and status updates
    def get_order(self, kind: LineType, order_id: str) -> Optional[OrderRecord]:
        raise NotImplementedError

    def update_order(self, kind: LineType, order_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    # Admin: coupons
    def list_coupons(self) -> List[Coupon]:
        raise NotImplementedError

    def create_coupon(self, fields: Dict[str, Any]) -> Coupon:
        raise NotImplementedError

    def update_coupon(self, coupon_id: str, fields: Dict[str, Any]) -> Coupon:
        raise NotImplementedError

    def delete_coupon(self, coupon_id: str) -> None:
        raise NotImplementedError

    # Admin: delivery settings
    def list_delivery_settings(self) -> List[DeliverySettings]:
        raise NotImplementedError

    def create_delivery_settings(self, fields: Dict[str, Any]) -> DeliverySettings:
        raise NotImplementedError

    def update_delivery_settings(self, settings_id: str, fields: Dict[str, Any]) -> DeliverySettings:
        raise NotImplementedError

    def delete_delivery_settings(self, settings_id: str) -> None:
        raise NotImplementedError
