"""Supabase (PostgREST) client implementing the store backend."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from app.backends.base import StoreBackend, collect_distinct_addresses
from app.entities import (
    Coupon, DeliverySettings, LineType, OrderRecord, PreviousAddress,
    Product, RestaurantFood,
)
from app.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

ORDER_TABLES = {
    LineType.GROCERY: ('orders', 'items:order_items(product_id,quantity,price)'),
    LineType.RESTAURANT: ('restaurant_orders', 'items:restaurant_order_items(restaurant_food_id,quantity,price)'),
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class SupabaseBackend(StoreBackend):
    """Talks to the managed backend through its REST API."""

    name = 'supabase'

    def __init__(self, base_url: str, api_key: str, timeout: float = 10,
                 http: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: anon or service-role key
            timeout: seconds before a call counts as failed
            http: optional pre-built requests session
        """
        if not api_key:
            raise ValueError("SUPABASE_KEY is required")

        self.rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.http = http or requests.Session()
        self.http.headers.update({
            'apikey': api_key,
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, table: str, params: Optional[Dict[str, Any]] = None,
                 payload: Any = None, prefer: Optional[str] = None) -> Any:
        url = f"{self.rest_url}/{table}"
        headers = {'Prefer': prefer} if prefer else None

        try:
            response = self.http.request(
                method, url,
                params=params,
                json=_jsonable(payload) if payload is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            detail = e.response.text if e.response is not None else str(e)
            logger.error(f"[SUPABASE] {method} {table} rejected: {detail}")
            raise PersistenceFailure(f"Backend rejected {method} on {table}", detail=detail)
        except requests.RequestException as e:
            logger.error(f"[SUPABASE] {method} {table} failed: {e}")
            raise PersistenceFailure(f"Backend unreachable for {method} on {table}", detail=str(e))

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[SUPABASE] {method} {table} returned a non-JSON body: {e}")
            raise PersistenceFailure(f"Malformed response for {method} on {table}", detail=str(e))

    def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._request('GET', table, params=params) or []

    def _insert(self, table: str, payload: Any) -> List[Dict[str, Any]]:
        return self._request('POST', table, payload=payload, prefer='return=representation') or []

    def _insert_one(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._insert(table, fields)
        if not rows:
            raise PersistenceFailure(f"Backend returned no row for insert on {table}")
        row = rows[0] if isinstance(rows, list) else rows
        if not isinstance(row, dict) or row.get('id') is None:
            logger.error(f"[SUPABASE] Insert on {table} returned a row without id: {row!r}")
            raise PersistenceFailure(f"Malformed {table} row from backend", detail='missing id')
        return row

    def _update(self, table: str, row_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._request(
            'PATCH', table,
            params={'id': f'eq.{row_id}'},
            payload=fields,
            prefer='return=representation',
        ) or []

    def _delete(self, table: str, row_id: str) -> None:
        self._request('DELETE', table, params={'id': f'eq.{row_id}'})

    @staticmethod
    def _parse(parser, row, what: str):
        try:
            return parser(row)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Malformed {what} row from backend", detail=str(e))

    # ------------------------------------------------------------------
    # Checkout reads
    # ------------------------------------------------------------------

    def get_active_coupon(self, code: str) -> Optional[Coupon]:
        rows = self._select('coupons', {
            'select': '*',
            'code': f'eq.{code.strip().upper()}',
            'is_active': 'eq.true',
            'limit': 1,
        })
        if not rows:
            return None
        return self._parse(Coupon.from_row, rows[0], 'coupon')

    def get_active_delivery_settings(self) -> Optional[DeliverySettings]:
        rows = self._select('delivery_settings', {
            'select': '*',
            'is_active': 'eq.true',
            'order': 'created_at.desc',
            'limit': 1,
        })
        if not rows:
            return None
        return self._parse(DeliverySettings.from_row, rows[0], 'delivery settings')

    def list_previous_addresses(self, user_id: str, limit: int = 5) -> List[PreviousAddress]:
        rows = self._select('orders', {
            'select': 'delivery_address,delivery_lat,delivery_lon,created_at',
            'user_id': f'eq.{user_id}',
            'delivery_address': 'not.is.null',
            'order': 'created_at.desc',
            'limit': limit * 10,
        })
        return collect_distinct_addresses(rows, limit)

    def get_product(self, product_id: str) -> Optional[Product]:
        rows = self._select('products', {'select': '*', 'id': f'eq.{product_id}', 'limit': 1})
        return self._parse(Product.from_row, rows[0], 'product') if rows else None

    def get_restaurant_food(self, food_id: str) -> Optional[RestaurantFood]:
        rows = self._select('restaurant_foods', {'select': '*', 'id': f'eq.{food_id}', 'limit': 1})
        return self._parse(RestaurantFood.from_row, rows[0], 'restaurant food') if rows else None

    # ------------------------------------------------------------------
    # Order writes
    # ------------------------------------------------------------------

    def create_order(self, fields: Dict[str, Any]) -> str:
        logger.info(f"[SUPABASE] Creating order for user {fields.get('user_id')}")
        return str(self._insert_one('orders', fields)['id'])

    def create_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        self._insert('order_items', [dict(item, order_id=order_id) for item in items])

    def create_restaurant_order(self, fields: Dict[str, Any]) -> str:
        logger.info(
            f"[SUPABASE] Creating restaurant order for user {fields.get('user_id')} "
            f"at restaurant {fields.get('restaurant_id')}"
        )
        return str(self._insert_one('restaurant_orders', fields)['id'])

    def create_restaurant_order_items(self, order_id: str, items: List[Dict[str, Any]]) -> None:
        self._insert('restaurant_order_items', [dict(item, order_id=order_id) for item in items])

    def increment_coupon_usage(self, coupon_id: str) -> None:
        # PostgREST has no in-place increment without an RPC; read then write.
        rows = self._select('coupons', {'select': 'used_count', 'id': f'eq.{coupon_id}', 'limit': 1})
        if not rows:
            raise PersistenceFailure(f"Coupon {coupon_id} not found for usage update")
        used_count = int(rows[0].get('used_count') or 0)
        self._update('coupons', coupon_id, {'used_count': used_count + 1})

    # ------------------------------------------------------------------
    # Order views and status updates
    # ------------------------------------------------------------------

    def get_order(self, kind: LineType, order_id: str) -> Optional[OrderRecord]:
        table, items = ORDER_TABLES[LineType(kind)]
        rows = self._select(table, {'select': f'*,{items}', 'id': f'eq.{order_id}', 'limit': 1})
        if not rows:
            return None
        return self._parse(lambda row: OrderRecord.from_row(kind, row), rows[0], table)

    def update_order(self, kind: LineType, order_id: str, fields: Dict[str, Any]) -> None:
        table, _ = ORDER_TABLES[LineType(kind)]
        if not self._update(table, order_id, fields):
            raise PersistenceFailure(f"Order {order_id} not found in {table}")

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_coupons(self) -> List[Coupon]:
        rows = self._select('coupons', {'select': '*', 'order': 'created_at.desc'})
        return [self._parse(Coupon.from_row, row, 'coupon') for row in rows]

    def create_coupon(self, fields: Dict[str, Any]) -> Coupon:
        return self._parse(Coupon.from_row, self._insert_one('coupons', fields), 'coupon')

    def update_coupon(self, coupon_id: str, fields: Dict[str, Any]) -> Coupon:
        rows = self._update('coupons', coupon_id, fields)
        if not rows:
            raise PersistenceFailure(f"Coupon {coupon_id} not found")
        return self._parse(Coupon.from_row, rows[0], 'coupon')

    def delete_coupon(self, coupon_id: str) -> None:
        self._delete('coupons', coupon_id)

    def list_delivery_settings(self) -> List[DeliverySettings]:
        rows = self._select('delivery_settings', {'select': '*', 'order': 'created_at.desc'})
        return [self._parse(DeliverySettings.from_row, row, 'delivery settings') for row in rows]

    def create_delivery_settings(self, fields: Dict[str, Any]) -> DeliverySettings:
        row = self._insert_one('delivery_settings', fields)
        return self._parse(DeliverySettings.from_row, row, 'delivery settings')

    def update_delivery_settings(self, settings_id: str, fields: Dict[str, Any]) -> DeliverySettings:
        rows = self._update('delivery_settings', settings_id, fields)
        if not rows:
            raise PersistenceFailure(f"Delivery settings {settings_id} not found")
        return self._parse(DeliverySettings.from_row, rows[0], 'delivery settings')

    def delete_delivery_settings(self, settings_id: str) -> None:
        self._delete('delivery_settings', settings_id)
