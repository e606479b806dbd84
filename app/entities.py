"""
Typed records exchanged between the backends and the checkout services.

Backends return loosely typed rows (PostgREST JSON or ORM objects). Every
row is parsed here before the services see it, so pricing and order
composition only ever work with Decimals, ints and aware datetimes.
"""
import enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from app.utils.money import to_decimal, ZERO


class LineType(str, enum.Enum):
    """Cart line / order kind."""
    GROCERY = 'grocery'
    RESTAURANT = 'restaurant'


class DiscountType(str, enum.Enum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class OrderStatus(str, enum.Enum):
    """Status values shared by grocery and restaurant orders."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    ACCEPTED = 'accepted'
    PREPARING = 'preparing'
    READY = 'ready'
    OUT_FOR_DELIVERY = 'out-for-delivery'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings or datetimes; naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 't', 'yes', 'on')
    return bool(value)


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class CartLine:
    """One product or restaurant-food entry in the active cart."""
    id: str
    type: LineType
    price: Decimal
    quantity: int
    name: str = ''
    image: Optional[str] = None
    restaurant_id: Optional[str] = None
    restaurant_food_id: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def is_restaurant(self) -> bool:
        return self.type == LineType.RESTAURANT

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CartLine':
        price = to_decimal(data.get('price'))
        if price is None or price < 0:
            raise ValueError(f"Invalid price for cart line {data.get('id')!r}")
        quantity = int(data.get('quantity', 0))
        if quantity <= 0:
            raise ValueError(f"Invalid quantity for cart line {data.get('id')!r}")
        return cls(
            id=str(data['id']),
            type=LineType(data.get('type', LineType.GROCERY.value)),
            price=price,
            quantity=quantity,
            name=data.get('name') or '',
            image=data.get('image'),
            restaurant_id=_str_or_none(data.get('restaurant_id')),
            restaurant_food_id=_str_or_none(data.get('restaurant_food_id')),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Session-safe representation (no Decimals)."""
        return {
            'id': self.id,
            'type': self.type.value,
            'price': str(self.price),
            'quantity': self.quantity,
            'name': self.name,
            'image': self.image,
            'restaurant_id': self.restaurant_id,
            'restaurant_food_id': self.restaurant_food_id,
        }


@dataclass(frozen=True)
class Coupon:
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    valid_until: datetime
    description: Optional[str] = None
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    is_active: bool = True
    valid_from: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Coupon':
        valid_until = parse_datetime(row.get('valid_until'))
        if valid_until is None:
            raise ValueError(f"Coupon {row.get('code')!r} has no valid_until")
        discount_value = to_decimal(row.get('discount_value'))
        if discount_value is None:
            raise ValueError(f"Coupon {row.get('code')!r} has no discount_value")
        return cls(
            id=str(row['id']),
            code=str(row['code']).strip().upper(),
            discount_type=DiscountType(row.get('discount_type', DiscountType.PERCENTAGE.value)),
            discount_value=discount_value,
            valid_until=valid_until,
            description=row.get('description'),
            min_order_amount=to_decimal(row.get('min_order_amount')),
            max_discount_amount=to_decimal(row.get('max_discount_amount')),
            usage_limit=_optional_int(row.get('usage_limit')),
            used_count=int(row.get('used_count') or 0),
            is_active=parse_bool(row.get('is_active'), default=True),
            valid_from=parse_datetime(row.get('valid_from')),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.valid_until

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def meets_minimum(self, grocery_subtotal: Decimal) -> bool:
        return self.min_order_amount is None or grocery_subtotal >= self.min_order_amount

    def is_applicable(self, grocery_subtotal: Decimal, now: Optional[datetime] = None) -> bool:
        return (
            self.is_active
            and not self.is_expired(now)
            and not self.is_exhausted
            and self.meets_minimum(grocery_subtotal)
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON/session representation; round-trips through from_row."""
        data = asdict(self)
        data['discount_type'] = self.discount_type.value
        for key in ('discount_value', 'min_order_amount', 'max_discount_amount'):
            if data[key] is not None:
                data[key] = str(data[key])
        for key in ('valid_until', 'valid_from'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


DEFAULT_DELIVERY_FEE = Decimal('50')
DEFAULT_FREE_DELIVERY_THRESHOLD = Decimal('2000')


@dataclass(frozen=True)
class DeliverySettings:
    delivery_fee: Decimal
    free_delivery_threshold: Decimal
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def fallback(cls) -> 'DeliverySettings':
        """Policy used when no active settings row exists."""
        return cls(
            delivery_fee=DEFAULT_DELIVERY_FEE,
            free_delivery_threshold=DEFAULT_FREE_DELIVERY_THRESHOLD,
        )

    @property
    def is_fallback(self) -> bool:
        return self.id is None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'DeliverySettings':
        fee = to_decimal(row.get('delivery_fee'))
        threshold = to_decimal(row.get('free_delivery_threshold'))
        if fee is None or threshold is None or fee < 0 or threshold < 0:
            raise ValueError(f"Malformed delivery settings row {row.get('id')!r}")
        return cls(
            delivery_fee=fee,
            free_delivery_threshold=threshold,
            is_active=parse_bool(row.get('is_active'), default=True),
            id=_str_or_none(row.get('id')),
            created_at=parse_datetime(row.get('created_at')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'delivery_fee': str(self.delivery_fee),
            'free_delivery_threshold': str(self.free_delivery_threshold),
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class DeliveryAddress:
    street: str
    city: str
    state: str
    postal_code: str
    phone: str
    landmark: str = ''
    alternate_phone: str = ''
    lat: Optional[Decimal] = None
    lon: Optional[Decimal] = None

    REQUIRED_FIELDS = ('street', 'city', 'state', 'postal_code', 'phone')

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'DeliveryAddress':
        def text(key, *aliases):
            for name in (key,) + aliases:
                value = data.get(name)
                if value is not None:
                    return str(value).strip()
            return ''

        return cls(
            street=text('street'),
            city=text('city'),
            state=text('state'),
            postal_code=text('postal_code', 'zip_code', 'zipCode'),
            phone=text('phone'),
            landmark=text('landmark'),
            alternate_phone=text('alternate_phone', 'alternatePhone'),
            lat=to_decimal(data.get('lat')),
            lon=to_decimal(data.get('lon')),
        )

    def full_address(self) -> str:
        address = f"{self.street}, {self.city}, {self.state} {self.postal_code}"
        if self.landmark:
            address = f"{address}, Landmark: {self.landmark}"
        return address


@dataclass(frozen=True)
class PreviousAddress:
    address: str
    lat: Optional[Decimal] = None
    lon: Optional[Decimal] = None
    last_used_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'PreviousAddress':
        return cls(
            address=str(row['delivery_address']).strip(),
            lat=to_decimal(row.get('delivery_lat')),
            lon=to_decimal(row.get('delivery_lon')),
            last_used_at=parse_datetime(row.get('created_at')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'lat': str(self.lat) if self.lat is not None else None,
            'lon': str(self.lon) if self.lon is not None else None,
            'last_used_at': self.last_used_at.isoformat() if self.last_used_at else None,
        }


@dataclass(frozen=True)
class Product:
    """Grocery catalog item."""
    id: str
    name: str
    price: Decimal
    image: Optional[str] = None
    stock: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Product':
        return cls(
            id=str(row['id']),
            name=row.get('name') or '',
            price=to_decimal(row.get('price'), ZERO),
            image=row.get('image'),
            stock=int(row.get('stock') or 0),
        )


@dataclass(frozen=True)
class RestaurantFood:
    id: str
    restaurant_id: Optional[str]
    name: str
    price: Decimal
    image_url: Optional[str] = None
    is_available: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'RestaurantFood':
        return cls(
            id=str(row['id']),
            restaurant_id=_str_or_none(row.get('restaurant_id')),
            name=row.get('name') or '',
            price=to_decimal(row.get('price'), ZERO),
            image_url=row.get('image_url'),
            is_available=parse_bool(row.get('is_available'), default=True),
        )


@dataclass(frozen=True)
class OrderRecord:
    """A persisted grocery or restaurant order, as read back for views."""
    id: str
    kind: LineType
    user_id: str
    status: str
    total_amount: Decimal
    created_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_notes: Optional[str] = None
    restaurant_id: Optional[str] = None
    notes: Optional[str] = None
    delivery_person_id: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    items: list = field(default_factory=list)

    @classmethod
    def from_row(cls, kind: LineType, row: Mapping[str, Any]) -> 'OrderRecord':
        items = []
        for item in row.get('items') or []:
            items.append({
                'ref': str(item.get('product_id') or item.get('restaurant_food_id')),
                'quantity': int(item.get('quantity') or 0),
                'price': to_decimal(item.get('price'), ZERO),
            })
        return cls(
            id=str(row['id']),
            kind=LineType(kind),
            user_id=str(row.get('user_id')),
            status=row.get('status') or OrderStatus.PENDING.value,
            total_amount=to_decimal(row.get('total_amount'), ZERO),
            created_at=parse_datetime(row.get('created_at')),
            payment_method=row.get('payment_method'),
            delivery_address=row.get('delivery_address'),
            delivery_notes=row.get('delivery_notes'),
            restaurant_id=_str_or_none(row.get('restaurant_id')),
            notes=row.get('notes'),
            delivery_person_id=_str_or_none(row.get('delivery_person_id')),
            estimated_delivery=parse_datetime(row.get('estimated_delivery')),
            items=items,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind.value,
            'user_id': self.user_id,
            'status': self.status,
            'total_amount': str(self.total_amount),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'payment_method': self.payment_method,
            'delivery_address': self.delivery_address,
            'delivery_notes': self.delivery_notes,
            'restaurant_id': self.restaurant_id,
            'notes': self.notes,
            'delivery_person_id': self.delivery_person_id,
            'estimated_delivery': self.estimated_delivery.isoformat() if self.estimated_delivery else None,
            'items': [
                {'ref': i['ref'], 'quantity': i['quantity'], 'price': str(i['price'])}
                for i in self.items
            ],
        }
