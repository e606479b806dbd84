"""Cart operations over an explicit Cart object (persisted in the Flask session by the caller)."""
import logging
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from app.backends.base import StoreBackend
from app.entities import CartLine, LineType
from app.exceptions import BusinessLogicError, NotFoundError

logger = logging.getLogger(__name__)

RESTAURANT_LINE_PREFIX = 'restaurant-food:'


class Cart:
    """Ordered set of cart lines keyed by line id."""

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: 'OrderedDict[str, CartLine]' = OrderedDict()
        for line in lines or []:
            self.add(line)

    @classmethod
    def from_session_data(cls, data: Optional[Mapping[str, Any]]) -> 'Cart':
        """Rebuild a cart from session data, dropping lines that no longer parse."""
        lines = []
        for raw in (data or {}).get('lines', []):
            try:
                lines.append(CartLine.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[CART] Dropping malformed line {raw!r}: {e}")
        return cls(lines)

    def to_session_data(self) -> Dict[str, Any]:
        return {'lines': [line.to_dict() for line in self._lines.values()]}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def grocery_lines(self) -> List[CartLine]:
        return [line for line in self._lines.values() if line.type == LineType.GROCERY]

    @property
    def restaurant_lines(self) -> List[CartLine]:
        return [line for line in self._lines.values() if line.type == LineType.RESTAURANT]

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, line_id: str) -> Optional[CartLine]:
        return self._lines.get(str(line_id))

    def add(self, line: CartLine) -> CartLine:
        """Add a line, merging quantities with an existing line of the same id."""
        existing = self._lines.get(line.id)
        if existing:
            line = replace(existing, quantity=existing.quantity + line.quantity)
        self._lines[line.id] = line
        return line

    def update_quantity(self, line_id: str, quantity: int) -> Optional[CartLine]:
        """Set a line's quantity; zero or less removes the line."""
        line_id = str(line_id)
        if line_id not in self._lines:
            raise NotFoundError('Item is not in the cart')
        if quantity <= 0:
            del self._lines[line_id]
            return None
        line = replace(self._lines[line_id], quantity=int(quantity))
        self._lines[line_id] = line
        return line

    def remove(self, line_id: str) -> None:
        self._lines.pop(str(line_id), None)

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines.values())


def parse_quantity(value: Any, allow_zero: bool = False) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError('Quantity must be a whole number')
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise BusinessLogicError('Quantity must be greater than 0')
    return quantity


def build_grocery_line(backend: StoreBackend, product_id: str, quantity: int) -> CartLine:
    """Cart line for a grocery product, priced from the catalog."""
    product = backend.get_product(str(product_id))
    if product is None:
        raise NotFoundError('Product not found')
    return CartLine(
        id=product.id,
        type=LineType.GROCERY,
        price=product.price,
        quantity=quantity,
        name=product.name,
        image=product.image,
    )


def build_restaurant_line(backend: StoreBackend, food_id: str, quantity: int) -> CartLine:
    """Cart line for a restaurant menu item, priced from the menu."""
    food = backend.get_restaurant_food(str(food_id))
    if food is None:
        raise NotFoundError('Menu item not found')
    if not food.is_available:
        raise BusinessLogicError(f'"{food.name}" is not available right now')
    return CartLine(
        id=f'{RESTAURANT_LINE_PREFIX}{food.id}',
        type=LineType.RESTAURANT,
        price=food.price,
        quantity=quantity,
        name=food.name,
        image=food.image_url,
        restaurant_id=food.restaurant_id,
        restaurant_food_id=food.id,
    )
