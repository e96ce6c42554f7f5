"""
Selection cart used for lab-test and pharmacy-order composition.

Items are keyed by id. Toggling a present id removes it, quantities never
drop below 1, and prices that cannot be parsed count as 0.
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from eyeexam.utils import to_float


@dataclass
class CartLine:
    item_id: str
    name: str = ""
    price: Any = None
    quantity: int = 1

    @property
    def unit_price(self) -> float:
        value = to_float(self.price)
        # NaN never equals itself
        if value is None or value != value:
            return 0.0
        return value

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


def _clamp(n: Any) -> int:
    try:
        n = int(n)
    except (TypeError, ValueError):
        return 1
    return n if n > 0 else 1


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


class SelectionCart:
    def __init__(self, fixed_quantity: bool = False):
        # lab orders use a quantity of one per test
        self.fixed_quantity = fixed_quantity
        self._lines: "OrderedDict[str, CartLine]" = OrderedDict()

    def __len__(self):
        return len(self._lines)

    def __contains__(self, item_id) -> bool:
        return self.contains(item_id)

    def contains(self, item_id) -> bool:
        return str(item_id) in self._lines

    def toggle(self, item: Any) -> bool:
        """Add ``item`` (quantity 1) or remove it if its id is already present.

        Returns True when the item is in the cart afterwards.
        """
        item_id = str(_field(item, "id"))
        if item_id in self._lines:
            del self._lines[item_id]
            return False
        self._lines[item_id] = CartLine(
            item_id=item_id,
            name=str(_field(item, "name", "") or ""),
            price=_field(item, "price"),
            quantity=1,
        )
        return True

    def set_quantity(self, item_id, n: Any) -> None:
        line = self._lines.get(str(item_id))
        if line is None:
            return
        line.quantity = 1 if self.fixed_quantity else _clamp(n)

    def remove(self, item_id) -> None:
        self._lines.pop(str(item_id), None)

    def clear(self) -> None:
        self._lines.clear()

    def items(self) -> List[CartLine]:
        return list(self._lines.values())

    def count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def total(self) -> float:
        return sum((line.subtotal for line in self._lines.values()), 0.0)

    def to_order_payload(self, notes: str = "", order_date: Optional[datetime] = None) -> Dict[str, Any]:
        order_date = order_date or datetime.now(timezone.utc)
        return {
            "items": [
                {"item_id": line.item_id, "name": line.name, "price": line.price, "quantity": line.quantity}
                for line in self._lines.values()
            ],
            "total_amount": f"{self.total():.2f}",
            "order_date": order_date.isoformat(),
            "notes": notes,
        }
