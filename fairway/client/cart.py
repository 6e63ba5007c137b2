"""
Fairway client: cart store

The cart lives on the customer's device and survives reloads. It is stored
per course (key cart:<course_id>) so switching courses never mixes carts.
Every mutation persists the whole cart. Quantity changes never raise; add
rejects only a menu item missing its id, name or a valid price.
"""
import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from fairway.client.notes import NoteEntry, NoteScope

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "cart:"


class CartItem(BaseModel):
    """Menu item snapshot plus the customer's quantity and note."""
    id: str
    item_name: str
    price: Decimal = Field(..., ge=0)
    image_url: str | None = None
    quantity: int = Field(1, ge=1)
    note: str | None = None


_CART_ADAPTER = TypeAdapter(list[CartItem])


def to_minor_units(amount: Decimal | float | int) -> int:
    """12.5 → 1250, rounded half-up to the cent."""
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


# ── Storage backends ──────────────────────────────────────────────────────────

class CartStorage(Protocol):
    def load(self, key: str) -> str | None: ...

    def save(self, key: str, data: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCartStorage:
    def __init__(self):
        self._slots: dict[str, str] = {}

    def load(self, key: str) -> str | None:
        return self._slots.get(key)

    def save(self, key: str, data: str) -> None:
        self._slots[key] = data

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)


class FileCartStorage:
    """One JSON document per key inside a directory (the device's local storage)."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{re.sub(r'[^A-Za-z0-9_.-]', '_', key)}.json"

    def load(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, key: str, data: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self._path(key).with_suffix(".tmp")
        tmp.write_text(data, encoding="utf-8")
        tmp.replace(self._path(key))

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ── Cart ──────────────────────────────────────────────────────────────────────

class CartStore:

    def __init__(self, course_id: str, storage: CartStorage):
        self.course_id = course_id
        self.storage = storage
        self.key = f"{STORAGE_PREFIX}{course_id}"
        self._items: list[CartItem] = self._load()

    def _load(self) -> list[CartItem]:
        raw = self.storage.load(self.key)
        if not raw:
            return []
        try:
            return _CART_ADAPTER.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cart %s", self.key)
            self.storage.delete(self.key)
            return []

    def _persist(self) -> None:
        self.storage.save(self.key, _CART_ADAPTER.dump_json(self._items).decode("utf-8"))

    def _find(self, item_id: str) -> CartItem | None:
        return next((i for i in self._items if i.id == item_id), None)

    @property
    def items(self) -> list[CartItem]:
        return [i.model_copy() for i in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def add(self, item: CartItem | dict) -> None:
        """Add one of `item`. Whatever quantity the caller sent is ignored."""
        fields = item.model_dump() if isinstance(item, CartItem) else dict(item)
        fields["quantity"] = 1
        snapshot = CartItem.model_validate(fields)
        existing = self._find(snapshot.id)
        if existing:
            existing.quantity += 1
        else:
            self._items.append(snapshot)
        self._persist()

    def update_quantity(self, item_id: str, delta: int) -> None:
        entry = self._find(item_id)
        if entry is None:
            return
        quantity = max(0, entry.quantity + delta)
        if quantity == 0:
            self._items.remove(entry)
        else:
            entry.quantity = quantity
        self._persist()

    def remove(self, item_id: str) -> None:
        self._items = [i for i in self._items if i.id != item_id]
        self._persist()

    def set_note(self, item_id: str, text: str | None) -> None:
        entry = self._find(item_id)
        if entry is None:
            return
        entry.note = (text or "").strip() or None
        self._persist()

    def clear(self) -> None:
        self._items = []
        self.storage.delete(self.key)

    def subtotal(self) -> Decimal:
        return sum((i.price * i.quantity for i in self._items), Decimal("0"))

    def note_entries(self, order_notes: str = "") -> list[NoteEntry]:
        entries = []
        if order_notes and order_notes.strip():
            entries.append(NoteEntry(scope=NoteScope.ORDER, text=order_notes))
        for item in self._items:
            if item.note:
                entries.append(
                    NoteEntry(scope=NoteScope.ITEM, text=item.note, item_ref=item.id, item_name=item.item_name)
                )
        return entries
