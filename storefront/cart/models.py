"""
Modèle panier pur (pas de Stripe, pas de DB).

- LineItem: ligne immuable par identité, quantité modifiable (>= 1)
- Cart: mapping ordonné par insertion id -> LineItem, avec sous-total, taxe et total
- Sérialisation JSON explicite pour franchir la redirection Stripe
"""
import json
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterator, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from storefront.config import TAX_RATE

CENT = Decimal("0.01")

def money(value: Any) -> Decimal:
    """Arrondit un montant au centime (half-up), accepte str|float|int|Decimal."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

# module storefront.cart.models
class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0, validation_alias=AliasChoices("unit_price", "price"))
    quantity: int = Field(default=1, ge=1)
    image_ref: str = Field(default="", validation_alias=AliasChoices("image_ref", "image_url"))
    description: Optional[str] = None

    @field_validator("id", "title")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("valeur vide")
        return v

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """Panier client: l'ordre d'insertion est conservé pour l'affichage et Stripe."""

    def __init__(self, items: Optional[List[LineItem]] = None, tax_rate: Optional[Decimal] = None):
        self._items: Dict[str, LineItem] = {}
        self.tax_rate = Decimal(str(tax_rate)) if tax_rate is not None else TAX_RATE
        for item in items or []:
            self.add(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self._items.values())

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    @property
    def items(self) -> List[LineItem]:
        return list(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get(self, item_id: str) -> Optional[LineItem]:
        return self._items.get(item_id)

    def add(self, item: LineItem) -> LineItem:
        """Ajoute une ligne; si l'id existe déjà, cumule la quantité."""
        existing = self._items.get(item.id)
        if existing is not None:
            existing.quantity = existing.quantity + item.quantity
            return existing
        self._items[item.id] = item.model_copy()
        return self._items[item.id]

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Quantité <= 0: retrait de la ligne (jamais de ligne à quantité nulle)."""
        if item_id not in self._items:
            raise KeyError(item_id)
        if quantity <= 0:
            self.remove(item_id)
            return
        self._items[item_id].quantity = quantity

    def remove(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def clear(self) -> None:
        self._items.clear()

    # --- Montants dérivés ---

    @property
    def subtotal(self) -> Decimal:
        return money(sum((i.line_total for i in self._items.values()), Decimal("0")))

    @property
    def tax(self) -> Decimal:
        return money(self.subtotal * self.tax_rate)

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    def summary(self) -> Dict[str, str]:
        return {
            "subtotal": f"{self.subtotal:.2f}",
            "tax": f"{self.tax:.2f}",
            "total": f"{self.total:.2f}",
        }

    # --- Sérialisation à la frontière de redirection ---

    def to_list(self) -> List[Dict[str, Any]]:
        return [i.model_dump(mode="json") for i in self._items.values()]

    def to_json(self) -> str:
        return json.dumps({"items": self.to_list(), "tax_rate": str(self.tax_rate)})

    @classmethod
    def from_list(cls, raw_items: List[Dict[str, Any]], tax_rate: Optional[Decimal] = None) -> "Cart":
        return cls([LineItem.model_validate(r) for r in raw_items or []], tax_rate=tax_rate)

    @classmethod
    def from_json(cls, payload: str) -> "Cart":
        data = json.loads(payload or "{}")
        rate = data.get("tax_rate")
        return cls.from_list(data.get("items") or [], tax_rate=Decimal(rate) if rate is not None else None)
