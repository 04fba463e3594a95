from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from storefront.cart.models import Cart, LineItem, money


def _item(id="a", price="10.00", qty=1, **kw):
    return LineItem(id=id, title=f"Produit {id}", unit_price=Decimal(price), quantity=qty, **kw)

def test_totals_with_default_tax_rate():
    cart = Cart([_item("a", "29.99", 2), _item("b", "10.00", 1)], tax_rate=Decimal("0.08"))
    assert cart.subtotal == Decimal("69.98")
    assert cart.tax == Decimal("5.60")
    assert cart.total == Decimal("75.58")
    assert cart.summary() == {"subtotal": "69.98", "tax": "5.60", "total": "75.58"}

def test_add_same_id_merges_quantity_and_keeps_order():
    cart = Cart()
    cart.add(_item("a", qty=1))
    cart.add(_item("b", qty=1))
    cart.add(_item("a", qty=2))
    assert [i.id for i in cart] == ["a", "b"]
    assert cart.get("a").quantity == 3

def test_set_quantity_zero_removes_item():
    cart = Cart([_item("a"), _item("b")])
    cart.set_quantity("a", 0)
    assert "a" not in cart
    assert len(cart) == 1

def test_set_quantity_unknown_id_raises_keyerror():
    with pytest.raises(KeyError):
        Cart().set_quantity("missing", 2)

def test_line_item_rejects_negative_price_and_zero_quantity():
    with pytest.raises(PydanticValidationError):
        _item(price="-1")
    with pytest.raises(PydanticValidationError):
        _item(qty=0)

def test_line_item_accepts_catalog_aliases():
    item = LineItem.model_validate({"id": "p1", "title": "T-shirt", "price": "19.90", "image_url": "https://img/x.png"})
    assert item.unit_price == Decimal("19.90")
    assert item.image_ref == "https://img/x.png"
    assert item.quantity == 1

def test_json_boundary_preserves_items_and_totals():
    cart = Cart([_item("a", "29.99", 2, description="Coton"), _item("b", "10.00")], tax_rate=Decimal("0.08"))
    restored = Cart.from_json(cart.to_json())
    assert [i.id for i in restored] == ["a", "b"]
    assert restored.get("a").description == "Coton"
    assert restored.total == cart.total

def test_money_rounds_half_up():
    assert money("0.005") == Decimal("0.01")
    assert money(2.675) == Decimal("2.68")

def test_empty_cart_totals_are_zero():
    cart = Cart()
    assert cart.is_empty
    assert cart.total == Decimal("0.00")
