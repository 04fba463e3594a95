from decimal import Decimal

import pytest

from storefront.cart.models import Cart, LineItem
from storefront.errors import EmptyCartError, InvalidLineItemError
from storefront.payments.line_items import (
    from_minor_units,
    gateway_items_total,
    to_gateway_line_items,
    to_minor_units,
    validate_gateway_items,
)


@pytest.mark.parametrize("amount,cents", [
    ("29.99", 2999),
    ("10", 1000),
    ("0.005", 1),
    ("19.995", 2000),
    ("0", 0),
])
def test_to_minor_units_half_up(amount, cents):
    assert to_minor_units(amount) == cents

def test_gateway_line_items_from_cart():
    cart = Cart([
        LineItem(id="a", title="Mug", unit_price=Decimal("29.99"), quantity=2, image_ref="https://img/mug.png", description="Blanc"),
        LineItem(id="b", title="Stylo", unit_price=Decimal("10.00")),
    ])
    items = to_gateway_line_items(cart)
    assert items[0] == {
        "price_data": {
            "currency": "usd",
            "product_data": {"name": "Mug", "description": "Blanc", "images": ["https://img/mug.png"]},
            "unit_amount": 2999,
        },
        "quantity": 2,
    }
    # Pas de description/images vides envoyées à Stripe
    assert items[1]["price_data"]["product_data"] == {"name": "Stylo"}

def test_gateway_total_matches_cart_subtotal():
    cart = Cart([
        LineItem(id="a", title="Mug", unit_price=Decimal("29.99"), quantity=2),
        LineItem(id="b", title="Stylo", unit_price=Decimal("10.00")),
    ])
    assert gateway_items_total(to_gateway_line_items(cart)) == cart.subtotal
    assert from_minor_units(6998) == Decimal("69.98")

def test_empty_cart_raises():
    with pytest.raises(EmptyCartError):
        to_gateway_line_items(Cart())

def test_validate_gateway_items_sets_default_currency():
    items = [{"price_data": {"product_data": {"name": "Mug"}, "unit_amount": 500}, "quantity": 1}]
    assert validate_gateway_items(items)[0]["price_data"]["currency"] == "usd"

@pytest.mark.parametrize("items", [
    [{"quantity": 1}],
    [{"price_data": {"product_data": {"name": "x"}, "unit_amount": 1.5}, "quantity": 1}],
    [{"price_data": {"product_data": {"name": "x"}, "unit_amount": 100}, "quantity": 0}],
    [{"price_data": {"product_data": {"name": "x"}, "unit_amount": 100}}],
    [{"price_data": {"product_data": {}, "unit_amount": 100}, "quantity": 1}],
    [{"price_data": {"product_data": ["Mug"], "unit_amount": 100}, "quantity": 1}],
    [{"price_data": {"product_data": "Mug", "unit_amount": 100}, "quantity": 1}],
])
def test_validate_gateway_items_rejects_malformed(items):
    with pytest.raises(InvalidLineItemError):
        validate_gateway_items(items)

@pytest.mark.parametrize("items", [None, [], {"items": []}])
def test_validate_gateway_items_requires_non_empty_list(items):
    with pytest.raises(EmptyCartError):
        validate_gateway_items(items)
