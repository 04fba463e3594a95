import pytest
import stripe
from unittest.mock import MagicMock

from storefront.errors import (
    AuthError,
    GatewayError,
    GatewayUnavailableError,
    InvalidLineItemError,
    ValidationError,
)
from storefront.payments import stripe_client
from storefront.payments.handoff import handoff, validate_gateway_url


def _params():
    return dict(
        line_items=[{"price_data": {"currency": "usd", "product_data": {"name": "Mug"}, "unit_amount": 500}, "quantity": 1}],
        success_url="https://shop.test/success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://shop.test/",
        metadata={"user_id": "u1", "user_email": "a@b.c"},
    )

def test_create_session_passes_checkout_options(monkeypatch):
    create = MagicMock(return_value={"id": "cs_1", "url": "https://checkout.stripe.com/c/pay/cs_1"})
    monkeypatch.setattr(stripe.checkout.Session, "create", create)

    session = stripe_client.create_session(customer_id="cus_9", customer_email="a@b.c", **_params())

    assert session["id"] == "cs_1"
    kwargs = create.call_args.kwargs
    assert kwargs["mode"] == "payment"
    assert kwargs["customer"] == "cus_9"
    assert "customer_email" not in kwargs
    assert kwargs["payment_intent_data"] == {"metadata": {"user_id": "u1"}}
    assert kwargs["allow_promotion_codes"] is True
    assert kwargs["billing_address_collection"] == "required"
    assert "FR" in kwargs["shipping_address_collection"]["allowed_countries"]

def test_create_session_falls_back_to_customer_email(monkeypatch):
    create = MagicMock(return_value={"id": "cs_1", "url": "u"})
    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    stripe_client.create_session(customer_email="a@b.c", **_params())
    assert create.call_args.kwargs["customer_email"] == "a@b.c"

@pytest.mark.parametrize("sdk_error,expected", [
    (stripe.InvalidRequestError("bad unit_amount", param="line_items"), InvalidLineItemError),
    (stripe.AuthenticationError("no key"), AuthError),
    (stripe.APIConnectionError("network down"), GatewayUnavailableError),
    (stripe.RateLimitError("slow down"), GatewayUnavailableError),
    (stripe.APIError("server"), GatewayError),
])
def test_create_session_translates_sdk_errors(monkeypatch, sdk_error, expected):
    monkeypatch.setattr(stripe.checkout.Session, "create", MagicMock(side_effect=sdk_error))
    with pytest.raises(expected):
        stripe_client.create_session(**_params())

def test_get_session_expands_payment_intent(monkeypatch):
    retrieve = MagicMock(return_value={"id": "cs_1", "payment_status": "paid"})
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", retrieve)
    assert stripe_client.get_session("cs_1", expand=["payment_intent"])["payment_status"] == "paid"
    retrieve.assert_called_once_with("cs_1", expand=["payment_intent"])

def test_get_session_requires_id():
    with pytest.raises(ValidationError):
        stripe_client.get_session("")

def test_find_session_for_order_matches_reference(monkeypatch):
    listing = MagicMock(return_value={"data": [
        {"id": "cs_a", "client_reference_id": "o9", "metadata": {}},
        {"id": "cs_b", "client_reference_id": None, "metadata": {"order_id": "o1"}},
    ]})
    monkeypatch.setattr(stripe.checkout.Session, "list", listing)
    assert stripe_client.find_session_for_order("o1", created_gte=1717243200)["id"] == "cs_b"
    listing.assert_called_once_with(limit=100, created={"gte": 1717243200})
    assert stripe_client.find_session_for_order("o404") is None

def test_find_session_for_order_translates_sdk_errors(monkeypatch):
    monkeypatch.setattr(stripe.checkout.Session, "list", MagicMock(side_effect=stripe.APIConnectionError("down")))
    with pytest.raises(GatewayUnavailableError):
        stripe_client.find_session_for_order("o1")

def test_find_customer_id_best_effort(monkeypatch):
    monkeypatch.setattr(stripe.Customer, "list", MagicMock(return_value={"data": [{"id": "cus_1"}]}))
    assert stripe_client.find_customer_id("a@b.c") == "cus_1"
    monkeypatch.setattr(stripe.Customer, "list", MagicMock(side_effect=stripe.APIConnectionError("down")))
    assert stripe_client.find_customer_id("a@b.c") is None
    assert stripe_client.find_customer_id("") is None

# --- handoff ---

def test_handoff_redirects_303_to_stripe():
    resp = handoff("https://checkout.stripe.com/c/pay/cs_1")
    assert resp.status_code == 303
    assert resp.headers["location"] == "https://checkout.stripe.com/c/pay/cs_1"

@pytest.mark.parametrize("url", [
    "http://checkout.stripe.com/c/pay/cs_1",
    "https://evil.example.com/c/pay/cs_1",
    "https://checkout.stripe.com.evil.io/",
    "",
])
def test_handoff_rejects_unexpected_urls(url):
    with pytest.raises(ValidationError):
        validate_gateway_url(url)
