from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import call

import pytest
from postgrest.exceptions import APIError

import storefront.orders.repository as repo
from storefront.errors import PersistenceError
from storefront.orders.models import Order, OrderStatus
from conftest import chain_client


def _use(monkeypatch, client, getter="get_service_supabase"):
    monkeypatch.setattr(f"storefront.infra.supabase_client.{getter}", lambda *a: client)
    return client

def test_insert_pending_order_uses_user_client_and_string_total(monkeypatch):
    client = _use(monkeypatch, chain_client([{"id": "o1", "status": "pending"}]), "get_user_supabase")
    row = repo.insert_pending_order(user_id="u1", customer_email="a@b.c", total_amount=Decimal("69.98"), user_token="tok")
    assert row["id"] == "o1"
    payload = client.table.return_value.insert.call_args.args[0]
    assert payload["total_amount"] == "69.98"
    assert payload["status"] == "pending"
    assert payload["stripe_session_id"] is None

def test_insert_pending_order_without_row_raises(monkeypatch):
    _use(monkeypatch, chain_client([]))
    with pytest.raises(PersistenceError):
        repo.insert_pending_order(user_id="u1", customer_email="a@b.c", total_amount=Decimal("1"))

def test_insert_pending_order_api_error_carries_code(monkeypatch):
    err = APIError({"message": "duplicate key", "code": "23505", "hint": None, "details": None})
    _use(monkeypatch, chain_client(error=err))
    with pytest.raises(PersistenceError) as exc:
        repo.insert_pending_order(user_id="u1", customer_email="a@b.c", total_amount=Decimal("1"))
    assert "23505" in exc.value.detail

def test_complete_if_pending_is_guarded_by_status(monkeypatch):
    client = _use(monkeypatch, chain_client([{"id": "o1", "status": "completed"}]))
    row = repo.complete_if_pending("cs_1", payment_intent_id="pi_1", customer_email="a@b.c")
    assert row["id"] == "o1"
    query = client.table.return_value
    query.update.assert_called_once_with({"status": "completed", "stripe_payment_intent_id": "pi_1", "customer_email": "a@b.c"})
    assert query.eq.call_args_list == [call("stripe_session_id", "cs_1"), call("status", "pending")]

def test_complete_if_pending_no_row_means_no_transition(monkeypatch):
    _use(monkeypatch, chain_client([]))
    assert repo.complete_if_pending("cs_1", payment_intent_id=None, customer_email=None) is None

def test_complete_order_by_id_links_session_and_is_guarded(monkeypatch):
    client = _use(monkeypatch, chain_client([{"id": "o1", "status": "completed", "stripe_session_id": "cs_1"}]))
    row = repo.complete_order_by_id_if_pending("o1", "cs_1", payment_intent_id="pi_1", customer_email=None)
    assert row["stripe_session_id"] == "cs_1"
    query = client.table.return_value
    query.update.assert_called_once_with({"status": "completed", "stripe_session_id": "cs_1", "stripe_payment_intent_id": "pi_1"})
    assert query.eq.call_args_list == [call("id", "o1"), call("status", "pending")]
    query.is_.assert_called_once_with("stripe_session_id", "null")

def test_mark_failed_if_pending_by_order_id(monkeypatch):
    client = _use(monkeypatch, chain_client([{"id": "o1", "status": "failed"}]))
    assert repo.mark_failed_if_pending(order_id="o1")["status"] == "failed"
    assert client.table.return_value.eq.call_args_list == [call("id", "o1"), call("status", "pending")]

def test_mark_failed_requires_a_key():
    with pytest.raises(ValueError):
        repo.mark_failed_if_pending()

def test_fetch_stale_pending_orders_filters_on_created_at(monkeypatch):
    client = _use(monkeypatch, chain_client([{"id": "o1"}]))
    cutoff = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert repo.fetch_stale_pending_orders(cutoff) == [{"id": "o1"}]
    client.table.return_value.lt.assert_called_once_with("created_at", cutoff.isoformat())

def test_list_user_orders_swallows_errors(monkeypatch):
    _use(monkeypatch, chain_client(error=RuntimeError("down")))
    assert repo.list_user_orders("u1") == []

def test_order_public_view():
    order = Order.from_row({
        "id": 7,
        "user_id": "u1",
        "customer_email": "a@b.c",
        "total_amount": "69.98",
        "status": "completed",
        "stripe_session_id": "cs_1",
        "created_at": "2024-05-01T10:00:00+00:00",
    })
    assert order.status is OrderStatus.COMPLETED
    assert order.to_public() == {
        "id": "7",
        "status": "completed",
        "totalAmount": 69.98,
        "customerEmail": "a@b.c",
        "sessionId": "cs_1",
        "createdAt": "2024-05-01T10:00:00+00:00",
    }
