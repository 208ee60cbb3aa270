"""
POS API Integration Tests

HTTP tests for /api/pos/: sessions, attach, capture and void.
"""
import pytest

from orders.models import Order


def _open(api_client, terminal="T-1", cash="1000.00"):
    return api_client.post("/api/pos/sessions/", {"terminal_id": terminal, "opening_cash": cash}, format="json")


def _attach(api_client, session_id, order_numbers, **extra):
    payload = {"session_id": session_id, "order_numbers": order_numbers, **extra}
    return api_client.post("/api/pos/transactions/attach/", payload, format="json")


@pytest.mark.django_db
class TestSessionEndpoints:
    """Test /api/pos/sessions/"""

    def test_open_defaults_operator_to_actor(self, api_client, actor):
        response = _open(api_client)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["operator_id"] == actor
        assert data["opening_cash"] == "1000.000"

    def test_duplicate_open_is_409(self, api_client):
        _open(api_client)
        response = _open(api_client)

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_close_and_summary(self, api_client):
        session_id = _open(api_client).json()["id"]

        summary = api_client.get(f"/api/pos/sessions/{session_id}/summary/")
        assert summary.status_code == 200
        assert summary.json()["expected_cash"] == "1000.00"

        closed = api_client.post(
            f"/api/pos/sessions/{session_id}/close/", {"closing_cash": "990.00"}, format="json"
        )
        assert closed.status_code == 200
        assert closed.json()["status"] == "closed"
        assert closed.json()["cash_variance"] == "-10.000"

    def test_list_filters_by_terminal(self, api_client):
        _open(api_client, terminal="T-1")
        _open(api_client, terminal="T-2")

        response = api_client.get("/api/pos/sessions/", {"terminal_id": "T-2"})

        assert response.json()["count"] == 1
        assert response.json()["results"][0]["terminal_id"] == "T-2"

    def test_unknown_session_is_404(self, api_client):
        response = api_client.get("/api/pos/sessions/00000000-0000-0000-0000-000000000000/summary/")
        assert response.status_code == 404


@pytest.mark.django_db
class TestTransactionEndpoints:
    """Test /api/pos/transactions/"""

    def test_full_settlement_flow(self, api_client, served_order):
        order = served_order()
        session_id = _open(api_client).json()["id"]

        attached = _attach(api_client, session_id, [order.order_number])
        assert attached.status_code == 201
        txn = attached.json()
        assert txn["total"] == "357.000"
        assert [line["order_number"] for line in txn["lines"]] == [order.order_number]

        short = api_client.post(
            f"/api/pos/transactions/{txn['id']}/capture/",
            {"amount_tendered": "356.99", "method": "cash"},
            format="json",
        )
        assert short.status_code == 422
        assert short.json()["error"] == "amount_mismatch"
        assert short.json()["details"] == {"expected": "357.00", "tendered": "356.99"}

        captured = api_client.post(
            f"/api/pos/transactions/{txn['id']}/capture/",
            {"amount_tendered": "500", "method": "cash"},
            format="json",
            HTTP_IDEMPOTENCY_KEY="cap-9",
        )
        assert captured.status_code == 200
        assert captured.json()["status"] == "captured"
        assert captured.json()["change_amount"] == "143.000"
        assert captured.json()["lines"][0]["order_status"] == Order.OrderStatus.SETTLED

        voided = api_client.post(
            f"/api/pos/transactions/{txn['id']}/void/", {"reason": "duplicate"}, format="json"
        )
        assert voided.status_code == 200
        assert voided.json()["status"] == "voided"

        order = api_client.get(f"/api/orders/{order.order_number}/").json()
        assert order["status"] == "served"

    def test_attach_twice_is_409(self, api_client, served_order):
        order = served_order()
        session_id = _open(api_client).json()["id"]
        _attach(api_client, session_id, [order.order_number])

        response = _attach(api_client, session_id, [order.order_number])

        assert response.status_code == 409
        assert response.json()["error"] == "already_settled"

    def test_attach_to_existing_transaction_is_200(self, api_client, served_order):
        first, second = served_order(), served_order([("shake", 1)])
        session_id = _open(api_client).json()["id"]
        txn_id = _attach(api_client, session_id, [first.order_number]).json()["id"]

        response = _attach(api_client, session_id, [second.order_number], transaction_id=txn_id)

        assert response.status_code == 200
        assert response.json()["total"] == "483.000"

    def test_attach_validates_payload(self, api_client):
        response = api_client.post("/api/pos/transactions/attach/", {"order_numbers": []}, format="json")
        assert response.status_code == 400

    def test_capture_rejects_unknown_method(self, api_client, served_order):
        order = served_order()
        session_id = _open(api_client).json()["id"]
        txn_id = _attach(api_client, session_id, [order.order_number]).json()["id"]

        response = api_client.post(
            f"/api/pos/transactions/{txn_id}/capture/",
            {"amount_tendered": "357.00", "method": "cheque"},
            format="json",
        )
        assert response.status_code == 400
