# Overview: Pytest coverage for the JSON API surface and its error mapping.

"""
HTTP-level tests. Setup goes through the API too, so every write is a
committed request.
"""

import pytest


def _product(client, name="Amoxicillin 250mg", quantity=5, unit_cost=10.0, price=20):
    resp = client.post("/api/products", json={
        "name": name,
        "sale_price": price,
        "batch": {"lot_number": "B-1", "quantity": quantity, "unit_cost": unit_cost, "expiry_date": "2030-05-01"},
    })
    assert resp.status_code == 201
    return resp.get_json()["product"]


def _party(client, kind, name, **extra):
    resp = client.post(f"/api/{kind}", json={"name": name, **extra})
    assert resp.status_code == 201
    return resp.get_json()["item"]


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert set(body["checks"]) == {"database", "ledger"}
        assert body["checks"]["ledger"]["details"]["base_currency"] == "AFN"

    def test_health_reports_open_edit(self, client, db_session):
        product = _product(client)
        sale = client.post("/api/sales/checkout", json={"cart": [{"item_id": product["id"], "quantity": 1}]})
        client.post(f"/api/sales/{sale.get_json()['invoice']['id']}/edit")

        body = client.get("/health").get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["ledger"]["details"]["open_edits"] == {"sale": "F1"}

    def test_version(self, client, db_session):
        body = client.get("/version").get_json()
        assert body["api_version"]
        assert "python_version" in body


class TestInventory:
    def test_create_and_list(self, client, db_session):
        product = _product(client, quantity=7)
        assert product["total_stock"] == 7

        body = client.get("/api/products").get_json()
        assert body["count"] == 1
        assert body["items"][0]["batches"][0]["lot_number"] == "B-1"

        lean = client.get("/api/products?include_batches=0").get_json()
        assert "batches" not in lean["items"][0]

    def test_missing_name_is_400(self, client, db_session):
        resp = client.post("/api/products", json={"sale_price": 5})
        assert resp.status_code == 400
        assert resp.get_json()["type"] == "InvalidInput"


class TestSales:
    def test_checkout_and_insufficient_stock(self, client, db_session):
        product = _product(client)
        customer = _party(client, "customers", "Ahmad")

        resp = client.post("/api/sales/checkout", json={
            "cart": [{"item_type": "product", "item_id": product["id"], "quantity": 3}],
            "customer_id": customer["id"],
            "cashier": "amina",
        })
        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert invoice["id"] == "F1"
        assert invoice["total_amount"] == pytest.approx(60)

        resp = client.post("/api/sales/checkout", json={
            "cart": [{"item_id": product["id"], "quantity": 10}],
        })
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["type"] == "InsufficientStock"
        assert body["details"]["on_hand"] == 2

    def test_edit_round_trip(self, client, db_session):
        product = _product(client)
        sale = client.post("/api/sales/checkout", json={"cart": [{"item_id": product["id"], "quantity": 2}]})
        invoice_id = sale.get_json()["invoice"]["id"]

        opened = client.post(f"/api/sales/{invoice_id}/edit").get_json()
        assert client.get("/api/sales/edit").get_json()["editing_invoice_id"] == invoice_id

        resp = client.post("/api/sales/checkout", json={"cart": opened["cart"]})
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["id"] == invoice_id
        assert client.get("/api/sales/edit").get_json()["editing_invoice_id"] is None

    def test_missing_sale_is_404(self, client, db_session):
        resp = client.get("/api/sales/F99")
        assert resp.status_code == 404
        assert resp.get_json()["type"] == "EntityNotFound"

    def test_return(self, client, db_session):
        product = _product(client)
        sale = client.post("/api/sales/checkout", json={"cart": [{"item_id": product["id"], "quantity": 3}]})
        invoice_id = sale.get_json()["invoice"]["id"]

        resp = client.post(f"/api/sales/{invoice_id}/returns", json={
            "lines": [{"item_id": product["id"], "quantity": 1}],
        })
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["id"] == "R1"

        resp = client.post(f"/api/sales/{invoice_id}/returns", json={
            "lines": [{"item_id": product["id"], "quantity": 5}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["type"] == "ExcessiveReturnQuantity"


class TestSettings:
    def test_get_defaults(self, client, db_session):
        body = client.get("/api/settings").get_json()["settings"]
        assert body["base_currency"] == "AFN"
        assert body["base_currency_locked"] is False
        assert body["editing"] == {"sale": None, "purchase": None}

    def test_base_currency_locked_is_409(self, client, db_session):
        _party(client, "customers", "Ahmad", opening_balance=100)

        assert client.get("/api/settings").get_json()["settings"]["base_currency_locked"] is True
        resp = client.put("/api/settings", json={"base_currency": "USD"})
        assert resp.status_code == 409
        assert resp.get_json()["type"] == "BaseCurrencyLocked"

    def test_update(self, client, db_session):
        resp = client.put("/api/settings", json={"store_name": "Shifa Pharmacy", "low_stock_threshold": 3})
        assert resp.status_code == 200
        assert resp.get_json()["settings"]["store_name"] == "Shifa Pharmacy"


class TestAccounts:
    def test_customer_payment(self, client, db_session):
        customer = _party(client, "customers", "Ahmad", opening_balance=500)

        resp = client.post(f"/api/customers/{customer['id']}/payments", json={"amount": 200})
        assert resp.status_code == 201
        assert resp.get_json()["transaction"]["amount"] == pytest.approx(-200)

        body = client.get(f"/api/customers/{customer['id']}").get_json()
        assert body["item"]["balance"] == pytest.approx(300)
        assert [t["type"] for t in body["transactions"]] == ["opening_balance", "payment"]

    def test_delete_with_balance_is_409(self, client, db_session):
        supplier = _party(client, "suppliers", "Kabul Pharma", opening_balance=50, balance_type="creditor")
        resp = client.delete(f"/api/suppliers/{supplier['id']}")
        assert resp.status_code == 409
        assert resp.get_json()["type"] == "NonZeroBalance"

    def test_deposit_holder_flow(self, client, db_session):
        holder = _party(client, "deposit-holders", "Nadia")
        assert client.post(f"/api/deposit-holders/{holder['id']}/deposits", json={"amount": 100}).status_code == 201

        resp = client.post(f"/api/deposit-holders/{holder['id']}/withdrawals", json={"amount": 150, "description": "x"})
        assert resp.status_code == 409
        assert resp.get_json()["type"] == "InsufficientBalance"

    def test_unknown_kind_or_movement_is_404(self, client, db_session):
        assert client.get("/api/vendors").status_code == 404
        customer = _party(client, "customers", "Ahmad")
        assert client.post(f"/api/customers/{customer['id']}/withdrawals", json={"amount": 1}).status_code == 404

    def test_payroll(self, client, db_session):
        employee = _party(client, "employees", "Farid", monthly_salary=10000)
        client.post(f"/api/employees/{employee['id']}/advances", json={"amount": 2000})

        resp = client.post("/api/payroll/pay")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["total_paid"] == pytest.approx(8000)
        assert body["expense"]["amount"] == pytest.approx(10000)

    def test_expenses(self, client, db_session):
        resp = client.post("/api/expenses", json={"category": "rent", "amount": 3000})
        assert resp.status_code == 201
        expense_id = resp.get_json()["item"]["id"]

        assert client.get("/api/expenses?category=rent").get_json()["count"] == 1
        assert client.delete(f"/api/expenses/{expense_id}").status_code == 200
        assert client.get("/api/expenses").get_json()["count"] == 0


class TestPurchasesAndShipments:
    def test_purchase_with_landed_cost(self, client, db_session):
        product = _product(client)
        supplier = _party(client, "suppliers", "Kabul Pharma")

        resp = client.post("/api/purchases", json={
            "supplier_id": supplier["id"],
            "items": [{"product_id": product["id"], "lot_number": "P-1", "quantity": 100, "unit_price": 10}],
            "additional_cost": 500,
        })
        assert resp.status_code == 201
        line = resp.get_json()["invoice"]["lines"][0]
        assert line["unit_cost_base"] == pytest.approx(15)

        resp = client.post("/api/purchases", json={
            "supplier_id": supplier["id"],
            "items": [{"product_id": product["id"], "quantity": 1, "unit_price": 1}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["type"] == "MissingLotNumber"

    def test_shipment_flow(self, client, db_session):
        product = _product(client)
        supplier = _party(client, "suppliers", "Kabul Pharma")

        resp = client.post("/api/in-transit", json={
            "supplier_id": supplier["id"],
            "items": [{"product_id": product["id"], "quantity": 10, "unit_price": 8}],
        })
        assert resp.status_code == 201
        shipment_id = resp.get_json()["shipment"]["id"]

        resp = client.post(f"/api/in-transit/{shipment_id}/move", json={
            "movements": [{"product_id": product["id"], "to_transit": 10, "to_received": 4, "lot_number": "IT-A"}],
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["purchase"]["source_in_transit_id"] == shipment_id
        assert body["shipment"]["lines"][0]["in_transit_qty"] == 6

        resp = client.post(f"/api/in-transit/{shipment_id}/move", json={
            "movements": [{"product_id": product["id"], "to_received": 1, "lot_number": "B-1"}],
        })
        assert resp.status_code == 409
        assert resp.get_json()["details"]["found_in"] == "warehouse"

        assert client.delete(f"/api/in-transit/{shipment_id}").status_code == 409
        archived = client.post(f"/api/in-transit/{shipment_id}/archive").get_json()["shipment"]
        assert archived["remainder_cancelled"] is True
