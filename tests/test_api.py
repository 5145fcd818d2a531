import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    testing_session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(client: TestClient, email: str = "ana@example.com") -> dict[str, str]:
    resp = client.post(
        "/auth/register", json={"email": email, "password": "secret1", "name": "Ana"}
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _category_id(client: TestClient, headers: dict[str, str], name: str) -> int:
    categories = client.get("/categories", headers=headers).json()
    return next(c["id"] for c in categories if c["name"] == name)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_requests_without_token_are_rejected(client):
    assert client.get("/categories").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/months/2024-03/overview", headers=bad).status_code == 401


def test_register_login_and_default_categories(client):
    headers = _auth(client)
    categories = client.get("/categories", headers=headers).json()
    assert {c["name"] for c in categories} >= {"Rent", "Groceries", "Salary"}

    login = client.post(
        "/auth/login", json={"email": "ana@example.com", "password": "secret1"}
    )
    assert login.status_code == 200
    assert login.json()["user"]["email"] == "ana@example.com"

    wrong = client.post(
        "/auth/login", json={"email": "ana@example.com", "password": "nope123"}
    )
    assert wrong.status_code == 401

    again = client.post(
        "/auth/register", json={"email": "ana@example.com", "password": "secret1"}
    )
    assert again.status_code == 409


def test_category_errors_map_to_status_codes(client):
    headers = _auth(client)
    assert (
        client.post(
            "/categories", json={"name": "Rent", "kind": "fixed_expense"}, headers=headers
        ).status_code
        == 409
    )
    assert (
        client.post(
            "/categories", json={"name": "Pets", "kind": "pets"}, headers=headers
        ).status_code
        == 400
    )
    created = client.post(
        "/categories", json={"name": "Pets", "kind": "variable_expense"}, headers=headers
    )
    assert created.status_code == 201
    assert created.json()["kind"] == "variable_expense"


def test_month_overview_flow(client):
    headers = _auth(client)
    salary = _category_id(client, headers, "Salary")
    rent = _category_id(client, headers, "Rent")
    groceries = _category_id(client, headers, "Groceries")
    for amount, txn_type, category_id in (
        (5000, "income", salary),
        (1500, "expense", rent),
        (300, "expense", groceries),
    ):
        resp = client.post(
            "/transactions",
            json={
                "amount": amount,
                "type": txn_type,
                "date": "2024-03-05",
                "category_id": category_id,
            },
            headers=headers,
        )
        assert resp.status_code == 201

    resp = client.get("/months/2024-03/overview", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["period"] == {"from": "2024-03-01T00:00:00", "to": "2024-03-31T23:59:59"}
    assert body["totals"]["balance"] == 3200
    assert body["totals"]["savings_rate"] == 0.64
    assert body["totals"]["fixed_pct"] == 0.3
    assert body["totals"]["variable_pct"] == 0.06
    assert body["bills"] == {
        "total_due": 0,
        "total_paid": 0,
        "total_open": 0,
        "items": [],
    }

    summary = client.get(
        "/transactions/summary",
        params={"from": "2024-03-01", "to": "2024-03-31"},
        headers=headers,
    ).json()
    assert summary == {"total_income": 5000, "total_expense": 1800, "balance": 3200}

    by_category = client.get(
        "/transactions/summary/by-category", headers=headers
    ).json()
    assert by_category["by_kind"] == {"fixed": 1500, "variable": 300, "income": 5000}

    assert client.get("/months/2024-13/overview", headers=headers).status_code == 400


def test_transaction_validation_errors(client):
    headers = _auth(client)
    zero = client.post(
        "/transactions", json={"amount": 0, "type": "expense"}, headers=headers
    )
    assert zero.status_code == 400
    bad_type = client.post(
        "/transactions", json={"amount": 10, "type": "transfer"}, headers=headers
    )
    assert bad_type.status_code == 400
    assert client.delete("/transactions/999", headers=headers).status_code == 404


def test_pay_bill_twice_and_cross_user_access(client):
    ana = _auth(client)
    bo = _auth(client, "bo@example.com")
    bill = client.post(
        "/bills",
        json={"description": "Internet", "amount": 49.9, "due_date": "2024-03-10"},
        headers=ana,
    ).json()

    first = client.post(f"/bills/{bill['id']}/pay", headers=ana)
    assert first.status_code == 200
    assert first.json()["paid"] is True
    second = client.post(f"/bills/{bill['id']}/pay", headers=ana)
    assert second.json()["paid_transaction_id"] == first.json()["paid_transaction_id"]

    transactions = client.get("/transactions", headers=ana).json()
    assert len(transactions) == 1
    assert transactions[0]["amount"] == 49.9

    assert client.post(f"/bills/{bill['id']}/pay", headers=bo).status_code == 404
    assert client.get("/bills", headers=bo).json() == []

    delete_txn = client.delete(
        f"/transactions/{first.json()['paid_transaction_id']}", headers=ana
    )
    assert delete_txn.status_code == 409


def test_bill_templates_generate_month(client):
    headers = _auth(client)
    resp = client.post(
        "/bill-templates",
        json={"description": "Rent", "amount": 800, "due_day": 31},
        headers=headers,
    )
    assert resp.status_code == 201

    generated = client.post("/bills/generate/2024-02", headers=headers).json()
    assert [b["due_date"] for b in generated] == ["2024-02-29"]
    assert client.post("/bills/generate/2024-02", headers=headers).json() == []

    open_bills = client.get("/bills", params={"status": "open"}, headers=headers).json()
    assert len(open_bills) == 1


def test_financial_advice_endpoint(client):
    headers = _auth(client)
    groceries = _category_id(client, headers, "Groceries")
    client.post(
        "/transactions",
        json={"amount": 1000, "type": "income", "date": "2024-03-01"},
        headers=headers,
    )
    client.post(
        "/transactions",
        json={
            "amount": 1500,
            "type": "expense",
            "date": "2024-03-02",
            "category_id": groceries,
        },
        headers=headers,
    )

    resp = client.get("/advice/financial", params={"ym": "2024-03"}, headers=headers)
    assert resp.status_code == 200
    advices = {a["id"]: a for a in resp.json()["advices"]}
    assert advices["negative-balance"]["severity"] == "alert"
    assert "500.00" in advices["negative-balance"]["message"]
    assert resp.json()["totals"]["balance"] == -500

    assert (
        client.get(
            "/advice/financial", params={"ym": "2024-3x"}, headers=headers
        ).status_code
        == 400
    )


def test_amounts_come_back_exactly_as_sent(client):
    headers = _auth(client)
    created = client.post(
        "/transactions",
        json={"amount": "9999999999999.99", "type": "income", "date": "2024-03-05"},
        headers=headers,
    )
    assert created.status_code == 201
    assert "9999999999999.99" in created.text

    listed = client.get("/transactions", headers=headers)
    assert "9999999999999.99" in listed.text
    overview = client.get("/months/2024-03/overview", headers=headers)
    assert '"income":9999999999999.99' in overview.text.replace(" ", "")


def test_amounts_above_the_maximum_are_rejected(client):
    headers = _auth(client)
    for amount in ("100000000000000000000", 12345678901234567.89):
        resp = client.post(
            "/transactions",
            json={"amount": amount, "type": "income", "date": "2024-03-05"},
            headers=headers,
        )
        assert resp.status_code == 400
    assert client.get("/transactions", headers=headers).json() == []
