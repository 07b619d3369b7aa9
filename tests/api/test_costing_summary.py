from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_cost_summary_uses_request_tax_rate() -> None:
    response = client.post(
        "/costing/summary",
        json={
            "products": [{"description": "Hydraulic filter", "unit_price": "100", "quantity": 2, "discount": "10"}],
            "services": [{"description": "Oil change", "unit_price": "50"}],
            "labor_charges": "40",
            "tax_rate": "0.05",
        },
    )
    assert response.status_code == 200, response.text
    summary = response.json()["summary"]
    assert summary["combined_subtotal"] == "280.00"
    assert summary["tax_amount"] == "14.00"
    assert summary["grand_total"] == "294.00"
    assert "settlement" not in response.json()


def test_cost_summary_accepts_percent_and_payment() -> None:
    response = client.post(
        "/costing/summary",
        json={
            "services": [{"description": "Inspection", "unit_price": "200"}],
            "tax_percent": "10",
            "paid_amount": "50",
            "due_date": "2024-01-31",
            "today": "2024-02-15",
        },
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["summary"]["grand_total"] == "220.00"
    assert body["settlement"]["balance"] == "170.00"
    assert body["settlement"]["payment_status"] == "Overdue"


def test_cost_summary_rejects_bad_line() -> None:
    response = client.post(
        "/costing/summary",
        json={"products": [{"description": "Bolt", "unit_price": "5", "quantity": 0}]},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "quantity"
