from decimal import Decimal

import pytest
from httpx import AsyncClient

REFUNDS_API_PREFIX = "/api/v1/refunds"
INVOICES_API_PREFIX = "/api/v1/invoices"


async def invoice_from_order(client: AsyncClient, headers, order_id: int) -> dict:
    response = await client.post(f"{INVOICES_API_PREFIX}/from-order/{order_id}", headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_refunds_require_admin(test_client: AsyncClient, auth_headers_user):
    response = await test_client.post(
        REFUNDS_API_PREFIX + "/", json={"invoice_id": 1, "amount": "10.00", "reason": "Défaut produit"}, headers=auth_headers_user
    )
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_submit_and_list_refunds(test_client: AsyncClient, auth_headers_admin, card_order, payment_processor):
    invoice = await invoice_from_order(test_client, auth_headers_admin, card_order.id)

    proposal = await test_client.get(f"{REFUNDS_API_PREFIX}/initiate/{invoice['id']}", headers=auth_headers_admin)
    assert proposal.status_code == 200
    assert Decimal(proposal.json()["refundable_amount"]) == Decimal("120.00")

    response = await test_client.post(
        REFUNDS_API_PREFIX + "/",
        json={"invoice_id": invoice["id"], "amount": "40.00", "reason": "Retour produit", "admin_notes": "Colis abîmé"},
        headers=auth_headers_admin,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Remboursement de 40.00€ traité avec succès."
    assert Decimal(data["refundable_amount"]) == Decimal("80.00")
    assert data["refund"]["processed_by"] == "admin-1"
    assert payment_processor.refund_calls[0]["metadata"]["admin_notes"] == "Colis abîmé"

    listed = await test_client.get(REFUNDS_API_PREFIX + "/", params={"invoice_id": invoice["id"]}, headers=auth_headers_admin)
    assert listed.status_code == 200
    assert [r["stripe_refund_id"] for r in listed.json()] == ["re_test_1"]
    assert listed.headers["Content-Range"] == "refunds 0-0/1"

    detail = await test_client.get(f"{INVOICES_API_PREFIX}/{invoice['id']}", headers=auth_headers_admin)
    payment_status = detail.json()["payment_status"]
    assert Decimal(payment_status["total_refunded"]) == Decimal("40.00")
    assert payment_status["has_partial_refund"] is True

@pytest.mark.asyncio
async def test_refund_too_high_returns_400(test_client: AsyncClient, auth_headers_admin, card_order):
    invoice = await invoice_from_order(test_client, auth_headers_admin, card_order.id)
    response = await test_client.post(
        REFUNDS_API_PREFIX + "/",
        json={"invoice_id": invoice["id"], "amount": "500.00", "reason": "Retour produit"},
        headers=auth_headers_admin,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Montant de remboursement trop élevé. Maximum disponible : 120.00€"

@pytest.mark.asyncio
async def test_refund_unknown_invoice_returns_404(test_client: AsyncClient, auth_headers_admin):
    response = await test_client.post(
        REFUNDS_API_PREFIX + "/",
        json={"invoice_id": 4242, "amount": "10.00", "reason": "Retour produit"},
        headers=auth_headers_admin,
    )
    assert response.status_code == 404
