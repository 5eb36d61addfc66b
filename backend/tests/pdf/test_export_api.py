from datetime import datetime

import pytest
from httpx import AsyncClient

from omega.pdf.application.services import PLANNING_TITLE, generated_at_line, pdf_file_name

INVOICES_API_PREFIX = "/api/v1/invoices"
QUOTES_API_PREFIX = "/api/v1/quotes"
EXPORTS_API_PREFIX = "/api/v1/exports"


def test_generated_at_line():
    assert generated_at_line(datetime(2026, 10, 3, 8, 5, 9)) == "Généré le 03/10/2026 à 08:05:09"

@pytest.mark.parametrize("file_name, expected", [
    (None, "export.pdf"),
    ("  ", "export.pdf"),
    ("devis-hotel", "devis-hotel.pdf"),
    ("planning.PDF", "planning.PDF"),
])
def test_pdf_file_name(file_name, expected):
    assert pdf_file_name(file_name) == expected

@pytest.mark.asyncio
async def test_export_invoice_element(test_client: AsyncClient, auth_headers_admin, invoice_payload, mock_pdf_generator):
    created = await test_client.post(INVOICES_API_PREFIX + "/", json=invoice_payload(), headers=auth_headers_admin)
    invoice = created.json()

    response = await test_client.post(
        EXPORTS_API_PREFIX + "/element",
        json={"source_id": f"invoice:{invoice['id']}", "file_name": "facture-atelier"},
        headers=auth_headers_admin,
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="facture-atelier.pdf"'

    snapshot = mock_pdf_generator.snapshots[-1]
    assert snapshot.title == f"Facture {invoice['invoice_number']}"
    assert snapshot.rows[0][0] == "Table de réunion"
    assert "Net à payer : 120.00 €" in snapshot.summary_lines

@pytest.mark.asyncio
async def test_export_quote_element(test_client: AsyncClient, auth_headers_admin, mock_pdf_generator):
    created = await test_client.post(
        QUOTES_API_PREFIX + "/",
        json={"customer_name": "Hôtel du Port", "items": [{"description": "Banc", "quantity": 2, "unit_price_ht": "80.00"}]},
        headers=auth_headers_admin,
    )
    quote = created.json()

    response = await test_client.post(
        EXPORTS_API_PREFIX + "/element", json={"source_id": f"quote:{quote['id']}"}, headers=auth_headers_admin
    )
    assert response.status_code == 200
    assert mock_pdf_generator.snapshots[-1].title == f"Devis {quote['quote_number']}"
    assert "Statut : Brouillon" in mock_pdf_generator.snapshots[-1].subtitle_lines

@pytest.mark.asyncio
@pytest.mark.parametrize("source_id", ["invoice:999", "quote:abc", "planning", "invoice:"])
async def test_export_unknown_element(test_client: AsyncClient, auth_headers_admin, mock_pdf_generator, source_id):
    response = await test_client.post(EXPORTS_API_PREFIX + "/element", json={"source_id": source_id}, headers=auth_headers_admin)
    assert response.status_code == 404
    assert mock_pdf_generator.snapshots == []

@pytest.mark.asyncio
async def test_export_planning(test_client: AsyncClient, auth_headers_admin, mock_pdf_generator):
    response = await test_client.post(
        EXPORTS_API_PREFIX + "/planning",
        json={"columns": ["Jour", "Commande", "Atelier"], "rows": [["Lundi", "#42", "Menuiserie"]]},
        headers=auth_headers_admin,
    )
    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="planning.pdf"'

    snapshot = mock_pdf_generator.snapshots[-1]
    assert snapshot.title == PLANNING_TITLE
    assert snapshot.subtitle_lines[0].startswith("Généré le ")
    assert snapshot.rows == [["Lundi", "#42", "Menuiserie"]]

@pytest.mark.asyncio
async def test_export_planning_requires_columns(test_client: AsyncClient, auth_headers_admin):
    response = await test_client.post(
        EXPORTS_API_PREFIX + "/planning", json={"columns": [], "rows": []}, headers=auth_headers_admin
    )
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_exports_require_admin(test_client: AsyncClient, auth_headers_user):
    response = await test_client.post(
        EXPORTS_API_PREFIX + "/planning", json={"columns": ["Jour"], "rows": []}, headers=auth_headers_user
    )
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_download_invoice_pdf(test_client: AsyncClient, auth_headers_admin, invoice_payload, mock_pdf_generator):
    created = await test_client.post(INVOICES_API_PREFIX + "/", json=invoice_payload(), headers=auth_headers_admin)
    invoice = created.json()

    response = await test_client.get(f"{INVOICES_API_PREFIX}/{invoice['id']}/pdf", headers=auth_headers_admin)
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")
    assert response.headers["content-disposition"] == f'inline; filename="facture-{invoice["invoice_number"]}.pdf"'

    invoice_data = mock_pdf_generator.invoices[-1]
    assert invoice_data["seller"]["company_name"] == "OMEGA"
    assert invoice_data["payment_status"]["is_fully_paid"] is False

@pytest.mark.asyncio
async def test_download_invoice_pdf_failure(test_client: AsyncClient, auth_headers_admin, invoice_payload):
    created = await test_client.post(
        INVOICES_API_PREFIX + "/", json=invoice_payload(customer_name="fail_invoice"), headers=auth_headers_admin
    )
    response = await test_client.get(f"{INVOICES_API_PREFIX}/{created.json()['id']}/pdf", headers=auth_headers_admin)
    assert response.status_code == 500

@pytest.mark.asyncio
async def test_download_unknown_invoice_pdf(test_client: AsyncClient, auth_headers_admin):
    response = await test_client.get(f"{INVOICES_API_PREFIX}/999/pdf", headers=auth_headers_admin)
    assert response.status_code == 404
